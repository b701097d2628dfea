"""Interface of the external generative capability."""

from abc import ABC, abstractmethod

from ..models.enums import AnimationTemplate
from ..models.schemas import AnalysisResult, Coordinates, EditPlan


class GenerativeService(ABC):
    """
    Image edit, segmentation, analysis and video capability.

    The core only talks to the capability through these four calls, always
    via the TaskScheduler.
    """

    @abstractmethod
    async def execute_edit(self, image_url: str, mime_type: str, plan: EditPlan) -> str:
        """
        Apply ``plan`` to the image and return the edited image URL.

        Auxiliary images are sent after the source image and before the text
        prompt.

        Raises:
            NoOutputProduced: If the capability returns no image
        """

    @abstractmethod
    async def generate_object_mask(
        self, image_url: str, mime_type: str, coordinates: Coordinates
    ) -> str:
        """Return a black/white mask of the object at normalized ``coordinates``."""

    @abstractmethod
    async def analyze_image(self, image_url: str, mime_type: str) -> AnalysisResult:
        """Assess the photo for listing quality and compliance issues."""

    @abstractmethod
    async def generate_video(
        self, image_url: str, mime_type: str, template: AnimationTemplate
    ) -> str:
        """Render a short listing video and return it as a playable URL.

        Long-running; polls until complete.
        """
