"""Pytest configuration and shared fixtures."""

from typing import AsyncGenerator, List

import pytest

from listing_studio.core import (
    ComplianceValidator,
    CreditLedger,
    EditPlanner,
    TaskScheduler,
    WorkflowController,
)
from listing_studio.models.enums import AnimationTemplate
from listing_studio.models.schemas import AnalysisResult, Coordinates, EditPlan, ImageAsset
from listing_studio.providers.generative import GenerativeService
from listing_studio.utils.cache import Cache

PNG_URL = "data:image/png;base64,iVBORw0KGgo="
MASK_URL = "data:image/png;base64,TUFTSw=="


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class RecordingSleep:
    """Stands in for asyncio.sleep and records requested delays."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float):
        self.delays.append(delay)


class FakeGenerativeService(GenerativeService):
    """In-memory capability that records every call."""

    def __init__(self):
        self.calls: List[tuple] = []
        self.fail_urls = set()
        self.analysis = AnalysisResult(
            room_type="kitchen",
            quality_score=82,
            lighting="Natural",
            clutter_level="Low",
            compliance_issues=[],
            marketing_description="Bright kitchen with island seating.",
            suggested_edits=["Brighten"],
        )
        self._counter = 0

    async def execute_edit(self, image_url: str, mime_type: str, plan: EditPlan) -> str:
        self.calls.append(("edit", image_url, plan))
        if image_url in self.fail_urls:
            raise RuntimeError(f"edit failed for {image_url}")
        self._counter += 1
        return f"data:image/png;base64,RURJVA{self._counter}"

    async def generate_object_mask(self, image_url: str, mime_type: str, coordinates: Coordinates) -> str:
        self.calls.append(("mask", image_url, coordinates))
        return MASK_URL

    async def analyze_image(self, image_url: str, mime_type: str) -> AnalysisResult:
        self.calls.append(("analyze", image_url))
        return self.analysis

    async def generate_video(self, image_url: str, mime_type: str, template: AnimationTemplate) -> str:
        self.calls.append(("video", image_url, template))
        return "https://video.example/listing.mp4"

    def count(self, kind: str) -> int:
        return sum(1 for call in self.calls if call[0] == kind)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def ledger() -> CreditLedger:
    return CreditLedger(initial_balance=50)


@pytest.fixture
def service() -> FakeGenerativeService:
    return FakeGenerativeService()


@pytest.fixture
def planner(ledger) -> EditPlanner:
    return EditPlanner(ledger=ledger, validator=ComplianceValidator())


@pytest.fixture
async def scheduler(clock, fake_sleep) -> AsyncGenerator[TaskScheduler, None]:
    scheduler = TaskScheduler(cache=Cache(ttl_seconds=300, clock=clock), sleep=fake_sleep)
    yield scheduler
    await scheduler.close()


@pytest.fixture
def controller(service, planner, scheduler, ledger) -> WorkflowController:
    return WorkflowController(service, planner, scheduler, ledger)


@pytest.fixture
def asset() -> ImageAsset:
    return ImageAsset.create(PNG_URL, asset_id="asset-1", filename="kitchen.png")


@pytest.fixture
def make_asset():
    def factory(asset_id: str) -> ImageAsset:
        return ImageAsset.create(f"data:image/png;base64,{asset_id}AAAA", asset_id=asset_id)
    return factory
