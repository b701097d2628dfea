"""Pydantic schemas for data validation."""

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import AliasGenerator, BaseModel, Field, model_validator
from pydantic.alias_generators import to_camel

from .enums import ClutterLevel, MaskMode, QualityMode, RiskLevel, WorkflowType


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# Inputs arrive from the browser in camelCase; outputs stay snake_case
CAMEL_INPUT = AliasGenerator(validation_alias=to_camel)


class WorkflowRequest(BaseModel):
    """High-level edit request as submitted by the user."""
    operation_type: WorkflowType
    strict_mode: bool = True
    quality_mode: QualityMode = QualityMode.QUALITY
    options: Dict[str, Any] = Field(default_factory=dict)

    class Config:
        frozen = True
        populate_by_name = True
        alias_generator = CAMEL_INPUT

    def get_option(self, name: str, default: Any = None) -> Any:
        """Read an option by its snake_case name, falling back to camelCase."""
        if name in self.options:
            return self.options[name]
        return self.options.get(to_camel(name), default)

    def with_operation(self, operation_type: WorkflowType, **overrides: Any) -> "WorkflowRequest":
        """Copy of this request retargeted at another operation type."""
        options = dict(self.options)
        for name, value in overrides.items():
            options.pop(to_camel(name), None)
            options[name] = value
        return self.model_copy(update={"operation_type": operation_type, "options": options})


class AuxiliaryImage(BaseModel):
    """Secondary image sent ahead of the text prompt (mask, style reference)."""
    data: str
    mime_type: str = "image/png"


class EditPlan(BaseModel):
    """Concrete instruction set for the generative capability."""
    allowed: bool = True
    reasoning: str = "Approved"
    model_selector: str
    system_instruction: str
    user_prompt: str
    auxiliary_images: List[AuxiliaryImage] = Field(default_factory=list)
    operation_type: Optional[WorkflowType] = None
    mask_mode: Optional[MaskMode] = None
    risk_level: RiskLevel = RiskLevel.LEGAL

    class Config:
        protected_namespaces = ()


class ValidationResult(BaseModel):
    """Verdict of the compliance rules for one plan."""
    is_allowed: bool = True
    risk_level: RiskLevel = RiskLevel.LEGAL
    warnings: List[str] = Field(default_factory=list)
    reason: Optional[str] = None


class AnalysisResult(BaseModel):
    """Listing-oriented assessment of a single photo."""
    room_type: str
    quality_score: int
    lighting: str
    clutter_level: ClutterLevel
    compliance_issues: List[str] = Field(default_factory=list)
    marketing_description: str = ""
    suggested_edits: List[str] = Field(default_factory=list)

    class Config:
        populate_by_name = True
        alias_generator = CAMEL_INPUT


class Coordinates(BaseModel):
    """Point on an image, normalized so (0, 0) is top-left and (1, 1) bottom-right."""
    x: float = Field(ge=0.0, le=1.0)
    y: float = Field(ge=0.0, le=1.0)


class ImageAsset(BaseModel):
    """
    A listing photo and its edit history.

    ``history`` starts with the original upload and grows by one URL per
    applied edit; ``edit_log`` holds one label per applied edit, so the two
    stay positionally paired past the original entry.
    """
    id: str
    original_url: str
    current_url: str
    history: List[str]
    edit_log: List[str] = Field(default_factory=list)
    mime_type: str = "image/png"
    filename: Optional[str] = None
    analysis: Optional[AnalysisResult] = None

    @model_validator(mode="after")
    def _check_history(self) -> "ImageAsset":
        if not self.history:
            raise ValueError("history must contain at least the original image")
        if self.history[0] != self.original_url:
            raise ValueError("history must start with the original image")
        if self.current_url != self.history[-1]:
            raise ValueError("current_url must be the last history entry")
        if len(self.edit_log) != len(self.history) - 1:
            raise ValueError("edit_log must hold exactly one entry per applied edit")
        return self

    @classmethod
    def create(
        cls,
        original_url: str,
        asset_id: Optional[str] = None,
        mime_type: Optional[str] = None,
        filename: Optional[str] = None,
    ) -> "ImageAsset":
        """Build a fresh asset whose history holds only the original image."""
        from ..utils.images import get_mime_type

        return cls(
            id=asset_id or uuid.uuid4().hex[:13],
            original_url=original_url,
            current_url=original_url,
            history=[original_url],
            edit_log=[],
            mime_type=mime_type or get_mime_type(original_url),
            filename=filename,
        )


class CacheEntry(BaseModel):
    """Stored result of an external call."""
    key: str
    timestamp: float
    data: Any

    class Config:
        arbitrary_types_allowed = True


class AuditEntry(BaseModel):
    """One step of an asset's edit trail."""
    step: int
    action: str
    timestamp: datetime = Field(default_factory=utc_now)


class ExportData(BaseModel):
    """Snapshot of an edited asset handed to downstream persistence."""
    asset_id: str
    timestamp: datetime = Field(default_factory=utc_now)
    edits: List[str]
    final_image: str
    compliance_signed: bool = True
