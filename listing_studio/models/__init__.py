"""Data models and schemas for the listing studio."""

from .schemas import (
    WorkflowRequest,
    AuxiliaryImage,
    EditPlan,
    ValidationResult,
    AnalysisResult,
    Coordinates,
    ImageAsset,
    CacheEntry,
    AuditEntry,
    ExportData,
)
from .enums import (
    WorkflowType,
    MaskMode,
    QualityMode,
    RiskLevel,
    AnimationTemplate,
    ClutterLevel,
)

__all__ = [
    "WorkflowRequest",
    "AuxiliaryImage",
    "EditPlan",
    "ValidationResult",
    "AnalysisResult",
    "Coordinates",
    "ImageAsset",
    "CacheEntry",
    "AuditEntry",
    "ExportData",
    "WorkflowType",
    "MaskMode",
    "QualityMode",
    "RiskLevel",
    "AnimationTemplate",
    "ClutterLevel",
]
