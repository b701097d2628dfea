"""Enumerations for the listing studio."""

from enum import Enum


class WorkflowType(str, Enum):
    """Edit operation requested by the user."""
    STANDARD_CLEAN = "STANDARD_CLEAN"
    PRO_CLEAN_SWEEP = "PRO_CLEAN_SWEEP"
    MASK_INPAINT = "MASK_INPAINT"
    OBJECT_REMOVE = "OBJECT_REMOVE"
    OBJECT_KEEP = "OBJECT_KEEP"
    LUXURY_ENHANCE = "LUXURY_ENHANCE"
    TWILIGHT = "TWILIGHT"
    DECLUTTER = "DECLUTTER"
    SKY_REPLACEMENT = "SKY_REPLACEMENT"
    CUSTOM = "CUSTOM"
    STAGING = "STAGING"
    EXTERIOR_SIDING = "EXTERIOR_SIDING"
    BACKYARD_LANDSCAPING = "BACKYARD_LANDSCAPING"
    STYLE_TRANSFER = "STYLE_TRANSFER"
    BATCH_EDIT = "BATCH_EDIT"


class MaskMode(str, Enum):
    """How a mask-based edit treats the masked region."""
    REMOVE = "REMOVE"
    KEEP = "KEEP"
    REPLACE = "REPLACE"


class QualityMode(str, Enum):
    """Speed/quality trade-off requested by the user."""
    SPEED = "SPEED"
    QUALITY = "QUALITY"


class RiskLevel(str, Enum):
    """Compliance classification of a plan."""
    LEGAL = "LEGAL"
    RISKY = "RISKY"
    ILLEGAL = "ILLEGAL"


class AnimationTemplate(str, Enum):
    """Camera move used for listing videos."""
    PAN = "PAN"
    REVEAL = "REVEAL"
    REEL = "REEL"


class ClutterLevel(str, Enum):
    """Clutter assessment returned by image analysis."""
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
