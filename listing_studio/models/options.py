"""Per-operation option variants.

Each operation type reads a different subset of the request's option bag.
``parse_options`` turns the bag into the variant for that type so planning code
works with typed, required fields instead of probing a dictionary.
"""

from typing import Any, Dict, List, Optional, Type

from pydantic import BaseModel, Field, ValidationError
from pydantic.alias_generators import to_camel

from .enums import MaskMode, WorkflowType
from .schemas import CAMEL_INPUT
from ..utils.errors import InvalidParameter, MissingParameter


class OperationOptions(BaseModel):
    """Base for all option variants. Unknown keys are ignored."""

    class Config:
        populate_by_name = True
        alias_generator = CAMEL_INPUT
        extra = "ignore"
        frozen = True


class NoOptions(OperationOptions):
    pass


class ProCleanSweepOptions(OperationOptions):
    keep_furniture: bool = True


class MaskInpaintOptions(OperationOptions):
    mask_data: str
    mask_mode: MaskMode = MaskMode.REMOVE
    replace_prompt: Optional[str] = None


class DeclutterOptions(OperationOptions):
    clutter_categories: List[str] = Field(default_factory=list)


class ColorSettings(OperationOptions):
    walls: Optional[str] = None
    floors: Optional[str] = None
    cabinets: Optional[str] = None
    siding: Optional[str] = None


class CustomOptions(OperationOptions):
    colors: Optional[ColorSettings] = None
    prompt_override: Optional[str] = None


class StagingOptions(OperationOptions):
    staging_item: Optional[str] = None
    staging_style: Optional[str] = None


class SidingColors(OperationOptions):
    siding: str


class ExteriorSidingOptions(OperationOptions):
    colors: SidingColors


class BackyardLandscapingOptions(OperationOptions):
    landscaping_style: str = "modern"


class StyleTransferOptions(OperationOptions):
    reference_style_data: str


class BatchOptions(OperationOptions):
    batch_operation: WorkflowType


OPTION_MODELS: Dict[WorkflowType, Type[OperationOptions]] = {
    WorkflowType.STANDARD_CLEAN: NoOptions,
    WorkflowType.PRO_CLEAN_SWEEP: ProCleanSweepOptions,
    WorkflowType.MASK_INPAINT: MaskInpaintOptions,
    WorkflowType.OBJECT_REMOVE: MaskInpaintOptions,
    WorkflowType.OBJECT_KEEP: MaskInpaintOptions,
    WorkflowType.LUXURY_ENHANCE: NoOptions,
    WorkflowType.TWILIGHT: NoOptions,
    WorkflowType.DECLUTTER: DeclutterOptions,
    WorkflowType.SKY_REPLACEMENT: NoOptions,
    WorkflowType.CUSTOM: CustomOptions,
    WorkflowType.STAGING: StagingOptions,
    WorkflowType.EXTERIOR_SIDING: ExteriorSidingOptions,
    WorkflowType.BACKYARD_LANDSCAPING: BackyardLandscapingOptions,
    WorkflowType.STYLE_TRANSFER: StyleTransferOptions,
    WorkflowType.BATCH_EDIT: BatchOptions,
}


def conflicting_keys(options: Dict[str, Any], prefix: str = "") -> List[str]:
    """Names present under both their snake_case and camelCase spelling."""
    conflicts = []
    for key, value in options.items():
        camel = to_camel(key)
        if camel != key and camel in options:
            conflicts.append(prefix + key)
        if isinstance(value, dict):
            conflicts.extend(conflicting_keys(value, prefix=f"{prefix}{key}."))
    return conflicts


def parse_options(operation_type: WorkflowType, options: Dict[str, Any]) -> OperationOptions:
    """
    Parse an option bag into the variant for ``operation_type``.

    Raises:
        MissingParameter: If a field the operation requires is absent
        InvalidParameter: If a present field has an invalid value, or a
            key appears in both spellings
    """
    model = OPTION_MODELS[operation_type]

    conflicts = conflicting_keys(options or {})
    if conflicts:
        raise InvalidParameter(
            f"Option given in both snake_case and camelCase: {', '.join(conflicts)}",
            operation_type.value,
        )

    try:
        return model.model_validate(options or {})
    except ValidationError as e:
        missing = [
            ".".join(str(part) for part in error["loc"])
            for error in e.errors()
            if error["type"] == "missing"
        ]
        if missing:
            raise MissingParameter(", ".join(missing), operation_type.value) from e
        raise InvalidParameter(str(e), operation_type.value) from e
