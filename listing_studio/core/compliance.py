"""MLS compliance rules for edit plans.

Rules are evaluated in a fixed order and the first binding denial wins. The
phrase and category tables are plain data so new rules do not touch control
flow. Matching is case-insensitive substring search over the plan's prompt.
"""

from typing import Dict, FrozenSet, Tuple

from ..models.enums import MaskMode, RiskLevel, WorkflowType
from ..models.schemas import EditPlan, ValidationResult, WorkflowRequest
from ..utils.logger import get_logger

logger = get_logger(__name__)


# Phrases that change material facts of the property. Strict mode only.
BANNED_PHRASES: Tuple[str, ...] = (
    "remove wall",
    "add window",
    "add door",
    "change view",
    "remove fire hydrant",
    "remove power lines",
    "remove smoke detector",
    "add swimming pool",
    "remove neighbor",
)

# Operations that inherently alter appearance or materials. Strict mode only.
STRICT_BANNED_CATEGORIES: FrozenSet[WorkflowType] = frozenset({
    WorkflowType.STAGING,
    WorkflowType.STYLE_TRANSFER,
    WorkflowType.EXTERIOR_SIDING,
    WorkflowType.BACKYARD_LANDSCAPING,
})

# Allowed in strict mode but flagged RISKY with a warning.
STRICT_RISK_WARNINGS: Dict[WorkflowType, str] = {
    WorkflowType.SKY_REPLACEMENT: (
        "Sky replacement must represent actual weather conditions possible at the location."
    ),
    WorkflowType.DECLUTTER: "Ensure no permanent fixtures (smoke detectors, outlets) are removed.",
    WorkflowType.PRO_CLEAN_SWEEP: "Ensure no permanent fixtures (smoke detectors, outlets) are removed.",
}

# Universal: a prompt that mentions people and asks to add one.
PEOPLE_TERMS: Tuple[str, ...] = ("person", "people", "face")
ADD_PEOPLE_PHRASES: Tuple[str, ...] = ("add person", "add people")

MASK_REPLACE_REASON = "Insertion of new objects via masking is prohibited."
PEOPLE_REASON = (
    "Adding people to real estate listings violates privacy and Fair Housing guidelines."
)


def validate(request: WorkflowRequest, plan: EditPlan) -> ValidationResult:
    """
    Check a draft plan against the compliance rules.

    Pure and deterministic: no I/O, no mutation of the inputs.

    Args:
        request: The effective request (batch wrappers already unwrapped)
        plan: Draft plan produced for that request

    Returns:
        ValidationResult
    """
    operation = request.operation_type
    prompt = plan.user_prompt.lower()

    risk = RiskLevel.LEGAL
    warnings = []

    if request.strict_mode:
        for phrase in BANNED_PHRASES:
            if phrase in prompt:
                return ValidationResult(
                    is_allowed=False,
                    risk_level=RiskLevel.ILLEGAL,
                    warnings=[f'Strict Mode Violation: Request to "{phrase}" is not allowed.'],
                    reason=f'Edits involving "{phrase}" alter material facts of the property.',
                )

        if operation in STRICT_BANNED_CATEGORIES:
            return ValidationResult(
                is_allowed=False,
                risk_level=RiskLevel.ILLEGAL,
                warnings=[
                    "Virtual Staging and Structural/Material changes are not allowed "
                    "in Strict Compliance Mode."
                ],
                reason="This workflow alters the appearance or material facts of the property.",
            )

        if operation == WorkflowType.MASK_INPAINT:
            # Prefer the mode the prompt was built from
            mask_mode = plan.mask_mode or request.get_option("mask_mode", MaskMode.REMOVE)
            if mask_mode == MaskMode.REPLACE:
                return ValidationResult(
                    is_allowed=False,
                    risk_level=RiskLevel.ILLEGAL,
                    warnings=["Replacing objects with new ones is not allowed in strict mode."],
                    reason=MASK_REPLACE_REASON,
                )
            if mask_mode == MaskMode.KEEP:
                risk = RiskLevel.RISKY
                warnings.append(
                    "Using 'Keep Only' mode may accidentally remove permanent fixtures."
                )

        if operation in STRICT_RISK_WARNINGS:
            risk = RiskLevel.RISKY
            warnings.append(STRICT_RISK_WARNINGS[operation])

    if any(term in prompt for term in PEOPLE_TERMS) and any(
        phrase in prompt for phrase in ADD_PEOPLE_PHRASES
    ):
        return ValidationResult(
            is_allowed=False,
            risk_level=RiskLevel.ILLEGAL,
            warnings=warnings,
            reason=PEOPLE_REASON,
        )

    return ValidationResult(is_allowed=True, risk_level=risk, warnings=warnings)


class ComplianceValidator:
    """Injectable wrapper around :func:`validate` that logs each verdict."""

    def validate(self, request: WorkflowRequest, plan: EditPlan) -> ValidationResult:
        result = validate(request, plan)

        if not result.is_allowed:
            logger.warning(
                "Plan denied by compliance rules",
                extra={
                    "operation": request.operation_type.value,
                    "strict_mode": request.strict_mode,
                    "risk_level": result.risk_level.value,
                    "reason": result.reason,
                }
            )
        elif result.warnings:
            logger.info(
                "Plan allowed with warnings",
                extra={
                    "operation": request.operation_type.value,
                    "risk_level": result.risk_level.value,
                    "warnings": result.warnings,
                }
            )

        return result
