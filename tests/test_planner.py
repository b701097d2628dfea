"""Tests for edit planning and option parsing."""

import pytest

from listing_studio.core.ledger import CreditLedger
from listing_studio.core.planner import (
    INPAINT_INSTRUCTION,
    PRESERVE_STRUCTURE_CLAUSE,
    SYSTEM_INSTRUCTIONS,
    EditPlanner,
)
from listing_studio.models.enums import MaskMode, RiskLevel, WorkflowType
from listing_studio.models.options import MaskInpaintOptions, conflicting_keys, parse_options
from listing_studio.models.schemas import WorkflowRequest
from listing_studio.utils.errors import InsufficientCredits, InvalidParameter, MissingParameter

from conftest import MASK_URL


def test_strict_mask_replace_is_denied_without_charge(planner, ledger, service, asset):
    request = WorkflowRequest(
        operation_type=WorkflowType.MASK_INPAINT,
        strict_mode=True,
        options={"maskMode": "REPLACE"},
    )

    plan, warnings = planner.plan(asset, request)

    assert plan.allowed is False
    assert "Insertion of new objects" in plan.reasoning
    assert plan.risk_level == RiskLevel.ILLEGAL
    assert ledger.balance() == 50
    assert service.calls == []


def test_non_strict_exterior_siding_is_allowed(planner, asset):
    request = WorkflowRequest(
        operation_type=WorkflowType.EXTERIOR_SIDING,
        strict_mode=False,
        options={"colors": {"siding": "Red Brick"}},
    )

    plan, warnings = planner.plan(asset, request)

    assert plan.allowed is True
    assert "Red Brick" in plan.user_prompt
    assert plan.risk_level == RiskLevel.LEGAL
    assert warnings == []


def test_strict_exterior_siding_is_denied(planner, asset):
    request = WorkflowRequest(
        operation_type=WorkflowType.EXTERIOR_SIDING,
        options={"colors": {"siding": "Red Brick"}},
    )

    plan, _ = planner.plan(asset, request)

    assert plan.allowed is False
    assert plan.risk_level == RiskLevel.ILLEGAL


def test_insufficient_credits_raises_before_planning(asset):
    planner = EditPlanner(ledger=CreditLedger(initial_balance=0))
    request = WorkflowRequest(operation_type=WorkflowType.STANDARD_CLEAN)

    with pytest.raises(InsufficientCredits) as exc_info:
        planner.plan(asset, request)

    assert exc_info.value.required == 1
    assert exc_info.value.available == 0


def test_batch_cost_used_for_precheck(asset):
    planner = EditPlanner(ledger=CreditLedger(initial_balance=4))
    request = WorkflowRequest(
        operation_type=WorkflowType.BATCH_EDIT,
        options={"batchOperation": "STANDARD_CLEAN"},
    )

    with pytest.raises(InsufficientCredits):
        planner.plan(asset, request)


def test_batch_edit_resolves_to_batch_operation(planner, asset):
    request = WorkflowRequest(
        operation_type=WorkflowType.BATCH_EDIT,
        options={"batchOperation": "TWILIGHT"},
    )

    plan, _ = planner.plan(asset, request)

    assert plan.operation_type == WorkflowType.TWILIGHT
    assert "twilight" in plan.user_prompt.lower()


def test_batch_edit_without_operation_is_missing_parameter(planner, asset):
    request = WorkflowRequest(operation_type=WorkflowType.BATCH_EDIT)

    with pytest.raises(MissingParameter) as exc_info:
        planner.plan(asset, request)

    assert "batch" in exc_info.value.parameter.lower()


def test_batch_of_batch_is_rejected(planner, asset):
    request = WorkflowRequest(
        operation_type=WorkflowType.BATCH_EDIT,
        options={"batch_operation": "BATCH_EDIT"},
    )

    with pytest.raises(InvalidParameter):
        planner.plan(asset, request)


@pytest.mark.parametrize(
    "operation,mode",
    [(WorkflowType.OBJECT_REMOVE, MaskMode.REMOVE), (WorkflowType.OBJECT_KEEP, MaskMode.KEEP)],
)
def test_object_operations_become_mask_inpaint(planner, asset, operation, mode):
    request = WorkflowRequest(operation_type=operation, options={"maskData": MASK_URL})

    effective = planner.resolve(request)
    plan, _ = planner.plan(asset, request)

    assert effective.operation_type == WorkflowType.MASK_INPAINT
    assert effective.get_option("mask_mode") == mode
    assert plan.operation_type == WorkflowType.MASK_INPAINT
    assert plan.system_instruction == INPAINT_INSTRUCTION


def test_object_keep_overrides_camel_case_mask_mode(planner):
    request = WorkflowRequest(
        operation_type=WorkflowType.OBJECT_KEEP,
        options={"maskData": MASK_URL, "maskMode": "REMOVE"},
    )

    effective = planner.resolve(request)

    assert "maskMode" not in effective.options
    assert effective.options["mask_mode"] == MaskMode.KEEP


def test_mask_inpaint_sends_mask_as_auxiliary_image(planner, asset):
    request = WorkflowRequest(
        operation_type=WorkflowType.MASK_INPAINT,
        options={"maskData": MASK_URL},
    )

    plan, _ = planner.plan(asset, request)

    assert len(plan.auxiliary_images) == 1
    assert plan.auxiliary_images[0].data == MASK_URL
    assert plan.auxiliary_images[0].mime_type == "image/png"


def test_mask_inpaint_without_mask_is_missing_parameter(planner, asset):
    request = WorkflowRequest(operation_type=WorkflowType.MASK_INPAINT, options={"maskMode": "REMOVE"})

    with pytest.raises(MissingParameter):
        planner.plan(asset, request)


def test_non_strict_mask_replace_uses_replacement_prompt(planner, asset):
    request = WorkflowRequest(
        operation_type=WorkflowType.MASK_INPAINT,
        strict_mode=False,
        options={"maskData": MASK_URL, "maskMode": "REPLACE", "replacePrompt": "a potted fern"},
    )

    plan, _ = planner.plan(asset, request)

    assert plan.allowed is True
    assert "a potted fern" in plan.user_prompt


def test_style_transfer_reference_is_auxiliary_image(planner, asset):
    request = WorkflowRequest(
        operation_type=WorkflowType.STYLE_TRANSFER,
        strict_mode=False,
        options={"referenceStyleData": "data:image/jpeg;base64,UkVG"},
    )

    plan, _ = planner.plan(asset, request)

    assert plan.allowed is True
    assert plan.auxiliary_images[0].mime_type == "image/jpeg"


def test_system_instruction_follows_strict_mode(planner, asset):
    strict, _ = planner.plan(asset, WorkflowRequest(operation_type=WorkflowType.STANDARD_CLEAN))
    creative, _ = planner.plan(
        asset, WorkflowRequest(operation_type=WorkflowType.STANDARD_CLEAN, strict_mode=False)
    )

    assert strict.system_instruction == SYSTEM_INSTRUCTIONS[True]
    assert creative.system_instruction == SYSTEM_INSTRUCTIONS[False]


def test_pro_clean_sweep_appends_structure_clause(planner, asset):
    request = WorkflowRequest(operation_type=WorkflowType.PRO_CLEAN_SWEEP, options={"keepFurniture": False})

    plan, warnings = planner.plan(asset, request)

    assert plan.system_instruction.endswith(PRESERVE_STRUCTURE_CLAUSE)
    assert "Empty this room" in plan.user_prompt
    assert plan.risk_level == RiskLevel.RISKY
    assert len(warnings) == 1


def test_room_type_comes_from_analysis(planner, asset, service):
    asset.analysis = service.analysis

    plan, _ = planner.plan(asset, WorkflowRequest(operation_type=WorkflowType.STANDARD_CLEAN))

    assert "this kitchen" in plan.user_prompt


def test_custom_builds_prompt_from_colors(planner, asset):
    request = WorkflowRequest(
        operation_type=WorkflowType.CUSTOM,
        options={"colors": {"walls": "sage green", "floors": "white oak"}},
    )

    plan, _ = planner.plan(asset, request)

    assert plan.user_prompt == "Paint walls sage green. Change flooring to white oak."


def test_custom_without_prompt_is_missing_parameter(planner, asset):
    with pytest.raises(MissingParameter) as exc_info:
        planner.plan(asset, WorkflowRequest(operation_type=WorkflowType.CUSTOM))

    assert exc_info.value.parameter == "prompt_override"


def test_custom_banned_phrase_is_denied(planner, asset):
    request = WorkflowRequest(
        operation_type=WorkflowType.CUSTOM,
        options={"promptOverride": "Add window on the left wall"},
    )

    plan, _ = planner.plan(asset, request)

    assert plan.allowed is False
    assert plan.risk_level == RiskLevel.ILLEGAL


def test_staging_default_prompt(planner, asset):
    plan, _ = planner.plan(
        asset, WorkflowRequest(operation_type=WorkflowType.STAGING, strict_mode=False)
    )

    assert plan.user_prompt == "Virtually stage this room with modern furniture."


def test_backyard_landscaping_defaults_to_modern(planner, asset):
    plan, _ = planner.plan(
        asset,
        WorkflowRequest(operation_type=WorkflowType.BACKYARD_LANDSCAPING, strict_mode=False),
    )

    assert "modern style" in plan.user_prompt


def test_declutter_lists_categories(planner, asset):
    request = WorkflowRequest(
        operation_type=WorkflowType.DECLUTTER,
        options={"clutterCategories": ["toys", "cables"]},
    )

    plan, _ = planner.plan(asset, request)

    assert plan.user_prompt.startswith("Remove toys, cables from this room.")


def test_model_selector_from_constructor(ledger, asset):
    planner = EditPlanner(ledger=ledger, model_selector="custom-image-model")

    plan, _ = planner.plan(asset, WorkflowRequest(operation_type=WorkflowType.TWILIGHT))

    assert plan.model_selector == "custom-image-model"


def test_parse_options_accepts_snake_and_camel():
    camel = parse_options(WorkflowType.MASK_INPAINT, {"maskData": MASK_URL, "maskMode": "KEEP"})
    snake = parse_options(WorkflowType.MASK_INPAINT, {"mask_data": MASK_URL, "mask_mode": "KEEP"})

    assert isinstance(camel, MaskInpaintOptions)
    assert camel == snake
    assert camel.mask_mode == MaskMode.KEEP


def test_parse_options_invalid_value():
    with pytest.raises(InvalidParameter):
        parse_options(WorkflowType.MASK_INPAINT, {"maskData": MASK_URL, "maskMode": "ERASE"})


def test_parse_options_names_missing_nested_field():
    with pytest.raises(MissingParameter) as exc_info:
        parse_options(WorkflowType.EXTERIOR_SIDING, {"colors": {}})

    assert "siding" in exc_info.value.parameter


def test_option_given_in_both_spellings_is_rejected(planner, service, asset):
    request = WorkflowRequest(
        operation_type=WorkflowType.MASK_INPAINT,
        strict_mode=True,
        options={
            "mask_data": MASK_URL,
            "mask_mode": "REMOVE",
            "maskMode": "REPLACE",
            "replacePrompt": "a hot tub",
        },
    )

    with pytest.raises(InvalidParameter) as exc_info:
        planner.plan(asset, request)

    assert "mask_mode" in str(exc_info.value)
    assert service.calls == []


def test_parse_options_rejects_custom_prompt_in_both_spellings():
    with pytest.raises(InvalidParameter):
        parse_options(
            WorkflowType.CUSTOM,
            {"prompt_override": "Paint it white", "promptOverride": "Paint it black"},
        )


def test_conflicting_keys_reports_nested_paths():
    options = {"colors": {"wall_color": "white", "wallColor": "grey"}, "maskMode": "KEEP"}

    assert conflicting_keys(options) == ["colors.wall_color"]


def test_plan_carries_parsed_mask_mode(planner, asset):
    request = WorkflowRequest(
        operation_type=WorkflowType.OBJECT_KEEP,
        options={"maskData": MASK_URL},
    )

    plan, warnings = planner.plan(asset, request)

    assert plan.mask_mode == MaskMode.KEEP
    assert plan.risk_level == RiskLevel.RISKY
    assert warnings
