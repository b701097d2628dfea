"""Tests for the workflow controller operations."""

import pytest

from listing_studio.core.workflow import WorkflowController
from listing_studio.models.enums import AnimationTemplate, MaskMode, RiskLevel, WorkflowType
from listing_studio.models.schemas import Coordinates, WorkflowRequest
from listing_studio.utils.errors import (
    InsufficientCredits,
    NoOutputProduced,
    ValidationBlocked,
)

from conftest import MASK_URL, PNG_URL


async def test_plan_edits_returns_plan_and_warnings(controller, asset):
    plan, warnings = await controller.plan_edits(
        asset, WorkflowRequest(operation_type=WorkflowType.SKY_REPLACEMENT)
    )

    assert plan.allowed is True
    assert plan.risk_level == RiskLevel.RISKY
    assert len(warnings) == 1


async def test_apply_edits_rejects_denied_plan(controller, service, asset):
    plan, _ = await controller.plan_edits(
        asset, WorkflowRequest(operation_type=WorkflowType.STAGING)
    )

    with pytest.raises(ValidationBlocked):
        await controller.apply_edits(asset, plan)

    assert service.calls == []


async def test_apply_edits_is_cached(controller, service, asset):
    plan, _ = await controller.plan_edits(asset, WorkflowRequest(operation_type=WorkflowType.TWILIGHT))

    first = await controller.apply_edits(asset, plan)
    second = await controller.apply_edits(asset, plan)

    assert first == second
    assert service.count("edit") == 1


async def test_cache_key_distinguishes_source_and_mask(controller, asset):
    plan, _ = await controller.plan_edits(
        asset,
        WorkflowRequest(operation_type=WorkflowType.MASK_INPAINT, options={"maskData": MASK_URL}),
    )
    other_mask = plan.model_copy(update={"auxiliary_images": [
        plan.auxiliary_images[0].model_copy(update={"data": "data:image/png;base64,T1RIRVI="})
    ]})

    key = WorkflowController.edit_cache_key(asset, plan)

    assert key.startswith("edit_asset-1_")
    assert key.endswith("_1")
    assert key != WorkflowController.edit_cache_key(asset, other_mask)

    asset.current_url = asset.history[0] = asset.original_url = "data:image/png;base64,TkVX"
    assert key != WorkflowController.edit_cache_key(asset, plan)


async def test_single_workflow_charges_and_records(controller, service, ledger, asset):
    outcome = await controller.run_single_workflow(
        asset, WorkflowRequest(operation_type=WorkflowType.LUXURY_ENHANCE)
    )

    assert ledger.balance() == 49
    assert asset.current_url == outcome.new_url
    assert asset.history == [PNG_URL, outcome.new_url]
    assert asset.edit_log == [service.calls[0][2].user_prompt]


async def test_single_workflow_refunds_on_failure(controller, service, ledger, asset):
    service.fail_urls.add(asset.current_url)

    with pytest.raises(RuntimeError):
        await controller.run_single_workflow(
            asset, WorkflowRequest(operation_type=WorkflowType.STANDARD_CLEAN)
        )

    assert ledger.balance() == 50
    assert asset.history == [PNG_URL]


async def test_single_workflow_denied_charges_nothing(controller, ledger, asset):
    with pytest.raises(ValidationBlocked) as exc_info:
        await controller.run_single_workflow(
            asset,
            WorkflowRequest(operation_type=WorkflowType.CUSTOM, options={"promptOverride": "remove wall"}),
        )

    assert exc_info.value.risk_level == RiskLevel.ILLEGAL
    assert ledger.balance() == 50


async def test_batch_workflow_records_successful_assets(controller, service, ledger, make_asset):
    assets = [make_asset("a1"), make_asset("a2"), make_asset("a3")]
    service.fail_urls.add(assets[1].current_url)
    request = WorkflowRequest(
        operation_type=WorkflowType.BATCH_EDIT, options={"batchOperation": "TWILIGHT"}
    )

    results = await controller.run_batch_workflow(assets, request, assets[0])

    assert set(results) == {"a1", "a3"}
    assert assets[0].edit_log == ["Batch: TWILIGHT"]
    assert assets[1].history == [assets[1].original_url]
    assert assets[2].current_url == results["a3"]
    assert controller.missing_assets(assets, results) == ["a2"]
    assert ledger.balance() == 50 - 8


@pytest.mark.parametrize(
    "operation,mode",
    [(WorkflowType.OBJECT_REMOVE, MaskMode.REMOVE), (WorkflowType.OBJECT_KEEP, MaskMode.KEEP)],
)
async def test_object_selection_pipeline(controller, service, ledger, asset, operation, mode):
    outcome = await controller.run_object_selection_pipeline(
        asset, WorkflowRequest(operation_type=operation), Coordinates(x=0.25, y=0.75)
    )

    kinds = [call[0] for call in service.calls]
    assert kinds == ["mask", "edit"]

    plan = service.calls[1][2]
    assert plan.auxiliary_images[0].data == MASK_URL
    assert plan.operation_type == WorkflowType.MASK_INPAINT

    assert asset.edit_log == [f"AI Object {mode.value}"]
    assert asset.current_url == outcome.new_url
    assert ledger.balance() == 49
    assert (len(outcome.warnings) > 0) == (mode == MaskMode.KEEP)


async def test_object_selection_requires_credit(service, planner, scheduler, asset):
    from listing_studio.core.ledger import CreditLedger

    ledger = CreditLedger(initial_balance=0)
    controller = WorkflowController(service, planner, scheduler, ledger)

    with pytest.raises(InsufficientCredits):
        await controller.run_object_selection_pipeline(
            asset, WorkflowRequest(operation_type=WorkflowType.OBJECT_REMOVE), Coordinates(x=0.5, y=0.5)
        )

    assert service.calls == []


async def test_object_selection_with_exact_balance_completes(service, scheduler, asset):
    from listing_studio.core.ledger import CreditLedger
    from listing_studio.core.planner import EditPlanner

    ledger = CreditLedger(initial_balance=1)
    controller = WorkflowController(service, EditPlanner(ledger=ledger), scheduler, ledger)

    outcome = await controller.run_object_selection_pipeline(
        asset, WorkflowRequest(operation_type=WorkflowType.OBJECT_REMOVE), Coordinates(x=0.5, y=0.5)
    )

    assert [call[0] for call in service.calls] == ["mask", "edit"]
    assert asset.current_url == outcome.new_url
    assert len(asset.history) == 2
    assert ledger.balance() == 0


async def test_run_analysis_caches_and_attaches(controller, service, asset):
    first = await controller.run_analysis(asset)
    second = await controller.run_analysis(asset)

    assert first.room_type == "kitchen"
    assert second == first
    assert asset.analysis == first
    assert service.count("analyze") == 1


async def test_run_animation_charges_video_cost(controller, service, ledger, asset):
    url = await controller.run_animation(asset, AnimationTemplate.REEL)

    assert url == "https://video.example/listing.mp4"
    assert ledger.balance() == 40
    assert service.calls[-1] == ("video", PNG_URL, AnimationTemplate.REEL)


async def test_run_animation_insufficient_credits(controller, service, ledger, asset):
    ledger.deduct(45)

    with pytest.raises(InsufficientCredits, match="Video generation requires 10 credits"):
        await controller.run_animation(asset, AnimationTemplate.PAN)

    assert ledger.balance() == 5
    assert service.calls == []


async def test_revert_asset(controller, asset):
    await controller.run_single_workflow(asset, WorkflowRequest(operation_type=WorkflowType.TWILIGHT))

    assert await controller.revert_asset(asset) is True
    assert asset.current_url == PNG_URL
    assert await controller.revert_asset(asset) is False


async def test_capability_failure_propagates_unwrapped(controller, service, asset):
    async def no_image(image_url, mime_type, plan):
        raise NoOutputProduced("gemini", "No image generated")

    service.execute_edit = no_image

    with pytest.raises(NoOutputProduced):
        await controller.run_single_workflow(asset, WorkflowRequest(operation_type=WorkflowType.TWILIGHT))
