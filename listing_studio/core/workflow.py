"""Workflow controller: the operations exposed to the UI layer."""

import hashlib
from typing import Dict, List, NamedTuple, Optional, Tuple

from ..models.enums import AnimationTemplate, MaskMode, WorkflowType
from ..models.schemas import AnalysisResult, Coordinates, EditPlan, ImageAsset, WorkflowRequest
from ..providers.generative import GenerativeService
from ..utils.errors import InsufficientCredits, ValidationBlocked
from ..utils.logger import get_logger
from . import history
from .batch import BatchOrchestrator, ProgressFn
from .ledger import CreditLedger
from .planner import EditPlanner
from .scheduler import TaskScheduler

logger = get_logger(__name__)

VIDEO_CATEGORY = "VIDEO"


class EditOutcome(NamedTuple):
    new_url: str
    warnings: List[str]


class WorkflowController:
    """
    Glue between the planner, the scheduler and the generative capability.

    Every external call is routed through the scheduler. Asset histories are
    only changed through ``core.history``.
    """

    def __init__(
        self,
        service: GenerativeService,
        planner: EditPlanner,
        scheduler: TaskScheduler,
        ledger: CreditLedger,
    ):
        self.service = service
        self.planner = planner
        self.scheduler = scheduler
        self.ledger = ledger
        self.batch = BatchOrchestrator(planner, ledger, self.apply_edits)

    async def plan_edits(
        self, asset: ImageAsset, request: WorkflowRequest
    ) -> Tuple[EditPlan, List[str]]:
        """Build and validate a plan. Denials come back as ``allowed=False``."""
        return self.planner.plan(asset, request)

    async def apply_edits(self, asset: ImageAsset, plan: EditPlan) -> str:
        """
        Execute an approved plan against the asset's current image.

        Results are cached by asset, source image and plan content.

        Raises:
            ValidationBlocked: If the plan was denied
        """
        if not plan.allowed:
            raise ValidationBlocked(plan.reasoning, plan.risk_level)

        key = self.edit_cache_key(asset, plan)
        return await self.scheduler.cached_run(
            key,
            lambda: self.service.execute_edit(asset.current_url, asset.mime_type, plan),
        )

    @staticmethod
    def edit_cache_key(asset: ImageAsset, plan: EditPlan) -> str:
        digest = hashlib.sha256()
        for value in (asset.current_url, plan.model_selector, plan.system_instruction, plan.user_prompt):
            digest.update(value.encode("utf-8"))
            digest.update(b"\0")
        for image in plan.auxiliary_images:
            digest.update(image.data.encode("utf-8"))
            digest.update(b"\0")
        return f"edit_{asset.id}_{digest.hexdigest()[:32]}_{len(plan.auxiliary_images)}"

    async def run_single_workflow(
        self, asset: ImageAsset, request: WorkflowRequest
    ) -> EditOutcome:
        """
        Plan, charge, apply and record one edit.

        The charge is refunded if the capability call fails.

        Raises:
            InsufficientCredits: If the balance cannot cover the edit
            ValidationBlocked: If compliance denies the plan
        """
        plan, warnings = await self.plan_edits(asset, request)
        if not plan.allowed:
            raise ValidationBlocked(plan.reasoning, plan.risk_level, warnings)

        cost = self.ledger.cost_for(request.operation_type)
        if not self.ledger.deduct(cost):
            raise InsufficientCredits(cost, self.ledger.balance())

        try:
            new_url = await self.apply_edits(asset, plan)
        except Exception:
            self.ledger.add(cost)
            logger.warning(
                "Edit failed, credits refunded",
                extra={"asset_id": asset.id, "refund": cost}
            )
            raise

        history.record_edit(asset, new_url, plan.user_prompt)
        return EditOutcome(new_url, warnings)

    async def run_batch_workflow(
        self,
        assets: List[ImageAsset],
        request: WorkflowRequest,
        representative: ImageAsset,
        on_progress: Optional[ProgressFn] = None,
    ) -> Dict[str, str]:
        """
        Apply one plan to many assets and record the successful edits.

        Returns:
            Dict of asset id to new image URL; failed assets are absent
        """
        results = await self.batch.run_batch(assets, request, representative, on_progress)

        operation = request.get_option("batch_operation") or request.operation_type
        label = f"Batch: {getattr(operation, 'value', operation)}"
        for asset in assets:
            if asset.id in results:
                history.record_edit(asset, results[asset.id], label)

        return results

    async def run_object_selection_pipeline(
        self,
        asset: ImageAsset,
        request: WorkflowRequest,
        coordinates: Coordinates,
    ) -> EditOutcome:
        """
        Segment the clicked object, then remove it or keep only it.

        OBJECT_REMOVE requests remove the object; anything else keeps it. The
        selection charge is taken before the mask is generated and is not
        refunded.

        Raises:
            InsufficientCredits: If the selection cannot be paid for
            ValidationBlocked: If compliance denies the mask edit
        """
        cost = self.ledger.cost_for(WorkflowType.MASK_INPAINT)
        if not self.ledger.deduct(cost):
            raise InsufficientCredits(cost, self.ledger.balance())

        mask_url = await self.scheduler.enqueue(
            lambda: self.service.generate_object_mask(asset.current_url, asset.mime_type, coordinates)
        )

        mode = MaskMode.REMOVE if request.operation_type == WorkflowType.OBJECT_REMOVE else MaskMode.KEEP
        mask_request = request.with_operation(
            WorkflowType.MASK_INPAINT, mask_data=mask_url, mask_mode=mode
        )

        # Already paid for above
        plan, warnings = self.planner.plan(asset, mask_request, check_credits=False)
        new_url = await self.apply_edits(asset, plan)

        history.record_edit(asset, new_url, f"AI Object {mode.value}")
        logger.info(
            "Object selection applied",
            extra={"asset_id": asset.id, "mode": mode.value, "x": coordinates.x, "y": coordinates.y}
        )
        return EditOutcome(new_url, warnings)

    async def run_analysis(self, asset: ImageAsset) -> AnalysisResult:
        """Analyze the asset's current image and attach the result to it."""
        analysis = await self.scheduler.cached_run(
            f"analysis_{asset.id}",
            lambda: self.service.analyze_image(asset.current_url, asset.mime_type),
        )
        asset.analysis = analysis
        return analysis

    async def run_animation(self, asset: ImageAsset, template: AnimationTemplate) -> str:
        """
        Render a listing video from the asset's current image.

        Raises:
            InsufficientCredits: If the video cost cannot be paid
        """
        cost = self.ledger.cost_for(VIDEO_CATEGORY)
        if not self.ledger.deduct(cost):
            raise InsufficientCredits(
                cost, self.ledger.balance(), f"Video generation requires {cost} credits."
            )

        return await self.scheduler.enqueue(
            lambda: self.service.generate_video(asset.current_url, asset.mime_type, template)
        )

    async def revert_asset(self, asset: ImageAsset) -> bool:
        """Undo the latest edit. Returns False when only the original remains."""
        return history.revert(asset)

    @staticmethod
    def missing_assets(assets: List[ImageAsset], results: Dict[str, str]) -> List[str]:
        """Ids of batch assets that produced no result."""
        return [asset.id for asset in assets if asset.id not in results]
