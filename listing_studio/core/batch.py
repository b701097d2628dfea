"""Batch orchestration: one plan, many assets, one charge."""

import inspect
from typing import Awaitable, Callable, Dict, List, Optional

from ..models.enums import WorkflowType
from ..models.schemas import EditPlan, ImageAsset, WorkflowRequest
from ..utils.errors import InsufficientCredits, ValidationBlocked
from ..utils.logger import get_logger
from .ledger import CreditLedger
from .planner import EditPlanner

logger = get_logger(__name__)

ApplyFn = Callable[[ImageAsset, EditPlan], Awaitable[str]]
ProgressFn = Callable[[int, int], Optional[Awaitable[None]]]


class BatchOrchestrator:
    """Applies a single validated plan to a list of assets, sequentially."""

    def __init__(self, planner: EditPlanner, ledger: CreditLedger, apply: ApplyFn):
        """
        Initialize batch orchestrator.

        Args:
            planner: Planner used once per batch, on the representative asset
            ledger: Ledger charged once for the whole batch
            apply: Coroutine applying a plan to one asset, returning the new URL
        """
        self.planner = planner
        self.ledger = ledger
        self.apply = apply

    def batch_cost(self, asset_count: int) -> int:
        return self.ledger.cost_for(WorkflowType.BATCH_EDIT) + asset_count

    async def run_batch(
        self,
        assets: List[ImageAsset],
        request: WorkflowRequest,
        representative: ImageAsset,
        on_progress: Optional[ProgressFn] = None,
    ) -> Dict[str, str]:
        """
        Apply ``request`` to every asset.

        Failed assets are left out of the returned map; callers compare the
        keys with the requested assets to find them.

        Returns:
            Dict of asset id to new image URL, for assets that succeeded

        Raises:
            InsufficientCredits: If the balance cannot cover the batch
            ValidationBlocked: If the plan for the representative is denied
        """
        cost = self.batch_cost(len(assets))
        balance = self.ledger.balance()
        if balance < cost:
            raise InsufficientCredits(cost, balance, f"Batch requires {cost} credits, but you have {balance}.")

        plan, warnings = self.planner.plan(representative, request)
        if not plan.allowed:
            raise ValidationBlocked(
                f"Batch operation blocked: {plan.reasoning}",
                plan.risk_level,
                warnings,
            )

        if not self.ledger.deduct(cost):
            raise InsufficientCredits(cost, self.ledger.balance())

        logger.info(
            f"Starting batch of {len(assets)} assets",
            extra={
                "operation": plan.operation_type.value if plan.operation_type else None,
                "cost": cost,
                "representative_id": representative.id,
                "warnings": warnings,
            }
        )

        results: Dict[str, str] = {}
        total = len(assets)

        for index, asset in enumerate(assets, start=1):
            try:
                results[asset.id] = await self.apply(asset, plan)
            except Exception as e:
                logger.error(
                    f"Failed to process asset {asset.id} in batch",
                    extra={"asset_id": asset.id, "error": str(e), "error_type": type(e).__name__}
                )

            if on_progress is not None:
                outcome = on_progress(index, total)
                if inspect.isawaitable(outcome):
                    await outcome

        logger.info(
            f"Batch complete: {len(results)}/{total} successful",
            extra={
                "successful": len(results),
                "failed": total - len(results),
                "missing": [a.id for a in assets if a.id not in results],
            }
        )

        return results
