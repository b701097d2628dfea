"""HTTP surface for the edit workflows, with per-asset locking."""

import asyncio
from contextlib import AsyncExitStack, asynccontextmanager
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from ..core import history
from ..core.ledger import CreditLedger
from ..core.workflow import WorkflowController
from ..models.enums import AnimationTemplate
from ..models.schemas import (
    AnalysisResult,
    AuditEntry,
    CAMEL_INPUT,
    Coordinates,
    EditPlan,
    ExportData,
    ImageAsset,
    WorkflowRequest,
)
from ..utils.errors import (
    ImageProcessingError,
    InsufficientCredits,
    InvalidParameter,
    ListingStudioError,
    MissingParameter,
    PermanentExternalFailure,
    TransientExternalFailure,
    ValidationBlocked,
)
from ..utils.logger import get_logger
from ..utils.storage import AssetStore

logger = get_logger(__name__)

router = APIRouter()


# ============================================================================
# REQUEST / RESPONSE MODELS
# ============================================================================

class _CamelBody(BaseModel):
    class Config:
        populate_by_name = True
        alias_generator = CAMEL_INPUT


class CreateAssetBody(_CamelBody):
    image_url: str
    filename: Optional[str] = None
    mime_type: Optional[str] = None


class SelectionBody(_CamelBody):
    request: WorkflowRequest
    coordinates: Coordinates


class AnimationBody(_CamelBody):
    template: AnimationTemplate = AnimationTemplate.PAN


class BatchBody(_CamelBody):
    asset_ids: List[str] = Field(min_length=1)
    representative_id: Optional[str] = None
    request: WorkflowRequest


class CreditsBody(BaseModel):
    amount: int = Field(ge=0)


class PlanResponse(BaseModel):
    plan: EditPlan
    warnings: List[str]

    class Config:
        protected_namespaces = ()


class EditResponse(BaseModel):
    asset: ImageAsset
    new_url: str
    warnings: List[str] = Field(default_factory=list)


class RevertResponse(BaseModel):
    reverted: bool
    asset: ImageAsset


class AnimationResponse(BaseModel):
    asset_id: str
    video_url: str


class BatchResponse(BaseModel):
    results: Dict[str, str]
    missing: List[str]
    balance: int


class CreditsResponse(BaseModel):
    balance: int


# ============================================================================
# PER-ASSET LOCKS
# ============================================================================

class AssetLocks:
    """
    Registry of one asyncio.Lock per asset id.

    Edits to the same asset wait for each other; different assets proceed
    independently (the scheduler still runs external calls one at a time).
    """

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}
        self._registry_lock = asyncio.Lock()

    async def _get(self, asset_id: str) -> asyncio.Lock:
        async with self._registry_lock:
            lock = self._locks.get(asset_id)
            if lock is None:
                lock = self._locks[asset_id] = asyncio.Lock()
            return lock

    @asynccontextmanager
    async def hold(self, *asset_ids: str):
        """Acquire the locks of all ``asset_ids``, in sorted order."""
        async with AsyncExitStack() as stack:
            for asset_id in sorted(set(asset_ids)):
                lock = await self._get(asset_id)
                if lock.locked():
                    logger.info("Waiting for asset lock", extra={"asset_id": asset_id})
                await stack.enter_async_context(lock)
            yield

    def __len__(self) -> int:
        return len(self._locks)


# ============================================================================
# DEPENDENCIES
# ============================================================================

def get_controller(request: Request) -> WorkflowController:
    """Dependency to get the workflow controller from app state."""
    return request.app.state.controller


def get_assets(request: Request) -> AssetStore:
    """Dependency to get the asset store from app state."""
    return request.app.state.assets


def get_ledger(request: Request) -> CreditLedger:
    return request.app.state.ledger


def get_locks(request: Request) -> AssetLocks:
    return request.app.state.asset_locks


def load_asset(assets: AssetStore, asset_id: str) -> ImageAsset:
    asset = assets.get(asset_id)
    if asset is None:
        raise HTTPException(status_code=404, detail=f"Asset {asset_id} not found")
    return asset


# ============================================================================
# ROUTES
# ============================================================================

@router.post("/assets", response_model=ImageAsset, status_code=201)
async def create_asset(body: CreateAssetBody, assets: AssetStore = Depends(get_assets)):
    """Register an uploaded image as a new asset."""
    asset = ImageAsset.create(body.image_url, mime_type=body.mime_type, filename=body.filename)
    assets.save(asset)

    logger.info("Asset created", extra={"asset_id": asset.id, "mime_type": asset.mime_type})
    return asset


@router.get("/assets", response_model=List[str])
async def list_assets(assets: AssetStore = Depends(get_assets)):
    """Ids of all registered assets, oldest first."""
    return assets.list_ids()


@router.get("/assets/{asset_id}", response_model=ImageAsset)
async def read_asset(asset_id: str, assets: AssetStore = Depends(get_assets)):
    return load_asset(assets, asset_id)


@router.post("/assets/{asset_id}/plan", response_model=PlanResponse)
async def plan_asset(
    asset_id: str,
    body: WorkflowRequest,
    controller: WorkflowController = Depends(get_controller),
    assets: AssetStore = Depends(get_assets),
):
    """Preview the plan for an edit without executing or charging for it."""
    asset = load_asset(assets, asset_id)
    plan, warnings = await controller.plan_edits(asset, body)
    return PlanResponse(plan=plan, warnings=warnings)


@router.post("/assets/{asset_id}/edit", response_model=EditResponse)
async def edit_asset(
    asset_id: str,
    body: WorkflowRequest,
    controller: WorkflowController = Depends(get_controller),
    assets: AssetStore = Depends(get_assets),
    locks: AssetLocks = Depends(get_locks),
):
    async with locks.hold(asset_id):
        asset = load_asset(assets, asset_id)
        outcome = await controller.run_single_workflow(asset, body)
        assets.save(asset)

    return EditResponse(asset=asset, new_url=outcome.new_url, warnings=outcome.warnings)


@router.post("/assets/{asset_id}/select", response_model=EditResponse)
async def select_object(
    asset_id: str,
    body: SelectionBody,
    controller: WorkflowController = Depends(get_controller),
    assets: AssetStore = Depends(get_assets),
    locks: AssetLocks = Depends(get_locks),
):
    """Remove the clicked object, or keep only it."""
    async with locks.hold(asset_id):
        asset = load_asset(assets, asset_id)
        outcome = await controller.run_object_selection_pipeline(asset, body.request, body.coordinates)
        assets.save(asset)

    return EditResponse(asset=asset, new_url=outcome.new_url, warnings=outcome.warnings)


@router.post("/assets/{asset_id}/revert", response_model=RevertResponse)
async def revert_asset(
    asset_id: str,
    controller: WorkflowController = Depends(get_controller),
    assets: AssetStore = Depends(get_assets),
    locks: AssetLocks = Depends(get_locks),
):
    async with locks.hold(asset_id):
        asset = load_asset(assets, asset_id)
        reverted = await controller.revert_asset(asset)
        if reverted:
            assets.save(asset)

    return RevertResponse(reverted=reverted, asset=asset)


@router.post("/assets/{asset_id}/analyze", response_model=AnalysisResult)
async def analyze_asset(
    asset_id: str,
    controller: WorkflowController = Depends(get_controller),
    assets: AssetStore = Depends(get_assets),
    locks: AssetLocks = Depends(get_locks),
):
    async with locks.hold(asset_id):
        asset = load_asset(assets, asset_id)
        analysis = await controller.run_analysis(asset)
        assets.save(asset)

    return analysis


@router.post("/assets/{asset_id}/animate", response_model=AnimationResponse)
async def animate_asset(
    asset_id: str,
    body: AnimationBody,
    controller: WorkflowController = Depends(get_controller),
    assets: AssetStore = Depends(get_assets),
):
    asset = load_asset(assets, asset_id)
    video_url = await controller.run_animation(asset, body.template)
    return AnimationResponse(asset_id=asset.id, video_url=video_url)


@router.get("/assets/{asset_id}/audit", response_model=List[AuditEntry])
async def audit_asset(asset_id: str, assets: AssetStore = Depends(get_assets)):
    return history.export_history_log(load_asset(assets, asset_id))


@router.get("/assets/{asset_id}/export", response_model=ExportData)
async def export_asset(asset_id: str, assets: AssetStore = Depends(get_assets)):
    return history.export_edit_plan(load_asset(assets, asset_id))


@router.post("/batch", response_model=BatchResponse)
async def run_batch(
    body: BatchBody,
    controller: WorkflowController = Depends(get_controller),
    assets: AssetStore = Depends(get_assets),
    ledger: CreditLedger = Depends(get_ledger),
    locks: AssetLocks = Depends(get_locks),
):
    """
    Apply one edit to several assets under a single charge.

    The representative asset (default: the first one) is used for planning.
    Assets that fail are listed in ``missing``.
    """
    representative_id = body.representative_id or body.asset_ids[0]

    async with locks.hold(*body.asset_ids, representative_id):
        batch_assets = [load_asset(assets, asset_id) for asset_id in body.asset_ids]
        representative = next(
            (a for a in batch_assets if a.id == representative_id), None
        ) or load_asset(assets, representative_id)

        async def report(current: int, total: int):
            logger.info(
                f"Batch progress {current}/{total}",
                extra={"current": current, "total": total}
            )

        results = await controller.run_batch_workflow(batch_assets, body.request, representative, report)

        for asset in batch_assets:
            if asset.id in results:
                assets.save(asset)

    return BatchResponse(
        results=results,
        missing=controller.missing_assets(batch_assets, results),
        balance=ledger.balance(),
    )


@router.get("/credits", response_model=CreditsResponse)
async def read_credits(ledger: CreditLedger = Depends(get_ledger)):
    return CreditsResponse(balance=ledger.balance())


@router.post("/credits", response_model=CreditsResponse)
async def add_credits(body: CreditsBody, ledger: CreditLedger = Depends(get_ledger)):
    """Top up the balance."""
    return CreditsResponse(balance=ledger.add(body.amount))


# ============================================================================
# ERROR MAPPING
# ============================================================================

ERROR_STATUS = (
    (InsufficientCredits, 402),
    (ValidationBlocked, 403),
    (MissingParameter, 400),
    (InvalidParameter, 400),
    (ImageProcessingError, 400),
    (TransientExternalFailure, 503),
    (PermanentExternalFailure, 502),
)


async def studio_error_handler(request: Request, exc: ListingStudioError) -> JSONResponse:
    status_code = next(
        (code for error_type, code in ERROR_STATUS if isinstance(exc, error_type)), 500
    )

    content = {"error": type(exc).__name__, "detail": str(exc)}
    if isinstance(exc, InsufficientCredits):
        content.update(required=exc.required, available=exc.available)
    elif isinstance(exc, ValidationBlocked):
        content.update(
            risk_level=getattr(exc.risk_level, "value", exc.risk_level),
            warnings=exc.warnings,
        )
    elif isinstance(exc, MissingParameter):
        content.update(parameter=exc.parameter)

    log = logger.error if status_code >= 500 else logger.warning
    log(
        f"Request failed: {type(exc).__name__}",
        extra={"path": request.url.path, "status": status_code, "error": str(exc)}
    )
    return JSONResponse(status_code=status_code, content=content)


def register_error_handlers(app: FastAPI):
    """Translate studio errors into HTTP responses."""
    app.add_exception_handler(ListingStudioError, studio_error_handler)
