"""Asset history mutation and audit exports.

These helpers are the only code that changes an asset's history. Every edit
appends one URL to ``history`` and one label to ``edit_log``; revert removes
one of each, so ``len(edit_log) == len(history) - 1`` always holds.
"""

from typing import List

from ..models.schemas import AuditEntry, ExportData, ImageAsset
from ..utils.logger import get_logger

logger = get_logger(__name__)


def record_edit(asset: ImageAsset, new_url: str, label: str) -> ImageAsset:
    """Append an applied edit to the asset and make it current."""
    asset.history.append(new_url)
    asset.edit_log.append(label)
    asset.current_url = new_url

    logger.info(
        "Edit recorded",
        extra={"asset_id": asset.id, "version": len(asset.history) - 1, "label": label[:100]}
    )
    return asset


def revert(asset: ImageAsset) -> bool:
    """
    Drop the latest edit and restore the previous version.

    Returns:
        True if a version was removed, False if only the original remains
    """
    if len(asset.history) <= 1:
        logger.info("Nothing to revert", extra={"asset_id": asset.id})
        return False

    asset.history.pop()
    removed = asset.edit_log.pop()
    asset.current_url = asset.history[-1]

    logger.info(
        "Edit reverted",
        extra={"asset_id": asset.id, "version": len(asset.history) - 1, "removed": removed[:100]}
    )
    return True


def export_edit_plan(asset: ImageAsset) -> ExportData:
    """Snapshot of the asset's current state for downstream persistence."""
    return ExportData(
        asset_id=asset.id,
        edits=list(asset.edit_log),
        final_image=asset.current_url,
    )


def export_history_log(asset: ImageAsset) -> List[AuditEntry]:
    """Audit trail of applied edits, oldest first."""
    return [
        AuditEntry(step=index, action=action)
        for index, action in enumerate(asset.edit_log)
    ]
