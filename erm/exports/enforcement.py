"""
Export gating and watermark policy.

On capped plans a workspace may export a limited number of distinct items
per export type. Re-exporting an item that was already exported is always
allowed and consumes nothing. Every export on a capped plan carries a
watermark. Unlimited plans are never watermarked.

Permission checks fail closed: if the export history cannot be read the
export is denied with ``reason="storage_unavailable"``.
"""

import logging
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from erm.exceptions import ErrorCode, StorageError, ValidationError
from erm.plans.limits import get_limits
from erm.storage.kv_store import KeyValueStore
from erm.types.exports import (
    ExportCheck,
    ExportRecord,
    ExportStats,
    ExportType,
    ExportTypeStats,
    WatermarkConfig,
    WatermarkPosition,
)
from erm.types.plans import UNLIMITED
from erm.workspace import WorkspaceService

logger = logging.getLogger(__name__)

EXPORT_HISTORY_KEY = "exportHistory"

EXPORT_LIMIT_REACHED = "export_limit_reached"
STORAGE_UNAVAILABLE = "storage_unavailable"

WATERMARK_LOGO_PATH = "assets/images/watermark-logo.png"
WATERMARK_OPACITY = 0.3
WATERMARK_FALLBACK_TEXT = "Dimeri.ai Free Plan"

# Logo size in mm and page corner per export type
WATERMARK_LAYOUT: Dict[ExportType, tuple[int, int, WatermarkPosition]] = {
    ExportType.RISK_REGISTER: (40, 15, WatermarkPosition.TOP_RIGHT),
    ExportType.REPORT: (35, 13, WatermarkPosition.BOTTOM_LEFT),
}


def parse_export_type(export_type: Union[ExportType, str]) -> ExportType:
    if isinstance(export_type, ExportType):
        return export_type
    try:
        return ExportType(export_type)
    except ValueError:
        raise ValidationError(
            message=f"Unknown export type: {export_type}",
            field="export_type",
            value=export_type,
            error_code=ErrorCode.INVALID_EXPORT_TYPE,
        )


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ExportEnforcement:
    """
    Export permission checks and history for one workspace.

    Args:
        store: Store scoped to the workspace
        workspace: Workspace context supplying the plan
        clock: Returns the current time; injectable for tests
    """

    def __init__(
        self,
        store: KeyValueStore,
        workspace: WorkspaceService,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.store = store
        self.workspace = workspace
        self.clock = clock or _utcnow

    # =========================================================================
    # History
    # =========================================================================

    @staticmethod
    def _parse_history(raw) -> List[ExportRecord]:
        records = []
        for entry in raw:
            try:
                records.append(ExportRecord.model_validate(entry))
            except PydanticValidationError as e:
                logger.warning(f"Skipping invalid export record: {e.error_count()} errors")
        return records

    async def _load_history(self) -> List[ExportRecord]:
        """
        Strict history read used by the permission checks.

        Raises:
            StorageError: If the history is unreadable or not a list
        """
        raw = await self.store.load(EXPORT_HISTORY_KEY)
        if raw is None:
            return []
        if not isinstance(raw, list):
            raise StorageError(
                message="Export history is corrupt",
                key=EXPORT_HISTORY_KEY,
                error_code=ErrorCode.CORRUPT_RECORD,
            )
        return self._parse_history(raw)

    async def get_export_history(self) -> List[ExportRecord]:
        """Export history in insertion order; unreadable history reads as empty."""
        raw = await self.store.get(EXPORT_HISTORY_KEY, [])
        if not isinstance(raw, list):
            return []
        return self._parse_history(raw)

    @staticmethod
    def _unique_ids(history: List[ExportRecord], export_type: ExportType) -> set:
        return {r.item_id for r in history if r.type == export_type}

    async def count_unique_exports(self, export_type: Union[ExportType, str]) -> int:
        export_type = parse_export_type(export_type)
        return len(self._unique_ids(await self.get_export_history(), export_type))

    async def has_been_exported(self, export_type: Union[ExportType, str], item_id: str) -> bool:
        export_type = parse_export_type(export_type)
        return str(item_id) in self._unique_ids(await self.get_export_history(), export_type)

    async def record_export(
        self,
        export_type: Union[ExportType, str],
        item_id: str,
        item_name: str,
        export_format: str = "pdf",
    ) -> ExportRecord:
        """
        Append an export to the history.

        Only call after the export actually succeeded; the record is
        appended unconditionally.
        """
        export_type = parse_export_type(export_type)
        record = ExportRecord(
            type=export_type,
            item_id=str(item_id),
            item_name=item_name or "",
            format=export_format,
            timestamp=self.clock(),
            plan=await self.workspace.get_plan(),
        )
        entry = record.model_dump(mode="json", by_alias=True)

        def append(history):
            if not isinstance(history, list):
                history = []
            history.append(entry)
            return history

        await self.store.update(EXPORT_HISTORY_KEY, append, [])
        logger.info(f"Recorded {export_type.value} export of {record.item_id} ({export_format})")
        return record

    # =========================================================================
    # Permission checks
    # =========================================================================

    async def can_export_risk_register(self, register_id: str, register_name: str = "") -> ExportCheck:
        return await self.check_export(ExportType.RISK_REGISTER, register_id)

    async def can_export_report(self, report_id: str, report_name: str = "") -> ExportCheck:
        return await self.check_export(ExportType.REPORT, report_id)

    async def check_export(self, export_type: Union[ExportType, str], item_id: str) -> ExportCheck:
        """
        Decide whether ``item_id`` may be exported.

        Never raises for storage problems; an unreadable history denies the
        export.
        """
        export_type = parse_export_type(export_type)
        item_id = str(item_id)
        plan = await self.workspace.get_plan()
        cap = get_limits(plan).exported_items

        try:
            history = await self._load_history()
        except StorageError as e:
            logger.error(f"Export denied, history unavailable: {e.internal_message or e.message}")
            return ExportCheck(
                allowed=False,
                reason=STORAGE_UNAVAILABLE,
                message="Export history is temporarily unavailable. Please try again.",
            )

        exported_ids = self._unique_ids(history, export_type)
        already_exported = item_id in exported_ids

        if cap == UNLIMITED:
            return ExportCheck(
                allowed=True,
                watermark=False,
                is_new_export=not already_exported,
                remaining=UNLIMITED,
            )

        label = export_type.plural_label
        distinct = len(exported_ids)

        if already_exported:
            singular = "risk register" if export_type is ExportType.RISK_REGISTER else "report"
            return ExportCheck(
                allowed=True,
                watermark=True,
                is_new_export=False,
                remaining=max(0, cap - distinct),
                message=f"This {singular} has been exported before. Watermark will be applied.",
            )

        if distinct >= cap:
            return ExportCheck(
                allowed=False,
                watermark=False,
                is_new_export=True,
                remaining=0,
                reason=EXPORT_LIMIT_REACHED,
                message=f"You've exported {distinct} of {cap} {label} on the free plan.",
                upgrade_message=f"Upgrade to export unlimited {label} without watermarks.",
            )

        return ExportCheck(
            allowed=True,
            watermark=True,
            is_new_export=True,
            remaining=cap - distinct - 1,
        )

    # =========================================================================
    # Stats and watermark policy
    # =========================================================================

    async def get_export_stats(self) -> ExportStats:
        history = await self.get_export_history()
        cap = get_limits(await self.workspace.get_plan()).exported_items

        def stats_for(export_type: ExportType) -> ExportTypeStats:
            unique = len(self._unique_ids(history, export_type))
            return ExportTypeStats(
                total=sum(1 for r in history if r.type == export_type),
                unique=unique,
                limit=cap,
                remaining=UNLIMITED if cap == UNLIMITED else max(0, cap - unique),
            )

        return ExportStats(
            risk_registers=stats_for(ExportType.RISK_REGISTER),
            reports=stats_for(ExportType.REPORT),
        )

    @staticmethod
    def get_watermark_config(export_type: Union[ExportType, str]) -> WatermarkConfig:
        export_type = parse_export_type(export_type)
        width, height, position = WATERMARK_LAYOUT[export_type]
        return WatermarkConfig(
            logo_path=WATERMARK_LOGO_PATH,
            opacity=WATERMARK_OPACITY,
            width=width,
            height=height,
            position=position,
            fallback_text=WATERMARK_FALLBACK_TEXT,
        )
