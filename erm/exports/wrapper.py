"""
Export wrapper: gate, render, record.

Rendering is done by the caller's exporter coroutine. The wrapper only
decides whether the export may run and with which watermark, and records
the export once the exporter has returned.
"""

import logging
from typing import Any, Awaitable, Callable, Optional, Union

from erm.activity.logger import ActivityLogger
from erm.exports.enforcement import ExportEnforcement
from erm.types.activity import ActivityAction, ActivityType
from erm.types.exports import ExportRecord, ExportResult, ExportType, WatermarkConfig

logger = logging.getLogger(__name__)

Exporter = Callable[..., Awaitable[Any]]

EXPORT_FORMAT = "pdf"

ACTIVITY_TYPES = {
    ExportType.RISK_REGISTER: ActivityType.REGISTER,
    ExportType.REPORT: ActivityType.REPORT,
}


class ExportWrapper:
    """
    Runs exports through the export gate.

    Args:
        enforcement: Export gate for the workspace
        activity_logger: Optional audit trail; exports are logged as
            ``exported`` activities
    """

    def __init__(
        self,
        enforcement: ExportEnforcement,
        activity_logger: Optional[ActivityLogger] = None,
    ) -> None:
        self.enforcement = enforcement
        self.activity_logger = activity_logger

    async def export_risk_register(
        self,
        register_id: str,
        register_name: str,
        exporter: Exporter,
    ) -> ExportResult:
        return await self._export(ExportType.RISK_REGISTER, register_id, register_name, exporter)

    async def export_report(
        self,
        report_id: str,
        report_name: str,
        exporter: Exporter,
    ) -> ExportResult:
        return await self._export(ExportType.REPORT, report_id, report_name, exporter)

    async def _export(
        self,
        export_type: ExportType,
        item_id: str,
        item_name: str,
        exporter: Exporter,
    ) -> ExportResult:
        """
        Check, run ``exporter(watermark=...)`` and record the export.

        ``watermark`` is the WatermarkConfig to draw, or None for an
        unwatermarked export. A denied check is returned without calling
        the exporter. If the exporter raises, nothing is recorded and the
        exception propagates.
        """
        check = await self.enforcement.check_export(export_type, item_id)
        if not check.allowed:
            logger.info(f"{export_type.value} export of {item_id} denied: {check.reason}")
            return ExportResult(**check.model_dump())

        watermark: Optional[WatermarkConfig] = None
        if check.watermark:
            watermark = self.enforcement.get_watermark_config(export_type)

        await exporter(watermark=watermark)
        await self.record(export_type, item_id, item_name, EXPORT_FORMAT, watermark=check.watermark)

        return ExportResult(
            **check.model_dump(),
            filename=f"{item_name}.{EXPORT_FORMAT}",
        )

    async def record(
        self,
        export_type: Union[ExportType, str],
        item_id: str,
        item_name: str,
        export_format: str = EXPORT_FORMAT,
        watermark: Optional[bool] = None,
    ) -> ExportRecord:
        """
        Record a finished export and audit it as an ``exported`` activity.

        For callers that render outside ``export_*``; call only once the
        export has succeeded.
        """
        record = await self.enforcement.record_export(export_type, item_id, item_name, export_format)
        if self.activity_logger is not None:
            activity_type = ACTIVITY_TYPES[record.type]
            details = {"itemId": record.item_id, "format": export_format}
            if watermark is not None:
                details["watermark"] = watermark
            await self.activity_logger.log(
                activity_type,
                ActivityAction.EXPORTED,
                entity_type=activity_type.value,
                entity_name=item_name,
                details=details,
            )
        return record
