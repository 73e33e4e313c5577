"""
Export gating endpoints.

Rendering happens in the client. The client asks for permission (and the
watermark to draw) before exporting, then records the export once it has
succeeded: check before export, record after.
"""

import logging
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, ConfigDict, Field

from erm.exceptions import ErrorCode, PlanLimitExceeded, StorageError
from erm.exports.enforcement import STORAGE_UNAVAILABLE
from erm.plans.limits import parse_export_format
from erm.services import WorkspaceServices
from erm.types.exports import ExportRecord, ExportStats, ExportType
from erm.types.plans import ExportFormat

from ..dependencies import get_services

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/exports", tags=["exports"])


class ExportRecordRequest(BaseModel):
    """Request body for recording a finished export."""

    model_config = ConfigDict(populate_by_name=True)

    type: ExportType
    item_id: str = Field(..., alias="itemId", min_length=1, max_length=200)
    item_name: str = Field(default="", alias="itemName", max_length=500)
    format: ExportFormat = ExportFormat.PDF


@router.post("/{export_type}/{item_id}/check")
async def check_export(
    export_type: str,
    item_id: str,
    export_format: str = Query(default="pdf", alias="format"),
    services: WorkspaceServices = Depends(get_services),
) -> Dict[str, Any]:
    """
    Ask whether ``item_id`` may be exported.

    Returns the check with the watermark to apply, 402 when the plan does
    not allow the export and 503 when the export history is unreadable.
    """
    export_format = parse_export_format(export_format)
    if export_format is not ExportFormat.PDF:
        format_check = await services.enforcement.can_export(export_format)
        if not format_check.allowed:
            raise PlanLimitExceeded(
                result=format_check.model_dump(mode="json", by_alias=True),
                error_code=ErrorCode.FEATURE_BLOCKED,
            )

    check = await services.exports.check_export(export_type, item_id)
    if not check.allowed:
        if check.reason == STORAGE_UNAVAILABLE:
            raise StorageError(
                message=check.message,
                error_code=ErrorCode.STORAGE_UNAVAILABLE,
            )
        raise PlanLimitExceeded(
            result=check.model_dump(mode="json", by_alias=True),
            error_code=ErrorCode.EXPORT_LIMIT_REACHED,
        )

    body = check.model_dump(mode="json", by_alias=True)
    body["watermarkConfig"] = (
        services.exports.get_watermark_config(export_type).model_dump(mode="json", by_alias=True)
        if check.watermark
        else None
    )
    return body


@router.post("/record", status_code=status.HTTP_201_CREATED)
async def record_export(
    request: ExportRecordRequest,
    services: WorkspaceServices = Depends(get_services),
) -> ExportRecord:
    """Record a successful export. Only call after the export completed."""
    return await services.export_wrapper.record(
        request.type,
        request.item_id,
        request.item_name,
        request.format.value,
    )


@router.get("/stats")
async def get_export_stats(
    services: WorkspaceServices = Depends(get_services),
) -> ExportStats:
    """Exported item counts and remaining allowance per export type."""
    return await services.exports.get_export_stats()


@router.get("/history")
async def get_export_history(
    services: WorkspaceServices = Depends(get_services),
) -> List[ExportRecord]:
    return await services.exports.get_export_history()
