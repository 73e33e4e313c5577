"""
Activity log endpoints: audit trail listing, logging and CSV download.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, Response, status

from erm.activity.messages import get_full_message
from erm.services import WorkspaceServices
from erm.types.activity import ActivityCreate, ActivityRecord

from ..dependencies import get_services

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/activity", tags=["activity"])


def _activity_to_response(record: ActivityRecord) -> Dict[str, Any]:
    body = record.model_dump(mode="json", by_alias=True)
    body["message"] = get_full_message(record)
    return body


@router.get("")
async def list_activities(
    type: Optional[str] = Query(default=None, description="Activity type, e.g. risk"),
    action: Optional[str] = Query(default=None, description="Activity action, e.g. created"),
    q: Optional[str] = Query(default=None, description="Search text (2+ characters)"),
    start: Optional[str] = Query(default=None, description="ISO-8601 lower bound, inclusive"),
    end: Optional[str] = Query(default=None, description="ISO-8601 upper bound, inclusive"),
    limit: Optional[int] = Query(default=None, ge=1, le=500),
    services: WorkspaceServices = Depends(get_services),
) -> Dict[str, Any]:
    """
    List activities newest first.

    Filters combine: search text, then type, action and date range.
    """
    records = await services.activity.search(q)
    if type:
        records = [r for r in records if r.type == type]
    if action:
        records = [r for r in records if r.action == action]
    if start or end:
        in_range = {r.id for r in await services.activity.filter_by_date_range(start, end)}
        records = [r for r in records if r.id in in_range]

    total = len(records)
    if limit is not None:
        records = records[:limit]

    return {
        "activities": [_activity_to_response(r) for r in records],
        "total": total,
    }


@router.post("", status_code=status.HTTP_201_CREATED)
async def log_activity(
    request: ActivityCreate,
    services: WorkspaceServices = Depends(get_services),
) -> Dict[str, Any]:
    """Record an audited mutation at the head of the log."""
    record = await services.activity.log(
        request.type,
        request.action,
        entity_type=request.entity_type,
        entity_name=request.entity_name,
        details=request.details,
    )
    return _activity_to_response(record)


@router.delete("")
async def clear_activities(
    services: WorkspaceServices = Depends(get_services),
) -> Dict[str, Any]:
    await services.activity.clear()
    logger.info(f"Activity log cleared for workspace {services.workspace_id}")
    return {"success": True}


@router.get("/export")
async def export_activities(
    services: WorkspaceServices = Depends(get_services),
) -> Response:
    """Download the full log as CSV."""
    content = await services.activity.export_csv()
    filename = services.activity.csv_filename()
    return Response(
        content=content,
        media_type="text/csv",
        headers={
            "Content-Disposition": f'attachment; filename="{filename}"',
            "Cache-Control": "no-cache",
        },
    )
