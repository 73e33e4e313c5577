"""
Activity logger: the workspace audit trail.

Records are stored newest-first under a single key and capped at a fixed
number of entries. Each insert-and-truncate runs through the store's
atomic update. Logging never raises for storage problems; an activity
that cannot be persisted is logged and still returned to the caller.
"""

import csv
import io
import json
import logging
import secrets
import string
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from erm.exceptions import ErrorCode, ValidationError
from erm.storage.kv_store import KeyValueStore
from erm.types.activity import ActivityAction, ActivityRecord, ActivityType
from erm.utils.logging import Timer
from erm.workspace import WorkspaceService

logger = logging.getLogger(__name__)

ACTIVITIES_KEY = "activities"
DEFAULT_MAX_ENTRIES = 500
DEFAULT_RECENT = 5
MIN_SEARCH_LENGTH = 2

CSV_HEADER = "Timestamp,Date,Time,User,Action,Type,Entity,Details\n"

_ID_ALPHABET = string.digits + string.ascii_lowercase
_ID_SUFFIX_LENGTH = 9


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _epoch_ms(moment: datetime) -> int:
    return int(moment.timestamp() * 1000)


def generate_activity_id(moment: datetime) -> str:
    """``<epoch-ms>-<9 random base-36 chars>``."""
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(_ID_SUFFIX_LENGTH))
    return f"{_epoch_ms(moment)}-{suffix}"


def format_timestamp(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def parse_datetime(value: Union[datetime, str, None], field: str = "date") -> Optional[datetime]:
    """
    Parse a range bound. Naive values are taken as UTC.

    Raises:
        ValidationError: If a string is not ISO-8601
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return _as_utc(value)
    try:
        return _as_utc(datetime.fromisoformat(str(value).strip().replace("Z", "+00:00")))
    except ValueError:
        raise ValidationError(
            message=f"Invalid date: {value}",
            field=field,
            value=value,
            error_code=ErrorCode.INVALID_DATE,
        )


def _enum_value(enum_cls, value, field: str) -> str:
    try:
        return enum_cls(value).value
    except ValueError:
        raise ValidationError(
            message=f"Unknown activity {field}: {value}",
            field=field,
            value=value,
        )


class ActivityLogger:
    """
    Audit trail for one workspace.

    Args:
        store: Store scoped to the workspace
        workspace: Workspace context supplying the acting user
        clock: Returns the current time; injectable for tests
        id_factory: Builds record ids from the record instant
        max_entries: Number of records kept, newest first
    """

    def __init__(
        self,
        store: KeyValueStore,
        workspace: WorkspaceService,
        clock: Optional[Callable[[], datetime]] = None,
        id_factory: Optional[Callable[[datetime], str]] = None,
        max_entries: int = DEFAULT_MAX_ENTRIES,
    ) -> None:
        self.store = store
        self.workspace = workspace
        self.clock = clock or _utcnow
        self.id_factory = id_factory or generate_activity_id
        self.max_entries = max_entries

    async def log(
        self,
        activity_type: Union[ActivityType, str],
        action: Union[ActivityAction, str],
        entity_type: Optional[str] = None,
        entity_name: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> ActivityRecord:
        """
        Record an audited mutation at the head of the log.

        Raises:
            ValidationError: If ``activity_type`` or ``action`` is unknown
        """
        type_value = _enum_value(ActivityType, activity_type, "type")
        action_value = _enum_value(ActivityAction, action, "action")

        moment = _as_utc(self.clock())
        moment = moment.replace(microsecond=moment.microsecond // 1000 * 1000)
        user = await self.workspace.get_current_user()

        record = ActivityRecord(
            id=self.id_factory(moment),
            type=type_value,
            action=action_value,
            entity_type=entity_type,
            entity_name=entity_name,
            details=details or {},
            user=user.name if user else "Unknown User",
            user_id=user.id if user else None,
            timestamp=moment,
            date=moment.strftime("%d/%m/%Y"),
            time=moment.strftime("%H:%M"),
        )
        entry = record.model_dump(mode="json", by_alias=True)
        max_entries = self.max_entries

        def prepend(activities):
            if not isinstance(activities, list):
                activities = []
            return [entry] + activities[: max_entries - 1]

        try:
            await self.store.update(ACTIVITIES_KEY, prepend, [])
        except Exception as e:
            logger.error(
                f"Failed to persist activity {record.id}: {str(e)}",
                extra={"activity_type": type_value, "action": action_value},
            )
            return record

        logger.info(
            f"Activity logged: {action_value} {type_value}",
            extra={"activity_id": record.id, "entity_name": entity_name},
        )
        return record

    # =========================================================================
    # Queries
    # =========================================================================

    async def get_all(self) -> List[ActivityRecord]:
        """All records, newest first. Invalid entries are skipped."""
        raw = await self.store.get(ACTIVITIES_KEY, [])
        if not isinstance(raw, list):
            return []

        records = []
        for entry in raw:
            try:
                records.append(ActivityRecord.model_validate(entry))
            except PydanticValidationError as e:
                logger.warning(f"Skipping invalid activity record: {e.error_count()} errors")
        return records

    async def get_recent(self, limit: int = DEFAULT_RECENT) -> List[ActivityRecord]:
        if limit <= 0:
            return []
        return (await self.get_all())[:limit]

    async def get_by_type(self, activity_type: Union[ActivityType, str]) -> List[ActivityRecord]:
        value = activity_type.value if isinstance(activity_type, ActivityType) else activity_type
        return [r for r in await self.get_all() if r.type == value]

    async def get_by_action(self, action: Union[ActivityAction, str]) -> List[ActivityRecord]:
        value = action.value if isinstance(action, ActivityAction) else action
        return [r for r in await self.get_all() if r.action == value]

    async def search(self, query: Optional[str]) -> List[ActivityRecord]:
        """
        Case-insensitive substring search over entity name, action, type,
        user and date. Queries shorter than two characters return everything.
        """
        activities = await self.get_all()
        if not query or len(query) < MIN_SEARCH_LENGTH:
            return activities

        needle = query.lower()
        results = []
        for record in activities:
            haystack = " ".join(
                [
                    record.entity_name or "",
                    record.action,
                    record.type,
                    record.user or "",
                    record.date,
                ]
            ).lower()
            if needle in haystack:
                results.append(record)
        return results

    async def filter_by_date_range(
        self,
        start: Union[datetime, str, None] = None,
        end: Union[datetime, str, None] = None,
    ) -> List[ActivityRecord]:
        """Records with ``start <= timestamp <= end``; either bound may be omitted."""
        start_at = parse_datetime(start, "start")
        end_at = parse_datetime(end, "end")

        results = []
        for record in await self.get_all():
            moment = _as_utc(record.timestamp)
            if start_at is not None and moment < start_at:
                continue
            if end_at is not None and moment > end_at:
                continue
            results.append(record)
        return results

    async def clear(self) -> None:
        await self.store.set(ACTIVITIES_KEY, [])
        logger.info("Activity log cleared")

    # =========================================================================
    # CSV export
    # =========================================================================

    async def export_csv(self) -> str:
        """
        Render the whole log as CSV, newest first.

        The header row is bare; every data field is double-quoted with
        embedded quotes doubled. ``Details`` is compact JSON.
        """
        with Timer("activity_csv_export", logger):
            activities = await self.get_all()

            buffer = io.StringIO()
            buffer.write(CSV_HEADER)
            writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
            for record in activities:
                writer.writerow(
                    [
                        format_timestamp(record.timestamp),
                        record.date,
                        record.time,
                        record.user or "",
                        record.action,
                        record.type,
                        record.entity_name or "",
                        json.dumps(record.details, separators=(",", ":"), ensure_ascii=False),
                    ]
                )
            return buffer.getvalue()

    def csv_filename(self) -> str:
        return f"activity-log-{_epoch_ms(_as_utc(self.clock()))}.csv"
