"""
Upgrade-funnel analytics.

Events are appended to a capped per-workspace log and delivered
best-effort to an external endpoint. Delivery never blocks the caller
and its failures are logged and discarded.
"""

import asyncio
import logging
import secrets
import string
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Set, Union

import httpx
from pydantic import ValidationError as PydanticValidationError

from erm.storage.kv_store import KeyValueStore
from erm.types.analytics import ConversionStats, UpgradeAction, UpgradeEvent

logger = logging.getLogger(__name__)

UPGRADE_EVENTS_KEY = "upgradeEvents"
USER_ID_KEY = "userId"
SESSION_ID_KEY = "sessionId"
DEFAULT_MAX_EVENTS = 100

ANALYTICS_USER_AGENT = "ERM-Analytics/1.0"

_SUFFIX_ALPHABET = string.digits + string.ascii_lowercase


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _random_suffix(length: int = 6) -> str:
    return "".join(secrets.choice(_SUFFIX_ALPHABET) for _ in range(length))


def format_conversion_rate(shown: int, success: int) -> str:
    if shown <= 0:
        return "0%"
    return f"{success / shown * 100:.2f}%"


class AnalyticsDelivery:
    """
    Fire-and-forget HTTP delivery of analytics events.

    Scheduled tasks are referenced until they finish so they cannot be
    garbage collected mid-flight. When no endpoint is configured nothing
    is sent.
    """

    def __init__(self, endpoint_url: Optional[str], timeout_seconds: float = 5.0) -> None:
        self.endpoint_url = endpoint_url
        self.timeout_seconds = timeout_seconds
        self._http_client: Optional[httpx.AsyncClient] = None
        self._pending: Set[asyncio.Task] = set()

    @property
    def enabled(self) -> bool:
        return bool(self.endpoint_url)

    async def _get_client(self) -> httpx.AsyncClient:
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout_seconds),
                headers={"User-Agent": ANALYTICS_USER_AGENT},
            )
        return self._http_client

    async def send(self, event: UpgradeEvent) -> bool:
        """
        POST one event. Never raises.

        Returns:
            True if the endpoint answered with a 2xx status
        """
        if not self.enabled:
            return False

        payload = event.model_dump(mode="json", by_alias=True)
        try:
            client = await self._get_client()
            response = await client.post(self.endpoint_url, json=payload)
            if response.is_success:
                logger.debug(f"Analytics event delivered: {event.action}")
                return True
            logger.warning(f"Analytics endpoint returned HTTP {response.status_code}")
        except httpx.TimeoutException:
            logger.warning(f"Analytics delivery timed out after {self.timeout_seconds}s")
        except httpx.RequestError as e:
            logger.warning(f"Analytics delivery failed: {str(e)}")
        except Exception as e:
            logger.error(f"Unexpected analytics delivery error: {str(e)}")
        return False

    def schedule(self, event: UpgradeEvent) -> Optional[asyncio.Task]:
        """Start delivery in the background and return immediately."""
        if not self.enabled:
            return None
        task = asyncio.create_task(self.send(event))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def drain(self) -> None:
        """Wait for every scheduled delivery to finish."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def close(self) -> None:
        await self.drain()
        if self._http_client and not self._http_client.is_closed:
            await self._http_client.aclose()


class UpgradeAnalytics:
    """
    Tracks upgrade-funnel events for one workspace.

    Args:
        store: Store scoped to the workspace; holds events and the stable
            analytics user id
        session_store: Session-scoped store holding the session id
        delivery: Optional best-effort delivery to an external endpoint
        clock: Returns the current time; injectable for tests
        max_events: Number of most recent events kept
    """

    def __init__(
        self,
        store: KeyValueStore,
        session_store: KeyValueStore,
        delivery: Optional[AnalyticsDelivery] = None,
        clock: Optional[Callable[[], datetime]] = None,
        max_events: int = DEFAULT_MAX_EVENTS,
    ) -> None:
        self.store = store
        self.session_store = session_store
        self.delivery = delivery
        self.clock = clock or _utcnow
        self.max_events = max_events

    async def _stable_id(self, store: KeyValueStore, key: str, prefix: str) -> str:
        def ensure(current):
            if isinstance(current, str) and current:
                return current
            now_ms = int(self.clock().timestamp() * 1000)
            return f"{prefix}_{now_ms}_{_random_suffix()}"

        return await store.update(key, ensure, None)

    async def get_user_id(self) -> str:
        """``user_<ms>_<rand>``, created on first use and then stable."""
        return await self._stable_id(self.store, USER_ID_KEY, "user")

    async def get_session_id(self) -> str:
        return await self._stable_id(self.session_store, SESSION_ID_KEY, "session")

    async def track(
        self,
        source: Optional[str],
        feature: Optional[str],
        action: Union[UpgradeAction, str],
        plan: Optional[str] = "PRO",
    ) -> UpgradeEvent:
        """Record a funnel step and schedule its delivery."""
        action_value = action.value if isinstance(action, UpgradeAction) else str(action)
        event = UpgradeEvent(
            timestamp=self.clock(),
            source=source or "unknown",
            feature=feature or "",
            plan=plan or "PRO",
            user_id=await self.get_user_id(),
            session_id=await self.get_session_id(),
            action=action_value,
        )
        entry = event.model_dump(mode="json", by_alias=True)
        max_events = self.max_events

        def append(events):
            if not isinstance(events, list):
                events = []
            events.append(entry)
            return events[-max_events:]

        try:
            await self.store.update(UPGRADE_EVENTS_KEY, append, [])
        except Exception as e:
            logger.error(f"Failed to store upgrade event: {str(e)}")

        logger.info(
            f"Upgrade event tracked: {action_value}",
            extra={"source": event.source, "feature": event.feature},
        )

        if self.delivery is not None:
            self.delivery.schedule(event)
        return event

    async def track_modal_shown(self, source: str, feature: str = "") -> UpgradeEvent:
        return await self.track(source, feature, UpgradeAction.MODAL_SHOWN)

    async def track_upgrade_clicked(self, source: str, feature: str = "") -> UpgradeEvent:
        return await self.track(source, feature, UpgradeAction.UPGRADE_CLICKED)

    async def track_upgrade_success(
        self,
        plan: str,
        source: Optional[str] = None,
        feature: Optional[str] = None,
    ) -> UpgradeEvent:
        return await self.track(source, feature, UpgradeAction.UPGRADE_SUCCESS, plan=plan)

    async def get_events(self) -> List[UpgradeEvent]:
        raw = await self.store.get(UPGRADE_EVENTS_KEY, [])
        if not isinstance(raw, list):
            return []
        events = []
        for entry in raw:
            try:
                events.append(UpgradeEvent.model_validate(entry))
            except PydanticValidationError:
                logger.warning("Skipping invalid upgrade event")
        return events

    async def get_events_by_source(self, source: str) -> List[UpgradeEvent]:
        return [e for e in await self.get_events() if e.source == source]

    async def get_conversion_stats(self) -> ConversionStats:
        stats = ConversionStats()
        buckets: Dict[str, Dict[str, int]] = {
            UpgradeAction.MODAL_SHOWN.value: stats.modal_shown,
            UpgradeAction.UPGRADE_CLICKED.value: stats.upgrade_clicked,
            UpgradeAction.UPGRADE_SUCCESS.value: stats.upgrade_success,
        }
        for event in await self.get_events():
            bucket = buckets.get(event.action)
            if bucket is not None:
                bucket[event.source] = bucket.get(event.source, 0) + 1

        for source, shown in stats.modal_shown.items():
            stats.conversion_rate[source] = format_conversion_rate(
                shown, stats.upgrade_success.get(source, 0)
            )
        return stats


_analytics_delivery: Optional[AnalyticsDelivery] = None


def get_analytics_delivery() -> AnalyticsDelivery:
    """Get the process-wide delivery client built from the analytics settings."""
    global _analytics_delivery
    if _analytics_delivery is None:
        from erm.config import get_settings

        settings = get_settings().analytics
        _analytics_delivery = AnalyticsDelivery(
            settings.analytics_endpoint_url,
            settings.analytics_timeout_seconds,
        )
    return _analytics_delivery
