"""
Wiring of the per-workspace components.

``build_workspace_services`` is the single place that knows how the
components depend on each other. The HTTP layer calls it per request;
library users and tests call it directly with their own store.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from erm.activity.logger import ActivityLogger
from erm.analytics.upgrade_analytics import AnalyticsDelivery, UpgradeAnalytics
from erm.config import Settings, get_settings
from erm.exports.enforcement import ExportEnforcement
from erm.exports.wrapper import ExportWrapper
from erm.plans.upgrade import PlanUpgradeService
from erm.storage.kv_store import KeyValueStore
from erm.types.workspace import User
from erm.usage.ai_counter import AICallCounter
from erm.usage.enforcement import PlanEnforcement
from erm.usage.tracker import UsageTracker
from erm.workspace import WorkspaceService


@dataclass
class WorkspaceServices:
    workspace_id: str
    store: KeyValueStore
    workspace: WorkspaceService
    tracker: UsageTracker
    enforcement: PlanEnforcement
    ai_counter: AICallCounter
    exports: ExportEnforcement
    export_wrapper: ExportWrapper
    activity: ActivityLogger
    analytics: UpgradeAnalytics
    upgrades: PlanUpgradeService


def build_workspace_services(
    root_store: KeyValueStore,
    workspace_id: str,
    acting_user: Optional[User] = None,
    session_store: Optional[KeyValueStore] = None,
    delivery: Optional[AnalyticsDelivery] = None,
    clock: Optional[Callable[[], datetime]] = None,
    settings: Optional[Settings] = None,
) -> WorkspaceServices:
    """
    Build every component for one workspace.

    Args:
        root_store: Store with the global prefix; scoped here to the workspace
        workspace_id: Workspace namespace
        acting_user: Request-scoped user, if any
        session_store: Session-scoped store for analytics session ids;
            a fresh in-memory store when omitted
        delivery: Analytics delivery client
        clock: Shared clock for every component
        settings: Settings for retention caps; the cached settings by default
    """
    settings = settings or get_settings()
    store = root_store.namespaced(workspace_id)
    workspace = WorkspaceService(store, workspace_id, acting_user=acting_user)

    tracker = UsageTracker(store, workspace)
    ai_counter = AICallCounter(store, workspace)
    activity = ActivityLogger(
        store,
        workspace,
        clock=clock,
        max_entries=settings.storage.activity_log_max_entries,
    )
    exports = ExportEnforcement(store, workspace, clock=clock)
    analytics = UpgradeAnalytics(
        store,
        session_store if session_store is not None else KeyValueStore(prefix="session:"),
        delivery=delivery,
        clock=clock,
        max_events=settings.storage.upgrade_events_max,
    )

    return WorkspaceServices(
        workspace_id=workspace_id,
        store=store,
        workspace=workspace,
        tracker=tracker,
        enforcement=PlanEnforcement(tracker, workspace),
        ai_counter=ai_counter,
        exports=exports,
        export_wrapper=ExportWrapper(exports, activity),
        activity=activity,
        analytics=analytics,
        upgrades=PlanUpgradeService(workspace, ai_counter, analytics, activity, clock=clock),
    )
