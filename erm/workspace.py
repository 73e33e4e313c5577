"""
Workspace context: the workspace record, its plan and the acting user.

Components ask this service for the current plan and user instead of
reading global state. A missing or unreadable workspace record means the
FREE plan.
"""

import logging
from typing import Optional, Union

from pydantic import ValidationError as PydanticValidationError

from erm.plans.limits import parse_plan, resolve_plan
from erm.storage.kv_store import KeyValueStore
from erm.types.plans import PlanTier
from erm.types.workspace import User, Workspace

logger = logging.getLogger(__name__)

WORKSPACE_KEY = "workspace"
CURRENT_USER_KEY = "currentUser"


class WorkspaceService:
    """
    Reads and writes the workspace record for one workspace namespace.

    Args:
        store: Store already scoped to the workspace
        workspace_id: Identifier used when a record has to be created
        acting_user: Request-scoped user; takes precedence over the
            persisted ``currentUser`` record
    """

    def __init__(
        self,
        store: KeyValueStore,
        workspace_id: str,
        acting_user: Optional[User] = None,
    ) -> None:
        self.store = store
        self.workspace_id = workspace_id
        self._acting_user = acting_user

    async def get_workspace(self) -> Optional[Workspace]:
        data = await self.store.get(WORKSPACE_KEY)
        if not isinstance(data, dict):
            return None
        try:
            return Workspace.model_validate({"id": self.workspace_id, **data})
        except PydanticValidationError as e:
            logger.warning(f"Ignoring invalid workspace record for {self.workspace_id}: {e}")
            return None

    async def save_workspace(self, workspace: Workspace) -> bool:
        return await self.store.set(
            WORKSPACE_KEY, workspace.model_dump(mode="json", by_alias=True)
        )

    async def get_plan(self) -> PlanTier:
        data = await self.store.get(WORKSPACE_KEY)
        if not isinstance(data, dict):
            return PlanTier.FREE
        return resolve_plan(data.get("plan"))

    async def set_plan(self, plan: Union[PlanTier, str]) -> Workspace:
        """
        Persist a new plan, creating the workspace record if needed.

        Raises:
            ValidationError: If ``plan`` is not a known tier
        """
        tier = parse_plan(plan)
        workspace = await self.get_workspace() or Workspace(id=self.workspace_id)
        workspace = workspace.model_copy(update={"plan": tier})
        await self.save_workspace(workspace)
        logger.info(f"Workspace {self.workspace_id} plan set to {tier.value}")
        return workspace

    async def get_current_user(self) -> Optional[User]:
        if self._acting_user is not None:
            return self._acting_user
        data = await self.store.get(CURRENT_USER_KEY)
        if not isinstance(data, dict):
            return None
        try:
            return User.model_validate(data)
        except PydanticValidationError as e:
            logger.warning(f"Ignoring invalid current user record: {e}")
            return None

    async def set_current_user(self, user: User) -> bool:
        return await self.store.set(CURRENT_USER_KEY, user.model_dump(mode="json", by_alias=True))

    async def is_admin_override(self) -> bool:
        """True for platform admins and workspaces flagged ``limitsOverride``."""
        user = await self.get_current_user()
        if user is not None and user.is_platform_admin:
            return True
        workspace = await self.get_workspace()
        return bool(workspace and workspace.limits_override)
