"""
Human-readable rendering of activity records.

Two styles are produced:
- ``get_message`` / ``get_full_message``: quoted entity names, used in
  feeds and notifications (``Jane created "Fraud" risk``)
- ``format_audit_sentence``: plain audit-trail sentences
  (``Jane added risk Fraud``)

Records read from storage may carry values outside the closed
vocabularies; those render with the raw stored text.
"""

from typing import Dict, Union

from erm.types.activity import ActivityAction, ActivityRecord, ActivityType

ENTITY_LABELS: Dict[ActivityType, str] = {
    ActivityType.RISK: "risk",
    ActivityType.CONTROL: "control",
    ActivityType.REPORT: "report",
    ActivityType.REGISTER: "risk register",
    ActivityType.USER: "team member",
    ActivityType.TEAM_MEMBER: "team member",
    ActivityType.SETTINGS: "settings",
    ActivityType.WORKSPACE: "workspace",
    ActivityType.DATA: "data",
}

ACTION_LABELS: Dict[ActivityAction, str] = {
    ActivityAction.CREATED: "created",
    ActivityAction.UPDATED: "updated",
    ActivityAction.DELETED: "deleted",
    ActivityAction.ADDED: "added",
    ActivityAction.REMOVED: "removed",
    ActivityAction.LINKED: "linked",
    ActivityAction.UNLINKED: "unlinked",
    ActivityAction.EXPORTED: "exported",
    ActivityAction.IMPORTED: "imported",
    ActivityAction.RENAMED: "renamed",
    ActivityAction.SHARED: "shared",
    ActivityAction.EDITED: "edited",
    ActivityAction.COMMENTED: "commented on",
    ActivityAction.BULK_DELETED: "bulk deleted",
    ActivityAction.UNSHARED: "unshared",
    ActivityAction.TRANSFERRED: "transferred",
}

TYPE_LABELS: Dict[str, str] = {
    "risk": "Risk",
    "register": "Register",
    "risk register": "Register",
    "control": "Control",
    "report": "Report",
    "user": "User",
    "team-member": "User",
    "workspace": "Workspace",
    "settings": "Settings",
}

# (entity type, action) -> audit sentence after the user name; {name} is the entity
AUDIT_SENTENCES: Dict[tuple[str, str], str] = {
    ("register", "created"): "created register {name}",
    ("register", "updated"): "edited register {name}",
    ("register", "deleted"): "deleted register {name}",
    ("register", "exported"): "exported register {name}",
    ("risk", "created"): "added risk {name}",
    ("risk", "updated"): "updated risk {name}",
    ("risk", "deleted"): "removed risk {name}",
    ("control", "created"): "created control {name}",
    ("control", "updated"): "updated control {name}",
    ("control", "deleted"): "removed control {name}",
    ("control", "linked"): "linked control {name}",
    ("control", "unlinked"): "unlinked control {name}",
    ("report", "created"): "generated report {name}",
    ("report", "exported"): "exported report {name}",
    ("report", "bulk_deleted"): "deleted {name}",
    ("report", "unshared"): "stopped sharing report {name}",
    ("ownership", "transferred"): "transferred {name}",
    ("user", "added"): "invited {name} to workspace",
    ("user", "created"): "invited {name} to workspace",
    ("user", "removed"): "removed {name} from workspace",
    ("user", "deleted"): "removed {name} from workspace",
    ("user", "updated"): "updated {name} access",
    ("workspace", "updated"): "updated workspace settings",
}

# Entity types that share an audit vocabulary
AUDIT_ENTITY_ALIASES: Dict[str, str] = {
    "risk register": "register",
    "team-member": "user",
    "reports": "report",
}

DEFAULT_USER_NAME = "Unknown User"


def entity_label(activity_type: Union[ActivityType, str]) -> str:
    try:
        return ENTITY_LABELS[ActivityType(activity_type)]
    except ValueError:
        return str(activity_type)


def action_label(action: Union[ActivityAction, str]) -> str:
    try:
        return ACTION_LABELS[ActivityAction(action)]
    except ValueError:
        return str(action)


def get_message(activity: ActivityRecord) -> str:
    """
    Render ``<action> "<name>" <entity>`` for an activity.

    Linking activities with ``details.linkedTo`` render as
    ``linked "<name>" <entity> to "<linkedTo>" <linkedToType>``.
    """
    action = action_label(activity.action)
    label = entity_label(activity.type)
    name = activity.entity_name or ""

    linked_to = activity.details.get("linkedTo") if activity.details else None
    if activity.action == ActivityAction.LINKED.value and linked_to:
        linked_to_type = activity.details.get("linkedToType") or ""
        return f'{action} "{name}" {label} to "{linked_to}" {linked_to_type}'

    if name:
        return f'{action} "{name}" {label}'
    return f"{action} {label}"


def get_full_message(activity: ActivityRecord) -> str:
    return f"{activity.user or DEFAULT_USER_NAME} {get_message(activity)}"


def format_audit_sentence(activity: ActivityRecord) -> str:
    """Plain audit-trail sentence, e.g. ``Jane added risk Fraud``."""
    user = activity.user or "User"
    name = activity.entity_name or "item"
    action = (activity.action or "").lower()
    entity_type = (activity.entity_type or activity.type or "").lower()
    entity_type = AUDIT_ENTITY_ALIASES.get(entity_type, entity_type)

    template = AUDIT_SENTENCES.get((entity_type, action))
    if template is None:
        return f"{user} {action} {name}"
    return f"{user} {template.format(name=name)}"


def format_type_label(activity_type: str) -> str:
    """Badge label for an activity type; ``Activity`` when unknown."""
    return TYPE_LABELS.get((activity_type or "").lower(), "Activity")
