"""Activity audit trail."""

from .logger import ActivityLogger, generate_activity_id
from .messages import (
    format_audit_sentence,
    format_type_label,
    get_full_message,
    get_message,
)

__all__ = [
    "ActivityLogger",
    "generate_activity_id",
    "get_message",
    "get_full_message",
    "format_audit_sentence",
    "format_type_label",
]
