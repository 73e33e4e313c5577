"""
ERM plan limits, usage enforcement and activity audit service.
"""

from .services import WorkspaceServices, build_workspace_services
from .storage import KeyValueStore

__version__ = "1.0.0"

__all__ = [
    "KeyValueStore",
    "WorkspaceServices",
    "build_workspace_services",
]
