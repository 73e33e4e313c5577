"""Export gating, watermark policy and the export wrapper."""

from .enforcement import ExportEnforcement, parse_export_type
from .wrapper import ExportWrapper

__all__ = [
    "ExportEnforcement",
    "ExportWrapper",
    "parse_export_type",
]
