"""Utils exports"""
from rewind.utils.patches import parse_patch, patch_bucket, queue_name
from rewind.utils.rewind_logging import log, configure_logging, get_fallback_logger

__all__ = [
    "parse_patch",
    "patch_bucket",
    "queue_name",
    "log",
    "configure_logging",
    "get_fallback_logger",
]
