"""Service layer for background maintenance."""

from .cleanup_scheduler import (
    cleanup_stale_caches,
    get_scheduler_status,
    start_cleanup_scheduler,
    stop_cleanup_scheduler,
)

__all__ = [
    "cleanup_stale_caches",
    "get_scheduler_status",
    "start_cleanup_scheduler",
    "stop_cleanup_scheduler",
]
