"""Chat event pipeline: sanitization, publishing and the collaborators behind it."""

from .cache_manager import CacheManager, MemoryCache  # noqa: F401
from .job_queue import HttpJobQueue, SpoolJobQueue, build_job_queue  # noqa: F401
from .protocols import CacheProtocol, JobQueueProtocol  # noqa: F401
from .publisher import ChatEvent, EventKind, EventPublisher  # noqa: F401
from .sanitize import sanitize  # noqa: F401

__all__ = [
    "CacheManager",
    "CacheProtocol",
    "ChatEvent",
    "EventKind",
    "EventPublisher",
    "HttpJobQueue",
    "JobQueueProtocol",
    "MemoryCache",
    "SpoolJobQueue",
    "build_job_queue",
    "sanitize",
]
