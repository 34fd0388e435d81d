"""Background task processing."""

from linkauth.tasks.maintenance import sweep_expired_tokens
from linkauth.tasks.queue import get_queue_settings, queue

__all__ = ["get_queue_settings", "queue", "sweep_expired_tokens"]
