from cleanbook.backend.base import Backend, BackendError, SlotConflictError
from cleanbook.backend.memory import InMemoryBackend
from cleanbook.backend.realtime import RealtimeListener
from cleanbook.backend.rest import RestBackend

__all__ = [
    "Backend",
    "BackendError",
    "SlotConflictError",
    "InMemoryBackend",
    "RealtimeListener",
    "RestBackend",
]
