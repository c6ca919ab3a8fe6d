# Overview: Storage backend selection; one backend per app, chosen from config at startup.

from .base import Storage, SessionStore
from .memory import MemStorage
from .database import DatabaseStorage

BACKENDS = {
    "memory": MemStorage,
    "database": DatabaseStorage,
}


def build_storage(backend: str) -> Storage:
    try:
        return BACKENDS[backend]()
    except KeyError:
        raise ValueError(
            f"Unknown STORAGE_BACKEND {backend!r}; expected one of {', '.join(sorted(BACKENDS))}"
        ) from None


__all__ = ["Storage", "SessionStore", "MemStorage", "DatabaseStorage", "build_storage"]
