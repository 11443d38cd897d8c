from commitstatus.storage.status_store import (
    ActivityLookup,
    RecordStore,
    StatusStore,
)

__all__ = [
    "ActivityLookup",
    "RecordStore",
    "StatusStore",
]
