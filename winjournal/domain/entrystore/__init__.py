"""Entry store: the active session's wins and their persistence."""

from .categories import ALL_CATEGORIES, DEFAULT_CATEGORY_SET, CategorySet
from .export import (
    ParsedExport,
    dump_document,
    export_document,
    export_filename,
    import_document,
)
from .gateway import (
    CollectionBackend,
    FileCollectionCache,
    InMemoryCollectionStore,
    LocalCache,
    SqlCollectionStore,
    build_collections_table,
    classify_remote_error,
)
from .models import Entry, utcnow
from .store import EntryStore, build_entry_store
from .sync import (
    DEGRADED_NOTICE,
    CollectionSync,
    LoadResult,
    RemoteSyncWorker,
    SyncOutcome,
    SyncStatus,
)

__all__ = [
    "ALL_CATEGORIES",
    "DEFAULT_CATEGORY_SET",
    "DEGRADED_NOTICE",
    "CategorySet",
    "CollectionBackend",
    "CollectionSync",
    "Entry",
    "EntryStore",
    "FileCollectionCache",
    "InMemoryCollectionStore",
    "LoadResult",
    "LocalCache",
    "ParsedExport",
    "RemoteSyncWorker",
    "SqlCollectionStore",
    "SyncOutcome",
    "SyncStatus",
    "build_collections_table",
    "build_entry_store",
    "classify_remote_error",
    "dump_document",
    "export_document",
    "export_filename",
    "import_document",
    "utcnow",
]
