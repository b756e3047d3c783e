from romtag.catalog import (
    CatalogError,
    CatalogProvider,
    CatalogQueryError,
    ItemNotRecognizedError,
    XmlCatalog,
)
from romtag.common import (
    VERSION,
    RomtagError,
    RomtagExpectedError,
    StorageError,
    initialize_logging,
)
from romtag.config import Config
from romtag.dependencies import ResolvedDependency, ScanContext, resolve_dependencies
from romtag.labels import (
    LabelStorage,
    LabelStorageError,
    LabelToolNotFoundError,
    TagCommandStorage,
    find_label_storage,
    reconcile_labels,
)
from romtag.querycache import FileStore, QueryCache
from romtag.records import MetadataRecord, RecordStore, build_record
from romtag.scan import TagResult, get_record, reset_cache, tag_directory, update_records
from romtag.tags import DependencyTag, FixedTag, Tag, compute_tags, known_vocabulary

__all__ = [
    # Plumbing
    "initialize_logging",
    "VERSION",
    # Errors
    "RomtagError",
    "RomtagExpectedError",
    "StorageError",
    "CatalogError",
    "CatalogQueryError",
    "ItemNotRecognizedError",
    "LabelStorageError",
    "LabelToolNotFoundError",
    # Configuration
    "Config",
    # Catalog
    "CatalogProvider",
    "XmlCatalog",
    # Query Cache
    "FileStore",
    "QueryCache",
    # Records
    "MetadataRecord",
    "RecordStore",
    "build_record",
    "get_record",
    "update_records",
    "reset_cache",
    # Dependencies
    "ScanContext",
    "ResolvedDependency",
    "resolve_dependencies",
    # Tags
    "Tag",
    "FixedTag",
    "DependencyTag",
    "compute_tags",
    "known_vocabulary",
    # Labels
    "LabelStorage",
    "TagCommandStorage",
    "find_label_storage",
    "reconcile_labels",
    "TagResult",
    "tag_directory",
]

initialize_logging(__name__)
