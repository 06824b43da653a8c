"""Application services."""

from checkpointer.application.services.catalog_batch_processor import (
    BatchResult,
    CatalogBatchProcessor,
    LookupMaps,
)
from checkpointer.application.services.catalog_sync_service import (
    CatalogSyncService,
    SyncOutcome,
)
from checkpointer.application.services.filter_options_service import (
    FilterOption,
    FilterOptions,
    FilterOptionsService,
)

__all__ = [
    "BatchResult",
    "CatalogBatchProcessor",
    "CatalogSyncService",
    "FilterOption",
    "FilterOptions",
    "FilterOptionsService",
    "LookupMaps",
    "SyncOutcome",
]
