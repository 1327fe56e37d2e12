"""Entity sync engine.

Copies every entity (post) of one type from a source WordPress site to
a target site, with its custom fields, taxonomy terms and featured
image, without creating duplicates on repeated runs.

Modules:

- ``engine``    -- ``EntitySyncEngine``: drives a batch.
- ``store``     -- ``StoreAccessor`` protocol and ``WordPressStore``.
- ``metadata``  -- ``MetaValue`` decode/encode and the metadata copy.
- ``terms``     -- ``TermReconciler``: find-or-create terms by slug.
- ``media``     -- ``MediaTransfer``: reuse or download featured images.
- ``models``    -- ``Entity``, ``Term``, ``MetaValue``, ``EntityOutcome``,
  ``EntityResult``, ``SyncReport``.
- ``reporter``  -- Human-readable and JSON report formatting.

Usage example
-------------
::

    from entity_sync.config import load_unified_config, resolve_site_pair
    from entity_sync.sync import EntitySyncEngine, WordPressStore
    from entity_sync.sync import format_sync_report

    unified = load_unified_config()
    source_site, target_site = resolve_site_pair("1", "3", unified)

    with WordPressStore(source_site) as source, \\
            WordPressStore(target_site) as target:
        engine = EntitySyncEngine(source, target, post_type="musician")
        report = engine.run()

    print(format_sync_report(report))
"""

from .engine import EntitySyncEngine, sync_sites
from .media import MediaTransfer
from .models import (
    Entity,
    EntityOutcome,
    EntityResult,
    MetaValue,
    SyncReport,
    Term,
)
from .reporter import (
    format_result_line,
    format_sync_report,
    report_to_json,
)
from .store import StoreAccessor, WordPressStore
from .terms import TermReconciler

__all__ = [
    "Entity",
    "EntityOutcome",
    "EntityResult",
    "EntitySyncEngine",
    "MediaTransfer",
    "MetaValue",
    "StoreAccessor",
    "SyncReport",
    "Term",
    "TermReconciler",
    "WordPressStore",
    "format_result_line",
    "format_sync_report",
    "report_to_json",
    "sync_sites",
]
