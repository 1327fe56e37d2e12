"""Sync engine that copies all entities of one type between two stores.

The ``EntitySyncEngine`` drives one batch:

1. Enumerates source entity ids of the post type.
2. For each id, strictly one at a time and in enumeration order:
   fetch, check the target supports the type, check for a duplicate
   title, create, then copy metadata, terms and primary media.
3. Builds and returns a ``SyncReport``.

Error handling is per entity: a failure never aborts the batch.
Metadata, terms and media are each best-effort once the entity exists;
a failure in one is recorded as a warning and does not undo the entity.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from datetime import datetime, timezone

from ..config import SiteConfig
from ..errors import ConfigurationError, StoreError
from .media import MediaTransfer
from .metadata import copy_metadata
from .models import EntityOutcome, EntityResult, SyncReport
from .store import StoreAccessor, WordPressStore
from .terms import TermReconciler

logger = logging.getLogger(__name__)


class EntitySyncEngine:
    """Copy every entity of *post_type* from *source* to *target*.

    Args:
        source: Store the entities are read from.
        target: Store the entities are created in.
        post_type: Entity type to sync.
        post_status: Status given to created entities.

    Raises:
        ConfigurationError: If source and target are the same store.
    """

    def __init__(
        self,
        source: StoreAccessor,
        target: StoreAccessor,
        post_type: str = "musician",
        post_status: str = "publish",
    ) -> None:
        if source.store_id == target.store_id:
            raise ConfigurationError(
                "Source site and copy site cannot be the same."
            )

        self.source = source
        self.target = target
        self.post_type = post_type
        self.post_status = post_status

        self.terms = TermReconciler(target)
        self.media = MediaTransfer(target)

    # ------------------------------------------------------------------
    # Main entry point
    # ------------------------------------------------------------------

    def run(self, cancel_event: threading.Event | None = None) -> SyncReport:
        """Sync every source entity of the configured type.

        Args:
            cancel_event: When set, the batch stops before the next
                entity. An entity that is already in progress is always
                finished.

        Returns:
            A ``SyncReport`` with one result per processed entity.
        """
        started_at = datetime.now(timezone.utc).isoformat()
        results: list[EntityResult] = []
        cancelled = False

        source_ids = list(self.source.list_entity_ids(self.post_type))
        logger.info(
            "Found %d %s posts on site %s",
            len(source_ids),
            self.post_type,
            self.source.name,
        )

        for source_id in source_ids:
            if cancel_event is not None and cancel_event.is_set():
                logger.warning(
                    "Sync cancelled, %d posts not processed",
                    len(source_ids) - len(results),
                )
                cancelled = True
                break

            try:
                result = self._sync_entity(source_id)
            except Exception as exc:
                logger.error("Error syncing post %s: %s", source_id, exc)
                result = EntityResult(
                    source_id=source_id,
                    outcome=EntityOutcome.FAILED,
                    error=str(exc),
                )
            results.append(result)

        return SyncReport(
            source_site=self.source.name,
            target_site=self.target.name,
            post_type=self.post_type,
            results=results,
            started_at=started_at,
            completed_at=datetime.now(timezone.utc).isoformat(),
            cancelled=cancelled,
        )

    # ------------------------------------------------------------------
    # Per-entity sync
    # ------------------------------------------------------------------

    def _sync_entity(self, source_id: str) -> EntityResult:
        entity = self.source.get_entity(source_id)
        if entity is None:
            logger.debug("Post %s vanished from source, skipping", source_id)
            return EntityResult(
                source_id=source_id,
                outcome=EntityOutcome.SKIPPED_VANISHED,
            )

        if not self.target.type_is_supported(self.post_type):
            logger.warning(
                "Post type '%s' does not exist in site %s, skipping post %s",
                self.post_type,
                self.target.name,
                source_id,
            )
            return EntityResult(
                source_id=source_id,
                title=entity.title,
                outcome=EntityOutcome.SKIPPED_UNSUPPORTED,
            )

        # Duplicate check based solely on the title
        if self.target.find_entity_by_title(entity.title) is not None:
            logger.warning(
                "Post '%s' already exists in site %s",
                entity.title,
                self.target.name,
            )
            return EntityResult(
                source_id=source_id,
                title=entity.title,
                outcome=EntityOutcome.SKIPPED_DUPLICATE,
            )

        try:
            new_id = self.target.create_entity(
                entity.title, entity.body, self.post_type, self.post_status
            )
        except StoreError as exc:
            logger.warning(
                "Failed to insert post '%s': %s", entity.title, exc.detail
            )
            return EntityResult(
                source_id=source_id,
                title=entity.title,
                outcome=EntityOutcome.FAILED,
                error=exc.detail,
            )

        warnings: list[str] = []
        warnings += self._best_effort(
            "meta fields",
            copy_metadata,
            self.source,
            self.target,
            source_id,
            new_id,
        )
        warnings += self._best_effort(
            "taxonomy terms",
            self.terms.copy_terms,
            self.source,
            source_id,
            new_id,
            self.post_type,
        )
        warnings += self._best_effort(
            "featured image",
            self.media.transfer,
            self.source,
            source_id,
            new_id,
        )

        logger.info(
            "Synced post %s to site %s as %s",
            source_id,
            self.target.name,
            new_id,
        )
        return EntityResult(
            source_id=source_id,
            title=entity.title,
            outcome=EntityOutcome.CREATED,
            target_id=new_id,
            warnings=warnings,
        )

    def _best_effort(
        self, step: str, func: Callable[..., list[str]], *args
    ) -> list[str]:
        """Run one copy step; turn an escaping error into a warning."""
        try:
            return func(*args)
        except StoreError as exc:
            message = f"Failed to copy {step}: {exc.detail}"
        except Exception as exc:
            message = f"Failed to copy {step}: {exc}"
        logger.warning(message)
        return [message]


def sync_sites(
    source_site: SiteConfig,
    target_site: SiteConfig,
    post_type: str,
    post_status: str = "publish",
    cancel_event: threading.Event | None = None,
) -> SyncReport:
    """Open both sites, run one batch and close the sessions again.

    Raises:
        ConfigurationError: If both configs point at the same store.
    """
    with WordPressStore(source_site) as source, WordPressStore(
        target_site
    ) as target:
        engine = EntitySyncEngine(source, target, post_type, post_status)
        return engine.run(cancel_event=cancel_event)
