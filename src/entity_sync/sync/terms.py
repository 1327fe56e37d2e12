"""Map source taxonomy terms onto the target store by slug."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ..errors import StoreError
from .models import Term

if TYPE_CHECKING:
    from .store import StoreAccessor

logger = logging.getLogger(__name__)


class TermReconciler:
    """Find or create target terms matching source terms.

    Identity across stores is (taxonomy, slug). An existing target term
    is reused as is; its name and description are never updated.
    Resolved ids are cached for the lifetime of the reconciler (one
    batch), so a term shared by many entities is looked up once.

    Args:
        target: Store the terms are reconciled into.
    """

    def __init__(self, target: StoreAccessor) -> None:
        self.target = target
        self._resolved: dict[tuple[str, str], str] = {}

    def reconcile(self, term: Term) -> str:
        """Return the target id for *term*, creating the term if needed.

        Raises:
            StoreError: If the lookup or the creation fails.
        """
        key = (term.taxonomy, term.slug)
        if key in self._resolved:
            return self._resolved[key]

        existing = self.target.find_term_by_slug(term.slug, term.taxonomy)
        if existing is not None:
            term_id = existing.id
        else:
            term_id = self.target.create_term(
                term.name, term.slug, term.description, term.taxonomy
            )
            logger.debug(
                "Created term %s in %s as %s",
                term.slug,
                term.taxonomy,
                term_id,
            )

        self._resolved[key] = term_id
        return term_id

    def copy_terms(
        self,
        source: StoreAccessor,
        source_id: str,
        new_id: str,
        post_type: str,
    ) -> list[str]:
        """Copy the terms of *source_id* onto *new_id*, per taxonomy.

        A term that cannot be reconciled is left out of its taxonomy's
        set; the others are still applied.

        Returns:
            Warning messages for terms or taxonomies that failed.
        """
        warnings: list[str] = []

        for taxonomy in source.get_taxonomies_for_type(post_type):
            term_ids: list[str] = []
            for term in source.get_terms_for_entity(source_id, taxonomy):
                try:
                    term_ids.append(self.reconcile(term))
                except StoreError as exc:
                    message = (
                        f"Failed to create term {term.slug}: {exc.detail}"
                    )
                    logger.warning(message)
                    warnings.append(message)

            try:
                self.target.set_entity_terms(new_id, taxonomy, term_ids)
            except StoreError as exc:
                message = f"Failed to set {taxonomy} terms: {exc.detail}"
                logger.warning(message)
                warnings.append(message)

        return warnings
