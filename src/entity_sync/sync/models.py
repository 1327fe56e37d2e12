"""Pydantic models for the entity sync engine.

Defines the data contracts shared by the store adapter and the engine:

- ``Entity``: snapshot of one post read from a store.
- ``Term``: a taxonomy term, identified across stores by (taxonomy, slug).
- ``MetaValue``: one metadata value, raw or decoded structure.
- ``EntityOutcome``: what happened to one source entity.
- ``EntityResult``: outcome of syncing one entity.
- ``SyncReport``: aggregate results for a full batch.

All models are frozen (immutable).
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel


class Entity(BaseModel):
    """Snapshot of one entity (post).

    Attributes:
        id: Store-scoped identifier, meaningless on any other store.
        type: Post type name.
        title: Post title, the natural key for duplicate detection.
        body: Post content.
        status: Post status (publish, draft, ...).
    """

    id: str
    type: str
    title: str
    body: str = ""
    status: str = "publish"

    model_config = {"frozen": True}


class Term(BaseModel):
    """A taxonomy term.

    Attributes:
        id: Store-scoped term id.
        taxonomy: Taxonomy name.
        name: Display name.
        slug: URL slug; identity across stores together with taxonomy.
        description: Term description.
    """

    id: str
    taxonomy: str
    name: str
    slug: str
    description: str = ""

    model_config = {"frozen": True}


class MetaValue(BaseModel):
    """One metadata value.

    ``kind="raw"`` keeps the stored string untouched. ``kind="structured"``
    holds a structure decoded from a serialized string; the store adapter
    re-encodes it natively on write so it is never serialized twice.
    """

    kind: Literal["raw", "structured"] = "raw"
    raw: str | None = None
    data: Any = None

    model_config = {"frozen": True}

    @classmethod
    def of_raw(cls, value: str) -> MetaValue:
        return cls(kind="raw", raw=value)

    @classmethod
    def of_structured(cls, data: Any) -> MetaValue:
        return cls(kind="structured", data=data)

    @property
    def value(self) -> Any:
        """The plain value: the raw string or the decoded structure."""
        return self.raw if self.kind == "raw" else self.data


class EntityOutcome(str, Enum):
    """Possible outcomes for one source entity."""

    CREATED = "created"
    SKIPPED_DUPLICATE = "skipped_duplicate"
    SKIPPED_UNSUPPORTED = "skipped_unsupported"
    SKIPPED_VANISHED = "skipped_vanished"
    FAILED = "failed"


class EntityResult(BaseModel):
    """Result of syncing one source entity.

    Attributes:
        source_id: Entity id on the source store.
        title: Entity title (empty when the entity vanished).
        outcome: What happened.
        target_id: New entity id on the target store, when created.
        error: Failure detail when ``outcome`` is FAILED.
        warnings: Best-effort sub-step failures (metadata, terms, media)
            on an otherwise created entity.
    """

    source_id: str
    title: str = ""
    outcome: EntityOutcome
    target_id: str | None = None
    error: str | None = None
    warnings: list[str] = []

    model_config = {"frozen": True}


class SyncReport(BaseModel):
    """Aggregate report for one batch.

    Attributes:
        source_site: Name of the source site.
        target_site: Name of the target site.
        post_type: Entity type that was synced.
        results: Per-entity results in enumeration order.
        started_at: ISO 8601 timestamp when the batch started.
        completed_at: ISO 8601 timestamp when the batch finished.
        cancelled: True if the batch stopped early on request.
    """

    source_site: str
    target_site: str
    post_type: str
    results: list[EntityResult] = []
    started_at: str
    completed_at: str | None = None
    cancelled: bool = False

    model_config = {"frozen": True}

    def _with(self, outcome: EntityOutcome) -> list[EntityResult]:
        return [r for r in self.results if r.outcome == outcome]

    @property
    def created(self) -> list[EntityResult]:
        """Results where a new target entity was created."""
        return self._with(EntityOutcome.CREATED)

    @property
    def duplicates(self) -> list[EntityResult]:
        """Results skipped because the title already exists on the target."""
        return self._with(EntityOutcome.SKIPPED_DUPLICATE)

    @property
    def unsupported(self) -> list[EntityResult]:
        """Results skipped because the target lacks the post type."""
        return self._with(EntityOutcome.SKIPPED_UNSUPPORTED)

    @property
    def vanished(self) -> list[EntityResult]:
        """Results skipped because the source entity disappeared."""
        return self._with(EntityOutcome.SKIPPED_VANISHED)

    @property
    def failed(self) -> list[EntityResult]:
        """Results where the entity could not be created."""
        return self._with(EntityOutcome.FAILED)

    @property
    def with_warnings(self) -> list[EntityResult]:
        """Created results with at least one sub-step warning."""
        return [r for r in self.results if r.warnings]

    @property
    def success(self) -> bool:
        """A batch that ran is successful regardless of per-entity outcomes."""
        return self.completed_at is not None

    def summary(self) -> str:
        """Format a short multi-line summary with counts by outcome."""
        lines = [
            f"Sync of '{self.post_type}' from site {self.source_site} "
            f"to site {self.target_site}"
            + (" (cancelled)" if self.cancelled else ""),
            f"  Created:     {len(self.created)}",
            f"  Duplicates:  {len(self.duplicates)}",
            f"  Unsupported: {len(self.unsupported)}",
            f"  Vanished:    {len(self.vanished)}",
            f"  Failed:      {len(self.failed)}",
            f"  Warnings:    {sum(len(r.warnings) for r in self.results)}",
            f"  Total:       {len(self.results)}",
        ]
        return "\n".join(lines)
