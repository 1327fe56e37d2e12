"""Store accessor interface and its WordPress XML-RPC implementation.

Every operation runs against an explicit store handle, so reading from
the source and writing to the target never shares a "current site".
"""

from __future__ import annotations

import logging
import mimetypes
import xmlrpc.client
from collections.abc import Iterable, Iterator
from pathlib import Path
from typing import Any, Protocol

import requests

from ..config import SiteConfig
from ..core.client import WordPressClient
from ..errors import (
    DownloadError,
    MediaRegistrationError,
    StoreError,
    StoreWriteError,
)
from .metadata import (
    decode_meta_value,
    encode_meta_value,
    is_protected_meta_key,
)
from .models import Entity, MetaValue, Term

logger = logging.getLogger(__name__)


class StoreAccessor(Protocol):
    """Operations the sync engine needs from a content store."""

    @property
    def name(self) -> str: ...

    @property
    def store_id(self) -> str: ...

    def list_entity_ids(self, post_type: str) -> Iterable[str]: ...

    def get_entity(self, entity_id: str) -> Entity | None: ...

    def type_is_supported(self, post_type: str) -> bool: ...

    def find_entity_by_title(self, title: str) -> Entity | None: ...

    def create_entity(
        self, title: str, body: str, post_type: str, status: str
    ) -> str: ...

    def get_metadata(self, entity_id: str) -> dict[str, list[MetaValue]]: ...

    def set_metadata_value(
        self, entity_id: str, key: str, value: MetaValue
    ) -> None: ...

    def get_taxonomies_for_type(self, post_type: str) -> list[str]: ...

    def get_terms_for_entity(
        self, entity_id: str, taxonomy: str
    ) -> list[Term]: ...

    def find_term_by_slug(self, slug: str, taxonomy: str) -> Term | None: ...

    def create_term(
        self, name: str, slug: str, description: str, taxonomy: str
    ) -> str: ...

    def set_entity_terms(
        self, entity_id: str, taxonomy: str, term_ids: list[str]
    ) -> None: ...

    def get_primary_media_url(self, entity_id: str) -> str | None: ...

    def find_media_by_origin_url(self, url: str) -> str | None: ...

    def download_to_local(self, url: str) -> Path: ...

    def register_media(
        self, local_path: Path, filename: str, owning_entity_id: str
    ) -> str: ...

    def set_primary_media(self, entity_id: str, media_id: str) -> None: ...


def _detail(exc: Exception) -> str:
    if isinstance(exc, xmlrpc.client.Fault):
        return exc.faultString
    return str(exc)


def _is_missing_post(fault: xmlrpc.client.Fault) -> bool:
    return fault.faultCode == 404 or "invalid post id" in (
        fault.faultString.lower()
    )


class WordPressStore:
    """``StoreAccessor`` backed by one WordPress site's XML-RPC API.

    The last post read is kept as a snapshot so that an entity, its
    metadata, its terms and its thumbnail all come from the same read.

    Use as a context manager to close the HTTP session on exit.
    """

    def __init__(
        self, config: SiteConfig, client: WordPressClient | None = None
    ):
        self.config = config
        self.client = client or WordPressClient(config)
        self._snapshot: tuple[str, dict[str, Any]] | None = None
        self._supported_types: dict[str, bool] = {}
        self._post_types: list[str] | None = None

    def __enter__(self) -> WordPressStore:
        return self

    def __exit__(self, *exc_info) -> None:
        self.client.close()

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def store_id(self) -> str:
        return self.config.store_id

    def _paged(self, fetch, filter: dict[str, Any]) -> Iterator[dict]:
        """Yield items from a listing call, one page at a time."""
        page_size = self.config.page_size
        offset = 0
        while True:
            page = fetch({**filter, "number": page_size, "offset": offset})
            yield from page or []
            if not page or len(page) < page_size:
                return
            offset += page_size

    def _load_post(self, entity_id: str) -> dict[str, Any] | None:
        if self._snapshot is not None and self._snapshot[0] == entity_id:
            return self._snapshot[1]
        try:
            post = self.client.get_post(entity_id)
        except xmlrpc.client.Fault as exc:
            if _is_missing_post(exc):
                return None
            raise StoreError(
                f"Failed to read post {entity_id}", _detail(exc)
            ) from exc
        self._snapshot = (entity_id, post)
        return post

    # Entities

    def list_entity_ids(self, post_type: str) -> Iterator[str]:
        """Yield ids of published posts of *post_type*."""
        filter = {"post_type": post_type, "post_status": "publish"}
        for post in self._paged(
            lambda f: self.client.get_posts(f, ["post_id"]), filter
        ):
            yield str(post["post_id"])

    def get_entity(self, entity_id: str) -> Entity | None:
        post = self._load_post(entity_id)
        if not post:
            return None
        return Entity(
            id=str(post.get("post_id", entity_id)),
            type=post.get("post_type", ""),
            title=post.get("post_title", ""),
            body=post.get("post_content", ""),
            status=post.get("post_status", ""),
        )

    def type_is_supported(self, post_type: str) -> bool:
        if post_type not in self._supported_types:
            try:
                self.client.get_post_type(post_type, ["name"])
                supported = True
            except xmlrpc.client.Fault as exc:
                logger.debug(
                    "Post type %s unavailable on %s: %s",
                    post_type,
                    self.name,
                    exc.faultString,
                )
                supported = False
            self._supported_types[post_type] = supported
        return self._supported_types[post_type]

    def _post_type_names(self) -> list[str]:
        if self._post_types is None:
            try:
                self._post_types = list(self.client.get_post_types())
            except xmlrpc.client.Fault as exc:
                raise StoreError(
                    "Failed to list post types", _detail(exc)
                ) from exc
        return self._post_types

    def find_entity_by_title(self, title: str) -> Entity | None:
        """Return the first post of any type whose title equals *title*.

        wp.getPosts takes a single post type, so every type the user
        can edit is searched in turn.
        """
        fields = ["post_title", "post_type", "post_status"]
        for post_type in self._post_type_names():
            filter = {"post_type": post_type, "post_status": "any", "s": title}
            try:
                for post in self._paged(
                    lambda f: self.client.get_posts(f, fields), filter
                ):
                    if post.get("post_title") == title:
                        return Entity(
                            id=str(post["post_id"]),
                            type=post.get("post_type", post_type),
                            title=title,
                            status=post.get("post_status", ""),
                        )
            except xmlrpc.client.Fault as exc:
                logger.debug(
                    "Cannot search %s posts on %s: %s",
                    post_type,
                    self.name,
                    exc.faultString,
                )
        return None

    def create_entity(
        self, title: str, body: str, post_type: str, status: str
    ) -> str:
        try:
            return self.client.new_post(
                {
                    "post_title": title,
                    "post_content": body,
                    "post_type": post_type,
                    "post_status": status,
                }
            )
        except (xmlrpc.client.Fault, requests.RequestException) as exc:
            raise StoreWriteError(
                f"Failed to insert post '{title}'", _detail(exc)
            ) from exc

    # Metadata

    def get_metadata(self, entity_id: str) -> dict[str, list[MetaValue]]:
        post = self._load_post(entity_id) or {}
        metadata: dict[str, list[MetaValue]] = {}
        for field in post.get("custom_fields") or []:
            metadata.setdefault(field["key"], []).append(
                decode_meta_value(field.get("value", ""))
            )
        return metadata

    def _count_meta_rows(self, entity_id: str, key: str) -> int:
        post = self.client.get_post(entity_id, ["custom_fields"]) or {}
        return sum(
            1
            for field in post.get("custom_fields") or []
            if field.get("key") == key
        )

    def set_metadata_value(
        self, entity_id: str, key: str, value: MetaValue
    ) -> None:
        """Append one value of *key* to *entity_id*.

        WordPress drops protected keys without a fault when the site has
        not registered them for XML-RPC writes, so those writes are read
        back and a missing row raises ``StoreWriteError``.
        """
        protected = is_protected_meta_key(key)
        try:
            before = self._count_meta_rows(entity_id, key) if protected else 0
            self.client.edit_post(
                entity_id,
                {
                    "custom_fields": [
                        {"key": key, "value": encode_meta_value(value)}
                    ]
                },
            )
            stored = not protected or (
                self._count_meta_rows(entity_id, key) > before
            )
        except (xmlrpc.client.Fault, requests.RequestException) as exc:
            raise StoreWriteError(
                f"Failed to add meta '{key}' to post {entity_id}",
                _detail(exc),
            ) from exc
        if not stored:
            raise StoreWriteError(
                f"Failed to add meta '{key}' to post {entity_id}",
                "protected key ignored by the site; register it with an "
                "auth callback to allow XML-RPC writes",
            )

    # Taxonomies

    def get_taxonomies_for_type(self, post_type: str) -> list[str]:
        try:
            info = self.client.get_post_type(post_type, ["taxonomies"])
        except xmlrpc.client.Fault as exc:
            raise StoreError(
                f"Failed to read taxonomies of '{post_type}'", _detail(exc)
            ) from exc
        return list(info.get("taxonomies") or [])

    def get_terms_for_entity(
        self, entity_id: str, taxonomy: str
    ) -> list[Term]:
        post = self._load_post(entity_id) or {}
        return [
            self._to_term(term)
            for term in post.get("terms") or []
            if term.get("taxonomy") == taxonomy
        ]

    def find_term_by_slug(self, slug: str, taxonomy: str) -> Term | None:
        try:
            for term in self._paged(
                lambda f: self.client.get_terms(taxonomy, f),
                {"hide_empty": False},
            ):
                if term.get("slug") == slug:
                    return self._to_term(term)
        except xmlrpc.client.Fault as exc:
            raise StoreError(
                f"Failed to list terms of '{taxonomy}'", _detail(exc)
            ) from exc
        return None

    def create_term(
        self, name: str, slug: str, description: str, taxonomy: str
    ) -> str:
        try:
            return self.client.new_term(
                {
                    "name": name,
                    "taxonomy": taxonomy,
                    "slug": slug,
                    "description": description,
                }
            )
        except (xmlrpc.client.Fault, requests.RequestException) as exc:
            raise StoreWriteError(
                f"Failed to create term {slug}", _detail(exc)
            ) from exc

    def set_entity_terms(
        self, entity_id: str, taxonomy: str, term_ids: list[str]
    ) -> None:
        try:
            self.client.edit_post(
                entity_id,
                {"terms": {taxonomy: [int(t) for t in term_ids]}},
            )
        except (xmlrpc.client.Fault, requests.RequestException) as exc:
            raise StoreWriteError(
                f"Failed to set {taxonomy} terms on post {entity_id}",
                _detail(exc),
            ) from exc

    @staticmethod
    def _to_term(term: dict[str, Any]) -> Term:
        return Term(
            id=str(term.get("term_id", "")),
            taxonomy=term.get("taxonomy", ""),
            name=term.get("name", ""),
            slug=term.get("slug", ""),
            description=term.get("description", ""),
        )

    # Media

    def get_primary_media_url(self, entity_id: str) -> str | None:
        post = self._load_post(entity_id) or {}
        thumbnail = post.get("post_thumbnail")
        # WordPress sends an empty array when there is no thumbnail
        if not isinstance(thumbnail, dict):
            return None
        return thumbnail.get("link") or None

    def find_media_by_origin_url(self, url: str) -> str | None:
        try:
            for item in self._paged(self.client.get_media_library, {}):
                if item.get("link") == url:
                    return str(item["attachment_id"])
        except xmlrpc.client.Fault as exc:
            raise StoreError(
                "Failed to list media library", _detail(exc)
            ) from exc
        return None

    def download_to_local(self, url: str) -> Path:
        try:
            return self.client.download_file(
                url, timeout=self.config.download_timeout
            )
        except (requests.RequestException, OSError) as exc:
            raise DownloadError(str(exc)) from exc

    def register_media(
        self, local_path: Path, filename: str, owning_entity_id: str
    ) -> str:
        """Upload *local_path* and attach it to *owning_entity_id*.

        The local file is deleted once the upload succeeded.
        """
        mime_type = (
            mimetypes.guess_type(filename)[0] or "application/octet-stream"
        )
        try:
            result = self.client.upload_file(
                filename,
                mime_type,
                local_path.read_bytes(),
                post_id=owning_entity_id,
            )
        except (
            xmlrpc.client.Fault,
            requests.RequestException,
            OSError,
        ) as exc:
            raise MediaRegistrationError(_detail(exc)) from exc

        media_id = result.get("id") or result.get("attachment_id")
        if not media_id:
            raise MediaRegistrationError(
                f"Upload of {filename} returned no attachment id"
            )
        local_path.unlink(missing_ok=True)
        return str(media_id)

    def set_primary_media(self, entity_id: str, media_id: str) -> None:
        try:
            self.client.edit_post(
                entity_id, {"post_thumbnail": int(media_id)}
            )
        except (xmlrpc.client.Fault, requests.RequestException) as exc:
            raise StoreWriteError(
                f"Failed to set thumbnail of post {entity_id}",
                _detail(exc),
            ) from exc
