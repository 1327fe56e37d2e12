"""Shared pytest fixtures for entity-sync tests."""

from __future__ import annotations

import itertools
from pathlib import Path
from unittest.mock import Mock

import pytest

from entity_sync.config import SiteConfig
from entity_sync.errors import (
    DownloadError,
    MediaRegistrationError,
    StoreError,
    StoreWriteError,
)
from entity_sync.sync.models import Entity, MetaValue, Term


def pytest_addoption(parser):
    """Add custom CLI options for test filtering."""
    parser.addoption(
        "--run-live",
        action="store_true",
        default=False,
        help="Run tests that require a live WordPress site",
    )


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "live: mark test as requiring a live WordPress site"
    )


def pytest_collection_modifyitems(config, items):
    """Skip live tests unless --run-live is passed."""
    if config.getoption("--run-live"):
        return
    skip_live = pytest.mark.skip(reason="need --run-live option to run")
    for item in items:
        if "live" in item.keywords:
            item.add_marker(skip_live)


# ---------------------------------------------------------------------------
# In-memory store
# ---------------------------------------------------------------------------


class FakeStore:
    """In-memory ``StoreAccessor`` with failure injection.

    Posts are dicts with ``entity``, ``meta`` (key -> [MetaValue]),
    ``terms`` (taxonomy -> [Term]) and ``thumbnail`` (origin URL or None).
    Media items map id -> origin URL.
    """

    _ids = itertools.count(1000)

    def __init__(
        self,
        name: str,
        tmp_path: Path,
        post_types: tuple[str, ...] = ("musician",),
        taxonomies: tuple[str, ...] = ("genre",),
    ) -> None:
        self._name = name
        self.tmp_path = tmp_path
        self.post_types = set(post_types)
        self.taxonomies = list(taxonomies)
        self.posts: dict[str, dict] = {}
        self.terms: dict[str, list[Term]] = {}
        self.media: dict[str, str] = {}
        self.downloads: list[str] = []
        self.meta_writes: list[tuple[str, str, MetaValue]] = []
        self.calls: list[str] = []

        # Failure injection
        self.fail_create_titles: set[str] = set()
        self.fail_meta_keys: set[str] = set()
        self.fail_term_slugs: set[str] = set()
        self.fail_download_urls: set[str] = set()
        self.fail_register = False
        self.vanish_ids: set[str] = set()
        self.crash_on_get: set[str] = set()

    @property
    def name(self) -> str:
        return self._name

    @property
    def store_id(self) -> str:
        return f"fake://{self._name}"

    def _new_id(self) -> str:
        return str(next(self._ids))

    # Seeding helpers

    def add_post(
        self,
        title: str,
        post_type: str = "musician",
        body: str = "",
        meta: dict[str, list] | None = None,
        terms: dict[str, list[Term]] | None = None,
        thumbnail: str | None = None,
        status: str = "publish",
    ) -> str:
        entity_id = self._new_id()
        self.posts[entity_id] = {
            "entity": Entity(
                id=entity_id,
                type=post_type,
                title=title,
                body=body,
                status=status,
            ),
            "meta": {
                key: [
                    v if isinstance(v, MetaValue) else MetaValue.of_raw(v)
                    for v in values
                ]
                for key, values in (meta or {}).items()
            },
            "terms": {
                tax: list(items) for tax, items in (terms or {}).items()
            },
            "thumbnail": thumbnail,
        }
        return entity_id

    def add_term(
        self, taxonomy: str, name: str, slug: str, description: str = ""
    ) -> Term:
        term = Term(
            id=self._new_id(),
            taxonomy=taxonomy,
            name=name,
            slug=slug,
            description=description,
        )
        self.terms.setdefault(taxonomy, []).append(term)
        return term

    def titles(self) -> list[str]:
        return [p["entity"].title for p in self.posts.values()]

    def post_by_title(self, title: str) -> dict:
        return next(
            p for p in self.posts.values() if p["entity"].title == title
        )

    # StoreAccessor

    def list_entity_ids(self, post_type: str) -> list[str]:
        self.calls.append("list_entity_ids")
        return [
            entity_id
            for entity_id, post in self.posts.items()
            if post["entity"].type == post_type
            and post["entity"].status == "publish"
        ]

    def get_entity(self, entity_id: str) -> Entity | None:
        self.calls.append(f"get_entity:{entity_id}")
        if entity_id in self.crash_on_get:
            raise RuntimeError(f"store crashed reading {entity_id}")
        if entity_id in self.vanish_ids:
            return None
        post = self.posts.get(entity_id)
        return post["entity"] if post else None

    def type_is_supported(self, post_type: str) -> bool:
        return post_type in self.post_types

    def find_entity_by_title(self, title: str) -> Entity | None:
        for post in self.posts.values():
            entity = post["entity"]
            if entity.title == title:
                return entity
        return None

    def create_entity(
        self, title: str, body: str, post_type: str, status: str
    ) -> str:
        if title in self.fail_create_titles:
            raise StoreWriteError(
                f"Failed to insert post '{title}'", "db error"
            )
        return self.add_post(title, post_type, body, status=status)

    def get_metadata(self, entity_id: str) -> dict[str, list[MetaValue]]:
        return {
            key: list(values)
            for key, values in self.posts[entity_id]["meta"].items()
        }

    def set_metadata_value(
        self, entity_id: str, key: str, value: MetaValue
    ) -> None:
        if key in self.fail_meta_keys:
            raise StoreWriteError(f"Failed to add meta '{key}'", "denied")
        self.meta_writes.append((entity_id, key, value))
        self.posts[entity_id]["meta"].setdefault(key, []).append(value)

    def get_taxonomies_for_type(self, post_type: str) -> list[str]:
        return list(self.taxonomies)

    def get_terms_for_entity(
        self, entity_id: str, taxonomy: str
    ) -> list[Term]:
        return list(self.posts[entity_id]["terms"].get(taxonomy, []))

    def find_term_by_slug(self, slug: str, taxonomy: str) -> Term | None:
        self.calls.append(f"find_term:{taxonomy}/{slug}")
        for term in self.terms.get(taxonomy, []):
            if term.slug == slug:
                return term
        return None

    def create_term(
        self, name: str, slug: str, description: str, taxonomy: str
    ) -> str:
        if slug in self.fail_term_slugs:
            raise StoreWriteError(
                f"Failed to create term {slug}", "term_exists"
            )
        return self.add_term(taxonomy, name, slug, description).id

    def set_entity_terms(
        self, entity_id: str, taxonomy: str, term_ids: list[str]
    ) -> None:
        by_id = {t.id: t for t in self.terms.get(taxonomy, [])}
        self.posts[entity_id]["terms"][taxonomy] = [
            by_id[t] for t in term_ids
        ]

    def get_primary_media_url(self, entity_id: str) -> str | None:
        return self.posts[entity_id]["thumbnail"]

    def find_media_by_origin_url(self, url: str) -> str | None:
        for media_id, origin in self.media.items():
            if origin == url:
                return media_id
        return None

    def download_to_local(self, url: str) -> Path:
        self.downloads.append(url)
        if url in self.fail_download_urls:
            raise DownloadError(f"404 Client Error for url: {url}")
        path = self.tmp_path / f"download-{len(self.downloads)}"
        path.write_bytes(b"image-bytes")
        return path

    def register_media(
        self, local_path: Path, filename: str, owning_entity_id: str
    ) -> str:
        if self.fail_register:
            raise MediaRegistrationError("Upload denied")
        media_id = self._new_id()
        # Uploaded files get a new URL on the target
        self.media[media_id] = f"https://{self._name}.test/{filename}"
        local_path.unlink()
        return media_id

    def set_primary_media(self, entity_id: str, media_id: str) -> None:
        if media_id not in self.media:
            raise StoreError(f"Unknown media {media_id}")
        self.posts[entity_id]["thumbnail"] = self.media[media_id]


@pytest.fixture
def make_store(tmp_path):
    """Factory fixture for in-memory stores."""

    def _make(name: str, **kwargs) -> FakeStore:
        return FakeStore(name, tmp_path, **kwargs)

    return _make


@pytest.fixture
def source_store(make_store):
    return make_store("source")


@pytest.fixture
def target_store(make_store):
    return make_store("target")


# ---------------------------------------------------------------------------
# Site configuration
# ---------------------------------------------------------------------------


@pytest.fixture
def site_config():
    """A validated site configuration."""
    return SiteConfig(
        name="1",
        url="https://wp.example.com",
        username="testuser",
        password="testpass",
        page_size=2,
    )


@pytest.fixture
def mock_xml_response():
    """Factory fixture for creating XML-RPC response mocks."""

    def _create_response(content):
        mock_response = Mock()
        mock_response.status_code = 200
        mock_response.content = (
            content.encode() if isinstance(content, str) else content
        )
        return mock_response

    return _create_response
