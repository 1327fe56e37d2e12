"""Tests for the entity sync engine against in-memory stores."""

from __future__ import annotations

import threading

import pytest

from entity_sync.errors import ConfigurationError
from entity_sync.sync.engine import EntitySyncEngine
from entity_sync.sync.models import EntityOutcome, MetaValue, Term


def _run(source, target, **kwargs):
    return EntitySyncEngine(source, target, **kwargs).run()


def _genre(slug: str, name: str | None = None) -> Term:
    return Term(
        id="s-" + slug,
        taxonomy="genre",
        name=name or slug.title(),
        slug=slug,
        description=f"{slug} music",
    )


# ---------------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------------


class TestEngineConstruction:
    def test_same_store_rejected(self, source_store):
        with pytest.raises(ConfigurationError, match="cannot be the same"):
            EntitySyncEngine(source_store, source_store)

    def test_same_store_rejected_before_enumeration(self, source_store):
        source_store.add_post("Jane Doe")
        with pytest.raises(ConfigurationError):
            EntitySyncEngine(source_store, source_store).run()
        assert "list_entity_ids" not in source_store.calls


# ---------------------------------------------------------------------------
# Scenarios
# ---------------------------------------------------------------------------


class TestScenarios:
    def test_plain_entity_is_created(self, source_store, target_store):
        """One bare entity ends up published on the target."""
        source_id = source_store.add_post("Jane Doe", body="Bio")

        report = _run(source_store, target_store)

        assert report.success
        assert len(report.created) == 1
        result = report.created[0]
        assert result.source_id == source_id
        assert result.warnings == []

        created = target_store.posts[result.target_id]
        assert created["entity"].title == "Jane Doe"
        assert created["entity"].body == "Bio"
        assert created["entity"].status == "publish"
        assert created["meta"] == {}
        assert created["terms"] == {"genre": []}
        assert created["thumbnail"] is None

    def test_existing_title_is_skipped(self, source_store, target_store):
        source_store.add_post("Jane Doe")
        target_store.add_post("Jane Doe")

        report = _run(source_store, target_store)

        assert report.success
        assert report.created == []
        assert len(report.duplicates) == 1
        assert report.duplicates[0].title == "Jane Doe"
        assert target_store.titles() == ["Jane Doe"]

    def test_title_taken_by_other_post_type_is_skipped(
        self, source_store, target_store
    ):
        source_store.add_post("Jane Doe")
        page_id = target_store.add_post("Jane Doe", post_type="page")

        report = _run(source_store, target_store)

        assert report.created == []
        assert len(report.duplicates) == 1
        assert list(target_store.posts) == [page_id]

    def test_multi_valued_metadata_copied(self, source_store, target_store):
        source_store.add_post(
            "Jane Doe", meta={"instrument": ["violin", "piano"]}
        )

        report = _run(source_store, target_store)

        created = target_store.post_by_title("Jane Doe")
        assert [v.value for v in created["meta"]["instrument"]] == [
            "violin",
            "piano",
        ]
        assert report.created[0].warnings == []

    def test_download_failure_keeps_entity(self, source_store, target_store):
        url = "https://source.test/jane.jpg"
        source_store.add_post("Jane Doe", thumbnail=url)
        target_store.fail_download_urls.add(url)

        report = _run(source_store, target_store)

        assert report.success
        assert len(report.created) == 1
        assert target_store.post_by_title("Jane Doe")["thumbnail"] is None
        warnings = report.created[0].warnings
        assert len(warnings) == 1
        assert warnings[0].startswith("Failed to download image:")

    def test_unsupported_type_skips_everything(
        self, source_store, make_store
    ):
        target = make_store("target", post_types=("post",))
        source_store.add_post("Jane Doe")
        source_store.add_post("John Roe")

        report = _run(source_store, target)

        assert report.success
        assert report.created == []
        assert len(report.unsupported) == 2
        assert target.posts == {}


# ---------------------------------------------------------------------------
# Properties
# ---------------------------------------------------------------------------


class TestSyncProperties:
    def test_exactly_one_entity_per_new_title(
        self, source_store, target_store
    ):
        for title in ("A", "B", "C"):
            source_store.add_post(title, body=f"body {title}")

        _run(source_store, target_store)

        assert sorted(target_store.titles()) == ["A", "B", "C"]
        for title in ("A", "B", "C"):
            entity = target_store.post_by_title(title)["entity"]
            assert entity.body == f"body {title}"

    def test_second_run_creates_nothing(self, source_store, target_store):
        source_store.add_post("Jane Doe")
        source_store.add_post("John Roe")

        first = _run(source_store, target_store)
        second = _run(source_store, target_store)

        assert len(first.created) == 2
        assert second.created == []
        assert len(second.duplicates) == 2
        assert len(target_store.posts) == 2

    def test_same_title_twice_in_one_batch(self, source_store, target_store):
        """The second of two same-titled source entities is a duplicate."""
        source_store.add_post("Jane Doe", body="first")
        source_store.add_post("Jane Doe", body="second")

        report = _run(source_store, target_store)

        assert len(report.created) == 1
        assert len(report.duplicates) == 1
        assert target_store.post_by_title("Jane Doe")["entity"].body == (
            "first"
        )

    def test_metadata_keys_and_order_preserved(
        self, source_store, target_store
    ):
        structured = MetaValue.of_structured({"spotify": "x", "tags": [1]})
        source_store.add_post(
            "Jane Doe",
            meta={
                "_edit_last": ["1"],
                "instrument": ["violin", "piano", "violin"],
                "links": [structured],
            },
        )

        _run(source_store, target_store)

        meta = target_store.post_by_title("Jane Doe")["meta"]
        assert list(meta) == ["_edit_last", "instrument", "links"]
        assert [v.value for v in meta["instrument"]] == [
            "violin",
            "piano",
            "violin",
        ]
        assert meta["links"] == [structured]

    def test_shared_term_created_once(self, source_store, target_store):
        jazz = _genre("jazz")
        source_store.add_post("A", terms={"genre": [jazz]})
        source_store.add_post("B", terms={"genre": [jazz]})

        _run(source_store, target_store)

        assert [t.slug for t in target_store.terms["genre"]] == ["jazz"]
        target_term = target_store.terms["genre"][0]
        assert target_term.name == "Jazz"
        for title in ("A", "B"):
            assert target_store.post_by_title(title)["terms"]["genre"] == [
                target_term
            ]

    def test_existing_target_term_reused(self, source_store, target_store):
        existing = target_store.add_term("genre", "Jazz (old name)", "jazz")
        source_store.add_post("A", terms={"genre": [_genre("jazz")]})

        _run(source_store, target_store)

        assert target_store.terms["genre"] == [existing]
        assert target_store.post_by_title("A")["terms"]["genre"] == [
            existing
        ]

    def test_term_failure_omits_only_that_term(
        self, source_store, target_store
    ):
        source_store.add_post(
            "A", terms={"genre": [_genre("jazz"), _genre("blues")]}
        )
        target_store.fail_term_slugs.add("jazz")

        report = _run(source_store, target_store)

        result = report.created[0]
        assert [t.slug for t in target_store.post_by_title("A")["terms"][
            "genre"
        ]] == ["blues"]
        assert result.warnings == [
            "Failed to create term jazz: term_exists"
        ]

    def test_shared_media_downloaded_once(self, source_store, target_store):
        url = "https://source.test/band.jpg"
        source_store.add_post("A", thumbnail=url)
        source_store.add_post("B", thumbnail=url)

        _run(source_store, target_store)

        assert target_store.downloads == [url]
        assert len(target_store.media) == 1
        thumb_a = target_store.post_by_title("A")["thumbnail"]
        thumb_b = target_store.post_by_title("B")["thumbnail"]
        assert thumb_a == thumb_b is not None

    def test_media_already_on_target_reused(
        self, source_store, target_store
    ):
        url = "https://cdn.test/shared.jpg"
        target_store.media["77"] = url
        source_store.add_post("A", thumbnail=url)

        _run(source_store, target_store)

        assert target_store.downloads == []
        assert target_store.post_by_title("A")["thumbnail"] == url

    def test_registration_failure_reported(
        self, source_store, target_store, tmp_path
    ):
        source_store.add_post("A", thumbnail="https://source.test/a.jpg")
        target_store.fail_register = True

        report = _run(source_store, target_store)

        warnings = report.created[0].warnings
        assert warnings == ["Failed to sideload image: Upload denied"]
        assert target_store.post_by_title("A")["thumbnail"] is None
        # Transient download removed
        assert list(tmp_path.glob("download-*")) == []


# ---------------------------------------------------------------------------
# Failure containment
# ---------------------------------------------------------------------------


class TestFailureContainment:
    def test_create_failure_does_not_stop_batch(
        self, source_store, target_store
    ):
        source_store.add_post("Broken")
        source_store.add_post("Fine")
        target_store.fail_create_titles.add("Broken")

        report = _run(source_store, target_store)

        assert report.success
        assert [r.outcome for r in report.results] == [
            EntityOutcome.FAILED,
            EntityOutcome.CREATED,
        ]
        assert report.failed[0].error == "db error"
        assert target_store.titles() == ["Fine"]

    def test_metadata_failure_keeps_other_keys(
        self, source_store, target_store
    ):
        source_store.add_post(
            "A", meta={"secret": ["x"], "instrument": ["violin"]}
        )
        target_store.fail_meta_keys.add("secret")

        report = _run(source_store, target_store)

        meta = target_store.post_by_title("A")["meta"]
        assert "secret" not in meta
        assert [v.value for v in meta["instrument"]] == ["violin"]
        assert report.created[0].warnings == [
            "Failed to copy meta 'secret': denied"
        ]

    def test_vanished_entity_skipped_silently(
        self, source_store, target_store
    ):
        gone = source_store.add_post("Gone")
        source_store.add_post("Here")
        source_store.vanish_ids.add(gone)

        report = _run(source_store, target_store)

        assert len(report.vanished) == 1
        assert report.vanished[0].source_id == gone
        assert report.vanished[0].warnings == []
        assert target_store.titles() == ["Here"]

    def test_unexpected_error_becomes_failed_result(
        self, source_store, target_store
    ):
        bad = source_store.add_post("Bad")
        source_store.add_post("Good")
        source_store.crash_on_get.add(bad)

        report = _run(source_store, target_store)

        assert report.results[0].outcome == EntityOutcome.FAILED
        assert "store crashed" in report.results[0].error
        assert report.results[1].outcome == EntityOutcome.CREATED

    def test_unsupported_post_type_argument(self, source_store, make_store):
        target = make_store("target", post_types=("musician",))
        source_store.add_post("Band", post_type="band")

        report = _run(source_store, target, post_type="band")

        assert len(report.unsupported) == 1
        assert report.post_type == "band"


# ---------------------------------------------------------------------------
# Ordering and cancellation
# ---------------------------------------------------------------------------


class TestOrderingAndCancellation:
    def test_results_in_enumeration_order(self, source_store, target_store):
        ids = [source_store.add_post(t) for t in ("C", "A", "B")]

        report = _run(source_store, target_store)

        assert [r.source_id for r in report.results] == ids

    def test_cancel_before_start_processes_nothing(
        self, source_store, target_store
    ):
        source_store.add_post("A")
        cancel = threading.Event()
        cancel.set()

        report = EntitySyncEngine(source_store, target_store).run(cancel)

        assert report.cancelled
        assert report.results == []
        assert target_store.posts == {}

    def test_cancel_between_entities(self, source_store, target_store):
        source_store.add_post("A")
        source_store.add_post("B")
        cancel = threading.Event()

        original = target_store.create_entity

        def create_then_cancel(*args, **kwargs):
            new_id = original(*args, **kwargs)
            cancel.set()
            return new_id

        target_store.create_entity = create_then_cancel

        report = EntitySyncEngine(source_store, target_store).run(cancel)

        assert report.cancelled
        # The entity in progress is finished, the next one never starts
        assert [r.title for r in report.created] == ["A"]
        assert target_store.titles() == ["A"]
