"""
Unit tests for the source list, text aggregation and question history.
"""

import threading

import pytest

from notequiz.errors import SourceNotFoundError
from notequiz.history import HistoryStore
from notequiz.models import SourceType
from notequiz.sources import SourceList, aggregate_sources


class TestSourceList:

    def test_add_when_same_content_twice_then_two_entries(self):
        sources = SourceList()
        a = sources.add(SourceType.TEXT, "notes", "same")
        b = sources.add(SourceType.TEXT, "notes", "same")

        assert len(sources) == 2
        assert a.id != b.id

    def test_iter_preserves_insertion_order(self):
        sources = SourceList()
        for name in ("one", "two", "three"):
            sources.add(SourceType.TEXT, name, name)

        assert [s.name for s in sources] == ["one", "two", "three"]

    def test_remove_when_middle_entry_then_order_of_rest_kept(self):
        sources = SourceList()
        first = sources.add(SourceType.FILE, "a.pdf", "A")
        middle = sources.add(SourceType.URL, "https://x.test", "https://x.test")
        last = sources.add(SourceType.TEXT, "c", "C")

        removed = sources.remove(middle.id)

        assert removed == middle
        assert [s.id for s in sources] == [first.id, last.id]
        assert not sources.has_urls()

    def test_remove_when_unknown_id_then_not_found(self):
        sources = SourceList()
        sources.add(SourceType.TEXT, "a", "A")

        with pytest.raises(SourceNotFoundError):
            sources.remove("does-not-exist")
        assert len(sources) == 1

    def test_first_file_name_skips_other_types(self):
        sources = SourceList()
        sources.add(SourceType.TEXT, "pasted", "x")
        sources.add(SourceType.FILE, "lecture.pdf", "y")
        sources.add(SourceType.FILE, "other.pdf", "z")

        assert sources.first_file_name() == "lecture.pdf"

    def test_clear_then_empty_and_falsy(self):
        sources = SourceList()
        sources.add(SourceType.TEXT, "a", "A")
        sources.clear()

        assert len(sources) == 0
        assert not sources


class TestAggregate:

    def test_aggregate_when_empty_then_empty_string(self):
        assert aggregate_sources([]) == ""

    def test_aggregate_labels_each_block_in_order(self):
        sources = SourceList()
        sources.add(SourceType.FILE, "ch1.pdf", "Chapter one.")
        sources.add(SourceType.URL, "https://example.com/a", "https://example.com/a")
        sources.add(SourceType.TEXT, "Pasted text", "Loose notes.")

        assert aggregate_sources(sources) == (
            "--- FILE: ch1.pdf ---\nChapter one.\n\n"
            "--- URL: https://example.com/a ---\nhttps://example.com/a\n\n"
            "--- TEXT: Pasted text ---\nLoose notes."
        )

    def test_aggregate_does_not_truncate(self):
        sources = SourceList()
        sources.add(SourceType.TEXT, "big", "x" * 50_000)

        assert aggregate_sources(sources).endswith("x" * 50_000)


class TestHistoryStore:

    def test_append_then_snapshot_in_order(self):
        history = HistoryStore()
        history.append(["Q1", "Q2"])
        history.append(["Q3"])

        assert history.snapshot() == ["Q1", "Q2", "Q3"]
        assert len(history) == 3

    def test_snapshot_is_a_copy(self):
        history = HistoryStore()
        history.append(["Q1"])
        snap = history.snapshot()
        snap.append("mutated")

        assert history.snapshot() == ["Q1"]

    def test_reset_then_empty(self):
        history = HistoryStore()
        history.append(["Q1"])
        history.reset()

        assert history.snapshot() == []

    def test_concurrent_appends_lose_nothing(self):
        history = HistoryStore()

        def worker(n):
            for i in range(100):
                history.append([f"{n}-{i}"])

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(history) == 800
