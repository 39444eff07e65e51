from datetime import datetime, timezone

import pytest

from core import ChangeRecord
from infrastructure.change_cache import CacheSnapshot, ChangeCache
from infrastructure.change_fetcher import ChangeFetcher
from infrastructure.github.graphql_client import GraphQLClientError
from infrastructure.github.pagination import Page

NOW = datetime(2025, 6, 1, tzinfo=timezone.utc)


def pr_node(number, merged, updated=None, base="main"):
    return {
        "id": f"PR_{number}",
        "url": f"https://github.com/microsoft/TypeScript/pull/{number}",
        "title": f"Change {number}",
        "mergedAt": merged,
        "updatedAt": updated or merged,
        "baseRefName": base,
        "mergeCommit": {"oid": f"sha{number}"},
        "author": {"login": "outsider"},
        "assignees": {"nodes": []},
        "reviews": {"nodes": []},
    }


class FakeSource:
    def __init__(self, change_pages, file_pages=None, failures=None):
        self.change_pages = change_pages
        self.file_pages = file_pages or {}
        self.failures = failures or {}
        self.change_calls = []
        self.file_calls = []

    def fetch_changes_page(self, cursor):
        self.change_calls.append(cursor)
        index = 0 if cursor is None else int(cursor)
        if ("changes", cursor) in self.failures:
            raise GraphQLClientError("boom")
        nodes = self.change_pages[index]
        has_next = index + 1 < len(self.change_pages)
        return Page(nodes=nodes, end_cursor=str(index + 1) if has_next else None, has_next_page=has_next)

    def fetch_files_page(self, number, cursor):
        self.file_calls.append((number, cursor))
        key = (number, cursor)
        remaining = self.failures.get(key, 0)
        if remaining:
            self.failures[key] = remaining - 1
            raise GraphQLClientError("files unavailable")
        pages = self.file_pages.get(number, [[f"src/compiler/file{number}.ts"]])
        index = 0 if cursor is None else int(cursor)
        has_next = index + 1 < len(pages)
        return Page(
            nodes=[{"path": p} for p in pages[index]],
            end_cursor=str(index + 1) if has_next else None,
            has_next_page=has_next,
        )


def _fetcher(source, **kwargs):
    return ChangeFetcher(source, clock=lambda: NOW, **kwargs)


def test_fetch_exhausts_pages_and_sorts_by_merge_time():
    pages = [
        [pr_node(3, "2025-03-01T00:00:00Z", "2025-05-30T00:00:00Z"), pr_node(1, "2025-01-01T00:00:00Z", "2025-05-29T00:00:00Z")],
        [pr_node(5, "2025-05-01T00:00:00Z", "2025-05-20T00:00:00Z"), pr_node(2, "2025-02-01T00:00:00Z", "2025-05-10T00:00:00Z")],
        [pr_node(4, "2025-04-01T00:00:00Z", "2025-05-01T00:00:00Z")],
    ]
    source = FakeSource(pages)

    result = _fetcher(source).fetch(CacheSnapshot())

    assert source.change_calls == [None, "1", "2"]
    assert result.pages == 3
    assert [c.number for c in result.changes] == [1, 2, 3, 4, 5]
    assert result.changes[0].files == ("src/compiler/file1.ts",)
    assert result.snapshot.timestamp == "2025-06-01T00:00:00Z"
    assert set(result.snapshot.records) == {c.url for c in result.changes}


def test_fetch_stops_at_watermark():
    pages = [
        [pr_node(9, "2025-05-02T00:00:00Z"), pr_node(8, "2025-01-01T00:00:00Z", "2025-04-30T00:00:00Z")],
        [pr_node(7, "2025-05-01T00:00:00Z")],
    ]
    source = FakeSource(pages)
    snapshot = CacheSnapshot(timestamp="2025-05-01T00:00:00Z")

    result = _fetcher(source).fetch(snapshot)

    assert source.change_calls == [None]
    assert [c.number for c in result.new_changes] == [9]


def test_fetch_skips_cached_foreign_branch_and_old_merges():
    cached = CacheSnapshot(timestamp="2025-02-01T00:00:00Z")
    cached.add(ChangeRecord.from_node(pr_node(2, "2025-03-02T00:00:00Z")).with_files(["src/tsc/tsc.ts"]))
    source = FakeSource(
        [
            [
                pr_node(4, "2025-03-04T00:00:00Z"),
                pr_node(3, "2025-03-03T00:00:00Z", base="release-5.8"),
                pr_node(2, "2025-03-02T00:00:00Z"),
                {"title": "no identity", "updatedAt": "2025-03-01T00:00:00Z"},
                pr_node(1, "2025-01-15T00:00:00Z", "2025-02-02T00:00:00Z"),
            ]
        ]
    )

    result = _fetcher(source).fetch(cached)

    assert [c.number for c in result.new_changes] == [4]
    assert [c.number for c in result.changes] == [2, 4]
    assert result.changes[0].files == ("src/tsc/tsc.ts",)
    assert source.file_calls == [(4, None)]


def test_duplicate_urls_within_a_pass_are_kept_once():
    node = pr_node(6, "2025-03-01T00:00:00Z")
    source = FakeSource([[node], [dict(node)]])

    result = _fetcher(source).fetch(CacheSnapshot())

    assert [c.number for c in result.changes] == [6]


def test_file_list_paginates_to_exhaustion_without_duplicates():
    source = FakeSource(
        [[pr_node(7, "2025-03-01T00:00:00Z")]],
        file_pages={7: [["a.ts", "b.ts"], ["c.ts", "a.ts"], ["d.ts"]]},
    )

    result = _fetcher(source).fetch(CacheSnapshot())

    assert result.changes[0].files == ("a.ts", "b.ts", "c.ts", "d.ts")
    assert source.file_calls == [(7, None), (7, "1"), (7, "2")]


def test_file_list_refetches_from_scratch_after_failure():
    source = FakeSource(
        [[pr_node(7, "2025-03-01T00:00:00Z")]],
        file_pages={7: [["a.ts"], ["b.ts"]]},
        failures={(7, "1"): 1},
    )

    paths = _fetcher(source).fetch_file_paths(7)

    assert paths == ["a.ts", "b.ts"]
    assert source.file_calls == [(7, None), (7, "1"), (7, None), (7, "1")]


def test_file_list_gives_up_after_restarts():
    source = FakeSource([[]], file_pages={7: [["a.ts"]]}, failures={(7, None): 5})

    with pytest.raises(GraphQLClientError):
        _fetcher(source, file_restarts=1).fetch_file_paths(7)

    assert source.file_calls == [(7, None), (7, None)]


def test_transport_failure_leaves_cache_file_untouched(tmp_path):
    cache = ChangeCache(tmp_path / "cache.json")
    snapshot = CacheSnapshot(timestamp="2025-01-01T00:00:00Z")
    cache.save(snapshot)
    before = cache.path.read_text(encoding="utf-8")
    source = FakeSource(
        [[pr_node(2, "2025-03-02T00:00:00Z")], [pr_node(1, "2025-03-01T00:00:00Z")]],
        failures={("changes", "1"): True},
    )

    with pytest.raises(GraphQLClientError):
        _fetcher(source).fetch(cache.load())

    assert cache.path.read_text(encoding="utf-8") == before
