import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, List, Optional, Set

from application.ports import ChangeSource
from core import ChangeRecord

from .change_cache import CacheSnapshot, parse_timestamp, sort_by_merge_time
from .github.graphql_client import GraphQLClientError
from .github.pagination import iter_pages

logger = logging.getLogger("port_tracker.fetch")


@dataclass
class FetchResult:
    changes: List[ChangeRecord] = field(default_factory=list)
    new_changes: List[ChangeRecord] = field(default_factory=list)
    snapshot: Optional[CacheSnapshot] = None
    pages: int = 0


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ChangeFetcher:
    """Incremental walk over merged pull requests, newest update first.

    Nothing is persisted here: the returned snapshot is committed by the
    caller once the whole pass has succeeded.
    """

    def __init__(
        self,
        source: ChangeSource,
        main_branch: str = "main",
        file_restarts: int = 2,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.source = source
        self.main_branch = main_branch
        self.file_restarts = file_restarts
        self.clock = clock

    def fetch(self, snapshot: CacheSnapshot) -> FetchResult:
        started_at = self.clock()
        watermark = snapshot.watermark
        logger.info("Fetching merged changes updated since %s", snapshot.timestamp)
        result = FetchResult()
        seen: Set[str] = set(snapshot.records)
        for page in iter_pages(self.source.fetch_changes_page):
            result.pages += 1
            if self._consume_page(page.nodes, watermark, seen, result):
                logger.debug("Reached watermark on page %s", result.pages)
                break
        merged = list(snapshot.records.values()) + result.new_changes
        result.changes = sort_by_merge_time(merged)
        result.snapshot = snapshot.advanced(result.changes, started_at)
        logger.info(
            "Fetched %s new changes over %s pages (%s total)",
            len(result.new_changes),
            result.pages,
            len(result.changes),
        )
        return result

    def _consume_page(self, nodes, watermark: datetime, seen: Set[str], result: FetchResult) -> bool:
        """Collect new changes from one page; True once the watermark is passed."""
        for node in nodes:
            updated_at = parse_timestamp(node.get("updatedAt"))
            if updated_at is not None and updated_at < watermark:
                return True
            record = ChangeRecord.from_node(node)
            if record is None:
                logger.warning("Skipping change without id/url: %s", node.get("title") or node)
                continue
            merged_at = parse_timestamp(record.merged_at)
            if merged_at is not None and merged_at < watermark:
                continue
            if record.url in seen or record.base_ref != self.main_branch:
                continue
            number = record.number
            if number is None:
                logger.warning("Skipping change with unparsable URL %s", record.url)
                continue
            record = record.with_files(self.fetch_file_paths(number))
            seen.add(record.url)
            result.new_changes.append(record)
            logger.info("New change #%s (%s files): %s", number, len(record.files), record.title)
        return False

    def fetch_file_paths(self, number: int) -> List[str]:
        """All file paths of one pull request.

        A failure in the middle of the list restarts it from the first page,
        at most ``file_restarts`` times.
        """
        attempt = 0
        while True:
            paths: List[str] = []
            try:
                for page in iter_pages(lambda cursor: self.source.fetch_files_page(number, cursor)):
                    paths.extend(str(n["path"]) for n in page.nodes if n.get("path"))
                return paths
            except GraphQLClientError as exc:
                if attempt >= self.file_restarts:
                    raise
                attempt += 1
                logger.warning("File list of #%s failed (%s), refetching from scratch", number, exc)
