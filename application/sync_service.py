import logging
from dataclasses import dataclass, field
from typing import Dict, Optional

from core import BoardEntry, ChangeRecord, Classifier

from .board_reconciler import BoardReconciler, ChangeDecision, ReconcileReport, index_by_url
from .ports import BoardGateway, ChangeFeed, SnapshotStore
from .release_attributor import ReleaseAttributor

logger = logging.getLogger("port_tracker.sync")


@dataclass
class SyncReport:
    fetched: int = 0
    new_changes: int = 0
    reconcile: ReconcileReport = field(default_factory=ReconcileReport)


class BoardSyncService:
    """One sync run: fetch changes, decide per change, reconcile the board.

    The cache is written only after the fetch pass returned; a failed pass
    leaves the previous watermark in place.
    """

    def __init__(
        self,
        cache: SnapshotStore,
        fetcher: ChangeFeed,
        board: BoardGateway,
        attributor: ReleaseAttributor,
        classifier: Optional[Classifier] = None,
        dry_run: bool = False,
    ) -> None:
        self.cache = cache
        self.fetcher = fetcher
        self.board = board
        self.attributor = attributor
        self.classifier = classifier or Classifier()
        self.dry_run = dry_run

    def run(self) -> SyncReport:
        snapshot = self.cache.load()
        entries = self.board.fetch_entries()
        result = self.fetcher.fetch(snapshot)
        self.cache.save(result.snapshot)

        index = index_by_url(entries)
        decisions = [self.decide(change, index) for change in result.changes]
        reconciler = BoardReconciler(self.board, dry_run=self.dry_run)
        report = SyncReport(
            fetched=len(result.changes),
            new_changes=len(result.new_changes),
            reconcile=reconciler.reconcile_index(index, decisions),
        )
        logger.info(
            "Sync finished: %s changes (%s new), %s",
            report.fetched,
            report.new_changes,
            report.reconcile.summary(),
        )
        return report

    def decide(self, change: ChangeRecord, index: Dict[str, BoardEntry]) -> ChangeDecision:
        existing = index.get(change.url)
        release = None
        # labeled cards keep their release
        if existing is None or existing.release is None:
            release = self.attributor.attribute(change.merge_commit)
        return ChangeDecision(
            change=change,
            disposition=self.classifier.classify(change),
            owner=self.classifier.suggest_owner(change),
            release=release,
        )
