"""Create-or-update of board cards from per-change decisions.

Field ownership rules:

- status is written only when the card is created
- the suggested owner is rewritten whenever it differs (clearing writes "")
- the release is written only while the card has none
- cards are never deleted
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from core import BoardEntry, ChangeRecord, Disposition, ReleaseLine

from .ports import BoardGateway

logger = logging.getLogger("port_tracker.board")

CREATE = "create"
SET_OWNER = "owner"
SET_DISPOSITION = "disposition"
SET_RELEASE = "release"


@dataclass(frozen=True)
class ChangeDecision:
    change: ChangeRecord
    disposition: Disposition
    owner: Optional[str] = None
    release: Optional[ReleaseLine] = None


@dataclass(frozen=True)
class BoardMutation:
    kind: str
    url: str
    item_id: Optional[str] = None
    value: object = None

    def describe(self) -> str:
        if isinstance(self.value, (Disposition, ReleaseLine)):
            return f"{self.kind}={self.value.label}"
        if self.kind == SET_OWNER:
            return f"{self.kind}={self.value or '<empty>'}"
        return self.kind


@dataclass
class ReconcileReport:
    created: int = 0
    updated: int = 0
    unchanged: int = 0
    failed: int = 0
    mutations: List[BoardMutation] = field(default_factory=list)

    def summary(self) -> str:
        return (
            f"created={self.created} updated={self.updated} "
            f"unchanged={self.unchanged} failed={self.failed}"
        )


def _same_owner(left: Optional[str], right: Optional[str]) -> bool:
    return (left or "") == (right or "")


def plan_mutations(entry: Optional[BoardEntry], decision: ChangeDecision) -> List[BoardMutation]:
    """Minimal mutations that bring ``entry`` in line with ``decision``."""
    url = decision.change.url
    item_id = entry.id if entry else None
    plan: List[BoardMutation] = []
    if entry is None:
        plan.append(BoardMutation(CREATE, url, value=decision.change.id))
    stored_owner = entry.owner if entry else None
    if not _same_owner(decision.owner, stored_owner):
        plan.append(BoardMutation(SET_OWNER, url, item_id, decision.owner or ""))
    if entry is None:
        plan.append(BoardMutation(SET_DISPOSITION, url, item_id, decision.disposition))
    if decision.release is not None and (entry is None or entry.release is None):
        plan.append(BoardMutation(SET_RELEASE, url, item_id, decision.release))
    return plan


def index_by_url(entries: Iterable[BoardEntry]) -> Dict[str, BoardEntry]:
    index: Dict[str, BoardEntry] = {}
    for entry in entries:
        if not entry.url:
            continue
        if entry.url in index:
            logger.warning("Board has more than one card for %s; using %s", entry.url, index[entry.url].id)
            continue
        index[entry.url] = entry
    return index


class BoardReconciler:
    def __init__(self, board: BoardGateway, dry_run: bool = False) -> None:
        self.board = board
        self.dry_run = dry_run

    def reconcile(self, snapshot: Iterable[BoardEntry], decisions: Iterable[ChangeDecision]) -> ReconcileReport:
        return self.reconcile_index(index_by_url(snapshot), decisions)

    def reconcile_index(
        self, index: Dict[str, BoardEntry], decisions: Iterable[ChangeDecision]
    ) -> ReconcileReport:
        """Like ``reconcile`` over a URL index; cards created here are added to ``index``."""
        report = ReconcileReport()
        for decision in decisions:
            entry = index.get(decision.change.url)
            plan = plan_mutations(entry, decision)
            label = f"#{decision.change.number}" if decision.change.number else decision.change.url
            if not plan:
                report.unchanged += 1
                logger.debug("Card for %s up to date", label)
                continue
            logger.info(
                "%s card for %s: %s (%s)",
                "Adding" if entry is None else "Updating",
                label,
                decision.change.title,
                ", ".join(m.describe() for m in plan),
            )
            if self.dry_run:
                report.mutations.extend(plan)
                self._count(report, entry, failed=False)
                continue
            created = self._apply(plan, entry, decision, report)
            if created is not None:
                index[decision.change.url] = created
        return report

    def _apply(
        self,
        plan: List[BoardMutation],
        entry: Optional[BoardEntry],
        decision: ChangeDecision,
        report: ReconcileReport,
    ) -> Optional[BoardEntry]:
        failed = False
        item_id = entry.id if entry else None
        created: Optional[BoardEntry] = None
        for mutation in plan:
            if mutation.kind == CREATE:
                try:
                    item_id = self.board.add_item(decision.change.id)
                except Exception as exc:
                    logger.warning("Could not add card for %s: %s", decision.change.url, exc)
                    report.failed += 1
                    return None
                created = BoardEntry(id=item_id, url=decision.change.url)
                report.mutations.append(BoardMutation(CREATE, mutation.url, item_id, mutation.value))
                continue
            applied = BoardMutation(mutation.kind, mutation.url, item_id, mutation.value)
            try:
                self._write(applied)
            except Exception as exc:
                failed = True
                logger.warning("Could not set %s for %s: %s", mutation.kind, decision.change.url, exc)
                continue
            report.mutations.append(applied)
            if created is not None:
                _remember(created, applied)
        self._count(report, entry, failed)
        return created

    def _write(self, mutation: BoardMutation) -> None:
        if mutation.kind == SET_OWNER:
            self.board.set_owner(mutation.item_id, mutation.value or None)
        elif mutation.kind == SET_DISPOSITION:
            self.board.set_disposition(mutation.item_id, mutation.value)
        elif mutation.kind == SET_RELEASE:
            self.board.set_release(mutation.item_id, mutation.value)
        else:
            raise ValueError(f"unknown mutation kind: {mutation.kind}")

    @staticmethod
    def _count(report: ReconcileReport, entry: Optional[BoardEntry], failed: bool) -> None:
        if failed:
            report.failed += 1
        elif entry is None:
            report.created += 1
        else:
            report.updated += 1


def _remember(entry: BoardEntry, mutation: BoardMutation) -> None:
    if mutation.kind == SET_OWNER:
        entry.owner = mutation.value or None
    elif mutation.kind == SET_DISPOSITION:
        entry.disposition = mutation.value
    elif mutation.kind == SET_RELEASE:
        entry.release = mutation.value
