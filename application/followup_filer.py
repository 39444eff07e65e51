import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from core import BoardEntry, Disposition, ReleaseLine, change_number

from .ports import ChangeDetails, FollowUpTracker

logger = logging.getLogger("port_tracker.followups")

TITLE_PREFIX = "Port TypeScript PR"
DEFAULT_OWNER = "Copilot"
SOURCE_REPO_URL = "https://github.com/microsoft/TypeScript"

BODY_TEMPLATE = """\
This repository is a port of microsoft/TypeScript from TypeScript to Go. Since the port began, the following pull request was applied to microsoft/TypeScript. An equivalent change now needs to be applied here.

## PR to port
- PR link: {url}
- Squash commit diff: {source_repo}/commit/{merge_commit}.patch

## Instructions

1. Use `playwright` to view the PR listed above
2. Apply the edits made in that PR to this codebase, translating them from TypeScript to Go.
   - The change may or may not be applicable. It may have already been ported. Do not make any significant changes outside the scope of the diff. If the change cannot be applied without significant out-of-scope changes, explain why and stop working.
   - Tip: search for functions and identifiers from the diff to find the right location to apply edits. Some files in microsoft/TypeScript have been split into multiple.
   - Tip: some changes have already been ported, like changes to diagnostic message text. Tests do not need to be ported as they are imported from the submodule.
3. Check that the code builds by running `npx hereby build` in the terminal.
4. Run tests. **It is expected that tests will fail due to baseline changes.**
   - Run `npx hereby test` in a terminal. They should fail with messages about baseline changes.
     - Tip: to run a single baseline test from the submodule, run `go test ./internal/testrunner -run '^TestSubmodule/NAME_OF_TEST_FILE'`
   - Run `npx hereby baseline-accept` to adopt the baseline changes.
   - Run `git diff 'testdata/**/*.diff'`. If your change is correct, these diff files will be reduced or completely deleted.
5. Iterate until you are satisfied with your change. Commit everything, including the baseline changes in `testdata`, and open a PR."""


def search_term(number: int) -> str:
    return f"PR #{number}"


def followup_title(number: int, title: str) -> str:
    return f"{TITLE_PREFIX} #{number}: {title}"


def followup_body(url: str, details: ChangeDetails) -> str:
    return BODY_TEMPLATE.format(url=url, source_repo=SOURCE_REPO_URL, merge_commit=details.merge_commit)


def followup_owners(entry: BoardEntry, default_owner: str = DEFAULT_OWNER) -> List[str]:
    owners = [default_owner]
    suggested = (entry.owner or "").strip()
    if suggested:
        owners.append(suggested)
    return owners


@dataclass
class FilingReport:
    created: int = 0
    previewed: int = 0
    skipped_existing: int = 0
    failed: int = 0
    titles: List[str] = field(default_factory=list)

    def summary(self) -> str:
        return (
            f"created={self.created} previewed={self.previewed} "
            f"skipped_existing={self.skipped_existing} failed={self.failed}"
        )


class FollowUpFiler:
    """Files one follow-up issue per un-ported card of the oldest release."""

    def __init__(
        self,
        tracker: FollowUpTracker,
        release: Optional[ReleaseLine] = None,
        default_owner: str = DEFAULT_OWNER,
        limit: Optional[int] = 10,
        dry_run: bool = False,
    ) -> None:
        self.tracker = tracker
        self.release = release or ReleaseLine.oldest()
        self.default_owner = default_owner
        self.limit = limit
        self.dry_run = dry_run

    def candidates(self, entries: Iterable[BoardEntry]) -> List[BoardEntry]:
        return [
            e
            for e in entries
            if e.url and e.disposition is Disposition.NOT_PORTED and e.release is self.release
        ]

    def run(self, entries: Iterable[BoardEntry]) -> FilingReport:
        report = FilingReport()
        pending = self.candidates(entries)
        if self.dry_run:
            logger.info("Dry run: no issues will be created")
        logger.info("Found %s cards to consider for follow-up issues", len(pending))
        processed = 0
        for entry in pending:
            if self.limit is not None and processed >= self.limit:
                logger.info("Reached limit of %s processed items, stopping", self.limit)
                break
            number = change_number(entry.url)
            if number is None:
                logger.warning("Could not extract PR number from URL: %s", entry.url)
                continue
            try:
                existing = self.tracker.search_followups(search_term(number))
            except Exception as exc:
                logger.warning("Issue search failed for PR #%s: %s", number, exc)
                report.failed += 1
                continue
            if existing:
                logger.info("Issue already exists for PR #%s: %s", number, existing[0])
                report.skipped_existing += 1
                continue
            processed += 1
            self._file(entry, number, report)
        logger.info("Follow-up filing finished: %s", report.summary())
        return report

    def _file(self, entry: BoardEntry, number: int, report: FilingReport) -> None:
        details = self.tracker.change_details(entry.url)
        if details is None:
            logger.warning("Could not fetch PR details for %s", entry.url)
            report.failed += 1
            return
        if not details.merge_commit:
            logger.warning("PR #%s has no merge commit, not filing", number)
            report.failed += 1
            return
        title = followup_title(number, details.title)
        body = followup_body(entry.url, details)
        owners = followup_owners(entry, self.default_owner)
        logger.info("%sCreating issue: %s", "[DRY RUN] " if self.dry_run else "", title)
        logger.info("Assignees: %s", ", ".join(owners))
        if self.dry_run:
            logger.info("Issue body preview:\n%s\n%s\n%s", "=" * 50, body, "=" * 50)
            report.previewed += 1
            report.titles.append(title)
            return
        try:
            filed = self.tracker.create_followup(title, body, owners)
        except Exception as exc:
            logger.warning("Failed to create issue for PR #%s: %s", number, exc)
            report.failed += 1
            return
        if filed is None:
            logger.warning("Failed to create issue for PR #%s", number)
            report.failed += 1
            return
        logger.info("Created issue #%s: %s", filed.number, filed.url)
        report.created += 1
        report.titles.append(title)
