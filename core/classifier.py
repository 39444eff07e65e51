"""Triage rules for merged pull requests.

Both decisions are pure functions of a hydrated ChangeRecord and an
immutable TriagePolicy:

- classify(): which board status a new card starts in
- suggest_owner(): which team member should look at the port
"""

from dataclasses import dataclass
from typing import FrozenSet, Optional, Tuple

from .change_record import ChangeRecord
from .disposition import Disposition


TEAM_MEMBERS: FrozenSet[str] = frozenset(
    {
        "sandersn",
        "DanielRosenwasser",
        "weswigham",
        "andrewbranch",
        "ahejlsberg",
        "jakebailey",
        "RyanCavanaugh",
        "gabritto",
        "iisaduan",
        "navya9singh",
        "sheetalkamat",
    }
)

BUILD_AND_WATCH_PATHS: FrozenSet[str] = frozenset(
    {
        "src/compiler/builder.ts",
        "src/compiler/builderPublic.ts",
        "src/compiler/builderState.ts",
        "src/compiler/tsbuild.ts",
        "src/compiler/tsbuildPublic.ts",
        "src/compiler/watch.ts",
        "src/compiler/watchPublic.ts",
        "src/compiler/watchUtilities.ts",
    }
)

IGNORED_PATHS: FrozenSet[str] = frozenset(
    {
        "src/compiler/performance.ts",
        "src/compiler/performanceCore.ts",
        "src/compiler/resolutionCache.ts",
        "src/compiler/tracing.ts",
        "src/compiler/types.ts",
    }
)

CORE_PREFIXES: Tuple[str, ...] = ("src/compiler/", "src/lib/", "src/tsc/")

LANGUAGE_SERVICE_PREFIXES: Tuple[str, ...] = (
    "src/services/",
    "src/tsserver/",
    "src/typingsInstaller/",
    "src/typingsInstallerCore/",
)


@dataclass(frozen=True)
class TriagePolicy:
    core_prefixes: Tuple[str, ...] = CORE_PREFIXES
    ignored_paths: FrozenSet[str] = IGNORED_PATHS
    build_watch_paths: FrozenSet[str] = BUILD_AND_WATCH_PATHS
    language_service_prefixes: Tuple[str, ...] = LANGUAGE_SERVICE_PREFIXES
    team_members: FrozenSet[str] = TEAM_MEMBERS

    def is_core_path(self, path: str) -> bool:
        # build/watch is an override: such files never count as core
        if path in self.build_watch_paths or path in self.ignored_paths:
            return False
        return path.startswith(self.core_prefixes)

    def is_language_service_path(self, path: str) -> bool:
        return path.startswith(self.language_service_prefixes)

    def is_build_watch_path(self, path: str) -> bool:
        return path in self.build_watch_paths

    def is_member(self, login: Optional[str]) -> bool:
        return bool(login) and login in self.team_members


DEFAULT_POLICY = TriagePolicy()


class Classifier:
    def __init__(self, policy: TriagePolicy = DEFAULT_POLICY) -> None:
        self.policy = policy

    def classify(self, record: ChangeRecord) -> Disposition:
        files = record.files
        if any(self.policy.is_core_path(p) for p in files):
            return Disposition.NOT_PORTED
        if any(self.policy.is_language_service_path(p) for p in files):
            return Disposition.NA_LANGUAGE_SERVICE
        if any(self.policy.is_build_watch_path(p) for p in files):
            return Disposition.NA_BUILD_WATCH
        return Disposition.NA_NO_NEED

    def suggest_owner(self, record: ChangeRecord) -> Optional[str]:
        """Author, then assignee, then approving reviewer, then any reviewer."""
        is_member = self.policy.is_member
        if is_member(record.author):
            return record.author
        for login in record.assignees:
            if is_member(login):
                return login
        for review in record.reviews:
            if review.approved and is_member(review.author):
                return review.author
        for review in record.reviews:
            if is_member(review.author):
                return review.author
        return None


_DEFAULT_CLASSIFIER = Classifier()


def classify(record: ChangeRecord) -> Disposition:
    return _DEFAULT_CLASSIFIER.classify(record)


def suggest_owner(record: ChangeRecord) -> Optional[str]:
    return _DEFAULT_CLASSIFIER.suggest_owner(record)
