from dataclasses import dataclass
from typing import TYPE_CHECKING, List, Optional, Protocol, Sequence

from core import AncestryStatus, BoardEntry, Disposition, ReleaseLine

if TYPE_CHECKING:
    from infrastructure.change_cache import CacheSnapshot
    from infrastructure.change_fetcher import FetchResult
    from infrastructure.github.pagination import Page


@dataclass(frozen=True)
class ChangeDetails:
    number: int
    title: str
    merge_commit: Optional[str] = None


@dataclass(frozen=True)
class FiledItem:
    number: int
    url: str


class BoardGateway(Protocol):
    def fetch_entries(self) -> List[BoardEntry]:
        ...

    def add_item(self, content_id: str) -> str:
        ...

    def set_owner(self, item_id: str, owner: Optional[str]) -> None:
        ...

    def set_disposition(self, item_id: str, disposition: Disposition) -> None:
        ...

    def set_release(self, item_id: str, release: ReleaseLine) -> None:
        ...


class AncestryComparer(Protocol):
    def compare(self, tag: str, commit: str) -> AncestryStatus:
        ...


class FollowUpTracker(Protocol):
    def search_followups(self, term: str) -> List[str]:
        ...

    def change_details(self, url: str) -> Optional[ChangeDetails]:
        ...

    def create_followup(self, title: str, body: str, owners: Sequence[str]) -> Optional[FiledItem]:
        ...


class ChangeSource(Protocol):
    """Paged access to merged pull requests and their file lists."""

    def fetch_changes_page(self, cursor: Optional[str]) -> "Page":
        ...

    def fetch_files_page(self, number: int, cursor: Optional[str]) -> "Page":
        ...


class SnapshotStore(Protocol):
    def load(self) -> "CacheSnapshot":
        ...

    def save(self, snapshot: "CacheSnapshot") -> None:
        ...


class ChangeFeed(Protocol):
    def fetch(self, snapshot: "CacheSnapshot") -> "FetchResult":
        ...
