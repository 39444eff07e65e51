"""Cursor pagination over GraphQL connections.

Every paged collection we read (pull requests, pull request files, project
items) has the same ``{nodes, pageInfo{endCursor, hasNextPage}}`` shape.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Optional

DEFAULT_PAGE_SIZE = 100

PageFetcher = Callable[[Optional[str]], "Page"]


@dataclass
class Page:
    nodes: List[Dict[str, Any]] = field(default_factory=list)
    end_cursor: Optional[str] = None
    has_next_page: bool = False

    @classmethod
    def from_connection(cls, connection: Any) -> "Page":
        if not isinstance(connection, dict):
            return cls()
        info = connection.get("pageInfo") or {}
        nodes = [n for n in (connection.get("nodes") or []) if isinstance(n, dict)]
        return cls(
            nodes=nodes,
            end_cursor=info.get("endCursor"),
            has_next_page=bool(info.get("hasNextPage")) and bool(info.get("endCursor")),
        )


def iter_pages(fetch_page: PageFetcher, cursor: Optional[str] = None) -> Iterator[Page]:
    """Yield pages in remote order until the remote reports no next page.

    The caller may stop iterating at any point; no further request is made.
    """
    while True:
        page = fetch_page(cursor)
        yield page
        if not page.has_next_page:
            return
        cursor = page.end_cursor


def collect_nodes(fetch_page: PageFetcher) -> List[Dict[str, Any]]:
    nodes: List[Dict[str, Any]] = []
    for page in iter_pages(fetch_page):
        nodes.extend(page.nodes)
    return nodes
