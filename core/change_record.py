"""Merged pull requests as seen by the board sync.

A ChangeRecord is built once from a GraphQL node and never mutated; a newer
observation replaces the record instead of patching it.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Optional, Tuple

REVIEW_APPROVED = "APPROVED"

_NUMBER_RE = re.compile(r"/(\d+)/?$")


def change_number(url: Optional[str]) -> Optional[int]:
    """Trailing number of a pull request URL (``.../pull/4821`` -> 4821)."""
    match = _NUMBER_RE.search(url or "")
    return int(match.group(1)) if match else None


def _ordered_unique(values: Iterable[Any]) -> Tuple[Any, ...]:
    seen = set()
    out = []
    for value in values:
        if value in seen:
            continue
        seen.add(value)
        out.append(value)
    return tuple(out)


def _login(actor: Any) -> Optional[str]:
    if isinstance(actor, dict):
        login = actor.get("login")
        return str(login) if login else None
    return None


def _nodes(connection: Any) -> list:
    if isinstance(connection, dict):
        return [n for n in (connection.get("nodes") or []) if isinstance(n, dict)]
    if isinstance(connection, list):
        return [n for n in connection if isinstance(n, dict)]
    return []


@dataclass(frozen=True)
class Review:
    author: Optional[str]
    state: str = ""

    @property
    def approved(self) -> bool:
        return self.state == REVIEW_APPROVED

    def to_dict(self) -> Dict[str, Any]:
        return {"author": self.author, "state": self.state}


@dataclass(frozen=True)
class ChangeRecord:
    id: str
    url: str
    title: str = ""
    merged_at: str = ""
    updated_at: str = ""
    base_ref: str = ""
    files: Tuple[str, ...] = field(default_factory=tuple)
    author: Optional[str] = None
    assignees: Tuple[str, ...] = field(default_factory=tuple)
    reviews: Tuple[Review, ...] = field(default_factory=tuple)
    merge_commit: Optional[str] = None

    @property
    def number(self) -> Optional[int]:
        return change_number(self.url)

    def with_files(self, paths: Iterable[str]) -> "ChangeRecord":
        return ChangeRecord(
            id=self.id,
            url=self.url,
            title=self.title,
            merged_at=self.merged_at,
            updated_at=self.updated_at,
            base_ref=self.base_ref,
            files=_ordered_unique(p for p in paths if p),
            author=self.author,
            assignees=self.assignees,
            reviews=self.reviews,
            merge_commit=self.merge_commit,
        )

    @classmethod
    def from_node(cls, node: Dict[str, Any]) -> Optional["ChangeRecord"]:
        """Build a record from a ``PullRequest`` node; None without id or url."""
        if not isinstance(node, dict):
            return None
        node_id = node.get("id")
        url = node.get("url")
        if not node_id or not url:
            return None
        merge_commit = node.get("mergeCommit") or {}
        return cls(
            id=str(node_id),
            url=str(url),
            title=str(node.get("title") or ""),
            merged_at=str(node.get("mergedAt") or ""),
            updated_at=str(node.get("updatedAt") or ""),
            base_ref=str(node.get("baseRefName") or ""),
            files=_ordered_unique(str(f.get("path")) for f in _nodes(node.get("files")) if f.get("path")),
            author=_login(node.get("author")),
            assignees=_ordered_unique(
                login for login in (_login(a) for a in _nodes(node.get("assignees"))) if login
            ),
            reviews=tuple(
                Review(author=_login(r.get("author")), state=str(r.get("state") or ""))
                for r in _nodes(node.get("reviews"))
            ),
            merge_commit=(merge_commit.get("oid") if isinstance(merge_commit, dict) else None) or None,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "url": self.url,
            "title": self.title,
            "mergedAt": self.merged_at,
            "updatedAt": self.updated_at,
            "baseRefName": self.base_ref,
            "files": list(self.files),
            "author": self.author,
            "assignees": list(self.assignees),
            "reviews": [r.to_dict() for r in self.reviews],
            "mergeCommit": self.merge_commit,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Optional["ChangeRecord"]:
        if not isinstance(data, dict) or not data.get("id") or not data.get("url"):
            return None
        reviews = []
        for raw in data.get("reviews") or []:
            if isinstance(raw, dict):
                reviews.append(Review(author=raw.get("author") or None, state=str(raw.get("state") or "")))
        return cls(
            id=str(data["id"]),
            url=str(data["url"]),
            title=str(data.get("title") or ""),
            merged_at=str(data.get("mergedAt") or ""),
            updated_at=str(data.get("updatedAt") or ""),
            base_ref=str(data.get("baseRefName") or ""),
            files=_ordered_unique(str(p) for p in (data.get("files") or []) if p),
            author=data.get("author") or None,
            assignees=_ordered_unique(str(a) for a in (data.get("assignees") or []) if a),
            reviews=tuple(reviews),
            merge_commit=data.get("mergeCommit") or None,
        )
