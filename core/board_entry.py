from dataclasses import dataclass
from typing import Any, Dict, Optional

from .disposition import Disposition, ReleaseLine


@dataclass
class BoardEntry:
    """A card on the porting board, linked to at most one pull request."""

    id: str
    url: Optional[str] = None
    owner: Optional[str] = None
    disposition: Optional[Disposition] = None
    release: Optional[ReleaseLine] = None

    @classmethod
    def from_node(cls, node: Dict[str, Any]) -> Optional["BoardEntry"]:
        if not isinstance(node, dict) or not node.get("id"):
            return None
        content = node.get("content") or {}
        owner = node.get("owner") or {}
        status = node.get("status") or {}
        release = node.get("release") or {}
        return cls(
            id=str(node["id"]),
            url=content.get("url") or None,
            owner=owner.get("text"),
            disposition=Disposition.from_label(status.get("name")),
            release=ReleaseLine.from_label(release.get("name")),
        )
