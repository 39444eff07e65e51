import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from core import AncestryStatus, ReleaseLine

from .ports import AncestryComparer

logger = logging.getLogger("port_tracker.release")


@dataclass(frozen=True)
class ReleaseMarker:
    tag: str
    release: ReleaseLine


class ReleaseAttributor:
    """Maps a merge commit to the oldest release that already contains it.

    ``markers`` must be ordered oldest to newest.
    """

    def __init__(self, comparer: AncestryComparer, markers: Sequence[ReleaseMarker]) -> None:
        self.comparer = comparer
        self.markers = tuple(markers)

    def attribute(self, commit: Optional[str]) -> Optional[ReleaseLine]:
        if not commit:
            return None
        for marker in self.markers:
            try:
                status = self.comparer.compare(marker.tag, commit)
            except Exception as exc:
                logger.warning("Could not check release %s for commit %s: %s", marker.tag, commit, exc)
                continue
            if status is AncestryStatus.UNKNOWN:
                logger.warning("Release %s undetermined for commit %s", marker.tag, commit)
                continue
            if status.belongs:
                return marker.release
        return None
