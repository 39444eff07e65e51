from enum import Enum
from typing import Optional


class Disposition(Enum):
    """Board status options. Values are (label, single-select option id)."""

    NOT_PORTED = ("Not Ported", "86139f13")
    PORTED = ("Ported", "6d64e456")
    NA_LANGUAGE_SERVICE = ("N/A (LS)", "fafd778c")
    NA_BUILD_WATCH = ("N/A (Build/Watch)", "b0652e81")
    NA_NO_NEED = ("N/A (No Need)", "532f8030")

    @property
    def label(self) -> str:
        return self.value[0]

    @property
    def option_id(self) -> str:
        return self.value[1]

    @classmethod
    def from_label(cls, value: Optional[str]) -> Optional["Disposition"]:
        for member in cls:
            if member.label == value:
                return member
        return None


class ReleaseLine(Enum):
    """Release options, declared oldest first."""

    V5_8 = ("5.8 (or earlier)", "955a53a2")
    V5_9 = ("5.9", "cf015096")

    @property
    def label(self) -> str:
        return self.value[0]

    @property
    def option_id(self) -> str:
        return self.value[1]

    @classmethod
    def from_label(cls, value: Optional[str]) -> Optional["ReleaseLine"]:
        for member in cls:
            if member.label == value:
                return member
        return None

    @classmethod
    def oldest(cls) -> "ReleaseLine":
        return next(iter(cls))


class AncestryStatus(Enum):
    ANCESTOR_OR_EQUAL = "ancestor_or_equal"
    DESCENDANT = "descendant"
    DIVERGED = "diverged"
    UNKNOWN = "unknown"

    @property
    def belongs(self) -> bool:
        return self is AncestryStatus.ANCESTOR_OR_EQUAL
