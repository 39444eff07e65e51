from .board_entry import BoardEntry
from .change_record import ChangeRecord, Review, change_number
from .classifier import DEFAULT_POLICY, Classifier, TriagePolicy, classify, suggest_owner
from .disposition import AncestryStatus, Disposition, ReleaseLine

__all__ = [
    "BoardEntry",
    "ChangeRecord",
    "Review",
    "change_number",
    # Triage
    "DEFAULT_POLICY",
    "Classifier",
    "TriagePolicy",
    "classify",
    "suggest_owner",
    # Vocabulary
    "AncestryStatus",
    "Disposition",
    "ReleaseLine",
]
