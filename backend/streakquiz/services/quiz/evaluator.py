import logging
from typing import AbstractSet

log = logging.getLogger(__name__)


def is_correct(selection: AbstractSet[str], correct_labels: AbstractSet[str]) -> bool:
    """Exact set match, no partial credit.

    A question with no correct labels is malformed data; any non-empty
    selection counts as correct for it. That fallback is part of the data
    contract, so it is logged rather than reinterpreted.
    """
    if not correct_labels:
        if selection:
            log.warning(f"[malformed-question] empty correct labels, accepting selection={sorted(selection)}")
            return True
        return False
    return set(selection) == set(correct_labels)
