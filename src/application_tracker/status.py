from enum import Enum
from typing import Dict


class Status(str, Enum):
    APPLIED = "Applied"
    INTERVIEW = "Interview"
    OFFER = "Offer"
    REJECTED = "Rejected"


class RowColor(str, Enum):
    WHITE = "#ffffff"
    LIGHT_BLUE = "#cfe2f3"
    LIGHT_GREEN = "#d9ead3"
    LIGHT_RED = "#f4cccc"


PRIORITY: Dict[Status, int] = {
    Status.APPLIED: 0,
    Status.INTERVIEW: 1,
    Status.OFFER: 2,
    Status.REJECTED: 3,
}

TERMINAL = frozenset({Status.OFFER, Status.REJECTED})

_COLORS: Dict[Status, RowColor] = {
    Status.APPLIED: RowColor.WHITE,
    Status.INTERVIEW: RowColor.LIGHT_BLUE,
    Status.OFFER: RowColor.LIGHT_GREEN,
    Status.REJECTED: RowColor.LIGHT_RED,
}


def priority(status: Status) -> int:
    return PRIORITY[status]


def is_terminal(status: Status) -> bool:
    return status in TERMINAL


def is_advance(candidate: Status, current: Status) -> bool:
    """True when `candidate` may replace `current`.

    Offer and Rejected absorb everything, including each other.
    """
    if is_terminal(current):
        return False
    return priority(candidate) > priority(current)


def row_color(status: Status) -> RowColor:
    return _COLORS[status]


def parse_status(value: str) -> Status:
    """Parse a sheet cell into a Status; raises ValueError for unknown labels."""
    cleaned = (value or "").strip()
    for status in Status:
        if status.value.lower() == cleaned.lower():
            return status
    raise ValueError(f"unknown status label: {value!r}")
