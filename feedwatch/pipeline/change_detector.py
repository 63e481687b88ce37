"""Snapshot diffing shared by the change detectors.

Compares the records scraped on this visit against the previous snapshot's
records by id. A missing snapshot is passed as None, and each detector
decides what "no baseline" means for it.
"""

from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional, Set


def detect_changes(previous_ids: Set[str], current_ids: Set[str]) -> Dict[str, set]:
    """Diff two id sets into added, removed, and retained."""
    return {
        "added": current_ids - previous_ids,
        "removed": previous_ids - current_ids,
        "retained": current_ids & previous_ids,
    }


def new_records(current: Iterable, previous: Optional[Iterable]) -> List:
    """Current records whose id is not in ``previous``, in scrape order.

    With no previous records at all (None) every current record is new.
    """
    current = list(current)
    if previous is None:
        return current
    changes = detect_changes({r.id for r in previous}, {r.id for r in current})
    return [r for r in current if r.id in changes["added"]]


def within_window(timestamp: datetime, days: int, now: datetime) -> bool:
    """Whether ``timestamp`` falls inside the last ``days`` days."""
    return timestamp >= now - timedelta(days=days)
