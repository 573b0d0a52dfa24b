"""Gantt-style timeline rows for subtasks with both start and end dates."""

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date

from projectflow.domain.models import Subtask, SubtaskStatus


@dataclass
class TimelineEntry:
    subtask_id: str
    name: str
    stage_id: str
    status: SubtaskStatus
    start: date
    end: date

    @property
    def duration_days(self) -> int:
        """Calendar days covered, counting both ends."""
        return (self.end - self.start).days + 1


def timeline_entries(subtasks: Iterable[Subtask]) -> list[TimelineEntry]:
    """One entry per dated subtask, sorted by start date then name.

    Subtasks missing either date are skipped.
    """
    entries = [
        TimelineEntry(
            subtask_id=st.id,
            name=st.name,
            stage_id=st.stage_id,
            status=st.status,
            start=st.start_date,
            end=st.end_date,
        )
        for st in subtasks
        if st.start_date and st.end_date
    ]
    return sorted(entries, key=lambda e: (e.start, e.name))


def timeline_bounds(entries: list[TimelineEntry]) -> tuple[date, date] | None:
    """Earliest start and latest end across entries, None when empty."""
    if not entries:
        return None
    return min(e.start for e in entries), max(e.end for e in entries)
