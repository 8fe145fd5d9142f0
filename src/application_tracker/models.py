from dataclasses import dataclass, replace
from datetime import date, datetime
from typing import List, Optional

import dateparser

from .status import Status, parse_status

HEADERS = ["Company", "Job Title", "Date Applied", "Status", "Thread ID", "Last Updated"]

DATE_FORMAT = "%Y-%m-%d"
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


@dataclass(frozen=True)
class Application:
    company: str
    job_title: str              # empty when no title could be extracted
    date_applied: date
    status: Status
    thread_id: str
    last_updated: datetime

    def to_row(self) -> List[str]:
        return [
            self.company,
            self.job_title,
            self.date_applied.strftime(DATE_FORMAT),
            self.status.value,
            self.thread_id,
            self.last_updated.strftime(TIMESTAMP_FORMAT),
        ]

    def advanced_to(self, status: Status, now: datetime) -> "Application":
        return replace(self, status=status, last_updated=now)

    @classmethod
    def from_row(cls, row: List[str]) -> "Application":
        """Build a record from a sheet row.

        Raises ValueError when the thread id is blank or the status label is
        not one we track. Dates edited by hand in the sheet are parsed
        leniently.
        """
        cells = list(row) + [""] * (len(HEADERS) - len(row))
        company, job_title, applied, status, thread_id, updated = cells[:len(HEADERS)]
        thread_id = thread_id.strip()
        if not thread_id:
            raise ValueError("row has no thread id")
        last_updated = _parse_datetime(updated) or datetime.min
        applied_dt = _parse_datetime(applied)
        return cls(
            company=company.strip(),
            job_title=job_title.strip(),
            date_applied=applied_dt.date() if applied_dt else last_updated.date(),
            status=parse_status(status),
            thread_id=thread_id,
            last_updated=last_updated,
        )


def _parse_datetime(value: str) -> Optional[datetime]:
    value = (value or "").strip()
    if not value:
        return None
    for fmt in (TIMESTAMP_FORMAT, DATE_FORMAT):
        try:
            return datetime.strptime(value, fmt)
        except ValueError:
            continue
    return dateparser.parse(value)
