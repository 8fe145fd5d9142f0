"""Discovery and reconciliation of tracked applications.

A scan runs two passes. Discovery searches the mailbox for confirmation
style threads and appends a row for every thread not yet in the sheet.
Reconciliation re-reads each open (non-terminal) thread and advances its
row when a later message shows progress. Rows are keyed by Gmail thread id;
nothing is ever merged across threads.
"""
import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Callable, Dict, Iterator, Optional, Set

from .email_client import MailboxError
from .models import Application
from .nlp_rules import classify_status, extract_company, extract_job_title
from .settings import ScanConfig
from .status import Status, is_advance, is_terminal, priority

logger = logging.getLogger(__name__)


def build_query(config: ScanConfig, today: date) -> str:
    clauses = " OR ".join(f'subject:"{c}"' for c in config.subject_clauses)
    after = today - timedelta(days=config.lookback_days)
    return f"({clauses}) after:{after.strftime('%Y/%m/%d')}"


@dataclass
class TrackedRow:
    row: int
    record: Application


class ApplicationIndex:
    """thread_id -> tracked row, built once per run from the sheet."""

    def __init__(self):
        self._rows: Dict[str, TrackedRow] = {}
        # thread ids on rows we could not parse; kept only for deduplication
        self._reserved: Set[str] = set()

    @classmethod
    def from_rows(cls, rows) -> "ApplicationIndex":
        index = cls()
        for row, cells in rows:
            try:
                record = Application.from_row(cells)
            except ValueError as e:
                thread_id = cells[4].strip() if len(cells) > 4 else ""
                if thread_id:
                    index._reserved.add(thread_id)
                    logger.warning("Row %d (thread %s) is not tracked: %s", row, thread_id, e)
                continue
            if record.thread_id in index:
                logger.warning("Duplicate thread id %s on row %d; keeping row %d",
                               record.thread_id, row, index._rows[record.thread_id].row)
                continue
            index._rows[record.thread_id] = TrackedRow(row, record)
        return index

    def __contains__(self, thread_id: str) -> bool:
        return thread_id in self._rows or thread_id in self._reserved

    def __len__(self) -> int:
        return len(self._rows)

    def __iter__(self) -> Iterator[TrackedRow]:
        return iter(list(self._rows.values()))

    def get(self, thread_id: str) -> Optional[TrackedRow]:
        return self._rows.get(thread_id)

    def add(self, row: int, record: Application) -> None:
        if record.thread_id in self:
            raise ValueError(f"thread {record.thread_id} is already tracked")
        self._rows[record.thread_id] = TrackedRow(row, record)

    def replace(self, record: Application) -> None:
        self._rows[record.thread_id].record = record


@dataclass
class ScanSummary:
    created: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0

    def __str__(self) -> str:
        return (f"{self.created} new, {self.updated} updated, "
                f"{self.skipped} skipped, {self.failed} failed")


class Reconciler:
    def __init__(self, config: ScanConfig, mailbox, store, now: Optional[Callable[[], datetime]] = None):
        self.config = config
        self.mailbox = mailbox
        self.store = store
        self._now = now or (lambda: datetime.now(config.tz))
        self.index: Optional[ApplicationIndex] = None
        self._created: Set[str] = set()

    def load_index(self) -> ApplicationIndex:
        self.index = ApplicationIndex.from_rows(self.store.read_rows())
        self._created = set()
        return self.index

    def run(self) -> ScanSummary:
        summary = ScanSummary()
        self.load_index()
        self.discover(summary)
        self.reconcile(summary)
        logger.info("Scan complete: %s", summary)
        return summary

    def _classify(self, subject: str, body: str) -> Optional[Status]:
        return classify_status(subject, body, self.config.status_rules)

    def discover(self, summary: Optional[ScanSummary] = None) -> ScanSummary:
        summary = summary or ScanSummary()
        if self.index is None:
            self.load_index()
        now = self._now()
        query = build_query(self.config, now.date())
        logger.info("Searching mailbox: %s", query)
        for thread in self.mailbox.search(query):
            if thread.id in self.index:
                continue
            try:
                messages = thread.get_messages()
            except MailboxError as e:
                logger.warning("Skipping new thread %s: %s", thread.id, e)
                summary.failed += 1
                continue
            if not messages:
                summary.skipped += 1
                continue
            first = messages[0]
            status = self._classify(first.subject, first.body)
            if status is None:
                logger.debug("Thread %s (%r) is not an application message", thread.id, first.subject)
                summary.skipped += 1
                continue
            record = Application(
                company=extract_company(first.subject, first.sender),
                job_title=extract_job_title(first.subject, first.body),
                date_applied=first.date.astimezone(self.config.tz).date(),
                status=status,
                thread_id=thread.id,
                last_updated=now,
            )
            self._create(record)
            summary.created += 1
        return summary

    def _create(self, record: Application) -> None:
        logger.info("[NEW] %s | %s | %s | applied %s",
                    record.company, record.job_title or "-", record.status.value, record.date_applied)
        if self.config.dry_run:
            row = -1 - len(self._created)
        else:
            row = self.store.append(record)
            self.store.color_row(row, record.status)
        self.index.add(row, record)
        self._created.add(record.thread_id)

    def best_status(self, messages) -> Optional[Status]:
        best: Optional[Status] = None
        for message in messages:
            status = self._classify(message.subject, message.body)
            if status is not None and (best is None or priority(status) > priority(best)):
                best = status
        return best

    def reconcile(self, summary: Optional[ScanSummary] = None) -> ScanSummary:
        summary = summary or ScanSummary()
        if self.index is None:
            self.load_index()
        for tracked in self.index:
            record = tracked.record
            if is_terminal(record.status) or record.thread_id in self._created:
                continue
            try:
                messages = self.mailbox.get_thread(record.thread_id).get_messages()
            except MailboxError as e:
                logger.warning("Skipping thread %s (%s): %s", record.thread_id, record.company, e)
                summary.failed += 1
                continue
            best = self.best_status(messages)
            if best is None or not is_advance(best, record.status):
                continue
            updated = record.advanced_to(best, self._now())
            logger.info("[UPDATE] %s | %s -> %s", record.company, record.status.value, best.value)
            if not self.config.dry_run:
                self.store.update_status(tracked.row, updated)
                self.store.color_row(tracked.row, best)
            self.index.replace(updated)
            summary.updated += 1
        return summary
