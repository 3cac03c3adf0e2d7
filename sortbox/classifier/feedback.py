"""Storage and lookup of user corrections."""

import logging
import threading
from collections.abc import Iterable
from datetime import datetime

from ..models import ClassifiableItem, FeedbackRecord
from .utils import tokenize

logger = logging.getLogger("sortbox.classifier.feedback")


class FeedbackStore:
    """Keeps one correction per (sender address, subject), last write wins."""

    MIN_SUBJECT_WORD_LENGTH = 3  # Subject words must be longer than this
    MIN_SHARED_SUBJECT_WORDS = 2

    def __init__(self) -> None:
        self._lock = threading.Lock()
        # Dict order is insertion order; replacing a key keeps its position
        self._records: dict[tuple[str, str], FeedbackRecord] = {}

    def add(
        self,
        item: ClassifiableItem,
        correct_bucket: str,
        recorded_at: datetime | None = None,
    ) -> bool:
        """Store a correction. Returns True if an existing record was replaced."""
        record = FeedbackRecord(
            item=item,
            correct_bucket=correct_bucket,
            recorded_at=recorded_at or datetime.now(),
        )
        return self._upsert(record)

    def import_records(self, records: Iterable[FeedbackRecord]) -> int:
        """Store previously exported records. Returns how many were new."""
        added = 0
        for record in records:
            if not self._upsert(record):
                added += 1
        return added

    def _upsert(self, record: FeedbackRecord) -> bool:
        with self._lock:
            replaced = record.key in self._records
            self._records[record.key] = record

        logger.debug(
            "%s feedback: %s -> %s",
            "Updated" if replaced else "Added",
            record.item.sender_address,
            record.correct_bucket,
            extra={
                "sender": record.item.sender_address,
                "bucket": record.correct_bucket,
                "replaced": replaced,
            },
        )
        return replaced

    def find_similar(self, item: ClassifiableItem) -> FeedbackRecord | None:
        """
        Find a stored correction that resembles the item.

        An exact sender match (case-insensitive) wins. Otherwise the first
        record, in insertion order, whose subject shares enough words with
        the item's subject is returned.
        """
        records = self.all_records()

        sender = item.sender_address.lower()
        for record in records:
            if record.item.sender_address.lower() == sender:
                return record

        # Repeated words in the item's subject count once per occurrence
        subject_words = tokenize(item.subject, self.MIN_SUBJECT_WORD_LENGTH)
        for record in records:
            record_words = set(tokenize(record.item.subject, self.MIN_SUBJECT_WORD_LENGTH))
            shared = [word for word in subject_words if word in record_words]
            if len(shared) >= self.MIN_SHARED_SUBJECT_WORDS:
                return record

        return None

    def all_records(self) -> list[FeedbackRecord]:
        """Get all records in insertion order."""
        with self._lock:
            return list(self._records.values())

    def group_by_bucket(self) -> dict[str, list[FeedbackRecord]]:
        """Group records by their correct bucket."""
        grouped: dict[str, list[FeedbackRecord]] = {}
        for record in self.all_records():
            grouped.setdefault(record.correct_bucket, []).append(record)
        return grouped

    def clear(self) -> None:
        """Remove all records."""
        with self._lock:
            self._records.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
