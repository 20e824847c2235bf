"""Failure reporting policy."""

from __future__ import annotations

import logging
from typing import List, Optional

from .errors import ErrorCategory, ErrorRecord, ErrorTracker

logger = logging.getLogger(__name__)


class ErrorPolicy:
    """Records recoverable failures and keeps the batch going.

    Fragment and leaf failures are reported here instead of being raised, so a
    partial translation is always preferred over aborting the whole run. When
    failures repeat, a single louder message is logged to point at the
    provider or its configuration.
    """

    def __init__(self) -> None:
        self.records: List[ErrorRecord] = []
        self.tracker = ErrorTracker()

    def record_success(self) -> None:
        """Reset consecutive counters after successful work."""

        self.tracker.reset_consecutive()

    def handle_error(
        self,
        category: ErrorCategory,
        message: str,
        details: Optional[str] = None,
    ) -> ErrorRecord:
        """Record a failure, log it, and return the stored record."""

        record = ErrorRecord(category=category, message=message, details=details)
        self.records.append(record)
        consecutive, total, threshold = self.tracker.register(category)

        if details:
            logger.warning("%s (%s)", message, details)
        else:
            logger.warning("%s", message)

        if threshold:
            if consecutive >= self.tracker.CONSECUTIVE_LIMIT:
                logger.error(
                    "Repeated %s failures (%d in a row). Check the provider "
                    "settings; untranslated text is kept where calls fail.",
                    category.name.lower(),
                    consecutive,
                )
            else:
                logger.error(
                    "%d failures so far in this run; output will be partially "
                    "untranslated.",
                    total,
                )
        return record

    @property
    def messages(self) -> List[str]:
        return [record.message for record in self.records]

    def count(self, category: Optional[ErrorCategory] = None) -> int:
        if category is None:
            return len(self.records)
        return self.tracker.per_category[category]
