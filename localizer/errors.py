"""Error definitions and failure bookkeeping for the Localizer translator."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional


class ErrorCategory(Enum):
    """Categorises recoverable failures so they can be reported consistently."""

    TRANSLATION = auto()
    RECONSTRUCTION = auto()
    SERIALIZATION = auto()
    FILE_IO = auto()
    OTHER = auto()


class LocalizerError(Exception):
    """Base exception for all custom errors."""


class ProjectConfigurationError(LocalizerError):
    """Raised when the project file is missing or malformed."""


class TranslationProviderConfigurationError(LocalizerError):
    """Raised when the translation provider is misconfigured."""


class TranslationProviderError(LocalizerError):
    """Raised when the translation provider fails to answer."""


class ReconstructionError(LocalizerError):
    """Raised when translated fragments cannot be substituted into a template."""


class SerializationError(LocalizerError):
    """Raised when a translated tree cannot be re-encoded."""


class OverwriteRefusedError(LocalizerError):
    """Raised when an output file would overwrite the source or existing output."""


@dataclass
class ErrorRecord:
    """Stores context for a handled error."""

    category: ErrorCategory
    message: str
    details: Optional[str] = None


class ErrorTracker:
    """Counts failures per category and flags runs of repeated failures."""

    CONSECUTIVE_LIMIT = 3
    TOTAL_LIMIT = 10

    def __init__(self) -> None:
        self.last_category: Optional[ErrorCategory] = None
        self.consecutive: int = 0
        self.per_category: Counter[ErrorCategory] = Counter()

    @property
    def total(self) -> int:
        return sum(self.per_category.values())

    def register(self, category: ErrorCategory) -> tuple[int, int, bool]:
        """Register a failure and return (consecutive, total, threshold_reached)."""

        if self.last_category == category:
            self.consecutive += 1
        else:
            self.last_category = category
            self.consecutive = 1
        self.per_category[category] += 1

        total = self.total
        threshold_reached = (
            self.consecutive == self.CONSECUTIVE_LIMIT
            or total == self.TOTAL_LIMIT
        )
        return self.consecutive, total, threshold_reached

    def reset_consecutive(self) -> None:
        """Forget the current failure run after successful work."""

        self.consecutive = 0
        self.last_category = None
