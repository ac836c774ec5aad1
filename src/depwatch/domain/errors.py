"""Domain error hierarchy.

Client-fault errors (identifier and ingest errors) map to 400 responses; integrity
violations are system faults and map to 500.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from enum import StrEnum

    from depwatch.domain.model.enums import RejectionReason


class DepwatchError(Exception):
    """Base class for errors raised by the domain."""


class IdentifierValidationError(DepwatchError, ValueError):
    """Raised when an event identifier fails validation."""

    def __init__(self, reason: RejectionReason, message: str) -> None:
        super().__init__(message)
        self.reason = reason
        self.message = message


class IngestError(DepwatchError):
    """The submitted archive cannot be turned into a dependency graph."""


class ArchiveError(IngestError):
    """The archive could not be stored or extracted."""


class BundleError(IngestError):
    """No complete file bundle was found in the archive."""


class DataFileParseError(IngestError):
    """A single data file could not be parsed."""


class GraphBuildError(IngestError):
    """No usable, non-empty dependency graph could be built."""


class IntegrityViolationError(DepwatchError):
    """Stored state contradicts an invariant, e.g. several rows for a unique key."""


class DuplicateEventError(DepwatchError):
    """An event with the same purl is already stored."""

    def __init__(self, purl: str) -> None:
        super().__init__(f"event {purl} already stored")
        self.purl = purl


class IllegalTransitionError(DepwatchError):
    """Raised when a status change is not allowed by the entity's state machine."""

    def __init__(self, entity: str, current: StrEnum, target: StrEnum) -> None:
        super().__init__(f"{entity} cannot move from {current} to {target}")
        self.entity = entity
        self.current = current
        self.target = target
