"""Validation of datasource event identifiers.

An event identifier is a generic package URL of the form::

    pkg:generic/{domain}/{repository}::{branch}@{datasource type}
        ?commithash={sha}&commitdatetime={iso-8601}

Validation is a pure function: it either returns an ``EventIdentifier`` or raises
``IdentifierValidationError`` carrying a ``RejectionReason``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from typing import Final

from packageurl import PackageURL

from depwatch.domain.errors import IdentifierValidationError
from depwatch.domain.model.enums import RejectionReason

WILDCARD_DOMAIN: Final[str] = "*"
NAME_SEPARATOR: Final[str] = "::"
COMMIT_HASH_KEY: Final[str] = "commithash"
COMMIT_DATETIME_KEY: Final[str] = "commitdatetime"
REQUIRED_QUALIFIERS: Final[frozenset[str]] = frozenset({COMMIT_HASH_KEY, COMMIT_DATETIME_KEY})

MAX_COMPONENT_LENGTH: Final[int] = 256
MAX_NAME_LENGTH: Final[int] = 512

_ALLOWED = re.compile(r"^[-a-zA-Z0-9._/\\%:]+$")
_SHA1 = re.compile(r"^[a-fA-F0-9]{40}$")
_SHA256 = re.compile(r"^[a-fA-F0-9]{64}$")


@dataclass(frozen=True, slots=True)
class EventIdentifier:
    """A validated datasource event identifier."""

    domain: str
    repository: str
    branch: str
    datasource_type: str
    commit_hash: str
    commit_datetime: datetime
    event_purl: str
    datasource_purl: str

    @property
    def packed_name(self) -> str:
        return f"{self.repository}{NAME_SEPARATOR}{self.branch}"


def _reject(reason: RejectionReason, message: str) -> IdentifierValidationError:
    return IdentifierValidationError(reason, message)


def _is_allowed(value: str | None, *, max_length: int = MAX_COMPONENT_LENGTH) -> bool:
    if not value or len(value) > max_length:
        return False
    return _ALLOWED.match(value) is not None


def _parse_commit_datetime(value: str) -> datetime | None:
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        return None
    return parsed


def validate_event_identifier(candidate: str, *, expected_domain: str) -> EventIdentifier:
    """Validate ``candidate`` against the identifier rules and the expected domain.

    ``expected_domain`` of ``"*"`` accepts any well-formed domain.
    """

    try:
        purl = PackageURL.from_string(candidate.strip())
    except ValueError as exc:
        raise _reject(RejectionReason.MALFORMED_PURL, "DatasourceEvent purl malformed") from exc

    if purl.type != "generic":
        raise _reject(
            RejectionReason.NOT_GENERIC,
            f"DatasourceEvent purl type must be 'generic', got {purl.type!r}",
        )

    domain = purl.namespace
    if domain is None or not _is_allowed(domain):
        raise _reject(RejectionReason.INVALID_DOMAIN, "DatasourceEvent purl domain is invalid")
    if expected_domain != WILDCARD_DOMAIN and domain != expected_domain:
        raise _reject(
            RejectionReason.UNEXPECTED_DOMAIN,
            f"DatasourceEvent purl domain {domain!r} does not match {expected_domain!r}",
        )

    name = purl.name
    if len(name) > MAX_NAME_LENGTH or name.count(NAME_SEPARATOR) != 1:
        raise _reject(RejectionReason.INVALID_NAME, "DatasourceEvent purl name is invalid")
    repository, _, branch = name.partition(NAME_SEPARATOR)
    if not (_is_allowed(repository) and _is_allowed(branch)):
        raise _reject(RejectionReason.INVALID_NAME, "DatasourceEvent purl name is invalid")

    datasource_type = purl.version
    if datasource_type is None or not _is_allowed(datasource_type):
        raise _reject(
            RejectionReason.INVALID_DATASOURCE_TYPE,
            "DatasourceEvent purl datasource type is invalid",
        )

    if purl.subpath:
        raise _reject(
            RejectionReason.SUBPATH_PRESENT, "DatasourceEvent purl must not carry a subpath"
        )

    qualifiers = purl.qualifiers
    if not isinstance(qualifiers, dict) or set(qualifiers) != REQUIRED_QUALIFIERS:
        raise _reject(
            RejectionReason.INVALID_QUALIFIERS, "eventDatasource purl qualifiers are invalid."
        )

    commit_hash = qualifiers[COMMIT_HASH_KEY]
    if not (_SHA1.match(commit_hash) or _SHA256.match(commit_hash)):
        raise _reject(
            RejectionReason.INVALID_COMMIT_HASH,
            "qualifier datasourceCommitHash is not valid git hash.",
        )

    commit_datetime = _parse_commit_datetime(qualifiers[COMMIT_DATETIME_KEY])
    if commit_datetime is None:
        raise _reject(
            RejectionReason.INVALID_COMMIT_DATETIME,
            "qualifier datasourceCommitDatetime is not valid.",
        )

    datasource_purl = PackageURL(
        type=purl.type, namespace=domain, name=name, version=datasource_type
    ).to_string()
    return EventIdentifier(
        domain=domain,
        repository=repository,
        branch=branch,
        datasource_type=datasource_type,
        commit_hash=commit_hash,
        commit_datetime=commit_datetime,
        event_purl=purl.to_string(),
        datasource_purl=datasource_purl,
    )
