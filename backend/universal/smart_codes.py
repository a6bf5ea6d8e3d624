# universal/smart_codes.py
"""
Smart code validation.

Every row in the six universal tables carries a smart code: a dotted,
versioned classification string such as

    HERA.SALON.CUSTOMER.ENTITY.REGULAR.V1

Grammar:
    HERA.<DOMAIN>.<SEG>.<SEG>.<SEG>[.<SEG> ...].V<digits>

- DOMAIN is 3-15 characters of [A-Z0-9_]
- every other segment is 2-30 characters of [A-Z0-9_]
- 6 to 10 dot-separated segments in total, counting HERA and the version
- the version marker is normalized to an uppercase "V"

The trailing version is the only schema-versioning mechanism in the system:
consumers branch on it instead of on table migrations.

validate() is pure and total. It never raises and never touches storage.
"""

import re
from dataclasses import dataclass, field
from typing import List, Optional


PREFIX = "HERA"
MIN_SEGMENTS = 6
MAX_SEGMENTS = 10

_DOMAIN_RE = re.compile(r"^[A-Z0-9_]{3,15}$")
_SEGMENT_RE = re.compile(r"^[A-Z0-9_]{2,30}$")
_VERSION_RE = re.compile(r"^[vV]([0-9]+)$")


class Rule:
    TYPE = "type"
    PREFIX = "prefix"
    SEGMENT_COUNT = "segment_count"
    DOMAIN_SEGMENT = "domain_segment"
    SEGMENT_FORMAT = "segment_format"
    VERSION = "version"


class InvalidSmartCode(ValueError):
    """Raised by normalize() when a smart code fails validation."""

    def __init__(self, code, errors):
        self.code = code
        self.errors = errors
        messages = "; ".join(issue.message for issue in errors)
        super().__init__(f"Invalid smart code {code!r}: {messages}")


@dataclass(frozen=True)
class SmartCodeIssue:
    rule: str
    message: str


@dataclass(frozen=True)
class SmartCodeValidation:
    valid: bool
    normalized: Optional[str] = None
    errors: List[SmartCodeIssue] = field(default_factory=list)

    @property
    def rules_failed(self) -> List[str]:
        return [issue.rule for issue in self.errors]

    def to_dict(self) -> dict:
        return {
            "valid": self.valid,
            "normalized": self.normalized,
            "errors": [{"rule": e.rule, "message": e.message} for e in self.errors],
        }


def validate(code) -> SmartCodeValidation:
    """
    Validate a smart code and report every rule it breaks.

    Returns:
        SmartCodeValidation with valid=True and the normalized code, or
        valid=False and one SmartCodeIssue per failed rule.
    """
    if not isinstance(code, str) or not code.strip():
        return SmartCodeValidation(
            valid=False,
            errors=[SmartCodeIssue(Rule.TYPE, "Smart code must be a non-empty string.")],
        )

    code = code.strip()
    segments = code.split(".")
    errors = []

    if segments[0] != PREFIX:
        errors.append(SmartCodeIssue(Rule.PREFIX, f"Smart code must start with '{PREFIX}.'."))

    if not MIN_SEGMENTS <= len(segments) <= MAX_SEGMENTS:
        errors.append(SmartCodeIssue(
            Rule.SEGMENT_COUNT,
            f"Smart code must have {MIN_SEGMENTS}-{MAX_SEGMENTS} segments, got {len(segments)}.",
        ))

    if len(segments) >= 2 and not _DOMAIN_RE.match(segments[1]):
        errors.append(SmartCodeIssue(
            Rule.DOMAIN_SEGMENT,
            f"Domain segment '{segments[1]}' must be 3-15 characters of A-Z, 0-9 or _.",
        ))

    bad_segments = [seg for seg in segments[2:-1] if not _SEGMENT_RE.match(seg)]
    if bad_segments:
        errors.append(SmartCodeIssue(
            Rule.SEGMENT_FORMAT,
            "Segments must be 2-30 characters of A-Z, 0-9 or _: "
            + ", ".join(repr(seg) for seg in bad_segments),
        ))

    version_match = _VERSION_RE.match(segments[-1]) if len(segments) > 1 else None
    if version_match is None:
        errors.append(SmartCodeIssue(
            Rule.VERSION,
            "Smart code must end with a version marker such as 'V1'.",
        ))

    if errors:
        return SmartCodeValidation(valid=False, errors=errors)

    normalized = ".".join(segments[:-1] + [f"V{version_match.group(1)}"])
    return SmartCodeValidation(valid=True, normalized=normalized)


def is_valid(code) -> bool:
    return validate(code).valid


def normalize(code) -> str:
    """Return the normalized form of a smart code or raise InvalidSmartCode."""
    result = validate(code)
    if not result.valid:
        raise InvalidSmartCode(code, result.errors)
    return result.normalized


def version_of(code) -> int:
    """Numeric version of a valid smart code (HERA....V3 -> 3)."""
    return int(normalize(code).rsplit(".", 1)[1][1:])


def with_version(code, version: int) -> str:
    """Return the same classification with a different version marker."""
    base = normalize(code).rsplit(".", 1)[0]
    return normalize(f"{base}.V{version}")
