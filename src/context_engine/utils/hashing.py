"""Content and fact-set hashing utilities for deduplication and change detection."""

import hashlib
import json
from typing import Any, Mapping


def calculate_content_hash(content: str | bytes) -> str:
    """
    Calculate SHA-256 hash of content.

    Args:
        content: String or bytes content to hash

    Returns:
        Hexadecimal string representation of the SHA-256 hash (64 characters)
    """
    if isinstance(content, str):
        content = content.encode("utf-8")

    return hashlib.sha256(content).hexdigest()


def _canonicalize(value: Any) -> Any:
    """Convert sets to sorted lists so they serialize deterministically."""
    if isinstance(value, Mapping):
        return {str(k): _canonicalize(v) for k, v in value.items()}
    if isinstance(value, (set, frozenset)):
        return sorted(_canonicalize(v) for v in value)
    if isinstance(value, (list, tuple)):
        return [_canonicalize(v) for v in value]
    return value


def to_json_value(value: Any) -> Any:
    """
    Coerce a parsed manifest value into something a JSON column accepts.

    Mappings and sequences are converted recursively; scalars that JSON has no
    type for (TOML dates and times, for instance) become their string form.

    Examples:
        >>> import datetime
        >>> to_json_value({"foo": datetime.date(2024, 1, 1)})
        {'foo': '2024-01-01'}
    """
    if value is None or isinstance(value, (str, bool, int, float)):
        return value
    if isinstance(value, Mapping):
        return {str(k): to_json_value(v) for k, v in value.items()}
    if isinstance(value, (set, frozenset)):
        return sorted(to_json_value(v) for v in value)
    if isinstance(value, (list, tuple)):
        return [to_json_value(v) for v in value]
    return str(value)


def canonical_json(facts: Mapping[str, Any]) -> str:
    """
    Serialize a fact mapping to canonical JSON.

    Keys are sorted at every nesting level and separators are compact, so two
    mappings holding the same facts in a different insertion order produce
    identical text.
    """
    return json.dumps(
        _canonicalize(facts), sort_keys=True, separators=(",", ":"), default=str
    )


def calculate_facts_fingerprint(facts: Mapping[str, Any]) -> str:
    """
    Calculate the fingerprint of a detected tech-stack fact set.

    Args:
        facts: Mapping of detected facts (languages, frameworks, build tools...)

    Returns:
        Hexadecimal SHA-256 digest (64 characters) of the canonical serialization
    """
    return calculate_content_hash(canonical_json(facts))
