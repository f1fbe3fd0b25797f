"""Fingerprints for tool invocations and fixed-size text windows.

Digests are compact comparison keys, not a security boundary. Callers that act
on a digest match must still compare the underlying content.
"""

from __future__ import annotations

import hashlib
import json
import logging
from collections.abc import Mapping
from typing import Any

from json_repair import repair_json

logger = logging.getLogger(__name__)


class ContentHasher:
    """Provides methods for generating hashes of content."""

    def hash(self, content: str) -> str:
        """Generates a SHA256 hash of the given content."""
        return hashlib.sha256(content.encode("utf-8")).hexdigest()


_hasher = ContentHasher()


def _plain_mapping(value: Any) -> dict[str, Any]:
    # Read-only and custom mappings are valid argument containers
    if isinstance(value, Mapping):
        return dict(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def canonical_arguments(arguments: Mapping[str, Any] | str | None) -> str | None:
    """Serialize tool arguments with a stable key order.

    JSON strings (as streamed by OpenAI-style providers) are repaired and
    re-dumped so that ``'{"b": 1, "a": 2}'`` and ``{"a": 2, "b": 1}`` agree.

    Returns:
        The canonical string, or None when the arguments cannot be serialized.
    """
    if arguments is None:
        return json.dumps({})

    if isinstance(arguments, str):
        # Only object and array payloads are repaired; anything else would be
        # coerced to an empty value and lose its identity
        if not arguments.lstrip().startswith(("{", "[")):
            return arguments
        try:
            parsed = json.loads(repair_json(arguments))
        except (json.JSONDecodeError, TypeError, ValueError):
            return arguments
        if not isinstance(parsed, (dict, list)):
            return arguments
        return json.dumps(parsed, sort_keys=True)

    try:
        return json.dumps(dict(arguments), sort_keys=True, default=_plain_mapping)
    except (TypeError, ValueError) as exc:
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("Tool arguments are not serializable: %s", exc)
        return None


def signature_of(
    tool_name: str, arguments: Mapping[str, Any] | str | None
) -> str | None:
    """Fingerprint a tool invocation by name and canonical arguments.

    The call id is not part of the signature: a loop repeats the call itself,
    not the request envelope around it.
    """
    canonical = canonical_arguments(arguments)
    if canonical is None:
        return None
    return _hasher.hash(f"{tool_name}:{canonical}")


def chunk_digest(text: str) -> str:
    """Fingerprint one fixed-size content window."""
    return _hasher.hash(text)
