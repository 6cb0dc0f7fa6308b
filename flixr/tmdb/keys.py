"""Cache key derivation and payload serialization.

A cache key identifies one logical upstream request:

    <namespace>:<category>:<path>:<canonical params>

Parameters are normalized (absent and blank values dropped, constant
deployment parameters removed) and serialized as sorted-key compact JSON,
so the same request maps to the same key whatever order the caller built
its parameters in. JSON keeps value types apart (``1``, ``"1"``, ``true``
and ``1.0`` all encode differently), so requests that differ in any value
never share a key.
"""

import json
import logging
from collections.abc import Mapping
from typing import Any

from flixr.core.exceptions import SerializationError

logger = logging.getLogger(__name__)

# Constant per-deployment parameters added by the upstream client. They are
# never part of a logical request, so callers cannot set them.
FIXED_PARAM_NAMES = frozenset({"api_key", "adult"})

KEY_SEPARATOR = ":"


def normalize_params(params: Mapping[str, Any] | None) -> dict[str, Any]:
    """Drop absent, blank and reserved parameters.

    ``None`` and strings that are empty after stripping whitespace are
    removed so that leaving a parameter out and passing it empty produce
    the same request. Other values are kept as-is (no type coercion).

    Args:
        params: Caller-supplied query parameters

    Returns:
        New dict with only meaningful parameters

    Example:
        >>> normalize_params({"page": 1, "year": None, "sort_by": " "})
        {'page': 1}
    """
    if not params:
        return {}

    normalized: dict[str, Any] = {}
    for name, value in params.items():
        if value is None:
            continue
        if isinstance(value, str) and not value.strip():
            continue
        if name in FIXED_PARAM_NAMES:
            logger.debug(f"Ignoring reserved upstream parameter {name!r}")
            continue
        normalized[str(name)] = value
    return normalized


def canonicalize(params: Mapping[str, Any]) -> str:
    """Encode normalized parameters as order-independent text.

    Example:
        >>> canonicalize({"page": 2, "query": "dune"})
        '{"page":2,"query":"dune"}'
        >>> canonicalize({"query": "dune", "page": 2})
        '{"page":2,"query":"dune"}'
    """
    return json.dumps(
        dict(params),
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=str,
    )


def normalize_path(path: str) -> str:
    """Return an upstream-relative path with exactly one leading slash."""
    cleaned = path.strip()
    return "/" + cleaned.lstrip("/")


def build_cache_key(
    namespace: str,
    category: str,
    path: str,
    params: Mapping[str, Any] | None = None,
) -> str:
    """Derive the cache key for a logical upstream request.

    Args:
        namespace: Fixed key prefix (e.g. "tmdb")
        category: Request category tag ("search", "details", "popular", "raw")
        path: Upstream-relative path
        params: Query parameters (normalized here if not already)

    Returns:
        Deterministic cache key string
    """
    canonical = canonicalize(normalize_params(params))
    return KEY_SEPARATOR.join([namespace, category, normalize_path(path), canonical])


def serialize_payload(payload: Any) -> str:
    """Serialize an upstream payload for storage.

    Raises:
        SerializationError: Payload is not JSON-serializable
    """
    try:
        return json.dumps(payload, separators=(",", ":"), ensure_ascii=False)
    except (TypeError, ValueError) as e:
        raise SerializationError(f"Payload is not JSON-serializable: {e}") from e


def deserialize_payload(data: str) -> Any:
    """Deserialize a stored payload.

    Raises:
        SerializationError: Stored text is not valid JSON
    """
    try:
        return json.loads(data)
    except (TypeError, ValueError) as e:
        raise SerializationError(f"Cached payload is unreadable: {e}") from e
