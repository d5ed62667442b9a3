"""Header and URL policy for the passthrough proxy."""

from collections.abc import Iterable, Mapping
from typing import Any
from urllib.parse import unquote

from account_relay.auth.gate import AdminGate, ApiKeyVerifier
from account_relay.config.cors import CORSSettings


# Recomputed by the HTTP client for the outbound call
REQUEST_STRIP_HEADERS = frozenset(
    {"host", "connection", "content-length", "transfer-encoding", "expect"}
)

# Credentials for this service itself; the upstream only sees the account session
INBOUND_CREDENTIAL_HEADERS = frozenset(
    {"authorization", AdminGate.header_name, ApiKeyVerifier.header_name}
)

# Hop-by-hop headers never relayed back to the caller
RESPONSE_HOP_BY_HOP_HEADERS = frozenset(
    {"connection", "keep-alive", "transfer-encoding", "upgrade"}
)

REDACTED_HEADERS = frozenset({"authorization", "cookie", "x-api-key", "x-admin-key"})

BODYLESS_METHODS = frozenset({"GET", "HEAD"})


def normalize_token(token: str, prefix: str) -> str:
    """Ensure the session token carries ``prefix`` exactly once."""
    token = token.strip()
    if not prefix:
        return token
    while token.startswith(prefix + prefix):
        token = token[len(prefix) :]
    return token if token.startswith(prefix) else f"{prefix}{token}"


def strip_routing_prefix(path: str, prefix: str) -> str:
    """Remove ``prefix`` from the front of ``path`` once, on a segment boundary.

    ``/api/foo`` -> ``/foo``; ``/api`` -> ``""``; ``/apifoo`` is left alone.
    """
    if not prefix:
        return path
    if path == prefix:
        return ""
    if path.startswith(prefix + "/"):
        return path[len(prefix) :]
    return path


def build_upstream_url(base: str, path: str, query: str, prefix: str) -> str:
    """Join the target base with the inbound path minus the routing prefix."""
    url = base.rstrip("/") + strip_routing_prefix(path, prefix)
    if query:
        url = f"{url}?{query}"
    return url


def is_reserved_path(path: str, prefix: str, reserved: Iterable[str]) -> bool:
    """Whether ``path`` targets one of this service's own sub-paths.

    Percent-escapes are decoded first so an encoded name cannot slip past.
    """
    relative = unquote(strip_routing_prefix(path, prefix))
    for sub_path in reserved:
        if relative == sub_path or relative.startswith(sub_path + "/"):
            return True
    return False


def sanitize_request_headers(
    headers: Iterable[tuple[str, str]], authorization: str
) -> list[tuple[str, str]]:
    """Drop connection-management and inbound credential headers, then set authorization."""
    sanitized = [
        (name, value)
        for name, value in headers
        if name.lower() not in REQUEST_STRIP_HEADERS
        and name.lower() not in INBOUND_CREDENTIAL_HEADERS
    ]
    sanitized.append(("authorization", authorization))
    return sanitized


def filter_response_headers(
    headers: Iterable[tuple[str, str]],
) -> list[tuple[str, str]]:
    """Drop hop-by-hop headers from an upstream response."""
    return [
        (name, value)
        for name, value in headers
        if name.lower() not in RESPONSE_HOP_BY_HOP_HEADERS
    ]


def redact_headers(headers: Iterable[tuple[str, str]]) -> dict[str, str]:
    """Headers safe for logging."""
    return {
        name: ("****" if name.lower() in REDACTED_HEADERS else value)
        for name, value in headers
    }


def allowed_origin(cors: CORSSettings, origin: str | None) -> str | None:
    """The single value for ``Access-Control-Allow-Origin``, if any.

    A wildcard entry allows everyone; otherwise the caller's origin is
    reflected only when it is listed.
    """
    if "*" in cors.origins:
        return "*"
    if origin and origin in cors.origins:
        return origin
    return None


def cors_headers(cors: CORSSettings, origin: str | None = None) -> dict[str, str]:
    """Cross-origin headers attached to every proxied response."""
    headers = {
        "Vary": "Origin",
        "Access-Control-Allow-Methods": ",".join(cors.methods),
        "Access-Control-Allow-Headers": ", ".join(cors.headers),
        "Access-Control-Max-Age": str(cors.max_age),
    }
    allow_origin = allowed_origin(cors, origin)
    if allow_origin is not None:
        headers["Access-Control-Allow-Origin"] = allow_origin
    return headers


def raw_request_path(scope: Mapping[str, Any]) -> str:
    """The inbound path exactly as sent, percent-escapes intact.

    Falls back to the decoded ``path`` for servers that omit ``raw_path``.
    """
    raw_path = scope.get("raw_path")
    if not raw_path:
        return scope["path"]
    return raw_path.decode("latin-1").split("?", 1)[0]


def header_value(headers: Mapping[str, str] | Iterable[tuple[str, str]], name: str) -> str | None:
    """Case-insensitive header lookup over a mapping or pair list."""
    items = headers.items() if isinstance(headers, Mapping) else headers
    name = name.lower()
    for key, value in items:
        if key.lower() == name:
            return value
    return None
