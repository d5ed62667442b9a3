"""Passthrough dispatcher forwarding inbound requests on behalf of pool accounts."""

import time
from collections.abc import Iterable
from dataclasses import dataclass

import httpx
from structlog import get_logger

from account_relay.accounts.store import CredentialStore
from account_relay.config.upstream import ProxySettings, UpstreamSettings
from account_relay.exceptions import (
    NoHealthyAccount,
    NotFoundError,
    ServiceUnavailableError,
    TransportError,
    TransportTimeout,
)
from account_relay.proxy.headers import (
    BODYLESS_METHODS,
    build_upstream_url,
    header_value,
    is_reserved_path,
    normalize_token,
    redact_headers,
    sanitize_request_headers,
)
from account_relay.proxy.target import ProxyTarget
from account_relay.rotation.selector import AccountSelector


logger = get_logger(__name__)


@dataclass(frozen=True)
class UpstreamResponse:
    """An upstream response relayed verbatim (status, headers, raw body)."""

    status_code: int
    headers: list[tuple[str, str]]
    body: bytes
    account: str


def body_snippet(body: bytes | None, content_type: str | None, limit: int) -> str:
    """Truncated, text-only rendering of a body for logs."""
    if not body:
        return ""
    ct = (content_type or "").lower()
    if ct and "json" not in ct and not ct.startswith("text/"):
        return "[non-text content omitted]"
    text = body.decode("utf-8", errors="replace")
    if len(text) > limit:
        return f"{text[:limit]}...({len(body)}B)"
    return text


class Dispatcher:
    """Forwards requests upstream with a rotated account's session.

    Only transport failures are errors here; any HTTP status from the
    upstream, 4xx and 5xx included, is a successful round-trip and is relayed
    to the caller as-is.
    """

    def __init__(
        self,
        store: CredentialStore,
        selector: AccountSelector,
        target: ProxyTarget,
        upstream: UpstreamSettings,
        proxy: ProxySettings,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the dispatcher.

        Args:
            store: Account pool to pick from
            selector: Round-robin picker
            target: Runtime upstream base address
            upstream: Timeout and token prefix settings
            proxy: Routing prefix, reserved paths and body logging settings
            http_client: Optional client to use instead of an owned one
        """
        self.store = store
        self.selector = selector
        self.target = target
        self.upstream = upstream
        self.proxy = proxy
        self._owns_client = http_client is None
        self._http_client = http_client or httpx.AsyncClient(
            timeout=upstream.timeout_seconds,
            follow_redirects=False,
        )

    async def aclose(self) -> None:
        """Close the HTTP client if this dispatcher created it."""
        if self._owns_client:
            await self._http_client.aclose()

    async def dispatch(
        self,
        method: str,
        path: str,
        query: str,
        headers: Iterable[tuple[str, str]],
        body: bytes | None,
    ) -> UpstreamResponse:
        """Forward one inbound request.

        Raises:
            ServiceUnavailableError: If no upstream target is configured
            NotFoundError: If the path targets one of this service's own routes
            NoHealthyAccount: If no account holds a session
            TransportTimeout: If the upstream call times out
            TransportError: If the upstream call fails at the transport level
        """
        base = self.target.get()
        if not base:
            raise ServiceUnavailableError("proxy target not configured")

        if is_reserved_path(path, self.proxy.routing_prefix, self.proxy.reserved_paths):
            raise NotFoundError()

        account = self.selector.select(self.store)
        if account is None or not account.session_token:
            raise NoHealthyAccount()

        token = normalize_token(account.session_token, self.upstream.token_prefix)
        url = build_upstream_url(base, path, query, self.proxy.routing_prefix)
        outbound_headers = sanitize_request_headers(headers, f"Bearer {token}")
        method = method.upper()
        content = None if method in BODYLESS_METHODS else (body or None)

        log_fields: dict[str, object] = {
            "account": account.identifier,
            "headers": redact_headers(outbound_headers),
            "body_size": len(content) if content else 0,
        }
        if self.proxy.log_body:
            log_fields["body_snippet"] = body_snippet(
                content,
                header_value(outbound_headers, "content-type"),
                self.proxy.log_body_max,
            )
        logger.info("proxy_request", method=method, url=url, **log_fields)

        start = time.perf_counter()
        try:
            request = self._http_client.build_request(
                method,
                url,
                headers=outbound_headers,
                content=content,
                timeout=self.upstream.timeout_seconds,
            )
            response = await self._http_client.send(request, stream=True)
            try:
                raw = b"".join([chunk async for chunk in response.aiter_raw()])
            finally:
                await response.aclose()
        except httpx.TimeoutException as e:
            detail = self._scrub(str(e) or type(e).__name__, token)
            logger.error("proxy_upstream_timeout", url=url, account=account.identifier, error=detail)
            raise TransportTimeout(detail) from e
        except httpx.TransportError as e:
            detail = self._scrub(str(e) or type(e).__name__, token)
            logger.error("proxy_upstream_error", url=url, account=account.identifier, error=detail)
            raise TransportError(detail) from e

        duration_ms = round((time.perf_counter() - start) * 1000, 2)
        response_headers = list(response.headers.multi_items())
        content_type = response.headers.get("content-type", "")

        response_fields: dict[str, object] = {
            "content_type": content_type,
            "response_size": len(raw),
        }
        if self.proxy.log_body:
            response_fields["body_snippet"] = body_snippet(
                raw, content_type, self.proxy.log_body_max
            )
        logger.info(
            "proxy_response",
            status_code=response.status_code,
            url=url,
            duration_ms=duration_ms,
            **response_fields,
        )

        return UpstreamResponse(
            status_code=response.status_code,
            headers=response_headers,
            body=raw,
            account=account.identifier,
        )

    @staticmethod
    def _scrub(message: str, token: str) -> str:
        """Keep session tokens out of error details."""
        if token and token in message:
            message = message.replace(token, "****")
        return message
