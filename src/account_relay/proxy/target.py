"""Runtime-configurable upstream base address."""

from structlog import get_logger


logger = get_logger(__name__)


class ProxyTarget:
    """Holds the base URL proxied requests are forwarded to.

    An empty value means the proxy is not configured.
    """

    def __init__(self, initial: str = "") -> None:
        self._target = self._normalize(initial)

    @staticmethod
    def _normalize(value: str | None) -> str:
        return (value or "").strip().rstrip("/")

    def get(self) -> str:
        return self._target

    def set(self, value: str) -> str:
        """Replace the target; returns the normalized value."""
        previous = self._target
        self._target = self._normalize(value)
        logger.info("proxy_target_updated", previous=previous or None, target=self._target or None)
        return self._target

    @property
    def configured(self) -> bool:
        return bool(self._target)
