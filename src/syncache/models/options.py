"""Per-subscription synchronization options."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_TTL = 300.0
DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRY_BASE_DELAY = 1.0


class SyncOptions(BaseModel):
    """How a key is cached, revalidated and retried.

    Parameters:
        ttl: Seconds a fetched value is considered fresh.
        stale_while_revalidate: Serve a stale value immediately while a
            background fetch refreshes it. When disabled a stale value is
            treated as a miss.
        max_retries: Total number of attempts per fetch cycle (at least 1).
        retry_base_delay: Base of the exponential backoff in seconds. The
            wait after failed attempt ``n`` is ``retry_base_delay * 2**n``.
    """

    model_config = ConfigDict(frozen=True)

    ttl: float = Field(default=DEFAULT_TTL, gt=0)
    stale_while_revalidate: bool = True
    max_retries: int = Field(default=DEFAULT_MAX_RETRIES, ge=1)
    retry_base_delay: float = Field(default=DEFAULT_RETRY_BASE_DELAY, ge=0)

    def backoff_delay(self, attempt: int) -> float:
        """Delay in seconds to wait after failed attempt number ``attempt`` (0-based)."""
        return self.retry_base_delay * (2**attempt)

    def merged(self, overrides: SyncOptions | None) -> SyncOptions:
        """Return ``overrides`` layered over these options.

        Only fields explicitly set on ``overrides`` replace values from ``self``.
        """
        if overrides is None:
            return self
        return self.model_copy(update=overrides.model_dump(exclude_unset=True))
