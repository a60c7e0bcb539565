"""
Rate Limit Application Service

Maps endpoints to configured limits and runs the background reaper.
"""

import logging
from typing import Any, Callable, Optional

from ..config.settings import ShareConfig
from ..domain.rate_limiting import (
    ClientIdentifier,
    RateLimit,
    RateLimitDecision,
    RateLimitManager,
)
from ..infrastructure.scheduler import IntervalScheduler

logger = logging.getLogger(__name__)

UNKNOWN_CLIENT = "unknown"


class RateLimitService:
    """
    Application service for rate limit orchestration.

    Windows are process-local, so each application instance enforces its
    own limits.
    """

    def __init__(
        self,
        rate_limit_manager: RateLimitManager,
        config: ShareConfig,
        scheduler_factory: Callable[..., Any] = IntervalScheduler,
    ):
        """
        Initialize with domain manager and configuration.

        Args:
            rate_limit_manager: Domain service for rate limiting business logic
            config: Application configuration holding the limits
            scheduler_factory: Builds the reaper's background scheduler
        """
        self.manager = rate_limit_manager
        self.config = config
        self.scheduler_factory = scheduler_factory
        self._reaper = None

    def limit_for(self, endpoint: str) -> RateLimit:
        if endpoint == "upload":
            return self.config.upload_rate_limit
        return self.config.default_rate_limit

    def check_endpoint(
        self, client_id: Optional[str], endpoint: str
    ) -> Optional[RateLimitDecision]:
        """
        Count a request against the endpoint's limit.

        Args:
            client_id: Client identity, usually the IP address
            endpoint: Endpoint group (``upload`` or ``default``)

        Returns:
            The decision, or None when rate limiting is disabled

        Raises:
            RateLimitedError: If the limit is exceeded
        """
        if not self.config.rate_limit_enabled:
            return None
        identifier = ClientIdentifier(client_id or UNKNOWN_CLIENT)
        return self.manager.enforce(identifier, self.limit_for(endpoint))

    def start_reaper(self) -> None:
        if self._reaper is not None:
            return
        self._reaper = self.scheduler_factory(
            self.manager.reap,
            interval_seconds=self.config.rate_limit_reaper_minutes * 60,
            name="rate-limit-reaper",
        )
        self._reaper.start()
        logger.info(
            "Rate limit reaper scheduled every %d minute(s)",
            self.config.rate_limit_reaper_minutes,
        )

    def stop_reaper(self) -> None:
        if self._reaper is not None:
            self._reaper.shutdown()
            self._reaper = None
