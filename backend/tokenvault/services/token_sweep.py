"""Token sweep service - periodically removes expired credential records."""

import asyncio
import threading
from typing import Optional

from tokenvault.core.logging import get_logger
from tokenvault.core.retry import RetryConfig, retry_async
from tokenvault.services.token import TokenService

logger = get_logger("token_sweep")

# How often to run the sweep (in seconds)
DEFAULT_SWEEP_INTERVAL_SECONDS = 300  # 5 minutes


class TokenSweepService:
    """Background service that sweeps expired credential records."""

    _instance: Optional["TokenSweepService"] = None
    _instance_lock: threading.Lock = threading.Lock()
    _task: asyncio.Task | None = None

    def __init__(
        self,
        token_service: TokenService | None = None,
        interval_seconds: int = DEFAULT_SWEEP_INTERVAL_SECONDS,
        retry_config: RetryConfig | None = None,
    ):
        self._running = False
        self._token_service = token_service
        self._interval_seconds = interval_seconds
        self._retry_config = retry_config or RetryConfig()
        self.last_swept: int | None = None

    @classmethod
    def get_instance(cls) -> "TokenSweepService":
        """Get singleton instance of the sweep service (thread-safe)."""
        if cls._instance is None:
            with cls._instance_lock:
                # Double-check locking pattern
                if cls._instance is None:
                    cls._instance = cls()
        return cls._instance

    def configure(self, token_service: TokenService, interval_seconds: int) -> None:
        """Attach the token service and interval (done once at startup)."""
        self._token_service = token_service
        self.interval_seconds = interval_seconds

    @property
    def interval_seconds(self) -> int:
        return self._interval_seconds

    @interval_seconds.setter
    def interval_seconds(self, value: int) -> None:
        """Set sweep interval in seconds (minimum 1 second)."""
        self._interval_seconds = max(1, value)

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start the background sweep task."""
        if self._token_service is None:
            raise RuntimeError("Token sweep service has no token service configured")
        if self._running:
            logger.warning("Token sweep service is already running")
            return

        self._running = True
        TokenSweepService._task = asyncio.create_task(self._sweep_loop())
        logger.info(f"Token sweep service started (interval: {self._interval_seconds}s)")

    async def stop(self) -> None:
        """Stop the background sweep task."""
        self._running = False
        if TokenSweepService._task:
            TokenSweepService._task.cancel()
            try:
                await TokenSweepService._task
            except asyncio.CancelledError:
                pass
            TokenSweepService._task = None
        logger.info("Token sweep service stopped")

    async def _sweep_loop(self) -> None:
        """Main loop that periodically sweeps expired records."""
        while self._running:
            try:
                await self.run_sweep_now()
            except Exception as e:
                logger.error(f"Error in token sweep: {e}")

            await asyncio.sleep(self._interval_seconds)

    async def run_sweep_now(self) -> int:
        """Run one sweep, retrying while the store is unavailable.

        Returns:
            Number of records deleted
        """
        if self._token_service is None:
            raise RuntimeError("Token sweep service has no token service configured")

        deleted = await retry_async(self._token_service.sweep, config=self._retry_config)
        self.last_swept = deleted
        if deleted > 0:
            logger.info(f"Token sweep: deleted {deleted} expired credential records")
        return deleted
