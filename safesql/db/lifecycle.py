"""Lifecycle of the single connection owned by a Database instance.

The manager connects lazily, trusts a connection that was used recently,
pings one that has been idle longer than the idle threshold and reconnects a
bounded number of times with a fixed delay between attempts. A failed state
is not sticky: the next acquire starts the attempt loop again.

While a transaction is open a lost connection is never replaced silently:
the server has already rolled the transaction back, so the loss is reported.

Instances are not thread safe; confine each one to a single thread.
"""

import logging
import time
from enum import Enum
from typing import Callable, Optional

from safesql.config.models import ConnectionPolicy, DatabaseConfig
from safesql.db.client import DatabaseClient, Handle
from safesql.db.reporting import ErrorReporter
from safesql.exceptions import ClientError, ConnectError

logger = logging.getLogger(__name__)


class ConnectionState(str, Enum):
    """Connection lifecycle states."""
    UNCONNECTED = "unconnected"
    CONNECTED_FRESH = "connected-fresh"
    CONNECTED_IDLE = "connected-idle-unverified"
    FAILED = "failed"


class ConnectionLifecycle:
    """Owns one driver handle and decides when it must be verified or replaced."""

    def __init__(
        self,
        client: DatabaseClient,
        config: DatabaseConfig,
        policy: Optional[ConnectionPolicy] = None,
        reporter: Optional[ErrorReporter] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        policy = policy or ConnectionPolicy()
        self.client = client
        self.config = config
        self.reporter = reporter or ErrorReporter()
        self.idle_threshold = policy.idle_threshold
        self.retry_attempts = policy.retry_attempts
        self.retry_delay = policy.retry_delay
        self.connect_timeout = policy.connect_timeout
        self._clock = clock
        self._sleep = sleep
        self._handle: Optional[Handle] = None
        self._failed = False
        self._last_used = clock()
        self.in_transaction = False
        self.connect_count = 0
        self.ping_count = 0

    @property
    def state(self) -> ConnectionState:
        if self._handle is None:
            return ConnectionState.FAILED if self._failed else ConnectionState.UNCONNECTED
        if self._is_idle():
            return ConnectionState.CONNECTED_IDLE
        return ConnectionState.CONNECTED_FRESH

    @property
    def handle(self) -> Optional[Handle]:
        """Current handle without any verification, or None."""
        return self._handle

    @property
    def is_connected(self) -> bool:
        return self._handle is not None

    def set_idle_threshold(self, seconds: float) -> None:
        if seconds < 0:
            raise ValueError("idle threshold must be >= 0")
        self.idle_threshold = seconds

    def set_retry(self, attempts: int, delay: Optional[float] = None) -> None:
        if attempts < 1:
            raise ValueError("retry attempts must be >= 1")
        if delay is not None and delay < 0:
            raise ValueError("retry delay must be >= 0")
        self.retry_attempts = attempts
        if delay is not None:
            self.retry_delay = delay

    def touch(self) -> None:
        """Mark the connection as used successfully just now."""
        self._last_used = self._clock()

    def _is_idle(self) -> bool:
        return self._clock() - self._last_used >= self.idle_threshold

    def acquire(self) -> Handle:
        """Return a live handle, connecting or verifying it first when needed.

        Raises:
            ConnectError: If every connection attempt failed.
        """
        if self._handle is not None:
            if not self._is_idle():
                return self._handle
            if self._probe(self._handle):
                self.touch()
                return self._handle
            if self.in_transaction:
                code = self.client.error_code(self._handle)
                self.abandon_transaction()
                self.reporter.fail(ConnectError(
                    "Connection lost inside an open transaction, its statements were rolled back",
                    database_type=self.config.type.value,
                    code=code,
                ))
            logger.warning(
                f"Connection to {self.config.type.value} idle for "
                f"{self._clock() - self._last_used:.1f}s failed liveness probe, reconnecting"
            )
            self._discard()
        return self._connect()

    def reconnect(self) -> Handle:
        """Drop the current handle and open a fresh one.

        Raises:
            ConnectError: If every connection attempt failed.
        """
        self._discard()
        return self._connect()

    def close(self) -> None:
        """Close the handle and return to the unconnected state."""
        self._discard()
        self._failed = False
        self.in_transaction = False

    def abandon_transaction(self) -> None:
        """Drop a handle whose open transaction the server has lost.

        The next acquire connects afresh; nothing is replayed.
        """
        logger.warning("Discarding connection with an open transaction")
        self.in_transaction = False
        self._discard()

    def _probe(self, handle: Handle) -> bool:
        self.ping_count += 1
        try:
            return bool(self.client.ping(handle))
        except Exception as e:
            logger.debug(f"Liveness probe raised: {e}")
            return False

    def _discard(self) -> None:
        if self._handle is None:
            return
        handle, self._handle = self._handle, None
        try:
            self.client.close(handle)
        except Exception as e:
            logger.debug(f"Ignoring error while closing connection: {e}")

    def _open(self) -> Handle:
        self.connect_count += 1
        handle = self.client.connect(self.config, self.connect_timeout)
        charset = self.config.charset
        if charset is not None and not self.client.set_charset(handle, charset):
            error_text = self.client.error_text(handle) or f"Cannot set charset '{charset}'"
            error_code = self.client.error_code(handle)
            self.client.close(handle)
            raise ClientError(error_text, error_code)
        return handle

    def _connect(self) -> Handle:
        last_error: Optional[ClientError] = None
        for attempt in range(1, self.retry_attempts + 1):
            try:
                handle = self._open()
            except ClientError as e:
                last_error = e
                logger.warning(
                    f"Database connect attempt {attempt}/{self.retry_attempts} failed: {e.message}"
                )
                if attempt < self.retry_attempts and self.retry_delay > 0:
                    self._sleep(self.retry_delay)
                continue

            self._handle = handle
            self._failed = False
            self.touch()
            logger.debug(f"Connected to {self.config.type.value} on attempt {attempt}")
            return handle

        self._failed = True
        detail = f": {last_error.message}" if last_error is not None else ""
        self.reporter.fail(ConnectError(
            f"Database connect error after {self.retry_attempts} attempt(s){detail}",
            attempts=self.retry_attempts,
            database_type=self.config.type.value,
            code=last_error.code if last_error is not None else None,
        ))
