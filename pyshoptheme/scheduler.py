"""Adaptive request scheduler for the Shopify Admin API.

Shopify allows a shop a bucket of 40 concurrent calls that leaks at a fixed
rate. The scheduler keeps a throttle budget of calls it may dispatch right
now, spends it on queued requests in FIFO order, caps it from the
``X-Shopify-Shop-Api-Call-Limit`` header and drops it to zero on a 429.
Rate-limited requests are put back in the queue and retried transparently
while a recovery timer slowly rebuilds the budget.
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

import httpx

from .exceptions import (
    ShopifyAPIError,
    ShopifyAuthenticationError,
    ShopifyInvalidResponseError,
    ShopifyNetworkError,
    ShopifyNotFoundError,
    ShopifyPermissionError,
    ShopifyRateLimitError,
    ShopifyThemeError,
)
from .utils import DEFAULT_RECOVERY_INTERVAL, DEFAULT_THROTTLE_CEILING

logger = logging.getLogger(__name__)

CALL_LIMIT_HEADER = "X-Shopify-Shop-Api-Call-Limit"

RATE_LIMITED = 429


@dataclass(eq=False)
class ScheduledRequest:
    """A single API call waiting in, or travelling through, the scheduler."""

    method: str
    """HTTP method"""

    url: str
    """Absolute request URL"""

    params: Optional[dict[str, Any]] = None
    """Query parameters"""

    json: Optional[Any] = None
    """JSON request body"""

    dispatched: bool = False
    """True while the request is in flight"""

    attempts: int = 0
    """Number of times the request has been sent"""

    future: Future = field(default_factory=Future)
    """Resolved with the decoded body, or failed with the error"""


def _error_message(response: httpx.Response) -> str:
    """Extract an error message from a Shopify error response."""
    try:
        body = response.json() if response.content else None
    except ValueError:
        body = None

    if isinstance(body, dict):
        detail = body.get("errors") or body.get("error")
        if detail:
            return detail if isinstance(detail, str) else str(detail)

    return response.reason_phrase or f"HTTP {response.status_code}"


def decode_response(response: httpx.Response) -> Any:
    """Decode a Shopify response, raising for non-success statuses.

    Args:
        response: HTTP response

    Returns:
        Decoded JSON body, or an empty dict for an empty body

    Raises:
        ShopifyAPIError: Subclass matching the status code, with
            ``status_code`` set
    """
    status_code = response.status_code

    if 200 <= status_code < 300:
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            raise ShopifyInvalidResponseError(
                "Invalid JSON response from server", status_code
            ) from e

    message = _error_message(response)

    if status_code == 401:
        raise ShopifyAuthenticationError(
            f"Invalid API credentials or unauthorized access: {message}", status_code
        )
    elif status_code == 403:
        raise ShopifyPermissionError(
            f"Access forbidden - check your permissions: {message}", status_code
        )
    elif status_code == 404:
        raise ShopifyNotFoundError(f"Resource not found: {message}", status_code)
    elif status_code == RATE_LIMITED:
        raise ShopifyRateLimitError(f"Rate limit exceeded: {message}", status_code)

    raise ShopifyAPIError(
        f"API request failed with status {status_code}: {message}", status_code
    )


class RecoveryTimer:
    """Periodic timer that calls ``tick`` until it returns False or is cancelled."""

    def __init__(self, interval: float, tick: Callable[[], bool]):
        self.interval = interval
        self._tick = tick
        self._stopped = threading.Event()
        self._thread = threading.Thread(
            target=self._run, name="shopify-throttle-recovery", daemon=True
        )

    def start(self) -> None:
        self._thread.start()

    def cancel(self) -> None:
        self._stopped.set()

    @property
    def active(self) -> bool:
        return self._thread.is_alive() and not self._stopped.is_set()

    def _run(self) -> None:
        while not self._stopped.wait(self.interval):
            if not self._tick():
                self._stopped.set()


class RequestScheduler:
    """Dispatches API calls within a self-adjusting throttle budget.

    All shared state (pending queue, budget, in-flight count, recovery timer)
    is read and written under a single lock, so a dispatch pass never
    spends budget another pass already spent.

    Examples:
        >>> with RequestScheduler(client.send_request) as scheduler:
        ...     future = scheduler.enqueue("GET", url)
        ...     themes = future.result()
    """

    def __init__(
        self,
        send: Callable[[ScheduledRequest], httpx.Response],
        initial_throttle: int = DEFAULT_THROTTLE_CEILING,
        ceiling: int = DEFAULT_THROTTLE_CEILING,
        recovery_interval: float = DEFAULT_RECOVERY_INTERVAL,
    ):
        """Initialize the scheduler.

        Args:
            send: Transport that performs a request and returns the response.
                Raising means the request failed before a response arrived.
            initial_throttle: Starting budget (default: 40)
            ceiling: Maximum budget and maximum concurrent calls (default: 40)
            recovery_interval: Seconds between budget increments while
                recovering from a rate limit (default: 2.0)
        """
        if ceiling < 1:
            raise ValueError("ceiling must be at least 1")

        self._send = send
        self.ceiling = ceiling
        self.recovery_interval = recovery_interval

        self._lock = threading.Lock()
        self._pending: list[ScheduledRequest] = []
        self._budget = max(0, min(initial_throttle, ceiling))
        self._in_flight = 0
        self._timer: Optional[RecoveryTimer] = None
        self._closed = False
        self._executor = ThreadPoolExecutor(
            max_workers=ceiling, thread_name_prefix="shopify-request"
        )

    def __enter__(self) -> "RequestScheduler":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    @property
    def budget(self) -> int:
        """Requests that may be dispatched right now."""
        with self._lock:
            return self._budget

    @property
    def in_flight(self) -> int:
        """Requests dispatched and not yet completed."""
        with self._lock:
            return self._in_flight

    @property
    def pending(self) -> int:
        """Requests queued or in flight."""
        with self._lock:
            return len(self._pending)

    @property
    def recovering(self) -> bool:
        """True while the recovery timer is rebuilding the budget."""
        with self._lock:
            return self._timer is not None

    def enqueue(
        self,
        method: str,
        url: str,
        params: Optional[dict[str, Any]] = None,
        json: Optional[Any] = None,
    ) -> Future:
        """Queue an API call.

        Args:
            method: HTTP method
            url: Absolute request URL
            params: Optional query parameters
            json: Optional JSON body

        Returns:
            Future resolving with the decoded response body
        """
        request = ScheduledRequest(
            method=method.upper(), url=url, params=params, json=json
        )
        with self._lock:
            if self._closed:
                raise ShopifyThemeError("Request scheduler is closed")
            self._pending.append(request)

        self.check_and_dispatch()
        return request.future

    def check_and_dispatch(self) -> int:
        """Dispatch as many queued requests as the budget allows.

        Returns:
            Number of requests dispatched by this pass
        """
        with self._lock:
            if self._closed:
                return 0

            if self._budget <= 0:
                # Nothing in flight can hand budget back, so only the timer can.
                if self._in_flight == 0 and self._has_queued():
                    self._start_recovery()
                return 0

            batch: list[ScheduledRequest] = []
            for request in self._pending:
                if len(batch) >= self._budget:
                    break
                if not request.dispatched:
                    request.dispatched = True
                    request.attempts += 1
                    batch.append(request)

            self._budget -= len(batch)
            self._in_flight += len(batch)
            budget, in_flight = self._budget, self._in_flight

        if batch:
            logger.debug(
                f"Dispatching {len(batch)} request(s) "
                f"(budget={budget}, in_flight={in_flight})"
            )

        for request in batch:
            try:
                self._executor.submit(self._run_request, request)
            except RuntimeError as e:
                # Executor shut down by close() between the lock and here
                self._on_transport_error(request, ShopifyThemeError(str(e)))

        return len(batch)

    def close(self) -> None:
        """Stop the recovery timer and worker threads.

        Requests still queued are failed with ``ShopifyThemeError``.
        """
        with self._lock:
            if self._closed:
                return
            self._closed = True
            timer, self._timer = self._timer, None

        if timer is not None:
            timer.cancel()
        self._executor.shutdown(wait=True)

        with self._lock:
            leftover, self._pending = self._pending, []

        for request in leftover:
            if not request.future.done():
                request.future.set_exception(
                    ShopifyThemeError(
                        f"Request scheduler closed before {request.method} "
                        f"{request.url} completed"
                    )
                )

    # =========================
    # Internals (lock held unless noted)
    # =========================

    def _has_queued(self) -> bool:
        return any(not request.dispatched for request in self._pending)

    def _release(self) -> None:
        """Hand one unit of budget back after a completion."""
        if self._timer is None and self._budget + self._in_flight < self.ceiling:
            self._budget += 1

    def _start_recovery(self) -> None:
        if self._timer is not None or self._closed:
            return
        logger.debug(
            f"Throttle budget exhausted, recovering one request every "
            f"{self.recovery_interval}s"
        )
        self._timer = RecoveryTimer(self.recovery_interval, self._recover)
        self._timer.start()

    def _apply_call_limit(self, response: httpx.Response) -> None:
        """Cap the budget to what the server says is left in the bucket."""
        header = response.headers.get(CALL_LIMIT_HEADER)
        if not header:
            return

        try:
            used_str, ceiling_str = header.split("/")
            used, ceiling = int(used_str), int(ceiling_str)
        except ValueError:
            logger.warning(f"Bad call limit header: {header}")
            return

        remaining = max(0, ceiling - used - self._in_flight)
        if self._budget > remaining:
            logger.debug(
                f"Call limit {header}: capping budget {self._budget} -> {remaining}"
            )
            self._budget = remaining
            if remaining == 0:
                self._start_recovery()

    def _remove(self, request: ScheduledRequest) -> None:
        try:
            self._pending.remove(request)
        except ValueError:
            pass

    def _recover(self) -> bool:
        """Recovery timer tick (called without the lock held).

        Returns:
            True to keep the timer running
        """
        with self._lock:
            if self._closed:
                return False
            headroom = self.ceiling - self._in_flight
            if self._budget < headroom:
                self._budget += 1
            keep_running = self._budget < headroom
            if not keep_running and self._timer is not None:
                self._timer.cancel()
                self._timer = None
                logger.debug(f"Throttle budget recovered to {self._budget}")

        self.check_and_dispatch()
        return keep_running

    # =========================
    # Worker side (called without the lock held)
    # =========================

    def _run_request(self, request: ScheduledRequest) -> None:
        try:
            response = self._send(request)
        except httpx.RequestError as e:
            self._on_transport_error(request, ShopifyNetworkError(f"Network error: {e}"))
        except Exception as e:
            self._on_transport_error(request, e)
        else:
            self._on_response(request, response)

        self.check_and_dispatch()

    def _on_transport_error(self, request: ScheduledRequest, error: Exception) -> None:
        with self._lock:
            self._in_flight -= 1
            self._release()
            self._remove(request)

        logger.debug(f"{request.method} {request.url} failed: {error}")
        request.future.set_exception(error)

    def _on_response(self, request: ScheduledRequest, response: httpx.Response) -> None:
        with self._lock:
            self._in_flight -= 1
            rate_limited = response.status_code == RATE_LIMITED

            if not rate_limited:
                self._remove(request)
                self._release()

            self._apply_call_limit(response)

            if rate_limited:
                request.dispatched = False
                if self._budget > 0:
                    self._budget = 0
                self._start_recovery()

        if rate_limited:
            logger.debug(
                f"Rate limited on {request.method} {request.url} "
                f"(attempt {request.attempts}), requeued"
            )
            return

        try:
            result = decode_response(response)
        except ShopifyAPIError as e:
            request.future.set_exception(e)
        else:
            request.future.set_result(result)
