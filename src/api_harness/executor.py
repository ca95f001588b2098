"""Test executor: sends a resolved request and captures the outcome.

``success`` reports whether an HTTP response arrived at all. A 404 or 500
is a successful test whose status happens to be an error; only transport
problems (DNS, refused connection, timeout, malformed response) produce
``success=False``. The executor never raises for those: they end up in
``TestResult.error`` with ``status=0``.

``timeout_ms`` is a wall-clock deadline for the whole exchange, connect
through the last body byte. The exchange runs on a worker thread so a
server that trickles its body cannot hold the caller past the deadline.
"""

import logging
import threading
import time

import requests
from urllib3.exceptions import ReadTimeoutError

from api_harness.config import DEFAULT_TIMEOUT_MS
from api_harness.errors import TransportError
from api_harness.models import ResolvedRequest, TestResult
from api_harness.parser.curl import to_curl

logger = logging.getLogger(__name__)

TIMEOUT_ERROR = "timeout"
NO_RESPONSE_ERROR = "no response from execution"


class TestExecutor:
    """Executes one request at a time over a requests Session."""

    __test__ = False

    def __init__(self, session: requests.Session | None = None):
        self.session = session or requests.Session()

    def execute(self, request: ResolvedRequest, timeout_ms: float = DEFAULT_TIMEOUT_MS) -> TestResult:
        """Send the request and return a TestResult. Never raises for network errors."""
        curl = to_curl(request)
        timeout = max(float(timeout_ms), 1.0) / 1000.0

        start = time.perf_counter()
        exchange = _Exchange(self, request, timeout)
        worker = threading.Thread(target=exchange.run, name="api-harness-exchange", daemon=True)
        worker.start()

        if not exchange.done.wait(timeout):
            exchange.abort()
            elapsed_ms = _elapsed_ms(start)
            logger.warning("%s %s timed out after %.0f ms", request.method, request.url, elapsed_ms)
            return _failure(request, TIMEOUT_ERROR, elapsed_ms, curl)

        elapsed_ms = _elapsed_ms(start)
        if isinstance(exchange.error, TransportError):
            logger.warning("%s %s failed after %.0f ms: %s", request.method, request.url, elapsed_ms, exchange.error.message)
            return _failure(request, exchange.error.message, elapsed_ms, curl)
        if exchange.error is not None:
            raise exchange.error

        response = exchange.response
        if response is None:
            logger.warning("%s %s returned no response object", request.method, request.url)
            return _failure(request, NO_RESPONSE_ERROR, elapsed_ms, curl)

        result = TestResult(
            success=True,
            url=request.url,
            method=request.method,
            headers=dict(response.headers),
            status=response.status_code,
            body_text=exchange.body_text,
            response_time_ms=elapsed_ms,
            curl_equivalent=curl,
        )
        logger.info("%s %s -> %d in %.0f ms", request.method, request.url, result.status, elapsed_ms)
        return result

    def to_curl(self, request: ResolvedRequest) -> str:
        return to_curl(request)

    def close(self) -> None:
        self.session.close()

    def _send(self, request: ResolvedRequest, timeout: float) -> requests.Response | None:
        data = request.body.encode("utf-8") if request.body is not None else None
        try:
            return self.session.request(
                request.method,
                request.url,
                headers=request.headers,
                data=data,
                timeout=(timeout, timeout),
                stream=True,
            )
        except requests.Timeout as e:
            raise TransportError(TIMEOUT_ERROR) from e
        except requests.ConnectionError as e:
            raise TransportError(f"connection failed: {e}") from e
        except requests.RequestException as e:
            raise TransportError(f"{type(e).__name__}: {e}") from e
        except ValueError as e:
            raise TransportError(f"invalid request: {e}") from e

    def _read_body(self, response: requests.Response) -> str:
        try:
            return response.text
        except requests.ConnectionError as e:
            # a stalled body surfaces as ConnectionError wrapping urllib3's ReadTimeoutError
            if any(isinstance(arg, ReadTimeoutError) for arg in e.args):
                raise TransportError(TIMEOUT_ERROR) from e
            raise TransportError(f"connection failed: {e}") from e
        except requests.RequestException as e:
            raise TransportError(f"{type(e).__name__}: {e}") from e


class _Exchange:
    """One request and its body read, run on a worker thread."""

    def __init__(self, executor: TestExecutor, request: ResolvedRequest, timeout: float):
        self.executor = executor
        self.request = request
        self.timeout = timeout
        self.response: requests.Response | None = None
        self.body_text = ""
        self.error: Exception | None = None
        self.done = threading.Event()
        self._aborted = threading.Event()

    def run(self) -> None:
        try:
            self.response = self.executor._send(self.request, self.timeout)
            if self.response is not None:
                try:
                    self.body_text = self.executor._read_body(self.response)
                finally:
                    self.response.close()
        except Exception as e:
            if self._aborted.is_set():
                logger.debug("Abandoned exchange for %s ended with %s: %s", self.request.url, type(e).__name__, e)
            else:
                self.error = e
        finally:
            self.done.set()

    def abort(self) -> None:
        """Give up on the exchange and release its connection."""
        self._aborted.set()
        if self.response is not None:
            self.response.close()


def execute(request: ResolvedRequest, timeout_ms: float = DEFAULT_TIMEOUT_MS) -> TestResult:
    """Execute a single request on a throwaway session."""
    executor = TestExecutor()
    try:
        return executor.execute(request, timeout_ms)
    finally:
        executor.close()


def _failure(request: ResolvedRequest, error: str, elapsed_ms: float, curl: str) -> TestResult:
    return TestResult(
        success=False,
        url=request.url,
        method=request.method,
        headers={},
        status=0,
        body_text="",
        response_time_ms=elapsed_ms,
        error=error,
        curl_equivalent=curl,
    )


def _elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000, 2)

