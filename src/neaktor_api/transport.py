"""HTTP transport interface and the default requests-based implementation."""

from abc import ABC, abstractmethod
from dataclasses import dataclass

import requests
import structlog

from neaktor_api.errors import TransportError

logger = structlog.get_logger()

QueryParams = list[tuple[str, str]]


@dataclass
class Response:
    """Raw HTTP response as seen by the client."""

    status_code: int
    body: bytes = b""


class Transport(ABC):
    """Abstract HTTP transport used by the client.

    Implementations raise ``TransportError`` when a request cannot be
    delivered. Non-2xx statuses are not errors at this level.
    """

    @abstractmethod
    def get(self, url: str, headers: dict[str, str], params: QueryParams | None = None) -> Response:
        """Send a GET request."""
        pass

    @abstractmethod
    def post(self, url: str, headers: dict[str, str], body: bytes) -> Response:
        """Send a POST request with a JSON body."""
        pass

    @abstractmethod
    def put(self, url: str, headers: dict[str, str], body: bytes) -> Response:
        """Send a PUT request with a JSON body."""
        pass

    @abstractmethod
    def post_form(self, url: str, form: dict[str, str]) -> Response:
        """Send a form-encoded POST request."""
        pass

    def close(self) -> None:
        """Release any held resources."""


class RequestsTransport(Transport):
    """Transport backed by a ``requests.Session``."""

    DEFAULT_TIMEOUT = 30

    def __init__(self, timeout: float = DEFAULT_TIMEOUT, session: requests.Session | None = None) -> None:
        """Initialize transport.

        Args:
            timeout: Per-request timeout in seconds
            session: Session to reuse (a new one is created if omitted)
        """
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"Accept": "application/json"})

    def _send(self, method: str, url: str, **kwargs) -> Response:
        logger.debug("Sending request", method=method, url=url)
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.exceptions.RequestException as e:
            logger.warning("Request failed", method=method, url=url, error=str(e))
            raise TransportError(f"{method} {url} failed: {e}") from e

        logger.debug("Received response", method=method, url=url, status_code=response.status_code)
        return Response(status_code=response.status_code, body=response.content or b"")

    def get(self, url: str, headers: dict[str, str], params: QueryParams | None = None) -> Response:
        return self._send("GET", url, headers=headers, params=params)

    def post(self, url: str, headers: dict[str, str], body: bytes) -> Response:
        return self._send("POST", url, headers={**headers, "Content-Type": "application/json"}, data=body)

    def put(self, url: str, headers: dict[str, str], body: bytes) -> Response:
        return self._send("PUT", url, headers={**headers, "Content-Type": "application/json"}, data=body)

    def post_form(self, url: str, form: dict[str, str]) -> Response:
        return self._send("POST", url, data=form)

    def close(self) -> None:
        self.session.close()
        logger.debug("Transport session closed")
