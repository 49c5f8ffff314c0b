"""Account-level gateway to the Neaktor API."""

import json
import time
from collections.abc import Callable
from typing import Any
from urllib.parse import quote

import structlog

from neaktor_api.cache import CACHE_TTL, TTLCache
from neaktor_api.errors import (
    AuthError,
    DecodeError,
    HTTPStatusError,
    ModelNotFoundError,
    ServiceUnavailableError,
    TransportError,
    classify,
)
from neaktor_api.model import Model
from neaktor_api.models import ModelField, ModelStatus
from neaktor_api.ratelimit import Limiter, RateLimiter
from neaktor_api.transport import QueryParams, RequestsTransport, Response, Transport

logger = structlog.get_logger()

API_SERVER = "https://api.neaktor.com"
API_GATEWAY = f"{API_SERVER}/v1"
OAUTH_TOKEN_URL = f"{API_SERVER}/oauth/token"

MODEL_LISTING_SIZE = 100
DEFAULT_API_LIMIT = 100
DEFAULT_PAGE_SIZE = 50


class Neaktor:
    """Client for one Neaktor account.

    Owns the API token, the outbound rate limiter and a cache of task-models
    keyed by title. Models and tasks obtained from the client route every
    remote call back through it.
    """

    def __init__(
        self,
        token: str = "",
        api_limit: int = DEFAULT_API_LIMIT,
        transport: Transport | None = None,
        limiter: Limiter | None = None,
        log: Any = None,
        clock: Callable[[], float] = time.monotonic,
        page_size: int = DEFAULT_PAGE_SIZE,
        cache_ttl: float = CACHE_TTL,
    ) -> None:
        """Initialize client.

        Args:
            token: Value of the Authorization header (may be set later by refresh_token)
            api_limit: Outbound calls allowed per minute
            transport: HTTP transport (defaults to RequestsTransport)
            limiter: Rate limiter (defaults to RateLimiter(api_limit) per minute)
            log: structlog-compatible bound logger (defaults to the module logger)
            clock: Monotonic time source used by the caches
            page_size: Page size for task listings
            cache_ttl: Lifetime of cached models, custom fields and routings in seconds
        """
        if page_size <= 0:
            raise ValueError("page_size must be positive")

        self._token = token
        self._refresh_token = ""
        self.transport = transport if transport is not None else RequestsTransport()
        self.limiter = limiter if limiter is not None else RateLimiter(api_limit)
        self.logger = log if log is not None else logger
        self.clock = clock
        self.page_size = page_size
        self.cache_ttl = cache_ttl
        self._model_cache: TTLCache[Model] = TTLCache(ttl=cache_ttl, clock=clock)

        self.logger.debug("Neaktor client initialized", api_limit=api_limit, page_size=page_size)

    @property
    def token(self) -> str:
        return self._token

    @property
    def last_refresh_token(self) -> str:
        """Refresh token returned by the last successful refresh_token call."""
        return self._refresh_token

    def close(self) -> None:
        self.transport.close()

    def __enter__(self) -> "Neaktor":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.close()
        return False

    def url(self, *segments: str | int) -> str:
        """Build an API URL from path segments."""
        return "/".join([API_GATEWAY, *(quote(str(segment), safe="") for segment in segments)])

    def request(
        self,
        method: str,
        *segments: str | int,
        params: QueryParams | None = None,
        payload: dict[str, Any] | None = None,
        expect: type = dict,
    ) -> Any:
        """Perform one rate-limited API call and return the decoded body.

        Args:
            method: GET, POST or PUT
            segments: Path segments below /v1
            params: Query parameters (GET only)
            payload: JSON body (POST and PUT)
            expect: Expected top-level JSON type (dict or list)

        Returns:
            Decoded JSON body

        Raises:
            TransportError: The request could not be delivered
            ServiceUnavailableError: The service answered with a 5xx status
            DecodeError: The body is not JSON of the expected shape
            ServiceError: The body carries a non-empty error code
            HTTPStatusError: Any other non-2xx status, or an OAuth error body
        """
        endpoint = "/v1/" + "/".join(str(segment) for segment in segments)
        url = self.url(*segments)
        headers = {"Authorization": self._token}

        self.limiter.take()

        try:
            if method == "GET":
                response = self.transport.get(url, headers, params)
            elif method in ("POST", "PUT"):
                body = json.dumps(payload or {}, ensure_ascii=False).encode("utf-8")
                send = self.transport.post if method == "POST" else self.transport.put
                response = send(url, headers, body)
            else:
                raise ValueError(f"Unsupported method: {method}")
        except TransportError as e:
            raise TransportError(f"{endpoint} request error: {e}") from e

        return self._decode(response, endpoint, expect)

    def _decode(self, response: Response, endpoint: str, expect: type) -> Any:
        status_code = response.status_code
        if status_code >= 500:
            self.logger.debug("Service unavailable", endpoint=endpoint, status_code=status_code)
            raise ServiceUnavailableError(status_code, endpoint)

        succeeded = 200 <= status_code < 300

        if not response.body.strip():
            data: Any = expect() if succeeded else {}
        else:
            try:
                data = json.loads(response.body)
            except ValueError as e:
                self.logger.debug(
                    "Failed to decode response",
                    endpoint=endpoint,
                    status_code=status_code,
                    body=response.body.decode("utf-8", errors="replace"),
                )
                if not succeeded:
                    raise self._status_error(status_code, {}, endpoint) from e
                raise DecodeError(f"{endpoint} unmarshaling error: {e}") from e

        envelope = data if isinstance(data, dict) else {}
        if envelope.get("code"):
            error = classify(str(envelope["code"]), str(envelope.get("message") or ""))
            error.add_note(f"endpoint: {endpoint}")
            self.logger.debug("Service returned error", endpoint=endpoint, code=error.code, kind=error.kind.name)
            raise error

        if not succeeded or envelope.get("error"):
            raise self._status_error(status_code, envelope, endpoint)

        if not isinstance(data, expect):
            self.logger.debug("Unexpected response shape", endpoint=endpoint, expected=expect.__name__)
            raise DecodeError(f"{endpoint} unmarshaling error: expected {expect.__name__}, got {type(data).__name__}")

        return data

    def _status_error(self, status_code: int, envelope: dict[str, Any], endpoint: str) -> HTTPStatusError:
        parts = [str(envelope[key]) for key in ("error", "error_description", "message") if envelope.get(key)]
        error = HTTPStatusError(status_code, ": ".join(parts))
        error.add_note(f"endpoint: {endpoint}")
        self.logger.debug("Request rejected", endpoint=endpoint, status_code=status_code, error=error.message)
        return error

    def refresh_token(self, client_id: str, client_secret: str, refresh_token: str) -> None:
        """Exchange a refresh token for a new access token.

        On success the client sends "<token_type> <access_token>" on every later call,
        with "Bearer" standing in for an empty or lowercase bearer type.
        On failure the held token is left unchanged.

        Raises:
            AuthError: The service rejected the credentials or returned no access token
        """
        self.logger.info("Refreshing API token", client_id=client_id)
        form = {
            "grant_type": "refresh_token",
            "client_id": client_id,
            "client_secret": client_secret,
            "refresh_token": refresh_token,
        }

        self.limiter.take()

        try:
            response = self.transport.post_form(OAUTH_TOKEN_URL, form)
        except TransportError as e:
            raise TransportError(f"/oauth/token request error: {e}") from e

        try:
            data = self._decode(response, "/oauth/token", dict)
        except HTTPStatusError as e:
            raise AuthError(f"API token incorrect: {e.message}" if e.message else "API token incorrect") from e

        access_token = data.get("access_token") or ""
        if not access_token:
            raise AuthError("API token incorrect")

        token_type = str(data.get("token_type") or "").strip()
        if not token_type or token_type.casefold() == "bearer":
            token_type = "Bearer"

        self._token = f"{token_type} {access_token}"
        self._refresh_token = data.get("refresh_token") or refresh_token
        self.logger.info("API token refreshed", expires_in=data.get("expires_in"))

    def get_model_by_title(self, title: str) -> Model:
        """Get a task-model by its title.

        A live cached model is returned without a network call. Otherwise the
        full model listing is fetched once and every model in it is cached.

        Raises:
            ModelNotFoundError: No model with this title exists
        """
        with self._model_cache.lock:
            model = self._model_cache.get(title)
            if model is not None:
                self.logger.debug("Model cache hit", title=title)
                return model

            self.logger.info("Fetching task models", title=title)
            data = self.request("GET", "taskmodels", params=[("size", str(MODEL_LISTING_SIZE))])

            items = data.get("data") or []
            for item in items:
                listed = self._parse_model(item)
                self._model_cache.set(listed.name, listed)
            self.logger.debug("Task models cached", model_count=len(items))

            model = self._model_cache.get(title)
            if model is None:
                raise ModelNotFoundError(f"model {title!r} not found")
            return model

    def _parse_model(self, item: dict[str, Any]) -> Model:
        try:
            statuses = {
                status["id"]: ModelStatus(
                    id=status["id"],
                    name=status.get("name") or "",
                    closed=bool(status.get("closed")),
                    type=status.get("type") or "",
                )
                for status in item.get("statuses") or []
            }
            fields = {
                field["id"]: ModelField(id=field["id"], name=field.get("name") or "", state=field.get("state") or "")
                for field in item.get("fields") or []
            }
            return Model(self, id=item["id"], name=item.get("name") or "", statuses=statuses, fields=fields)
        except (KeyError, TypeError, AttributeError) as e:
            raise DecodeError(f"task model parse error: {e!r}") from e
