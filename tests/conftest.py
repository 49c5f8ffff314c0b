"""Shared fixtures: an in-memory transport, a fake clock and a counting limiter."""

import json
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import unquote, urlsplit

import pytest

from neaktor_api.client import Neaktor
from neaktor_api.model import Model
from neaktor_api.ratelimit import Limiter
from neaktor_api.transport import QueryParams, Response, Transport


@dataclass
class Call:
    """A request recorded by FakeTransport."""

    method: str
    url: str
    headers: dict[str, str] = field(default_factory=dict)
    params: QueryParams | None = None
    body: bytes | None = None
    form: dict[str, str] | None = None

    @property
    def path(self) -> str:
        return unquote(urlsplit(self.url).path)

    @property
    def json(self) -> Any:
        return json.loads(self.body) if self.body else None


class FakeTransport(Transport):
    """Transport that replays queued responses per (method, path)."""

    def __init__(self) -> None:
        self.calls: list[Call] = []
        self._responses: dict[tuple[str, str], list[Response | Exception]] = {}
        self.closed = False

    def add(self, method: str, path: str, payload: Any = None, status_code: int = 200, raw: bytes | None = None) -> None:
        body = raw if raw is not None else json.dumps(payload, ensure_ascii=False).encode("utf-8")
        self._responses.setdefault((method, path), []).append(Response(status_code=status_code, body=body))

    def add_error(self, method: str, path: str, error: Exception) -> None:
        self._responses.setdefault((method, path), []).append(error)

    def calls_to(self, method: str, path: str) -> list[Call]:
        return [call for call in self.calls if call.method == method and call.path == path]

    def _reply(self, call: Call) -> Response:
        self.calls.append(call)
        queue = self._responses.get((call.method, call.path))
        if not queue:
            raise AssertionError(f"Unexpected request: {call.method} {call.path}")
        reply = queue.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply

    def get(self, url: str, headers: dict[str, str], params: QueryParams | None = None) -> Response:
        return self._reply(Call("GET", url, headers=dict(headers), params=list(params or [])))

    def post(self, url: str, headers: dict[str, str], body: bytes) -> Response:
        return self._reply(Call("POST", url, headers=dict(headers), body=body))

    def put(self, url: str, headers: dict[str, str], body: bytes) -> Response:
        return self._reply(Call("PUT", url, headers=dict(headers), body=body))

    def post_form(self, url: str, form: dict[str, str]) -> Response:
        return self._reply(Call("POST", url, form=dict(form)))

    def close(self) -> None:
        self.closed = True


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class CountingLimiter(Limiter):
    """Limiter that never blocks and counts the units taken."""

    def __init__(self) -> None:
        self.taken = 0

    def take(self) -> float:
        self.taken += 1
        return float(self.taken)


MODEL_ID = "model-1"
STATUS_NEW = {"id": "st-new", "name": "новый заказ", "closed": False, "type": "OPEN"}
STATUS_ERROR = {"id": "st-error", "name": "ошибочный заказ", "closed": True, "type": "CLOSED"}
FIELD_EMAIL = {"id": "f-email", "name": "email", "state": "REQUIRED"}
FIELD_PASSWORD = {"id": "f-password", "name": "пароль", "state": "OPTIONAL"}
FIELD_CITY = {"id": "f-city", "name": "город", "state": "OPTIONAL"}


def model_listing() -> dict[str, Any]:
    return {
        "data": [
            {
                "id": MODEL_ID,
                "name": "Заказ",
                "createdBy": 1,
                "fields": [FIELD_EMAIL, FIELD_PASSWORD, FIELD_CITY],
                "statuses": [STATUS_NEW, STATUS_ERROR],
                "startStatus": "st-new",
                "canCreateTask": True,
            },
            {
                "id": "model-2",
                "name": "Доставка",
                "fields": [],
                "statuses": [{"id": "st-route", "name": "в пути", "closed": False, "type": "OPEN"}],
            },
        ],
        "page": 0,
        "size": 100,
        "total": 2,
    }


def task_row(
    task_id: int,
    status: str = "новый заказ",
    email: str = "admin@google.com",
    extra_fields: list[dict[str, Any]] | None = None,
) -> dict[str, Any]:
    return {
        "id": task_id,
        "projectId": "project-1",
        "status": status,
        "modelId": MODEL_ID,
        "idx": f"ORD-{task_id}",
        "fields": [
            {"id": "f-email", "value": email, "state": "REQUIRED"},
            {"id": "f-password", "value": None, "state": "OPTIONAL"},
            *(extra_fields or []),
        ],
    }


def tasks_page(rows: list[dict[str, Any]], total: int, page: int = 0, size: int = 50) -> dict[str, Any]:
    return {"data": rows, "links": {"next": ""}, "page": page, "size": size, "total": total}


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def limiter() -> CountingLimiter:
    return CountingLimiter()


@pytest.fixture
def client(transport: FakeTransport, limiter: CountingLimiter, clock: FakeClock) -> Neaktor:
    return Neaktor(token="t1o2k3e4n5", transport=transport, limiter=limiter, clock=clock)


@pytest.fixture
def model(client: Neaktor, transport: FakeTransport) -> Model:
    """The "Заказ" model, loaded through the client."""
    transport.add("GET", "/v1/taskmodels", model_listing())
    loaded = client.get_model_by_title("Заказ")
    transport.calls.clear()
    return loaded
