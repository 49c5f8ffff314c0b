"""Task-model: status/field resolution, cached lookups and task search."""

from collections.abc import Callable, Iterable
from datetime import datetime
from typing import TYPE_CHECKING, Any

from neaktor_api.cache import TTLCache
from neaktor_api.errors import (
    AssigneeNotFoundError,
    CustomFieldOptionNotFoundError,
    CustomFieldValueNotFoundError,
    DecodeError,
    FieldNotFoundError,
    StatusNotFoundError,
    TaskNotFoundError,
)
from neaktor_api.models import CustomFieldOption, ModelAssignee, ModelField, ModelStatus, TaskField, format_query_value
from neaktor_api.task import Task, build_fields_payload
from neaktor_api.transport import QueryParams

if TYPE_CHECKING:
    from neaktor_api.client import Neaktor

DATE_FORMAT = "%d-%m-%YT%H:%M:%S"

# Date fields of a task row, keyed by lowercased field id
_DATE_FIELDS = {
    "start": "start",
    "end": "end",
    "statusClosedDate".lower(): "status closed",
}


class Model:
    """A task-model of the account.

    Statuses and fields are fixed at construction. Custom-field options and
    routing assignees are fetched lazily and cached per field and per status.
    """

    def __init__(
        self,
        client: "Neaktor",
        id: str,
        name: str,
        statuses: dict[str, ModelStatus],
        fields: dict[str, ModelField],
    ) -> None:
        self.client = client
        self.id = id
        self.name = name
        self._statuses = dict(statuses)
        self._fields = dict(fields)
        self._custom_field_cache: TTLCache[list[CustomFieldOption]] = TTLCache(
            ttl=client.cache_ttl, clock=client.clock
        )
        self._assignee_cache: TTLCache[list[ModelAssignee]] = TTLCache(ttl=client.cache_ttl, clock=client.clock)

    def __repr__(self) -> str:
        return f"Model(id={self.id!r}, name={self.name!r})"

    @property
    def statuses(self) -> dict[str, ModelStatus]:
        return dict(self._statuses)

    @property
    def fields(self) -> dict[str, ModelField]:
        return dict(self._fields)

    @property
    def page_size(self) -> int:
        return self.client.page_size

    # Static lookups

    def get_status(self, title: str) -> ModelStatus:
        """Find a status by name, ignoring case. The first match in listing order wins."""
        for status in self._statuses.values():
            if status.name.casefold() == title.casefold():
                return status
        raise StatusNotFoundError(f"status {title!r} not found in model {self.name!r}")

    def get_field(self, title: str) -> ModelField:
        """Find a field by name, ignoring case. The first match in listing order wins."""
        for field in self._fields.values():
            if field.name.casefold() == title.casefold():
                return field
        raise FieldNotFoundError(f"field {title!r} not found in model {self.name!r}")

    def get_statuses(self, titles: Iterable[str]) -> dict[str, ModelStatus]:
        """Find several statuses at once.

        Returns:
            Mapping of each matched title to its status

        Raises:
            StatusNotFoundError: None of the titles matched
        """
        statuses = {}
        for title in titles:
            try:
                statuses[title] = self.get_status(title)
            except StatusNotFoundError:
                continue
        if not statuses:
            raise StatusNotFoundError(f"none of the statuses found in model {self.name!r}")
        return statuses

    def get_fields(self, titles: Iterable[str]) -> dict[str, ModelField]:
        """Find several fields at once.

        Returns:
            Mapping of each matched title to its field

        Raises:
            FieldNotFoundError: None of the titles matched
        """
        fields = {}
        for title in titles:
            try:
                fields[title] = self.get_field(title)
            except FieldNotFoundError:
                continue
        if not fields:
            raise FieldNotFoundError(f"none of the fields found in model {self.name!r}")
        return fields

    # Custom fields

    def get_custom_field_option_id(self, field: ModelField, value: str) -> str:
        """Resolve a custom field display value to its option id."""
        option = self._lookup_custom_field_option(field, lambda option: option.value == value)
        if option is None:
            raise CustomFieldOptionNotFoundError(f"option {value!r} not found for custom field {field.id!r}")
        return option.id

    def get_custom_field_value(self, field: ModelField, option_id: str) -> str:
        """Resolve a custom field option id to its display value."""
        option = self._lookup_custom_field_option(field, lambda option: option.id == option_id)
        if option is None:
            raise CustomFieldValueNotFoundError(f"value of option {option_id!r} not found for custom field {field.id!r}")
        return option.value

    def _lookup_custom_field_option(
        self, field: ModelField, match: Callable[[CustomFieldOption], bool]
    ) -> CustomFieldOption | None:
        cache = self._custom_field_cache
        with cache.lock:
            options = cache.get(field.id)
            if options is not None:
                option = next((option for option in options if match(option)), None)
                if option is not None:
                    return option
                cache.evict(field.id)

            options = self._fetch_custom_field_options(field)
            cache.set(field.id, options)
            return next((option for option in options if match(option)), None)

    def _fetch_custom_field_options(self, field: ModelField) -> list[CustomFieldOption]:
        self.client.logger.info("Fetching custom field options", field_id=field.id)
        data = self.client.request("GET", "customfields", field.id, expect=list)

        options = []
        try:
            for custom_field in data:
                available = (custom_field.get("options") or {}).get("availableValues") or []
                for item in available:
                    options.append(CustomFieldOption(id=str(item["id"]), value=str(item.get("value") or "")))
        except (KeyError, TypeError, AttributeError) as e:
            raise DecodeError(f"custom field {field.id} parse error: {e!r}") from e

        self.client.logger.debug("Custom field options cached", field_id=field.id, option_count=len(options))
        return options

    # Routings

    def get_assignee(self, status: ModelStatus, name: str) -> ModelAssignee:
        """Find an assignee by exact name among the routings into ``status``."""
        cache = self._assignee_cache
        with cache.lock:
            assignees = cache.get(status.id)
            if assignees is not None:
                assignee = next((assignee for assignee in assignees if assignee.name == name), None)
                if assignee is not None:
                    return assignee
                cache.evict(status.id)

            for status_id, routed in self._fetch_routings(status).items():
                cache.set(status_id, routed)

            assignees = cache.get(status.id) or []
            assignee = next((assignee for assignee in assignees if assignee.name == name), None)
            if assignee is None:
                raise AssigneeNotFoundError(f"assignee {name!r} not found for status {status.name!r}")
            return assignee

    def _fetch_routings(self, status: ModelStatus) -> dict[str, list[ModelAssignee]]:
        self.client.logger.info("Fetching routings", model_id=self.id, status_id=status.id)
        data = self.client.request("GET", "taskmodels", self.id, status.id, "routings", expect=list)

        routings: dict[str, list[ModelAssignee]] = {}
        try:
            for routing in data:
                target = routing.get("to") or ""
                if not target:
                    continue
                routed = routings.setdefault(target, [])
                for item in routing.get("assignees") or []:
                    routed.append(
                        ModelAssignee(id=int(item["id"]), name=item.get("name") or "", type=item.get("type") or "")
                    )
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise DecodeError(f"routings of status {status.id} parse error: {e!r}") from e

        self.client.logger.debug("Routings cached", model_id=self.id, status_ids=list(routings))
        return routings

    # Task search

    def get_tasks_by_status(self, status: ModelStatus) -> list[Task]:
        return self._fetch_tasks(status=status)

    def get_tasks_by_statuses(self, statuses: Iterable[ModelStatus]) -> list[Task]:
        """Get tasks of several statuses, in the given order. The first failure aborts."""
        tasks: list[Task] = []
        for status in statuses:
            tasks.extend(self.get_tasks_by_status(status))
        return tasks

    def get_tasks_by_status_and_fields(self, status: ModelStatus, fields: Iterable[TaskField]) -> list[Task]:
        return self._fetch_tasks(status=status, filters=_filter_params(fields))

    def get_tasks_by_fields(self, fields: Iterable[TaskField]) -> list[Task]:
        return self._fetch_tasks(filters=_filter_params(fields))

    def is_tasks_by_status_exists(self, status: ModelStatus) -> bool:
        return self._tasks_exist(status=status)

    def is_tasks_by_statuses_exists(self, statuses: Iterable[ModelStatus]) -> bool:
        return any(self._tasks_exist(status=status) for status in statuses)

    def is_tasks_by_status_and_fields_exists(self, status: ModelStatus, fields: Iterable[TaskField]) -> bool:
        return self._tasks_exist(status=status, filters=_filter_params(fields))

    def is_tasks_by_fields_exists(self, fields: Iterable[TaskField]) -> bool:
        return self._tasks_exist(filters=_filter_params(fields))

    def _listing_params(
        self, status: ModelStatus | None, filters: QueryParams, size: int, page: int
    ) -> QueryParams:
        params = [*filters, ("model_id", self.id)]
        if status is not None:
            params.append(("status_id", status.id))
        params.extend([("size", str(size)), ("page", str(page))])
        return params

    def _fetch_tasks(self, status: ModelStatus | None = None, filters: QueryParams | None = None) -> list[Task]:
        """Fetch every page of a task listing.

        The page bound starts at 1 and is recomputed from ``total`` after each page.
        """
        filters = filters or []
        size = self.page_size
        self.client.logger.info(
            "Fetching tasks", model_id=self.id, status_id=status.id if status else None, filters=filters
        )

        tasks: list[Task] = []
        page = 0
        max_pages = 1
        while page < max_pages:
            data = self.client.request("GET", "tasks", params=self._listing_params(status, filters, size, page))
            for row in data.get("data") or []:
                tasks.append(self._parse_task(row))

            total = int(data.get("total") or 0)
            max_pages = (total + size - 1) // size
            page += 1

        self.client.logger.info("Fetched tasks", model_id=self.id, task_count=len(tasks), pages=page)
        return tasks

    def _tasks_exist(self, status: ModelStatus | None = None, filters: QueryParams | None = None) -> bool:
        data = self.client.request("GET", "tasks", params=self._listing_params(status, filters or [], 1, 0))
        return int(data.get("total") or 0) > 0 or bool(data.get("data"))

    def get_task_by_id(self, task_id: int) -> Task:
        """Fetch a single task.

        Raises:
            TaskNotFoundError: The service returned an empty result
        """
        self.client.logger.info("Fetching task", task_id=task_id)
        data = self.client.request("GET", "tasks", task_id, expect=list)
        if not data:
            raise TaskNotFoundError(f"task {task_id} not found")
        return self._parse_task(data[0])

    def create_task(self, assignee: ModelAssignee, fields: Iterable[TaskField]) -> Task:
        """Create a task in this model and return it as stored by the service."""
        assignee_payload = {key: value for key, value in (("id", assignee.id), ("type", assignee.type)) if value}
        payload = {"assignee": assignee_payload, "fields": build_fields_payload(fields)}

        self.client.logger.info("Creating task", model_id=self.id, assignee=assignee.name)
        data = self.client.request("POST", "tasks", self.id, payload=payload)

        task_id = data.get("id")
        if not isinstance(task_id, int) or isinstance(task_id, bool):
            raise DecodeError(f"/v1/tasks/{self.id} unmarshaling error: missing task id")

        self.client.logger.info("Task created", model_id=self.id, task_id=task_id)
        return self.get_task_by_id(task_id)

    # Row conversion

    def _resolve_status(self, raw_status: Any) -> ModelStatus | None:
        if not raw_status:
            return None
        raw = str(raw_status)
        for status in self._statuses.values():
            if status.id == raw or status.name.casefold() == raw.casefold():
                return status
        return None

    def _parse_task(self, row: dict[str, Any]) -> Task:
        dates: dict[str, datetime] = {}
        fields: list[TaskField] = []

        try:
            for raw_field in row.get("fields") or []:
                field_id = str(raw_field["id"])
                value = raw_field.get("value")

                key = field_id.lower()
                if key in _DATE_FIELDS and value is not None:
                    try:
                        dates[key] = datetime.strptime(value, DATE_FORMAT)
                    except (TypeError, ValueError) as e:
                        raise DecodeError(f"task {_DATE_FIELDS[key]} parse error: {e}") from e

                model_field = self._fields.get(field_id) or ModelField(id=field_id)
                fields.append(TaskField(model_field=model_field, value=value, state=raw_field.get("state") or ""))

            return Task(
                model=self,
                id=int(row["id"]),
                idx=str(row.get("idx") or ""),
                status=self._resolve_status(row.get("status")),
                start_date=dates.get("start"),
                end_date=dates.get("end"),
                status_closed_date=dates.get("statusClosedDate".lower()),
                fields=fields,
            )
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise DecodeError(f"task parse error: {e!r}") from e


def _filter_params(fields: Iterable[TaskField]) -> QueryParams:
    return [(field.model_field.id, format_query_value(field.value)) for field in fields]
