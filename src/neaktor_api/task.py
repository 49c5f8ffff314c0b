"""A single task fetched from the service."""

import dataclasses
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any

from neaktor_api.errors import CustomFieldValueNotFoundError, TaskFieldNotFoundError
from neaktor_api.models import ModelField, ModelStatus, TaskField

if TYPE_CHECKING:
    from neaktor_api.model import Model


def build_fields_payload(fields: Iterable[TaskField]) -> list[dict[str, Any]]:
    """Build the ``fields`` array of a create or update request, keeping order.

    ``value`` is left out for fields whose value is None.
    """
    payload = []
    for task_field in fields:
        item: dict[str, Any] = {"id": task_field.model_field.id}
        if task_field.value is not None:
            item["value"] = task_field.value
        payload.append(item)
    return payload


@dataclass
class Task:
    """A task as returned by the service.

    Mutations are sent to the service only; the local copy is never updated.
    Fetch the task again to observe changes.
    """

    model: "Model" = field(repr=False, compare=False)
    id: int
    idx: str = ""
    status: ModelStatus | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    status_closed_date: datetime | None = None
    fields: list[TaskField] = field(default_factory=list)

    def get_field(self, model_field: ModelField) -> TaskField:
        for task_field in self.fields:
            if task_field.model_field.id == model_field.id:
                return task_field
        raise TaskFieldNotFoundError(f"field {model_field.id!r} not found in task {self.id}")

    def get_custom_field(self, model_field: ModelField) -> TaskField:
        """Get a custom field with its option id resolved to the display value.

        Returns:
            A copy of the task field carrying the display value
        """
        task_field = self.get_field(model_field)
        if task_field.value is None:
            raise CustomFieldValueNotFoundError(f"custom field {model_field.id!r} of task {self.id} is empty")

        value = self.model.get_custom_field_value(model_field, str(task_field.value))
        return dataclasses.replace(task_field, value=value)

    def update_fields(self, fields: Iterable[TaskField]) -> None:
        fields = list(fields)
        client = self.model.client
        client.logger.info("Updating task fields", task_id=self.id, field_ids=[f.model_field.id for f in fields])
        client.request("PUT", "tasks", self.id, payload={"fields": build_fields_payload(fields)})

    def update_status(self, status: ModelStatus) -> None:
        client = self.model.client
        client.logger.info("Updating task status", task_id=self.id, status_id=status.id)
        client.request("POST", "tasks", self.id, "status", "change", payload={"status": status.id})

    def add_comment(self, message: str) -> None:
        client = self.model.client
        client.logger.info("Adding task comment", task_id=self.id)
        client.request("POST", "comments", self.id, payload={"text": message})
