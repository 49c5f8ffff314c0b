"""CLI for neaktor-api."""

from typing import Annotated, Literal

import structlog
from cyclopts import App, Parameter

from neaktor_api.client import Neaktor
from neaktor_api.config import client_from_config, get_config
from neaktor_api.config_commands import config_app
from neaktor_api.model import Model
from neaktor_api.models import TaskField
from neaktor_api.task import Task

logger = structlog.get_logger()

app = App(
    name="neaktor",
    help="Neaktor - command line access to task-models and tasks",
)

app.command(config_app)


def configure_logging(log_level: str) -> None:
    """Configure structlog with the specified log level."""
    structlog.configure(wrapper_class=structlog.make_filtering_bound_logger(min_level=log_level.lower()))


def get_client() -> Neaktor:
    """Get a client built from the configuration."""
    return client_from_config(get_config())


def parse_field_filters(model: Model, filters: list[str]) -> list[TaskField]:
    """Parse ``name=value`` pairs into task fields of the model."""
    fields = []
    for item in filters:
        if "=" not in item:
            raise ValueError(f"Invalid field filter {item!r}, expected name=value")
        name, value = item.split("=", 1)
        fields.append(TaskField(model_field=model.get_field(name.strip()), value=value.strip()))
    return fields


def print_task(task: Task) -> None:
    status = task.status.name if task.status else "-"
    print(f"Task: {task.id} ({task.idx})")
    print(f"Status: {status}")
    if task.start_date:
        print(f"Start: {task.start_date.isoformat()}")
    if task.end_date:
        print(f"End: {task.end_date.isoformat()}")
    for task_field in task.fields:
        name = task_field.model_field.name or task_field.model_field.id
        print(f"  {name}: {task_field.value}")


@app.command
def model(title: str) -> None:
    """Show statuses and fields of a task-model."""
    with get_client() as client:
        found = client.get_model_by_title(title)

    print(f"Model: {found.name} ({found.id})")
    print("Statuses:")
    for status in found.statuses.values():
        marker = "○" if status.closed else "●"
        print(f"  {marker} {status.id}: {status.name}")
    print("Fields:")
    for field in found.fields.values():
        print(f"  {field.id}: {field.name}")


@app.command
def tasks(model_title: str, status: str | None = None, field: list[str] | None = None) -> None:
    """List tasks of a model filtered by status and/or field values."""
    with get_client() as client:
        found = client.get_model_by_title(model_title)
        filters = parse_field_filters(found, field or [])

        if status is not None and filters:
            result = found.get_tasks_by_status_and_fields(found.get_status(status), filters)
        elif status is not None:
            result = found.get_tasks_by_status(found.get_status(status))
        elif filters:
            result = found.get_tasks_by_fields(filters)
        else:
            raise ValueError("Specify --status and/or --field")

    print(f"Found {len(result)} task(s):\n")
    for item in result:
        status_name = item.status.name if item.status else "-"
        print(f"{item.id} [{item.idx}] {status_name}")


@app.command
def task(model_title: str, task_id: int) -> None:
    """Show a task."""
    with get_client() as client:
        found = client.get_model_by_title(model_title).get_task_by_id(task_id)
    print_task(found)


@app.command
def comment(model_title: str, task_id: int, text: str) -> None:
    """Add a comment to a task."""
    with get_client() as client:
        client.get_model_by_title(model_title).get_task_by_id(task_id).add_comment(text)
    print(f"Commented on task {task_id}")


@app.command
def move(model_title: str, task_id: int, status: str) -> None:
    """Change the status of a task."""
    with get_client() as client:
        found = client.get_model_by_title(model_title)
        found.get_task_by_id(task_id).update_status(found.get_status(status))
    print(f"Moved task {task_id} to {status}")


@app.command(name="set-field")
def set_field(model_title: str, task_id: int, field_name: str, value: str) -> None:
    """Set a field value of a task."""
    with get_client() as client:
        found = client.get_model_by_title(model_title)
        task_field = TaskField(model_field=found.get_field(field_name), value=value)
        found.get_task_by_id(task_id).update_fields([task_field])
    print(f"Updated {field_name} of task {task_id}")


@app.meta.default
def main(
    *tokens: Annotated[str, Parameter(show=False, allow_leading_hyphen=True)],
    log_level: Literal["debug", "info", "warning", "error", "critical"] = "critical",
) -> None:
    """Main entry point with global options."""
    configure_logging(log_level)
    app(tokens)


if __name__ == "__main__":
    app.meta()
