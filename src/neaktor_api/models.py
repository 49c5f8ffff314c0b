"""Data models for the Neaktor client."""

from dataclasses import dataclass

# Composite values (currency etc.) are passed through as decoded JSON.
FieldValue = str | int | float | bool | None


@dataclass(frozen=True)
class ModelField:
    """A field definition of a task-model."""

    id: str
    name: str = ""
    state: str = ""


@dataclass(frozen=True)
class ModelStatus:
    """A workflow status of a task-model."""

    id: str
    name: str = ""
    closed: bool = False
    type: str = ""


@dataclass(frozen=True)
class ModelAssignee:
    """A user or role a task can be routed to when entering a status."""

    id: int
    name: str = ""
    type: str = ""


@dataclass(frozen=True)
class CustomFieldOption:
    """One available value of a custom field."""

    id: str
    value: str


@dataclass
class TaskField:
    """A field value attached to a task."""

    model_field: ModelField
    value: FieldValue = None
    state: str = ""


def format_query_value(value: FieldValue) -> str:
    """Render a field value for use as a task search filter."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return f"{value:f}"
    return str(value)
