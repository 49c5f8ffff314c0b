"""Typed client for the Neaktor task-management API."""

from neaktor_api.client import Neaktor
from neaktor_api.errors import (
    AssigneeNotFoundError,
    AuthError,
    CustomFieldOptionNotFoundError,
    CustomFieldValueNotFoundError,
    DecodeError,
    ErrorKind,
    FieldNotFoundError,
    HTTPStatusError,
    ModelNotFoundError,
    NeaktorError,
    NotFoundError,
    ServiceError,
    ServiceUnavailableError,
    StatusNotFoundError,
    TaskFieldNotFoundError,
    TaskNotFoundError,
    TransportError,
    classify,
)
from neaktor_api.model import Model
from neaktor_api.models import ModelAssignee, ModelField, ModelStatus, TaskField
from neaktor_api.ratelimit import Limiter, RateLimiter
from neaktor_api.task import Task
from neaktor_api.transport import RequestsTransport, Response, Transport

__all__ = [
    "Neaktor",
    "Model",
    "Task",
    "ModelAssignee",
    "ModelField",
    "ModelStatus",
    "TaskField",
    "Limiter",
    "RateLimiter",
    "RequestsTransport",
    "Response",
    "Transport",
    "classify",
    "ErrorKind",
    "NeaktorError",
    "TransportError",
    "ServiceUnavailableError",
    "DecodeError",
    "ServiceError",
    "HTTPStatusError",
    "AuthError",
    "NotFoundError",
    "ModelNotFoundError",
    "StatusNotFoundError",
    "FieldNotFoundError",
    "TaskNotFoundError",
    "TaskFieldNotFoundError",
    "CustomFieldOptionNotFoundError",
    "CustomFieldValueNotFoundError",
    "AssigneeNotFoundError",
]
