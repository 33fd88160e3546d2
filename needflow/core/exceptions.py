from __future__ import annotations

from typing import Any


class WorkflowError(Exception):
    """Base class for errors surfaced to API callers with a status and a code."""

    status_code = 400
    code = "workflow_error"

    def __init__(self, message: str, details: Any = None):
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(WorkflowError):
    status_code = 400
    code = "validation_error"


class NotFound(WorkflowError):
    status_code = 404
    code = "not_found"


class Forbidden(WorkflowError):
    status_code = 403
    code = "forbidden"


class InvalidState(WorkflowError):
    status_code = 400
    code = "invalid_state"


class WorkflowConfigurationError(WorkflowError):
    status_code = 409
    code = "workflow_configuration_error"


class StorageError(WorkflowError):
    status_code = 500
    code = "storage_error"
