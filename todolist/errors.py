from datetime import datetime, timezone


class TaskAppError(Exception):
    """Base class for errors the HTTP layer reports to clients."""

    status_code = 500
    error_type = "INTERNAL_SERVER_ERROR"

    def __init__(self, message="Internal server error"):
        super().__init__(message)
        self.message = message
        self.timestamp = datetime.now(timezone.utc).isoformat()

    def to_dict(self):
        return {
            "message": self.message,
            "type": self.error_type,
            "statusCode": self.status_code,
            "timestamp": self.timestamp,
        }


class ValidationError(TaskAppError):
    status_code = 400
    error_type = "VALIDATION_ERROR"

    def __init__(self, message="Validation failed", field=None):
        super().__init__(message)
        self.field = field

    def to_dict(self):
        payload = super().to_dict()
        if self.field:
            payload["field"] = self.field
        return payload


class NotFoundError(TaskAppError):
    status_code = 404
    error_type = "NOT_FOUND"

    def __init__(self, message="Resource not found"):
        super().__init__(message)


class ConflictError(TaskAppError):
    status_code = 409
    error_type = "CONFLICT"

    def __init__(self, message="Resource already exists"):
        super().__init__(message)


class AuthenticationError(TaskAppError):
    status_code = 401
    error_type = "UNAUTHORIZED"

    def __init__(self, message="Authentication required"):
        super().__init__(message)


class InternalError(TaskAppError):
    pass
