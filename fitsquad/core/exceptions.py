"""Domain exceptions."""

from typing import Optional


class FitSquadError(Exception):
    """Base class for domain errors."""


class WorkoutValidationError(FitSquadError):
    """Workout input rejected before scoring."""

    def __init__(self, field: str, message: str):
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}")


class ExternalServiceError(FitSquadError):
    """Strava returned a non-2xx response or the request failed."""

    def __init__(self, operation: str, status_code: Optional[int] = None, detail: str = ""):
        self.operation = operation
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"Strava {operation} failed (status={status_code}): {detail}")


class StravaAuthError(ExternalServiceError):
    """Strava rejected the access token (401/403)."""


class PersistenceConflict(FitSquadError):
    """A unique constraint rejected a write that has no ON CONFLICT clause."""

    def __init__(self, entity: str, key: str):
        self.entity = entity
        self.key = key
        super().__init__(f"{entity} already exists: {key}")
