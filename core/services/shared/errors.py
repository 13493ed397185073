class ServiceError(Exception):
    """Base class for service-layer errors."""


class ValidationError(ServiceError):
    """Raised when input payload is invalid."""


class ExternalDependencyError(ServiceError):
    """Raised when external dependency (LLM/store/IO) fails."""


class PermissionDeniedError(ServiceError):
    """Raised when actor is not allowed to access resource."""


class NotFoundError(ServiceError):
    """Raised when the requested enrollment/course does not exist."""


class GradingError(ServiceError):
    """Base class for grade aggregation/classification failures."""


class NoDataError(GradingError, ValidationError):
    """Raised when a grade is requested for an enrollment without weekly records."""


class RubricBoundsError(GradingError):
    """Raised when a percentage outside [0, 100] reaches the rubric."""


class PredictionUnavailableError(GradingError, ExternalDependencyError):
    """Raised when the predictive policy fails, times out or answers malformed output."""
