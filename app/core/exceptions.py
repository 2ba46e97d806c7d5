# ============================================================================
# Custom Exceptions
# ============================================================================
from typing import Optional

class VolunteerHubException(Exception):
    """Base exception for Volunteer Hub Analytics"""
    def __init__(
        self,
        detail: str,
        status_code: int = 400,
        error_code: Optional[str] = None
    ):
        self.detail = detail
        self.status_code = status_code
        self.error_code = error_code or "VOLUNTEER_HUB_ERROR"
        super().__init__(self.detail)

class InvalidDateRange(VolunteerHubException):
    def __init__(self, value: str, field: str = "date"):
        super().__init__(
            detail=f"Invalid {field}: '{value}' is not an ISO-8601 date",
            status_code=400,
            error_code="INVALID_DATE_RANGE"
        )
        self.value = value
        self.field = field

class InvalidGranularity(VolunteerHubException):
    def __init__(self, value: str):
        super().__init__(
            detail=f"Unsupported grouping '{value}'",
            status_code=400,
            error_code="INVALID_GRANULARITY"
        )

class OrganizationNotFound(VolunteerHubException):
    def __init__(self, organization_id: int):
        super().__init__(
            detail=f"Organization not found: {organization_id}",
            status_code=404,
            error_code="ORGANIZATION_NOT_FOUND"
        )

class AggregationError(VolunteerHubException):
    """An aggregation could not produce a complete result"""

class RepositoryFailure(AggregationError):
    def __init__(self, metric: str, scope: str):
        super().__init__(
            detail=f"Failed to load '{metric}' for {scope}",
            status_code=500,
            error_code="REPOSITORY_FAILURE"
        )
        self.metric = metric
        self.scope = scope

class AggregationTimeout(AggregationError):
    def __init__(self, operation: str, timeout: float):
        super().__init__(
            detail=f"'{operation}' did not finish within {timeout:g}s",
            status_code=504,
            error_code="AGGREGATION_TIMEOUT"
        )
        self.operation = operation
        self.timeout = timeout
