"""
Core Application - infrastructure shared by the domain apps.

Models (import from core.models / core.model_mixins):
    - BaseModel: created_at / updated_at
    - UUIDPrimaryKeyMixin: UUID primary key

Services (core.services):
    - BaseService, ServiceResult

Exceptions (core.exceptions):
    - BaseApplicationError, ExternalServiceError

Resilience (core.circuit_breaker):
    - CircuitBreaker, CircuitOpenError

Helpers (core.helpers):
    - parse_uuid, calculate_pagination

Models and mixins are not re-exported here because importing them
requires the app registry to be ready.
"""

from .exceptions import BaseApplicationError, ExternalServiceError
from .helpers import calculate_pagination, parse_uuid
from .services import BaseService, ServiceResult

__all__ = [
    "BaseService",
    "ServiceResult",
    "BaseApplicationError",
    "ExternalServiceError",
    "calculate_pagination",
    "parse_uuid",
]
