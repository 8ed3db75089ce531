"""
Service exceptions for the Rubric Screening API.

Each class carries the HTTP status it maps to, so routers and the exception
middleware translate them the same way through ``map_to_http_exception``.
"""
from typing import Any, Dict, Optional

from fastapi import HTTPException


class ScreeningBaseException(Exception):
    """Base exception for the screening service"""

    status_code = 500
    default_error_code = "SCREENING_ERROR"

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ):
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        self.cause = cause
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Serializable view used in logs and error bodies"""
        result = {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
        }
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result


def _with_details(kwargs: Dict[str, Any], **fields: Any) -> Dict[str, Any]:
    """Merge keyword context into ``details``, skipping unset values."""
    details = dict(kwargs.pop("details", None) or {})
    details.update({k: v for k, v in fields.items() if v is not None})
    return details


class ValidationError(ScreeningBaseException):
    """Inbound data (e.g. a rubric edit) does not satisfy the model rules"""

    status_code = 400
    default_error_code = "VALIDATION_ERROR"

    def __init__(self, message: str, field: Optional[str] = None, value: Any = None, **kwargs):
        details = _with_details(kwargs, field=field, invalid_value=None if value is None else str(value))
        super().__init__(message, details=details, **kwargs)


class NotFoundError(ScreeningBaseException):
    """Unknown profile, rubric or result set"""

    status_code = 404
    default_error_code = "NOT_FOUND"

    def __init__(self, message: str, resource: Optional[str] = None, resource_id: Optional[str] = None, **kwargs):
        details = _with_details(kwargs, resource=resource, resource_id=resource_id)
        super().__init__(message, details=details, **kwargs)


class ConfigurationError(ScreeningBaseException):
    """Bad environment value or unreadable profile data file"""

    status_code = 400
    default_error_code = "CONFIGURATION_ERROR"

    def __init__(self, message: str, config_key: Optional[str] = None, config_value: Any = None, **kwargs):
        details = _with_details(kwargs, config_key=config_key,
                                config_value=None if config_value is None else str(config_value))
        super().__init__(message, details=details, **kwargs)


class ExternalServiceError(ScreeningBaseException):
    """The LLM endpoint could not be reached or answered with an error"""

    status_code = 502
    default_error_code = "EXTERNAL_SERVICE_ERROR"

    def __init__(self, message: str, service_name: Optional[str] = None, status_code: Optional[int] = None,
                 **kwargs):
        details = _with_details(kwargs, service_name=service_name, status_code=status_code)
        super().__init__(message, details=details, **kwargs)


class BusinessLogicError(ScreeningBaseException):
    """A state transition that is not allowed (duplicate rubric, second concurrent run)"""

    status_code = 409
    default_error_code = "BUSINESS_LOGIC_ERROR"

    def __init__(self, message: str, rule: Optional[str] = None, **kwargs):
        details = _with_details(kwargs, business_rule=rule)
        super().__init__(message, details=details, **kwargs)


def map_to_http_exception(exc: ScreeningBaseException) -> HTTPException:
    """HTTPException carrying the exception's status and serialized form"""
    return HTTPException(status_code=exc.status_code, detail={"error": exc.to_dict(), "message": exc.message})
