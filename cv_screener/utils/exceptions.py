"""
Custom Exception Classes for CV Screener API
"""
from typing import Dict, Any, Type
from fastapi import HTTPException


class ScreenerBaseException(Exception):
    """Base exception for CV Screener API"""

    def __init__(
        self,
        message: str,
        error_code: str = None,
        details: Dict[str, Any] = None,
        cause: Exception = None
    ):
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        self.cause = cause
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/response"""
        result = {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details
        }
        if self.cause:
            result["cause"] = str(self.cause)
        return result


class InputError(ScreenerBaseException):
    """Raised when the request itself is unusable (missing file, bad skills)"""

    def __init__(self, message: str, field: str = None, value: Any = None, **kwargs):
        details = kwargs.pop('details', {})
        if field:
            details['field'] = field
        if value is not None:
            details['invalid_value'] = str(value)
        super().__init__(message, error_code="INPUT_ERROR", details=details, **kwargs)


class ExtractionError(ScreenerBaseException):
    """Raised when no usable text can be pulled out of an uploaded document"""

    def __init__(self, message: str, file_name: str = None, **kwargs):
        details = kwargs.pop('details', {})
        if file_name:
            details['file_name'] = file_name
        super().__init__(message, error_code="EXTRACTION_ERROR", details=details, **kwargs)


class InferenceError(ScreenerBaseException):
    """Raised when the remote model call fails or times out"""

    def __init__(self, message: str, provider: str = None, model_id: str = None, **kwargs):
        details = kwargs.pop('details', {})
        if provider:
            details['provider'] = provider
        if model_id:
            details['model_id'] = model_id
        super().__init__(message, error_code="INFERENCE_ERROR", details=details, **kwargs)


class MalformedCompletionError(ScreenerBaseException):
    """Raised when the model completion cannot be turned into a scorecard"""

    def __init__(self, message: str, error_code: str = "MALFORMED_COMPLETION", **kwargs):
        super().__init__(message, error_code=error_code, **kwargs)


class ParseError(MalformedCompletionError):
    """Raised when the sanitized completion is not a JSON object"""

    def __init__(self, message: str, excerpt: str = None, **kwargs):
        details = kwargs.pop('details', {})
        if excerpt is not None:
            details['excerpt'] = excerpt[:200]
        super().__init__(message, error_code="PARSE_ERROR", details=details, **kwargs)


class ValidationError(MalformedCompletionError):
    """Raised when a parsed completion lacks the expected fields"""

    def __init__(self, message: str, field: str = None, value: Any = None, **kwargs):
        details = kwargs.pop('details', {})
        if field:
            details['field'] = field
        if value is not None:
            details['invalid_value'] = str(value)[:200]
        super().__init__(message, error_code="VALIDATION_ERROR", details=details, **kwargs)


class ConfigurationError(ScreenerBaseException):
    """Raised when configuration is invalid or missing"""

    def __init__(self, message: str, config_key: str = None, config_value: Any = None, **kwargs):
        details = kwargs.pop('details', {})
        if config_key:
            details['config_key'] = config_key
        if config_value is not None:
            details['config_value'] = str(config_value)
        super().__init__(message, error_code="CONFIGURATION_ERROR", details=details, **kwargs)


# HTTP Exception Mapping
STATUS_CODE_MAPPING: Dict[Type[ScreenerBaseException], int] = {
    InputError: 400,
    ExtractionError: 500,
    InferenceError: 500,
    MalformedCompletionError: 500,
    ParseError: 500,
    ValidationError: 500,
    ConfigurationError: 500,
}


def map_to_http_exception(exc: ScreenerBaseException) -> HTTPException:
    """Map custom exceptions to HTTP exceptions"""

    status_code = STATUS_CODE_MAPPING.get(type(exc), 500)

    # Underlying message is exposed on purpose so callers can debug model failures
    detail = {
        "error": exc.message,
        "details": exc.to_dict()
    }

    return HTTPException(status_code=status_code, detail=detail)


# Exception context manager for better error handling
class ExceptionContext:
    """Context manager that logs an operation and wraps foreign exceptions"""

    def __init__(self, operation: str, logger=None, wrap_as: Type[ScreenerBaseException] = None, **context):
        self.operation = operation
        self.logger = logger
        self.wrap_as = wrap_as or MalformedCompletionError
        self.context = context

    def __enter__(self):
        if self.logger:
            self.logger.debug(f"Starting operation: {self.operation}", extra=self.context)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is not None:
            if self.logger:
                self.logger.error(
                    f"Operation failed: {self.operation} - {exc_val}",
                    extra={**self.context, "exception_type": exc_type.__name__}
                )

            # Re-raise custom exceptions as-is
            if isinstance(exc_val, ScreenerBaseException) or not isinstance(exc_val, Exception):
                return False

            wrapped_exc = self.wrap_as(
                str(exc_val) or f"{self.operation} failed",
                details=dict(self.context),
                cause=exc_val
            )
            raise wrapped_exc from exc_val
        else:
            if self.logger:
                self.logger.debug(f"Operation completed: {self.operation}", extra=self.context)

        return False
