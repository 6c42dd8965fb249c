from typing import Any, Dict, Optional


class ScimBridgeException(Exception):
    """Base exception for all SCIM bridge errors."""

    scim_type: Optional[str] = None

    def __init__(
        self,
        message: str,
        code: str = "internal_error",
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None,
        scim_type: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}
        if scim_type is not None:
            self.scim_type = scim_type


class ValidationError(ScimBridgeException):
    """Raised when a required field is missing or malformed."""

    scim_type = "invalidValue"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="validation_error", status_code=400, details=details)


class ConflictError(ScimBridgeException):
    """Raised when a uniqueness constraint would be violated."""

    scim_type = "uniqueness"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="conflict", status_code=409, details=details)


class InvalidFilterError(ScimBridgeException):
    """Raised when a SCIM filter expression is malformed or unsupported."""

    scim_type = "invalidFilter"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="invalid_filter", status_code=400, details=details)


class AuthError(ScimBridgeException):
    """Raised when neither an API key nor an operator session authorizes the tenant."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="auth_error", status_code=401, details=details)


class StoreError(ScimBridgeException):
    """Raised when the persistence layer fails for a reason not otherwise classified."""

    def __init__(
        self,
        message: str,
        code: str = "store_error",
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, code=code, status_code=status_code, details=details)


class DuplicateRecordError(StoreError):
    """Raised when an insert or update trips a unique constraint."""

    scim_type = "uniqueness"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="duplicate_record", status_code=409, details=details)
