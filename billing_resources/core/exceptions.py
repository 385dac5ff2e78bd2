"""Custom exceptions for the Billing Resources service"""

from typing import List, Optional, Dict, Any
from datetime import datetime


class AuthenticationError(Exception):
    """
    Raised when authentication fails.

    This exception is raised when:
    - No bearer token is provided
    - JWT token validation fails
    - The token subject does not match an existing user
    """

    def __init__(
        self,
        message: str,
        error_code: str = "authentication_failed",
        context: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.error_code = error_code
        self.context = context
        self.details = details or {}
        self.timestamp = datetime.utcnow()

        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging"""
        return {
            "error_type": "authentication_error",
            "error_code": self.error_code,
            "message": self.message,
            "context": self.context,
            "details": self.details,
            "timestamp": self.timestamp.isoformat()
        }

    def get_api_response(self) -> Dict[str, Any]:
        """Get API-friendly error response"""
        return {
            "detail": self.message,
            "type": self.error_code,
            "context": self.context
        }


class QuotaValidationError(ValueError):
    """
    Raised at the API boundary when a quota or server-resource change is
    rejected by validation.

    Carries every failing message so the caller sees all of them at once.
    """

    def __init__(
        self,
        errors: List[str],
        message: str = "Validation failed",
        error_code: str = "VALIDATION_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.errors = list(errors)
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        self.timestamp = datetime.utcnow()

        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging"""
        return {
            "error_type": "quota_validation_error",
            "error_code": self.error_code,
            "message": self.message,
            "errors": self.errors,
            "details": self.details,
            "timestamp": self.timestamp.isoformat()
        }

    def get_api_response(self) -> Dict[str, Any]:
        """Get API-friendly error response"""
        return {
            "error": {
                "code": self.error_code,
                "message": self.message,
                "errors": self.errors,
            }
        }


class ResourceOverflowError(Exception):
    """
    Raised when a user whose aggregate usage already exceeds a limit tries
    to change a server's resources.
    """

    def __init__(
        self,
        overflow_details: Dict[str, Dict[str, int]],
        user_id: Optional[int] = None
    ):
        self.overflow_details = overflow_details
        self.user_id = user_id
        self.timestamp = datetime.utcnow()

        parts = [
            f"{resource_type} ({detail['used']} / {detail['limit']})"
            for resource_type, detail in overflow_details.items()
        ]
        self.message = (
            "Resource limits exceeded. Please reduce resource usage before "
            "making changes. Overflow: " + ", ".join(parts)
        )

        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging"""
        return {
            "error_type": "resource_overflow_error",
            "message": self.message,
            "user_id": self.user_id,
            "overflow_details": self.overflow_details,
            "timestamp": self.timestamp.isoformat()
        }

    def get_api_response(self) -> Dict[str, Any]:
        """Get API-friendly error response"""
        return {
            "error": {
                "code": "RESOURCE_OVERFLOW",
                "message": self.message,
                "overflow_details": self.overflow_details,
            }
        }


class QuotaStorageError(Exception):
    """
    Raised at the API boundary when the quota store reported an
    infrastructure failure (connection lost, transaction aborted).
    """

    def __init__(
        self,
        message: str,
        error_code: str = "STORAGE_ERROR",
        user_id: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.error_code = error_code
        self.user_id = user_id
        self.details = details or {}
        self.timestamp = datetime.utcnow()

        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging"""
        return {
            "error_type": "quota_storage_error",
            "error_code": self.error_code,
            "message": self.message,
            "user_id": self.user_id,
            "details": self.details,
            "timestamp": self.timestamp.isoformat()
        }

    def get_api_response(self) -> Dict[str, Any]:
        """Get API-friendly error response"""
        return {
            "error": {
                "code": self.error_code,
                "message": self.message,
            }
        }
