"""
Custom exceptions for the CouchDB operator.

Nothing raised from these classes is fatal inside the reconciliation path;
callers log them and carry on. Only ConfigurationError stops the process.
"""
from typing import Optional, Dict, Any


class OperatorException(Exception):
    """
    Base exception for all operator errors.

    All custom exceptions should inherit from this base class.
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ConfigurationError(OperatorException):
    """
    Raised when required startup configuration is missing or invalid.
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message=f"Configuration error: {message}", details=details)


class KubernetesError(OperatorException):
    """
    Raised when Kubernetes API operations fail.

    Used for pod create/list/delete and CouchDB resource read/write errors.
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message=f"Kubernetes error: {message}", details=details)


class CredentialResolutionError(OperatorException):
    """
    Raised when an admin credential reference cannot be dereferenced.

    Carries the env variable and the secret/configmap reference that failed.
    """

    def __init__(self, variable: str, reference: str, reason: str):
        self.variable = variable
        self.reference = reference
        self.reason = reason
        super().__init__(
            message=f"Failed to resolve {variable} from {reference}: {reason}",
            details={"variable": variable, "reference": reference, "reason": reason},
        )


class CouchDBAdminError(OperatorException):
    """
    Raised when a CouchDB administrative API call fails.

    `error` and `reason` mirror the `{"error": ..., "reason": ...}` body
    CouchDB returns for non-success responses.
    """

    def __init__(self, error: str, reason: str, status_code: Optional[int] = None):
        self.error = error
        self.reason = reason
        self.status_code = status_code
        super().__init__(
            message=f"CouchDB error {error}: {reason}",
            details={"error": error, "reason": reason, "status_code": status_code},
        )


__all__ = [
    "OperatorException",
    "ConfigurationError",
    "KubernetesError",
    "CredentialResolutionError",
    "CouchDBAdminError",
]
