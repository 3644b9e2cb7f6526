"""
Centralized Error Tracking and Reporting for the Sync Module.

This module defines the failure taxonomy of a replication pass and collects
the errors raised while it runs.

Key Features:
- Custom Exception Classes: one per failure scope (configuration, provisioning,
  single document transform, cursor, bulk write).
- ErrorTracker: aggregates every error that occurred during one pass.
- Severity Levels: WARNING for fail-open conditions, ERROR for lost documents
  or batches, CRITICAL for a pass that ended early.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Dict, Any


class ErrorSeverity(Enum):
    """
    Defines the severity of an error.
    """
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


_SEVERITY_RANK = {
    ErrorSeverity.WARNING: 1,
    ErrorSeverity.ERROR: 2,
    ErrorSeverity.CRITICAL: 3,
}


@dataclass
class SyncError:
    """
    A structured object representing a single error that occurred during a pass.
    """
    message: str
    document_id: Optional[str] = None
    severity: ErrorSeverity = ErrorSeverity.ERROR
    details: Dict[str, Any] = field(default_factory=dict)
    recovery_suggestion: Optional[str] = None

    def to_dict(self):
        return {
            "message": self.message,
            "document_id": self.document_id,
            "severity": self.severity.value,
            "details": self.details,
            "recovery_suggestion": self.recovery_suggestion
        }


# Custom Exception Classes
class SyncException(Exception):
    """Base class for all custom sync exceptions."""
    def __init__(self, message: str, document_id: Optional[str] = None, recovery_suggestion: Optional[str] = None):
        self.message = message
        self.document_id = document_id
        self.recovery_suggestion = recovery_suggestion
        super().__init__(self.message)


class ConfigurationError(SyncException):
    """Required settings are missing or invalid. Fatal at startup."""
    pass


class ProvisioningError(SyncException):
    """The target index could not be created. Fatal to the current pass."""
    pass


class DocumentTransformError(SyncException):
    """A single record could not be converted into a writable document."""
    pass


class CursorError(SyncException):
    """Opening or advancing the source scroll cursor failed."""
    pass


class BatchWriteError(SyncException):
    """A bulk write exhausted its retries."""
    def __init__(self, message: str, attempts: int = 0, cause: Optional[BaseException] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.attempts = attempts
        self.cause = cause


class ExternalServiceError(SyncException):
    """A cluster call failed in a way not covered by a more specific error."""
    pass


class DocumentNotFound(SyncException):
    """The requested document does not exist in the index."""
    pass


class ErrorTracker:
    """
    A centralized tracker for aggregating errors during a pass.
    """
    def __init__(self):
        self.errors: List[SyncError] = []

    def report(self, message: str, document_id: Optional[str] = None, severity: ErrorSeverity = ErrorSeverity.ERROR, details: Optional[Dict[str, Any]] = None, recovery_suggestion: Optional[str] = None):
        """
        Report a new error.
        """
        error = SyncError(
            message=message,
            document_id=document_id,
            severity=severity,
            details=details or {},
            recovery_suggestion=recovery_suggestion
        )
        self.errors.append(error)
        return error

    def report_exception(self, exc: SyncException, severity: ErrorSeverity = ErrorSeverity.ERROR):
        """
        Report an error from a SyncException.
        """
        return self.report(
            message=exc.message,
            document_id=exc.document_id,
            severity=severity,
            recovery_suggestion=exc.recovery_suggestion
        )

    def get_errors(self, min_severity: ErrorSeverity = ErrorSeverity.WARNING) -> List[SyncError]:
        """
        Get all errors at or above a certain severity level.
        """
        min_level = _SEVERITY_RANK.get(min_severity, 1)
        return [e for e in self.errors if _SEVERITY_RANK.get(e.severity, 1) >= min_level]

    def has_critical_errors(self) -> bool:
        """
        Check if any critical errors have been reported.
        """
        return any(e.severity == ErrorSeverity.CRITICAL for e in self.errors)

    def generate_report(self) -> Dict[str, Any]:
        """
        Generate a summary report of all errors.
        """
        critical = len(self.get_errors(ErrorSeverity.CRITICAL))
        error_or_worse = len(self.get_errors(ErrorSeverity.ERROR))
        return {
            "total_errors": len(self.errors),
            "critical_count": critical,
            "error_count": error_or_worse - critical,
            "warning_count": len(self.errors) - error_or_worse,
            "errors": [e.to_dict() for e in self.errors]
        }
