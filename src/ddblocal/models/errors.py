"""Error models and exception classes for the DynamoDB Local fixture."""

from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Optional

if TYPE_CHECKING:
    from ..services.handle import LifecycleHandle


class ErrorType(str, Enum):
    """Error type enumeration."""

    WORKSPACE = "workspace"
    UNEXPECTED_TERMINATION = "unexpected_termination"
    READINESS_TIMEOUT = "readiness_timeout"
    PROBE = "probe"
    SUPERVISOR = "supervisor"
    TEARDOWN = "teardown"
    PROTOCOL = "protocol"
    INTERNAL = "internal"


class DynamoDBLocalError(Exception):
    """Base exception for the DynamoDB Local fixture."""

    def __init__(
        self,
        message: str,
        error_type: ErrorType = ErrorType.INTERNAL,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.error_type = error_type
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to a loggable dictionary."""
        data: Dict[str, Any] = {
            "error": self.message,
            "error_type": self.error_type.value,
        }
        if self.details:
            data["details"] = self.details
        return data


class LaunchError(DynamoDBLocalError):
    """Launching an instance failed."""


class WorkspaceError(LaunchError):
    """Temporary workspace could not be created or removed."""

    def __init__(self, message: str, path: Optional[str] = None, **kwargs):
        details = kwargs.pop("details", None) or {}
        if path is not None:
            details["path"] = path
        super().__init__(
            message=message, error_type=ErrorType.WORKSPACE, details=details, **kwargs
        )
        self.path = path


class UnexpectedTerminationError(LaunchError):
    """Supervisor process exited before the service became reachable."""

    def __init__(
        self,
        message: str = "Local DynamoDB instance terminated unexpectedly",
        exit_code: Optional[int] = None,
        reason: Optional[str] = None,
        **kwargs,
    ):
        details: Dict[str, Any] = {"exit_code": exit_code}
        if reason:
            details["reason"] = reason
        super().__init__(
            message=message,
            error_type=ErrorType.UNEXPECTED_TERMINATION,
            details=details,
            **kwargs,
        )
        self.exit_code = exit_code
        self.reason = reason


class ReadinessTimeoutError(LaunchError):
    """Port never became reachable while the supervisor was still alive.

    The still-running instance is attached as ``handle`` so the caller can
    decide whether to stop it.
    """

    def __init__(
        self,
        port: int,
        timeout: float,
        handle: Optional["LifecycleHandle"] = None,
        **kwargs,
    ):
        super().__init__(
            message=f"Port {port} not reachable after {timeout:g} seconds",
            error_type=ErrorType.READINESS_TIMEOUT,
            details={"port": port, "timeout": timeout},
            **kwargs,
        )
        self.port = port
        self.timeout = timeout
        self.handle = handle


class ProbeError(LaunchError):
    """The application-level sanity request returned a bad answer."""

    def __init__(self, message: str, status_code: Optional[int] = None, **kwargs):
        super().__init__(
            message=message,
            error_type=ErrorType.PROBE,
            details={"status_code": status_code} if status_code is not None else None,
            **kwargs,
        )
        self.status_code = status_code


class SupervisorError(DynamoDBLocalError):
    """The supervisor could not create or start its container."""

    def __init__(self, message: str, **kwargs):
        super().__init__(message=message, error_type=ErrorType.SUPERVISOR, **kwargs)


class ProtocolError(DynamoDBLocalError):
    """Malformed launch configuration or inter-process message."""

    def __init__(self, message: str, **kwargs):
        super().__init__(message=message, error_type=ErrorType.PROTOCOL, **kwargs)


class TeardownError(DynamoDBLocalError):
    """One or more teardown steps failed; all steps were still attempted."""

    def __init__(self, errors: List[Exception], **kwargs):
        self.errors = list(errors)
        summary = "; ".join(f"{type(e).__name__}: {e}" for e in self.errors)
        super().__init__(
            message=f"Teardown finished with {len(self.errors)} error(s): {summary}",
            error_type=ErrorType.TEARDOWN,
            details={"errors": [str(e) for e in self.errors]},
            **kwargs,
        )
