from .enums import GeoErrorCode


class DomainError(Exception):
    """Base exception for business rule violations."""


class ValidationError(DomainError):
    """Raised when input data is invalid or violates domain rules."""


class NotFoundError(ValidationError):
    """Raised when a referenced class, user or record does not exist."""


class AuthenticationError(DomainError):
    """Raised when login credentials are invalid."""


class DeviceMismatchError(AuthenticationError):
    """Raised when an account is used from a device other than the bound one."""


class AuthorizationError(DomainError):
    """Raised when a user lacks permission for an action."""


class SessionStateViolation(DomainError):
    """Raised when an action is not allowed in the class's current session state."""


class StoreWriteFailure(DomainError):
    """Raised when the durable store rejects a read or write."""


class GeoError(Exception):
    """Location acquisition failure reported by the device location API."""

    code = GeoErrorCode.POSITION_UNAVAILABLE
    retryable = True

    def __init__(self, message: str = ""):
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__

    @staticmethod
    def from_code(code: int, message: str = "") -> "GeoError":
        cls = {
            GeoErrorCode.PERMISSION_DENIED: GeoPermissionDenied,
            GeoErrorCode.POSITION_UNAVAILABLE: GeoUnavailable,
            GeoErrorCode.TIMEOUT: GeoTimeout,
        }.get(GeoErrorCode(code), GeoUnavailable)
        return cls(message)


class GeoPermissionDenied(GeoError):
    code = GeoErrorCode.PERMISSION_DENIED
    retryable = False


class GeoUnavailable(GeoError):
    code = GeoErrorCode.POSITION_UNAVAILABLE


class GeoTimeout(GeoError):
    code = GeoErrorCode.TIMEOUT
