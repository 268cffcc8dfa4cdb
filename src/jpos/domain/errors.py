class AppError(Exception):
    """Base app error."""


class ValidationError(AppError):
    pass


class NotFoundError(AppError):
    pass


class PaymentInsufficientError(ValidationError):
    pass


class InvalidTransitionError(AppError):
    pass


class StoreUnavailableError(AppError):
    """The backing key-value store could not be reached or written."""


class FxUnavailableError(AppError):
    pass


class AuthorizationError(AppError):
    pass


class PermissionDeniedError(AuthorizationError):
    """Authenticated, but the role does not allow the action."""
