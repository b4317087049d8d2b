"""Exception taxonomy shared by the gateway, registry and collaborators."""


class CallHubError(Exception):
    """Base class for all service errors."""


class AuthenticationError(CallHubError):
    """Webhook signature missing or invalid."""


class PayloadValidationError(CallHubError):
    """Webhook body is not valid JSON or does not match the event envelope."""

    def __init__(self, message: str, details: list | None = None):
        super().__init__(message)
        self.details = details or []


class HandlerExecutionError(CallHubError):
    """A registered function handler raised while executing."""

    def __init__(self, function_name: str, cause: BaseException):
        super().__init__(f"{function_name} failed: {cause}")
        self.function_name = function_name
        self.cause = cause


class DependencyError(CallHubError):
    """An external collaborator (datastore, cache, search) is unavailable."""

    def __init__(self, dependency: str, message: str):
        super().__init__(f"{dependency}: {message}")
        self.dependency = dependency
