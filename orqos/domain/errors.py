class GatewayError(Exception):
    """Base error surfaced to HTTP clients with ``status_code``."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidRequestError(GatewayError):
    status_code = 400


class ForbiddenError(GatewayError):
    status_code = 403


class ContainerNotFoundError(GatewayError):
    status_code = 404


class ConflictError(GatewayError):
    status_code = 409


class DaemonError(GatewayError):
    """The daemon answered, but with an error."""

    status_code = 500


class DaemonUnavailableError(GatewayError):
    """The daemon could not be reached at all."""

    status_code = 503
