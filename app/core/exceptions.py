"""
Domain errors raised by the booking core.

Each error carries a status code and a message so the API layer can turn it
into a response without knowing which service raised it.
"""

class AppointmentSystemError(Exception):
    status_code: int = 500
    error: str = "Internal Server Error"
    default_message: str = "An unexpected error occurred"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class MalformedInput(AppointmentSystemError):
    status_code = 400
    error = "Bad Request"
    default_message = "Invalid request payload"


class Unauthorized(AppointmentSystemError):
    status_code = 401
    error = "Unauthorized"
    default_message = "Invalid or expired token"


class MalformedToken(Unauthorized):
    default_message = "Token could not be parsed or verified"


class IdentityNotFound(Unauthorized):
    default_message = "Token subject no longer exists"


class Forbidden(AppointmentSystemError):
    status_code = 403
    error = "Forbidden"
    default_message = "Not allowed to act on this resource"


class EntityNotFound(AppointmentSystemError):
    status_code = 404
    error = "Not Found"
    default_message = "The requested resource was not found"


class SlotConflict(AppointmentSystemError):
    status_code = 409
    error = "Conflict"
    default_message = "Doctor is unavailable at the requested time"


class DuplicateEntity(AppointmentSystemError):
    status_code = 409
    error = "Conflict"
    default_message = "Resource already exists"


class InternalFailure(AppointmentSystemError):
    status_code = 500
    error = "Internal Server Error"
    default_message = "An unexpected error occurred"
