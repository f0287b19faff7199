"""
Error taxonomy for the autopilot services.

Views map each class to its HTTP status through ``status_code``.
"""


class AutopilotError(Exception):
    status_code = 500

    def __init__(self, message, detail=None):
        super().__init__(message)
        self.message = message
        self.detail = detail


class ValidationError(AutopilotError):
    status_code = 400


class AuthError(AutopilotError):
    status_code = 401


class PermissionDenied(AutopilotError):
    status_code = 403


class NotFound(AutopilotError):
    status_code = 404


class AlreadyDone(AutopilotError):
    status_code = 409


class AlreadyRolledBack(AlreadyDone):
    pass


class UpstreamError(AutopilotError):
    """A CMS or other third-party API answered with an error."""
    status_code = 502
