# backend/fitchain/errors.py
"""
Error taxonomy shared by services and routes.

Services raise these; the handler registered in ``create_app`` turns them into
``{"success": false, "error": "..."}`` responses with the matching status code.
"""
from typing import Optional


class EngineError(Exception):
    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(EngineError):
    status_code = 400


class NotAuthorized(EngineError):
    status_code = 403


class NotFound(EngineError):
    status_code = 404


class Conflict(EngineError):
    status_code = 409


class AlreadyJoined(Conflict):
    status_code = 400


class GroupFull(Conflict):
    status_code = 400


class TooLateToLeave(Conflict):
    status_code = 400


class NotReady(Conflict):
    status_code = 400


class ConfigurationMissing(EngineError):
    """No active meal window row. Callers fall back to a default window."""


class UpstreamFailure(EngineError):
    status_code = 503


class RateLimited(EngineError):
    status_code = 429
