"""
Error taxonomy for the Four Sigma game engine.

Each error carries the HTTP status the API layer reports it with. Errors
raised before any write leave no side effects behind.
"""


class GameError(Exception):
    """Base class for errors reported to API callers"""

    status_code = 400

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self):
        return {"error": self.message}


class ValidationError(GameError):
    """Malformed or out-of-order bounds, missing fields"""

    status_code = 400


class NotFoundError(GameError):
    """Unknown (or expired) session, unknown question"""

    status_code = 404


class ConflictError(GameError):
    """Operation not allowed in the session's current state"""

    status_code = 409


class ConsistencyError(GameError):
    """Finalize found a question without an answer, or vice versa"""

    status_code = 500


class QuestionsUnavailableError(GameError):
    """No questions are scheduled or active for the requested day"""

    status_code = 503


class StaleAggregateError(GameError):
    """The user aggregate row changed between read and write"""

    status_code = 409
