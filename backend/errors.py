# errors.py — Failure taxonomy shared by the board service, auth and handlers
# Every error carries the HTTP status the API answers with; main.py maps them.


class BoardError(Exception):
    """Base class for failures surfaced to API callers"""

    status_code = 500
    code = "board_error"

    def __init__(self, message: str = ""):
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.default_message()

    @classmethod
    def default_message(cls) -> str:
        return cls.code.replace("_", " ").capitalize()

    def to_dict(self) -> dict:
        return {"error": self.code, "detail": self.message}


class Unauthorized(BoardError):
    status_code = 401
    code = "unauthorized"


class InvalidCredentials(BoardError):
    status_code = 401
    code = "invalid_credentials"


class TooManyAttempts(BoardError):
    status_code = 429
    code = "too_many_attempts"


class NotFound(BoardError):
    status_code = 404
    code = "not_found"


class ForeignKeyViolation(BoardError):
    """A child row references a parent that does not exist"""
    status_code = 404
    code = "foreign_key_violation"


class PersistenceFailure(BoardError):
    """The store rejected or failed a write; nothing was committed"""
    status_code = 500
    code = "persistence_failure"
