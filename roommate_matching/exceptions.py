class MatchingError(Exception):
    """Base class for failures raised by the matching subsystem"""


class InvalidArgument(MatchingError, ValueError):
    """Malformed input such as a self-preference or a missing id. Never retried."""


class DecisionLocked(InvalidArgument):
    """Raised when overriding an existing decision is disabled"""


class SwipeLimitReached(InvalidArgument):
    """Raised when a profile has used up its daily swipes"""

    def __init__(self, profile_id, limit):
        self.profile_id = profile_id
        self.limit = limit
        super().__init__(f"Profile {profile_id} reached the daily limit of {limit} swipes")


class PersistenceError(MatchingError):
    """The underlying store failed to read or write"""


class Timeout(PersistenceError):
    """A store call exceeded its time bound. Retryable."""


class ConstraintViolation(PersistenceError):
    """A uniqueness or integrity constraint rejected a write"""
