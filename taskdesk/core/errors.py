"""Error taxonomy shared by the API client and the task store.

Remote failures (``Unauthenticated``, ``FetchError``, ``NetworkError``) come back
from a round trip or from the missing-credential short circuit. ``ValidationError``
and its subclasses are raised before any request is sent.
"""

from typing import Optional


class TaskDeskError(Exception):
    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class Unauthenticated(TaskDeskError):
    def __init__(self, message: str = "No token, authorization denied"):
        super().__init__(message)


class FetchError(TaskDeskError):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class NetworkError(TaskDeskError):
    pass


class ValidationError(TaskDeskError):
    pass


class WordLimitExceeded(ValidationError):
    def __init__(self, label: str, limit: int, count: int):
        super().__init__(f"{label} too long. Max {limit} words.")
        self.limit = limit
        self.count = count


class AlreadySubmitted(ValidationError):
    def __init__(self, message: str = "Task already submitted. Cannot submit again."):
        super().__init__(message)


class DraftNotDiscardable(ValidationError):
    def __init__(self, message: str = "Cannot discard a submitted task"):
        super().__init__(message)


class InteractionNotAllowed(ValidationError):
    def __init__(self, message: str = "Interactions available only after submission"):
        super().__init__(message)
