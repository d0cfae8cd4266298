"""Failure kinds shared by the store, the credential codec and the HTTP layer."""


class TaskAPIError(Exception):
    """Base class for all task API errors"""


class StoreError(TaskAPIError):
    """The backend failed; the client only ever sees a generic 500"""


class NotFoundError(StoreError):
    """No row matches the referenced id"""

    def __init__(self, message: str = "not found"):
        super().__init__(message)


class InvalidError(StoreError):
    """Client data breaks a store-level rule; the message is safe to return"""

    def __init__(self, message: str = "invalid input"):
        super().__init__(message)


class Unauthenticated(TaskAPIError):
    """Missing, malformed, forged or expired credential"""


class ConfigurationError(TaskAPIError):
    """A process-wide prerequisite such as the signing key is not set"""
