"""
Error taxonomy shared by the generator, store, gateway and API layer.

Each error knows the HTTP status the API answers with. PersistenceError is
the exception: it is raised inside the persistence backends only and never
reaches a caller.
"""

from __future__ import annotations


class SantaError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(SantaError):
    status_code = 400


class AuthError(SantaError):
    status_code = 401


class CredentialRejected(AuthError):
    """A submitted credential matched nobody."""

    def __init__(self, message: str, attempts: int, lockout_warned: bool = False):
        super().__init__(message)
        self.attempts = attempts
        self.lockout_warned = lockout_warned


class NotFoundError(SantaError):
    # a valid credential without an assignment means the store is inconsistent
    status_code = 500


class PersistenceError(SantaError):
    pass


class GenerationError(SantaError):
    pass
