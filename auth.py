"""
Credential check, failed-attempt tracking and the session cookie.

The session is the cookie: it carries the URL-encoded person name, unsigned,
HttpOnly and SameSite=Lax. There is no server-side session table.
"""

from __future__ import annotations
import logging
from typing import Dict, Mapping, Optional, Tuple
from urllib.parse import quote, unquote

import config
from errors import AuthError, CredentialRejected, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

UNKNOWN_CLIENT = "unknown"
CLIENT_IP_HEADERS = ("x-forwarded-for", "x-real-ip", "cf-connecting-ip")


def client_identity(headers: Mapping[str, str]) -> str:
    """Best-effort client address from proxy headers; everyone else shares one bucket."""
    for header in CLIENT_IP_HEADERS:
        value = headers.get(header)
        if value:
            # x-forwarded-for is "client, proxy1, proxy2"
            return value.split(",")[0].strip()
    return UNKNOWN_CLIENT


class FailedAttempts:
    """Consecutive failed credential checks per client, for the life of the process."""

    def __init__(self):
        self._counts: Dict[str, int] = {}

    def count(self, client: str) -> int:
        return self._counts.get(client, 0)

    def increment(self, client: str) -> int:
        self._counts[client] = self._counts.get(client, 0) + 1
        return self._counts[client]

    def reset(self, client: str) -> None:
        self._counts.pop(client, None)


class AuthGateway:

    def __init__(self, store, attempts: Optional[FailedAttempts] = None,
                 threshold: int = config.LOCKOUT_THRESHOLD,
                 admin_contact: str = config.ADMIN_CONTACT):
        self.store = store
        self.attempts = attempts or FailedAttempts()
        self.threshold = threshold
        self.admin_contact = admin_contact

    def verify(self, credential: Optional[str], client: str) -> Tuple[str, str]:
        """
        Check a credential and return (person, assigned giftee).

        Raises ValidationError when no credential was sent, CredentialRejected with
        the running attempt count when it matches nobody (the check is never
        skipped, however many attempts came before), and NotFoundError when the
        person has no assignment.
        """
        if not credential:
            raise ValidationError("Credential is required")

        person = self.store.lookup_person_by_credential(credential)
        if person is None:
            attempts = self.attempts.increment(client)
            logger.warning("Failed credential attempt %d from %s", attempts, client)
            if attempts >= self.threshold:
                logger.warning("Client %s reached %d failed attempts", client, attempts)
                raise CredentialRejected(
                    "Incorrect credential. Please try again or reach out to "
                    f"{self.admin_contact} to retrieve your credential.",
                    attempts,
                    lockout_warned=True,
                )
            raise CredentialRejected("Incorrect credential. Please try again.", attempts)

        self.attempts.reset(client)

        giftee = self.store.lookup_giftee(person)
        if giftee is None:
            logger.error("Credential for %s is valid but no assignment exists", person)
            raise NotFoundError("No secret santa assigned")
        return person, giftee


# ---------------------------
# Session cookie
# ---------------------------

def encode_session(person: str) -> str:
    return quote(person, safe="")


def session_person(cookie_value: Optional[str]) -> str:
    if not cookie_value:
        raise AuthError("Not authenticated. Please log in again.")
    person = unquote(cookie_value)
    if not person:
        raise AuthError("Not authenticated. Please log in again.")
    return person


def session_cookie_params(person: str) -> dict:
    return {
        "key": config.SESSION_COOKIE,
        "value": encode_session(person),
        "max_age": config.SESSION_MAX_AGE,
        "path": "/",
        "httponly": True,
        "samesite": "lax",
    }
