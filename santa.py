#!/usr/bin/env python3
"""
Secret Santa assignments, credentials and wish lists.

Workflow:
- generate_assignments(participants): shuffle the participants once, walk them in
  their input order and hand each one the next queued candidate that is not
  themselves. Every participant also gets a fresh 8 character credential.
- SecretSantaStore: the in-process source of truth (credential -> person,
  person -> (giftee, wish list)). Every mutation writes a full Snapshot through
  the configured persistence backend before returning.

Notes:
- The queue walk can dead-end when the last participant is the only candidate
  left. That is a GenerationError for the attempt; it is never retried here.
- Credentials are sampled independently per person. Collisions across one
  generation are not checked for (62^8 space).
"""

from __future__ import annotations
import logging
import random
import string
import threading
from collections import deque
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, Field

from errors import GenerationError, ValidationError

logger = logging.getLogger(__name__)

CREDENTIAL_ALPHABET = string.ascii_lowercase + string.ascii_uppercase + string.digits
CREDENTIAL_LENGTH = 8
MAX_WISHES = 5

Assignment = Tuple[str, List[str]]


# ---------------------------
# Snapshot
# ---------------------------

class Snapshot(BaseModel):
    """Everything that is persisted, as one unit."""

    model_config = ConfigDict(populate_by_name=True)

    passwords: Dict[str, str] = Field(default_factory=dict)
    secret_santa: Dict[str, Tuple[str, List[str]]] = Field(default_factory=dict, alias="secretSanta")
    last_initialized: Optional[str] = Field(default=None, alias="lastInitialized")

    def to_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)

    @classmethod
    def from_dict(cls, data: dict) -> "Snapshot":
        return cls.model_validate(data)


# ---------------------------
# Generation
# ---------------------------

def _default_rng() -> random.Random:
    return random.SystemRandom()


def validate_participants(participants: Sequence[str]) -> List[str]:
    names = list(participants)
    if len(names) < 2:
        raise ValidationError("Need at least 2 participants for Secret Santa")
    if len(set(names)) != len(names):
        raise ValidationError("Participant names must be unique")
    if any(not name for name in names):
        raise ValidationError("Participant names must not be empty")
    return names


def build_derangement(participants: Sequence[str], rng: random.Random) -> Dict[str, str]:
    """
    Map each giver -> giftee so that nobody draws themselves.

    The queue is shuffled once. For each person in input order we pop
    candidates off the head; a self-draw goes back to the tail. If a person's own
    name is all that is left, the attempt fails.
    """
    queue = list(participants)
    rng.shuffle(queue)
    queue = deque(queue)

    mapping: Dict[str, str] = {}
    for person in participants:
        while True:
            if not queue:
                raise GenerationError("Unable to create valid Secret Santa assignments")
            candidate = queue.popleft()
            if candidate != person:
                mapping[person] = candidate
                break
            if not queue:
                raise GenerationError("Unable to create valid Secret Santa assignments")
            queue.append(candidate)
    return mapping


def generate_credential(rng: random.Random) -> str:
    return "".join(rng.choice(CREDENTIAL_ALPHABET) for _ in range(CREDENTIAL_LENGTH))


def generate_assignments(
    participants: Sequence[str],
    rng: Optional[random.Random] = None,
) -> Tuple[Dict[str, str], Dict[str, Assignment]]:
    """
    Build a full replacement for the store: (credential -> person, person -> (giftee, [])).
    Nothing is modified; a GenerationError leaves callers with their old state.
    """
    names = validate_participants(participants)
    rng = rng or _default_rng()

    mapping = build_derangement(names, rng)

    passwords: Dict[str, str] = {}
    assignments: Dict[str, Assignment] = {}
    for person in names:
        assignments[person] = (mapping[person], [])
        passwords[generate_credential(rng)] = person
    return passwords, assignments


# ---------------------------
# Store
# ---------------------------

class SecretSantaStore:
    """
    In-memory credential and assignment maps backed by a persistence backend.

    The maps are never handed out; callers get copies or single values. Writes
    are last-writer-wins and unsynchronized; only the first load is locked.
    """

    def __init__(self, backend):
        self._backend = backend
        self._passwords: Dict[str, str] = {}
        self._assignments: Dict[str, Assignment] = {}
        self._last_initialized: Optional[str] = None
        self._initialized = False
        self._init_lock = threading.Lock()

    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def last_initialized(self) -> Optional[str]:
        return self._last_initialized

    def initialize(self, default_participants: Sequence[str], rng: Optional[random.Random] = None) -> None:
        """
        Adopt the persisted snapshot, or generate from the defaults. Runs once.

        Concurrent first callers block until the data is in place, so nobody is
        served from an empty store while the load is still running.
        """
        if self._initialized:
            return
        with self._init_lock:
            if self._initialized:
                return
            self._load_or_generate(default_participants, rng)
            self._initialized = True

    def _load_or_generate(self, default_participants: Sequence[str], rng: Optional[random.Random]) -> None:
        snapshot = self._backend.load()
        if snapshot is not None:
            self._adopt(snapshot)
            logger.info("Restored Secret Santa data for %d participants", len(self._assignments))
            return

        if self._backend.load_failed:
            logger.warning(
                "Stored data could not be read; regenerating from defaults will overwrite it on the next save"
            )
        else:
            logger.info("No stored data, initializing Secret Santa with default participants")
        try:
            self.regenerate(default_participants, rng=rng)
        except (ValidationError, GenerationError) as e:
            logger.error("Default initialization failed: %s", e.message)

    # --- reads ---

    def lookup_person_by_credential(self, credential: str) -> Optional[str]:
        return self._passwords.get(credential)

    def lookup_giftee(self, person: str) -> Optional[str]:
        entry = self._assignments.get(person)
        return entry[0] if entry else None

    def get_wish_list(self, person: str) -> List[str]:
        entry = self._assignments.get(person)
        return list(entry[1]) if entry else []

    def participants(self) -> List[str]:
        return list(self._assignments)

    def credentials(self) -> List[Tuple[str, str]]:
        """(person, credential) pairs in generation order."""
        return [(person, credential) for credential, person in self._passwords.items()]

    def snapshot(self) -> Snapshot:
        return Snapshot(
            passwords=dict(self._passwords),
            secret_santa={p: (giftee, list(wishes)) for p, (giftee, wishes) in self._assignments.items()},
            last_initialized=self._last_initialized,
        )

    # --- writes ---

    def set_wish_list(self, person: str, entries: Sequence[str]) -> bool:
        entry = self._assignments.get(person)
        if entry is None:
            return False
        self._assignments[person] = (entry[0], list(entries))
        self._persist()
        return True

    def replace_all(self, passwords: Dict[str, str], assignments: Dict[str, Assignment]) -> None:
        self._passwords = dict(passwords)
        self._assignments = {p: (giftee, list(wishes)) for p, (giftee, wishes) in assignments.items()}
        self._last_initialized = datetime.now(timezone.utc).isoformat()
        self._initialized = True
        self._persist()

    def regenerate(self, participants: Sequence[str], rng: Optional[random.Random] = None) -> List[Tuple[str, str]]:
        passwords, assignments = generate_assignments(participants, rng=rng)
        self.replace_all(passwords, assignments)
        logger.info("Secret Santa assignments initialized for %d participants", len(assignments))
        return self.credentials()

    def clear_all(self) -> bool:
        self._passwords = {}
        self._assignments = {}
        self._last_initialized = None
        return self._backend.clear()

    def _adopt(self, snapshot: Snapshot) -> None:
        self._passwords = dict(snapshot.passwords)
        self._assignments = {p: (giftee, list(wishes)) for p, (giftee, wishes) in snapshot.secret_santa.items()}
        self._last_initialized = snapshot.last_initialized

    def _persist(self) -> bool:
        return self._backend.save(self.snapshot())
