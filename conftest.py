import random
import time
from typing import Optional

import pytest

from auth import FailedAttempts
from persistence import FileBackend, PersistenceBackend
from santa import SecretSantaStore


class MemoryBackend(PersistenceBackend):
    name = "memory"

    def __init__(self, data: Optional[dict] = None):
        self.data = data
        self.writes = 0

    def _read(self):
        return self.data

    def _write(self, data):
        self.writes += 1
        self.data = data

    def _delete(self):
        self.data = None


class SlowBackend(MemoryBackend):
    """Reads take a while, like a remote store on a cold start."""

    def __init__(self, data: Optional[dict] = None, delay: float = 0.2):
        super().__init__(data)
        self.delay = delay

    def _read(self):
        time.sleep(self.delay)
        return super()._read()


class BrokenBackend(PersistenceBackend):
    name = "broken"

    def _read(self):
        raise OSError("disk on fire")

    def _write(self, data):
        raise OSError("disk on fire")

    def _delete(self):
        raise OSError("disk on fire")


class FixedOrderRng:
    """Shuffles into a fixed order; credentials still come from a seeded source."""

    def __init__(self, order, seed=0):
        self.order = list(order)
        self._random = random.Random(seed)

    def shuffle(self, seq):
        seq[:] = self.order

    def choice(self, seq):
        return self._random.choice(seq)


PASSWORDS = {
    "alicepw1": "Alice",
    "bobpw222": "Bob",
    "carolpw3": "Carol",
    "marypw44": "Mary Jane",
}

ASSIGNMENTS = {
    "Alice": ("Bob", []),
    "Bob": ("Carol", []),
    "Carol": ("Mary Jane", []),
    "Mary Jane": ("Alice", []),
}


@pytest.fixture
def memory_backend():
    return MemoryBackend()


@pytest.fixture
def file_backend(tmp_path):
    return FileBackend(tmp_path / "data" / "secret-santa.json")


@pytest.fixture
def store(memory_backend):
    s = SecretSantaStore(memory_backend)
    s.replace_all(PASSWORDS, ASSIGNMENTS)
    return s


@pytest.fixture
def attempts():
    return FailedAttempts()
