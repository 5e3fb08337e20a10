"""
Snapshot persistence.

LOCAL: a JSON file in the data directory.
REMOTE: a single key in a Vercel KV / Upstash Redis store, over its REST API.

The backend is picked once by backend_from_config(); nothing else branches on
which one is in use. Failures are logged and reported as None/False, never
raised to the caller.
"""

from __future__ import annotations
import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

import httpx

import config
from errors import PersistenceError
from santa import Snapshot

logger = logging.getLogger(__name__)

BACKEND_ERRORS = (OSError, ValueError, httpx.HTTPError, PersistenceError)


class PersistenceBackend(ABC):
    name = "backend"
    # True when the last load() hit an error rather than finding nothing
    load_failed = False

    def load(self) -> Optional[Snapshot]:
        self.load_failed = False
        try:
            data = self._read()
        except BACKEND_ERRORS:
            logger.exception("Error loading data from %s", self.name)
            self.load_failed = True
            return None
        if data is None:
            return None
        try:
            snapshot = Snapshot.from_dict(data)
        except ValueError:
            logger.exception("Stored data in %s is not a valid snapshot", self.name)
            self.load_failed = True
            return None
        logger.info("Loaded Secret Santa data from %s", self.name)
        return snapshot

    def save(self, snapshot: Snapshot) -> bool:
        try:
            self._write(snapshot.to_dict())
        except BACKEND_ERRORS:
            logger.exception("Error saving data to %s", self.name)
            return False
        logger.info("Saved Secret Santa data to %s", self.name)
        return True

    def clear(self) -> bool:
        try:
            self._delete()
        except BACKEND_ERRORS:
            logger.exception("Error clearing data from %s", self.name)
            return False
        logger.info("Cleared Secret Santa data from %s", self.name)
        return True

    @abstractmethod
    def _read(self) -> Optional[dict]:
        ...

    @abstractmethod
    def _write(self, data: dict) -> None:
        ...

    @abstractmethod
    def _delete(self) -> None:
        ...


# ---------------------------
# Local file
# ---------------------------

class FileBackend(PersistenceBackend):
    name = "disk"

    def __init__(self, path: Path = config.DATA_FILE):
        self.path = Path(path)

    def _ensure_directory(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def _read(self) -> Optional[dict]:
        if not self.path.exists():
            return None
        with open(self.path, "r", encoding="utf-8") as f:
            return json.load(f)

    def _write(self, data: dict) -> None:
        self._ensure_directory()
        temp = self.path.with_suffix(".tmp")
        with open(temp, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
        temp.replace(self.path)

    def _delete(self) -> None:
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass


# ---------------------------
# Remote KV (Upstash REST)
# ---------------------------

class RemoteKVBackend(PersistenceBackend):
    """
    GET  {url}/get/{key}  -> {"result": "<json string>" | null}
    POST {url}/set/{key}  body is the JSON string -> {"result": "OK"}
    POST {url}/del/{key}  -> {"result": 0 | 1}
    """

    name = "Vercel KV"

    def __init__(self, url: str, token: str, key: str = config.KV_KEY,
                 client: Optional[httpx.Client] = None):
        self.key = key
        self.client = client or httpx.Client(
            base_url=url.rstrip("/"),
            headers={"Authorization": f"Bearer {token}"},
            timeout=10.0,
        )

    def _command(self, method: str, command: str, content: Optional[str] = None):
        response = self.client.request(method, f"/{command}/{self.key}", content=content)
        response.raise_for_status()
        body = response.json()
        if "error" in body:
            raise PersistenceError(body["error"])
        return body.get("result")

    def _read(self) -> Optional[dict]:
        result = self._command("GET", "get")
        if result is None:
            return None
        return json.loads(result) if isinstance(result, str) else result

    def _write(self, data: dict) -> None:
        self._command("POST", "set", content=json.dumps(data, ensure_ascii=False))

    def _delete(self) -> None:
        self._command("POST", "del")


def backend_from_config() -> PersistenceBackend:
    if config.KV_REST_API_URL:
        logger.info("KV_REST_API_URL found - using Vercel KV")
        return RemoteKVBackend(config.KV_REST_API_URL, config.KV_REST_API_TOKEN, config.KV_KEY)
    logger.info("KV_REST_API_URL not set - using local file storage at %s", config.DATA_FILE)
    return FileBackend(config.DATA_FILE)
