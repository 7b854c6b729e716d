"""
Durable event storage: identifier -> ordered list of raw JSON event strings.

A record exists only once it has been written with set(); get() returns None
for an unknown identifier and a (possibly empty) list otherwise.
"""

import json
import logging
import os
import tempfile
import threading
import weakref
from typing import List, Optional

from supabase import create_client

from gateway_config import GatewayConfig
from identifier_issuer import is_well_formed

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """The backing store could not be read or written."""


class EventStore:
    def __init__(self) -> None:
        # Entries disappear once no append holds the lock.
        self._locks = weakref.WeakValueDictionary()
        self._locks_guard = threading.Lock()

    def get(self, identifier: str) -> Optional[List[str]]:
        raise NotImplementedError

    def set(self, identifier: str, events: List[str]) -> None:
        raise NotImplementedError

    def _lock_for(self, identifier: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(identifier)
            if lock is None:
                lock = threading.Lock()
                self._locks[identifier] = lock
            return lock

    def append(self, identifier: str, event: str) -> bool:
        # Serializes the read-modify-write per identifier within this process.
        with self._lock_for(identifier):
            events = self.get(identifier)
            if events is None:
                return False
            self.set(identifier, events + [event])
            return True


# -----------------------------
# FILE BACKEND
# -----------------------------


class FileEventStore(EventStore):
    def __init__(self, directory: str) -> None:
        super().__init__()
        self.directory = directory
        os.makedirs(directory, exist_ok=True)

    def _path(self, identifier: str) -> str:
        return os.path.join(self.directory, f"{identifier}.json")

    def get(self, identifier: str) -> Optional[List[str]]:
        if not is_well_formed(identifier):
            return None

        try:
            with open(self._path(identifier), "r", encoding="utf-8") as f:
                events = json.load(f)
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as e:
            raise StorageError(f"Could not read events for {identifier}") from e

        if not isinstance(events, list):
            raise StorageError(f"Stored events for {identifier} are not a list")

        return events

    def set(self, identifier: str, events: List[str]) -> None:
        if not is_well_formed(identifier):
            raise ValueError(f"Malformed identifier: {identifier!r}")

        fd, tmp_path = tempfile.mkstemp(dir=self.directory, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(list(events), f)
            os.replace(tmp_path, self._path(identifier))
        except Exception as e:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise StorageError(f"Could not write events for {identifier}") from e


# -----------------------------
# SUPABASE BACKEND
# -----------------------------


class SupabaseEventStore(EventStore):
    """
    One row per identifier:

        create table webhook_subscribers (
            id text primary key,
            events jsonb not null default '[]'::jsonb
        );
    """

    def __init__(self, client, table: str) -> None:
        super().__init__()
        self.client = client
        self.table = table

    def get(self, identifier: str) -> Optional[List[str]]:
        try:
            res = (
                self.client.table(self.table)
                .select("events")
                .eq("id", identifier)
                .limit(1)
                .execute()
            )
        except Exception as e:
            raise StorageError(f"Supabase select failed for {identifier}") from e

        rows = res.data or []
        if not rows:
            return None

        events = rows[0].get("events")
        if events is None:
            return []
        if not isinstance(events, list):
            raise StorageError(f"Stored events for {identifier} are not a list")

        return events

    def set(self, identifier: str, events: List[str]) -> None:
        try:
            self.client.table(self.table).upsert(
                {"id": identifier, "events": list(events)}
            ).execute()
        except Exception as e:
            raise StorageError(f"Supabase upsert failed for {identifier}") from e


def build_store(config: GatewayConfig) -> EventStore:
    if config.store_backend == "supabase":
        logger.info("Using Supabase event store (table=%s)", config.supabase_table)
        client = create_client(str(config.supabase_url), str(config.supabase_key))
        return SupabaseEventStore(client, config.supabase_table)

    logger.info("Using file event store at %s", config.store_dir)
    return FileEventStore(config.store_dir)
