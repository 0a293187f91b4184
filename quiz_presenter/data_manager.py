"""
Data-access contract and the local JSON-file backend.

Every read and write in the bot goes through a ``DataStore``. The hosted
backend lives in ``rest_store``; ``JsonDataStore`` keeps the same tables as
JSON files on disk for development and tests.
"""
import functools
import json
import logging
import threading
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .models import (
    AdminAccount,
    LeaderboardEntry,
    Question,
    Quiz,
    QuizStatus,
    Season,
)

# Table names used by the managers
QUIZZES = "quizzes"
QUESTIONS = "questions"
SEASONS = "seasons"
LEADERBOARD = "leaderboard"
ADMINS = "admins"

Filters = Optional[Dict[str, Any]]
Order = Optional[Sequence[Tuple[str, bool]]]

# Countdown for questions stored without a timer
DEFAULT_TIMER_SECONDS = 30


class DataAccessError(Exception):
    """Base exception for failures reported by the data collaborator."""
    pass


class TransportError(DataAccessError):
    """Raised when the backend cannot be reached or read."""
    pass


class RecordValidationError(DataAccessError):
    """Raised when the backend rejects a record."""
    pass


class RecordNotFoundError(DataAccessError):
    """Raised when an update targets a record that does not exist."""
    pass


class DataStore(ABC):
    """Generic table and file-storage access used by all managers."""

    @abstractmethod
    def read(
        self,
        collection: str,
        filters: Filters = None,
        order: Order = None,
        limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        """
        Read records from a collection.

        Args:
            collection: Table name
            filters: Field -> value equality filters
            order: Sequence of (field, ascending) sort keys
            limit: Maximum number of records to return

        Returns:
            List of record dictionaries
        """

    @abstractmethod
    def insert(self, collection: str, record: Dict[str, Any]) -> Dict[str, Any]:
        """Insert a record and return it as stored (with ``id``)."""

    @abstractmethod
    def update(self, collection: str, record_id: str, patch: Dict[str, Any]) -> Dict[str, Any]:
        """Apply ``patch`` to a record and return the updated record."""

    @abstractmethod
    def delete(self, collection: str, record_id: str) -> int:
        """Delete a record, returning the number of records removed."""

    @abstractmethod
    def upload_file(self, bucket: str, path: str, data: bytes, content_type: Optional[str] = None) -> str:
        """Store bytes under ``bucket/path`` and return the public URL."""


# Columns the backend refuses to store as null
REQUIRED_FIELDS: Dict[str, Tuple[str, ...]] = {
    QUIZZES: ("title", "status"),
    QUESTIONS: ("quiz_id", "question_text", "options", "correct_index", "timer_seconds", "order_number"),
    SEASONS: ("name",),
    LEADERBOARD: ("season", "winner_name", "position"),
    ADMINS: ("email",),
}


def _synchronized(method):
    """Serialize calls on the store's lock; managers call it from executor threads."""
    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        with self._lock:
            return method(self, *args, **kwargs)
    return wrapper


class JsonDataStore(DataStore):
    """Stores each collection as a JSON array in ``<directory>/<collection>.json``."""

    def __init__(self, directory: str = "./data/", public_url_base: Optional[str] = None):
        """
        Initialize the store.

        Args:
            directory: Directory holding the collection files and the storage tree
            public_url_base: Base URL for uploaded files; file URIs are used when empty
        """
        self.directory = Path(directory)
        self.storage_directory = self.directory / "storage"
        self.public_url_base = public_url_base
        self.logger = logging.getLogger(__name__)
        self._last_timestamp: Optional[datetime] = None
        self._lock = threading.RLock()

    @_synchronized
    def read(
        self,
        collection: str,
        filters: Filters = None,
        order: Order = None,
        limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        records = self._load_collection(collection)

        if filters:
            records = [
                record for record in records
                if all(record.get(key) == value for key, value in filters.items())
            ]

        if order:
            # Apply the least significant key first; sorted() is stable
            for key, ascending in reversed(list(order)):
                records = sorted(
                    records,
                    key=lambda record: _sort_key(record.get(key)),
                    reverse=not ascending
                )

        if limit is not None:
            records = records[:limit]

        return records

    @_synchronized
    def insert(self, collection: str, record: Dict[str, Any]) -> Dict[str, Any]:
        if not isinstance(record, dict):
            raise RecordValidationError(f"Record for '{collection}' must be an object")

        stored = dict(record)
        stored.setdefault("id", uuid.uuid4().hex)
        stored.setdefault("created_at", self._next_timestamp())
        self._check_required_fields(collection, stored)

        records = self._load_collection(collection)
        if any(existing.get("id") == stored["id"] for existing in records):
            raise RecordValidationError(
                f'duplicate key value violates unique constraint "{collection}_pkey"'
            )

        records.append(stored)
        self._save_collection(collection, records)
        self.logger.debug(f"Inserted record {stored['id']} into {collection}")
        return dict(stored)

    @_synchronized
    def update(self, collection: str, record_id: str, patch: Dict[str, Any]) -> Dict[str, Any]:
        if not isinstance(patch, dict):
            raise RecordValidationError(f"Patch for '{collection}' must be an object")

        records = self._load_collection(collection)
        for index, existing in enumerate(records):
            if existing.get("id") == record_id:
                updated = dict(existing)
                updated.update({key: value for key, value in patch.items() if key != "id"})
                self._check_required_fields(collection, updated)
                records[index] = updated
                self._save_collection(collection, records)
                self.logger.debug(f"Updated record {record_id} in {collection}")
                return dict(updated)

        raise RecordNotFoundError(f"No record with id {record_id} in {collection}")

    @_synchronized
    def delete(self, collection: str, record_id: str) -> int:
        records = self._load_collection(collection)
        remaining = [record for record in records if record.get("id") != record_id]
        removed = len(records) - len(remaining)
        if removed:
            self._save_collection(collection, remaining)
            self.logger.debug(f"Deleted record {record_id} from {collection}")
        return removed

    @_synchronized
    def upload_file(self, bucket: str, path: str, data: bytes, content_type: Optional[str] = None) -> str:
        bucket_directory = (self.storage_directory / bucket).resolve()
        target = (bucket_directory / path).resolve()
        if bucket_directory not in target.parents:
            raise RecordValidationError(f"Invalid object path: {path}")
        if target.exists():
            raise RecordValidationError("The resource already exists")

        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as e:
            raise TransportError(f"Failed to store {bucket}/{path}: {e}") from e

        self.logger.info(f"Stored {len(data)} bytes at {bucket}/{path}")
        if self.public_url_base:
            return f"{self.public_url_base.rstrip('/')}/{bucket}/{path}"
        return target.as_uri()

    def _collection_path(self, collection: str) -> Path:
        if not collection or not collection.replace("_", "").replace("-", "").isalnum():
            raise RecordValidationError(f"Invalid collection name: {collection!r}")
        return self.directory / f"{collection}.json"

    def _load_collection(self, collection: str) -> List[Dict[str, Any]]:
        path = self._collection_path(collection)
        if not path.exists():
            return []
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise TransportError(f"Collection file {path.name} is not valid JSON: {e}") from e
        except OSError as e:
            raise TransportError(f"Failed to read {path}: {e}") from e

        if not isinstance(data, list):
            raise TransportError(f"Collection file {path.name} must contain an array")
        return data

    def _save_collection(self, collection: str, records: List[Dict[str, Any]]) -> None:
        path = self._collection_path(collection)
        temp_path = path.with_suffix(".json.tmp")
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            with open(temp_path, 'w', encoding='utf-8') as f:
                json.dump(records, f, indent=2, ensure_ascii=False)
            temp_path.replace(path)
        except OSError as e:
            raise TransportError(f"Failed to write {path}: {e}") from e

    def _check_required_fields(self, collection: str, record: Dict[str, Any]) -> None:
        for column in REQUIRED_FIELDS.get(collection, ()):
            if record.get(column) is None:
                raise RecordValidationError(
                    f'null value in column "{column}" of relation "{collection}" violates not-null constraint'
                )

    def _next_timestamp(self) -> str:
        # Strictly increasing so "newest first" ordering is stable
        now = datetime.now(timezone.utc)
        if self._last_timestamp is not None and now <= self._last_timestamp:
            now = self._last_timestamp + timedelta(microseconds=1)
        self._last_timestamp = now
        return now.isoformat()


def _sort_key(value: Any) -> Tuple[bool, Any]:
    # Nulls sort last, like the hosted backend's default
    return (value is None, value if value is not None else 0)


def parse_quiz(record: Dict[str, Any]) -> Quiz:
    """Build a Quiz from a ``quizzes`` record."""
    return Quiz(
        id=record["id"],
        title=record.get("title") or "",
        description=record.get("description") or "",
        status=QuizStatus(record.get("status", QuizStatus.DRAFT.value)),
        created_by=record.get("created_by"),
        created_at=record.get("created_at")
    )


def parse_question(record: Dict[str, Any], default_timer: int = DEFAULT_TIMER_SECONDS) -> Question:
    """Build a Question from a ``questions`` record; a missing or zero timer gets ``default_timer``."""
    return Question(
        id=record.get("id"),
        quiz_id=record.get("quiz_id"),
        text=record.get("question_text") or "",
        options=list(record.get("options") or []),
        correct_index=int(record.get("correct_index", 0)),
        timer_seconds=int(record.get("timer_seconds") or default_timer),
        order_number=int(record.get("order_number") or 0),
        starred=bool(record.get("starred", False)),
        image_url=record.get("image_url")
    )


def parse_season(record: Dict[str, Any]) -> Season:
    """Build a Season from a ``seasons`` record."""
    return Season(id=record["id"], name=record["name"], created_at=record.get("created_at"))


def parse_leaderboard_entry(record: Dict[str, Any]) -> LeaderboardEntry:
    """Build a LeaderboardEntry from a ``leaderboard`` record."""
    return LeaderboardEntry(
        id=record.get("id"),
        season=record["season"],
        winner_name=record.get("winner_name") or "",
        position=int(record.get("position") or 0),
        score=record.get("score"),
        winner_photo=record.get("winner_photo")
    )


def parse_admin(record: Dict[str, Any]) -> AdminAccount:
    """Build an AdminAccount from an ``admins`` record."""
    return AdminAccount(id=record.get("id"), email=record["email"], created_at=record.get("created_at"))
