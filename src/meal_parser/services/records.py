"""In-memory record collection mirrored to a durable key-value blob."""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol
from uuid import UUID

from pydantic import BaseModel, TypeAdapter, ValidationError

from meal_parser.domain.foods import FoodRecord
from meal_parser.errors import RecordNotFoundError

COLLECTION_KEY = "food_entries"

_logger = logging.getLogger(__name__)


class BlobStore(Protocol):
    """Durable key-value storage for serialized collections."""

    def read(self, key: str) -> str | None:
        """Return the stored blob for a key, if present."""

    def write(self, key: str, data: str) -> None:
        """Replace the blob stored under a key."""


class StoredFoodRecord(BaseModel):
    """Serialized form of a food record.

    Optional fields are omitted when absent and kept when empty.
    """

    id: UUID
    name: str
    calories: int
    protein_g: float
    carbs_g: float
    fat_g: float
    timestamp: datetime
    notes: str | None = None
    assumptions: str | None = None


_RECORDS_ADAPTER = TypeAdapter(list[StoredFoodRecord])


def encode_records(records: list[FoodRecord]) -> str:
    """Serialize records to a JSON blob."""
    stored = [
        StoredFoodRecord(
            id=record.id,
            name=record.name,
            calories=record.calories,
            protein_g=record.protein_g,
            carbs_g=record.carbs_g,
            fat_g=record.fat_g,
            timestamp=record.timestamp,
            notes=record.notes,
            assumptions=record.assumptions,
        )
        for record in records
    ]
    return _RECORDS_ADAPTER.dump_json(stored, exclude_none=True).decode("utf-8")


def decode_records(data: str) -> list[FoodRecord]:
    """Deserialize records from a JSON blob."""
    return [
        FoodRecord(
            id=item.id,
            name=item.name,
            calories=item.calories,
            protein_g=item.protein_g,
            carbs_g=item.carbs_g,
            fat_g=item.fat_g,
            timestamp=item.timestamp,
            notes=item.notes,
            assumptions=item.assumptions,
        )
        for item in _RECORDS_ADAPTER.validate_json(data)
    ]


@dataclass
class RecordStore:
    """Single-writer record collection in insertion order.

    Every mutation is applied in memory first and then written to the blob
    store. The write is best effort: a failure is logged and the in-memory
    state is kept, so the latest mutation can be lost if the process dies
    before the next successful write.
    """

    blob_store: BlobStore
    key: str = COLLECTION_KEY
    _records: list[FoodRecord] = field(default_factory=list)

    @classmethod
    def load(cls, blob_store: BlobStore, key: str = COLLECTION_KEY) -> "RecordStore":
        """Create a store populated from the blob store."""
        store = cls(blob_store=blob_store, key=key)
        try:
            raw = blob_store.read(key)
        except Exception:
            _logger.exception("Failed to read %s, starting empty", key)
            return store
        if raw:
            try:
                store._records = decode_records(raw)
            except ValidationError:
                _logger.exception("Stored %s is not decodable, starting empty", key)
        _logger.info("Loaded %s entries", len(store._records))
        return store

    def all(self) -> list[FoodRecord]:
        """Return records in insertion order."""
        return list(self._records)

    def get(self, record_id: UUID) -> FoodRecord | None:
        """Return a record by id, if present."""
        for record in self._records:
            if record.id == record_id:
                return record
        return None

    def append(self, record: FoodRecord) -> None:
        """Add a record at the end."""
        self._records.append(record)
        self._persist()

    def replace(self, record_id: UUID, record: FoodRecord) -> None:
        """Swap the record stored under ``record_id``, keeping its position."""
        if record.id != record_id:
            raise ValueError("Replacement record must keep the original id")
        index = self._index_of(record_id)
        self._records[index] = record
        self._persist()

    def remove(self, record_id: UUID) -> None:
        """Delete a record by id."""
        index = self._index_of(record_id)
        del self._records[index]
        self._persist()

    def _index_of(self, record_id: UUID) -> int:
        for index, record in enumerate(self._records):
            if record.id == record_id:
                return index
        raise RecordNotFoundError(record_id)

    def _persist(self) -> None:
        try:
            self.blob_store.write(self.key, encode_records(self._records))
        except Exception:
            _logger.exception("Failed to persist %s entries", len(self._records))
            return
        _logger.info("Saved %s entries", len(self._records))
