from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from threading import Lock
from typing import Callable, Dict, Generic, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from app.schemas import (
    ContactMessage,
    FileAttachment,
    Institution,
    Measurement,
    Sector,
    User,
)
from settings import get_settings

logger = logging.getLogger(__name__)

ItemT = TypeVar("ItemT", bound=BaseModel)


class JsonTable(Generic[ItemT]):
    """Keyed table of pydantic items, optionally mirrored to a JSON file."""

    def __init__(
        self,
        name: str,
        model: Type[ItemT],
        persistence_path: Optional[Path] = None,
        key: str = "id",
    ) -> None:
        self.name = name
        self.model = model
        self.key = key
        self._items: Dict[str, ItemT] = {}
        self.persistence_path = persistence_path
        self._lock = Lock()
        if persistence_path:
            persistence_path.parent.mkdir(parents=True, exist_ok=True)
            self._load_from_disk()

    def put_item(self, item: ItemT) -> None:
        with self._lock:
            self._items[getattr(item, self.key)] = item.model_copy(deep=True)
            self._persist()

    def get_item(self, key: str) -> Optional[ItemT]:
        with self._lock:
            item = self._items.get(key)
            if item is None:
                return None
            return item.model_copy(deep=True)

    def delete_item(self, key: str) -> bool:
        with self._lock:
            removed = self._items.pop(key, None)
            if removed is not None:
                self._persist()
            return removed is not None

    def delete_where(self, predicate: Callable[[ItemT], bool]) -> list[ItemT]:
        """Remove every item matching ``predicate`` and return them."""

        with self._lock:
            doomed = [key for key, item in self._items.items() if predicate(item)]
            removed = [self._items.pop(key) for key in doomed]
            if removed:
                self._persist()
            return removed

    def scan(self, predicate: Optional[Callable[[ItemT], bool]] = None) -> list[ItemT]:
        """Return deep copies of stored items, optionally filtered."""

        with self._lock:
            return [
                item.model_copy(deep=True)
                for item in self._items.values()
                if predicate is None or predicate(item)
            ]

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def _persist(self) -> None:
        if not self.persistence_path:
            return
        payload = {key: item.model_dump(mode="json") for key, item in self._items.items()}
        self.persistence_path.write_text(json.dumps(payload, indent=2, sort_keys=True))

    def _load_from_disk(self) -> None:
        if not self.persistence_path or not self.persistence_path.exists():
            return

        try:
            raw = self.persistence_path.read_text() or "{}"
            data = json.loads(raw)
        except (OSError, json.JSONDecodeError):
            logger.warning(
                "Ignoring unreadable table file %s", self.persistence_path, extra={"reason": "corrupt"}
            )
            data = {}

        for key, payload in data.items():
            try:
                self._items[key] = self.model.model_validate(payload)
            except ValidationError:
                logger.warning("Skipping invalid %s record %s", self.name, key)


@dataclass
class Database:
    users: JsonTable[User]
    institutions: JsonTable[Institution]
    sectors: JsonTable[Sector]
    measurements: JsonTable[Measurement]
    files: JsonTable[FileAttachment]
    contact_messages: JsonTable[ContactMessage]


def open_database(root: Optional[Path] = None) -> Database:
    """Open every table under ``root``; ``None`` keeps them in memory."""

    def table(name: str, model: Type[ItemT]) -> JsonTable[ItemT]:
        path = root / f"{name}.json" if root else None
        return JsonTable(name=name, model=model, persistence_path=path)

    return Database(
        users=table("users", User),
        institutions=table("institutions", Institution),
        sectors=table("sectors", Sector),
        measurements=table("measurements", Measurement),
        files=table("files", FileAttachment),
        contact_messages=table("contact_messages", ContactMessage),
    )


@lru_cache
def build_default_database(path: Optional[str] = None) -> Database:
    settings = get_settings()
    data_dir = settings.data_dir if path is None else path
    return open_database(Path(data_dir) if data_dir else None)
