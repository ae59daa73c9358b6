"""Saved favorite questions.

Favorites live in ``favorites.json`` in the data directory in the user's
order; new favorites go to the top. A question is saved at most once.
"""

from __future__ import annotations

import threading
import uuid
from datetime import UTC, datetime
from pathlib import Path

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from osquery_nli.core.logging import get_logger
from osquery_nli.core.storage import ensure_data_dir, read_json, write_json

logger = get_logger(__name__)

FAVORITES_FILENAME = "favorites.json"

DISPLAY_NAME_LIMIT = 50


class FavoriteQuery(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    query: str
    name: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @property
    def display_name(self) -> str:
        """The custom name, or the query shortened to 50 characters."""
        if self.name:
            return self.name
        if len(self.query) > DISPLAY_NAME_LIMIT:
            return self.query[: DISPLAY_NAME_LIMIT - 3] + "..."
        return self.query


_favorites_adapter = TypeAdapter(list[FavoriteQuery])


class FavoritesStore:
    """Ordered favorites backed by one JSON document shared by all front ends."""

    def __init__(self, directory: Path):
        self.directory = ensure_data_dir(directory)
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self.directory / FAVORITES_FILENAME

    def read_favorites(self) -> list[FavoriteQuery]:
        with self._lock:
            return self._read()

    def get(self, favorite_id: str) -> FavoriteQuery | None:
        return next((f for f in self.read_favorites() if f.id == favorite_id), None)

    def find_by_name(self, name: str) -> FavoriteQuery | None:
        """First favorite whose display name or custom name contains ``name``, ignoring case."""
        needle = name.casefold()
        for favorite in self.read_favorites():
            if needle in favorite.display_name.casefold():
                return favorite
            if favorite.name and needle in favorite.name.casefold():
                return favorite
        return None

    def find(self, ref: str) -> FavoriteQuery | None:
        """Look up by id, unique id prefix, then name."""
        favorites = self.read_favorites()
        exact = next((f for f in favorites if f.id == ref), None)
        if exact is not None:
            return exact
        prefixed = [f for f in favorites if f.id.startswith(ref)]
        if len(prefixed) == 1:
            return prefixed[0]
        return self.find_by_name(ref)

    def contains(self, query: str) -> bool:
        return any(f.query == query for f in self.read_favorites())

    def add(self, query: str, name: str | None = None) -> FavoriteQuery | None:
        """Save ``query`` at the top. None if it is already a favorite."""
        with self._lock:
            favorites = self._read()
            if any(f.query == query for f in favorites):
                return None
            favorite = FavoriteQuery(query=query, name=name)
            favorites.insert(0, favorite)
            self._write(favorites)
        logger.debug("favorite_added", favorite_id=favorite.id)
        return favorite

    def save(self, favorite: FavoriteQuery) -> bool:
        """Replace the favorite with the same id, or add it if its query is new."""
        with self._lock:
            favorites = self._read()
            for index, existing in enumerate(favorites):
                if existing.id == favorite.id:
                    favorites[index] = favorite
                    break
            else:
                if any(f.query == favorite.query for f in favorites):
                    return False
                favorites.insert(0, favorite)
            self._write(favorites)
        return True

    def rename(self, favorite_id: str, name: str | None) -> FavoriteQuery | None:
        """Set or (with None) drop the custom name. None if the id is unknown."""
        with self._lock:
            favorites = self._read()
            for index, existing in enumerate(favorites):
                if existing.id == favorite_id:
                    favorites[index] = existing.model_copy(update={"name": name})
                    self._write(favorites)
                    return favorites[index]
        return None

    def remove(self, favorite_id: str) -> bool:
        with self._lock:
            favorites = self._read()
            remaining = [f for f in favorites if f.id != favorite_id]
            if len(remaining) == len(favorites):
                return False
            self._write(remaining)
        return True

    def move(self, from_indices: list[int], to_index: int) -> None:
        """Move the favorites at ``from_indices`` so they sit before ``to_index``.

        Indices refer to the order before the move, like a list drag and drop.

        Raises:
            IndexError: If an index is out of range
        """
        with self._lock:
            favorites = self._read()
            positions = sorted(set(from_indices))
            for position in positions:
                if not 0 <= position < len(favorites):
                    raise IndexError(f"No favorite at position {position}")
            if not 0 <= to_index <= len(favorites):
                raise IndexError(f"Cannot move to position {to_index}")

            moving = [favorites[p] for p in positions]
            kept = [f for p, f in enumerate(favorites) if p not in positions]
            insert_at = to_index - sum(1 for p in positions if p < to_index)
            kept[insert_at:insert_at] = moving
            self._write(kept)

    def replace(self, favorites: list[FavoriteQuery]) -> None:
        with self._lock:
            self._write(favorites)

    def clear(self) -> None:
        with self._lock:
            self.path.unlink(missing_ok=True)

    def _read(self) -> list[FavoriteQuery]:
        data = read_json(self.path, default=[])
        try:
            return _favorites_adapter.validate_python(data)
        except ValidationError as e:
            logger.warning("favorites_unreadable", path=str(self.path), error=str(e))
            return []

    def _write(self, favorites: list[FavoriteQuery]) -> None:
        write_json(self.path, _favorites_adapter.dump_python(favorites, mode="json"))
