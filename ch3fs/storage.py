"""Recipe storage in a single SQLite database file."""

from __future__ import annotations

import json
import os
import sqlite3
import threading
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field

_BUCKET = "recipes"


class StorageError(Exception):
    """Raised when the recipe store cannot complete an operation."""


@dataclass
class Recipe:
    """A cooking recipe stored locally and replicated through the cluster."""

    recipe_id: uuid.UUID
    filename: str
    content: str
    seen: list[str] = field(default_factory=list)

    def to_json(self) -> str:
        return json.dumps(
            {"RecipeId": str(self.recipe_id), "Filename": self.filename,
             "Content": self.content, "Seen": list(self.seen)},
            separators=(",", ":"), ensure_ascii=False,
        )

    @classmethod
    def from_json(cls, data: str | bytes) -> "Recipe":
        try:
            raw = json.loads(data)
            return cls(uuid.UUID(raw["RecipeId"]), raw["Filename"], raw["Content"],
                       list(raw.get("Seen") or []))
        except (ValueError, KeyError, TypeError, AttributeError) as exc:
            raise StorageError(f"decoding recipe failed: {exc}") from exc


class Store:
    """Recipes keyed by their UUID bytes."""

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self.path = os.fspath(path)
        existed = os.path.exists(self.path)
        try:
            self._db = sqlite3.connect(self.path, timeout=1.0, check_same_thread=False)
        except sqlite3.Error as exc:
            raise StorageError(f"opening the database at {self.path} failed: {exc}") from exc
        if not existed and os.path.exists(self.path):
            os.chmod(self.path, 0o600)
        self._lock = threading.Lock()

    def close(self) -> None:
        with self._lock:
            self._db.close()

    def __enter__(self) -> "Store":
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    @contextmanager
    def _bucket(self, action: str, missing: str | None):
        with self._lock:
            try:
                with self._db:
                    if missing is not None and self._db.execute(
                        "SELECT 1 FROM sqlite_master WHERE type='table' AND name=?", (_BUCKET,)
                    ).fetchone() is None:
                        raise StorageError(missing)
                    yield self._db
            except sqlite3.Error as exc:
                raise StorageError(f"{action} failed: {exc}") from exc

    def store_recipe(self, recipe: Recipe) -> None:
        """Save a recipe under its UUID, replacing any previous value."""
        with self._bucket("storing recipe", None) as db:
            db.execute(f"CREATE TABLE IF NOT EXISTS {_BUCKET} (id BLOB PRIMARY KEY, data TEXT NOT NULL)")
            db.execute(f"INSERT OR REPLACE INTO {_BUCKET} (id, data) VALUES (?, ?)",
                       (recipe.recipe_id.bytes, recipe.to_json()))

    def update_recipe(self, recipe: Recipe) -> None:
        """Overwrite a recipe that is already stored."""
        with self._bucket("updating recipe", f"bucket: {_BUCKET} not found") as db:
            cursor = db.execute(f"UPDATE {_BUCKET} SET data = ? WHERE id = ?",
                                (recipe.to_json(), recipe.recipe_id.bytes))
            if cursor.rowcount == 0:
                raise StorageError(f"recipe with uuid: {recipe.recipe_id} does not exist")

    def get_recipe(self, recipe_id: uuid.UUID) -> Recipe | None:
        """Return the stored recipe, or None when no recipe has this id."""
        missing = f"getting recipe from database failed with Error: bucket: {_BUCKET} not found"
        with self._bucket("getting recipe from database", missing) as db:
            row = db.execute(f"SELECT data FROM {_BUCKET} WHERE id = ?", (recipe_id.bytes,)).fetchone()
        return None if row is None else Recipe.from_json(row[0])

    def recipe_exists(self, recipe_id: uuid.UUID) -> bool:
        """Tell whether a recipe with this id is stored."""
        with self._bucket("checking recipe", f"bucket {_BUCKET} not found") as db:
            row = db.execute(f"SELECT 1 FROM {_BUCKET} WHERE id = ?", (recipe_id.bytes,)).fetchone()
        return row is not None