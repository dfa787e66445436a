from __future__ import annotations

import json
import threading
from pathlib import Path
from typing import Iterable, Protocol

from pydantic import TypeAdapter

from ..errors import NotFound
from .models import Dish

_DATA_DIR = Path(__file__).resolve().parent.parent / "data"
_MENU_JSON = _DATA_DIR / "menu.json"

_dish_list = TypeAdapter(list[Dish])


class DishCatalog(Protocol):
    """Read-only view of the menu consumed by the core."""

    version: int

    def list_available(self) -> list[Dish]: ...

    def get(self, dish_id: str) -> Dish: ...


class InMemoryDishCatalog:
    """Catalog held in process memory.

    ``version`` increments on every replacement so caches layered on top can
    tell a stale entry from a current one.
    """

    def __init__(self, dishes: Iterable[Dish] = ()) -> None:
        self._lock = threading.Lock()
        self._dishes: dict[str, Dish] = {}
        self.version = 0
        self.replace(dishes)

    def replace(self, dishes: Iterable[Dish]) -> None:
        with self._lock:
            self._dishes = {d.dish_id: d for d in dishes}
            self.version += 1

    def upsert(self, dish: Dish) -> None:
        with self._lock:
            self._dishes[dish.dish_id] = dish
            self.version += 1

    def list_available(self) -> list[Dish]:
        with self._lock:
            dishes = [d for d in self._dishes.values() if d.available]
        return sorted(dishes, key=lambda d: d.dish_id)

    def get(self, dish_id: str) -> Dish:
        with self._lock:
            dish = self._dishes.get(dish_id)
        if dish is None:
            raise NotFound(f"dish {dish_id!r} not found", operation="get_dish", dish_id=dish_id)
        return dish


def load_menu(path: Path = _MENU_JSON) -> list[Dish]:
    """Parse a JSON menu file into validated dishes."""
    with open(path, encoding="utf-8") as fh:
        raw = json.load(fh)
    return _dish_list.validate_python(raw["dishes"] if isinstance(raw, dict) else raw)


_catalog: InMemoryDishCatalog | None = None


def get_catalog() -> InMemoryDishCatalog:
    """Return the process-wide catalog, loading the bundled menu on first call."""
    global _catalog
    if _catalog is None:
        _catalog = InMemoryDishCatalog(load_menu())
    return _catalog
