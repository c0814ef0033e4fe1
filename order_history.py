"""Locally persisted set of previously ordered product ids, used to bias listings."""

import json
import logging
from pathlib import Path
from typing import Any, Iterable, List, Optional, Sequence, Union

from cart import product_key
from config import Config

logger = logging.getLogger(__name__)


class OrderHistoryCache:
    """Best-effort, never authoritative: read failures start empty, write failures are logged."""

    def __init__(self, path: Optional[Union[Path, str]] = None):
        self.path = Path(path or Config.ORDER_HISTORY_PATH)
        self._ids: List[str] = self._load()

    def _load(self) -> List[str]:
        if not self.path.exists():
            return []
        try:
            saved = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable order history {self.path}: {e}")
            return []
        if not isinstance(saved, list):
            return []
        return list(dict.fromkeys(str(i) for i in saved))

    def _save(self) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(self._ids), encoding="utf-8")
        except OSError as e:
            logger.error(f"Error saving order history: {e}")

    @property
    def ids(self) -> List[str]:
        return list(self._ids)

    def __contains__(self, product_id: object) -> bool:
        return product_id in self._ids

    def __iter__(self):
        return iter(list(self._ids))

    def __len__(self) -> int:
        return len(self._ids)

    def record(self, product_id: str) -> None:
        self.record_many([product_id])

    def record_many(self, product_ids: Iterable[str]) -> None:
        added = [str(p) for p in product_ids if p and str(p) not in self._ids]
        if not added:
            return
        self._ids.extend(dict.fromkeys(added))
        self._save()


def prioritize(products: Sequence[Any], cache: Iterable[str]) -> List[Any]:
    """Previously ordered products first; relative order kept within both groups."""
    known = set(cache)
    if not known:
        return list(products)
    ordered = [p for p in products if product_key(p) in known]
    return ordered + [p for p in products if product_key(p) not in known]
