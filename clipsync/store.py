"""
History of text received from phones. Used as the server's message sink.
"""

import json
import logging
import os
import threading
import time
import uuid
from dataclasses import asdict, dataclass, field
from typing import List, Optional

DEFAULT_SOURCE = "phone"
DISPLAY_LIMIT = 50


@dataclass(frozen=True)
class ClipboardItem:
    content: str
    source: str = DEFAULT_SOURCE
    timestamp: float = field(default_factory=time.time)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    @property
    def display_content(self) -> str:
        if len(self.content) > DISPLAY_LIMIT:
            return self.content[:DISPLAY_LIMIT] + "..."
        return self.content


class ClipboardStore:
    """
    Newest-first list of received items, capped at ``max_items`` and
    persisted as JSON after every change.

    Safe to use from the event loop and from UI threads at the same time.
    """

    def __init__(self, path: Optional[str] = None, max_items: int = 20):
        self.path = os.path.expanduser(path) if path else None
        self.max_items = max_items
        self._items: List[ClipboardItem] = []
        self._lock = threading.RLock()
        self.load()

    @property
    def items(self) -> List[ClipboardItem]:
        with self._lock:
            return list(self._items)

    def add(self, content: str, source: str = DEFAULT_SOURCE) -> Optional[ClipboardItem]:
        """
        Record ``content``. Returns None when it repeats the newest item.
        """
        with self._lock:
            if self._items and self._items[0].content == content:
                return None
            item = ClipboardItem(content, source)
            self._items.insert(0, item)
            del self._items[self.max_items:]
            self.save()
        return item

    def __call__(self, message: str):
        self.add(message)

    def remove(self, item_id: str) -> bool:
        with self._lock:
            before = len(self._items)
            self._items = [i for i in self._items if i.id != item_id]
            removed = len(self._items) != before
            if removed:
                self.save()
        return removed

    def clear(self):
        with self._lock:
            self._items.clear()
            self.save()

    def load(self):
        if not self.path or not os.path.exists(self.path):
            return
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                raw = json.load(f)
            items = [ClipboardItem(**entry) for entry in raw]
        except (OSError, ValueError, TypeError) as e:
            logging.error(f"Cannot read history {self.path}: {e}")
            return
        with self._lock:
            self._items = items[:self.max_items]
        logging.info(f"Loaded {len(self._items)} history items from {self.path}")

    def save(self):
        if not self.path:
            return
        tmp = self.path + ".tmp"
        try:
            os.makedirs(os.path.dirname(self.path) or ".", exist_ok=True)
            with open(tmp, "w", encoding="utf-8") as f:
                json.dump([asdict(i) for i in self._items], f, ensure_ascii=False)
            os.replace(tmp, self.path)
        except OSError as e:
            logging.error(f"Cannot write history {self.path}: {e}")
