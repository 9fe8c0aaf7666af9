"""
Repository Pattern - Persistence of the vocabulary state document.

The whole store is saved as one versioned JSON document. Backends only move
that document in and out of storage; the store owns its meaning.
"""

import asyncio
import copy
import json
import logging
import os
import uuid
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Optional

import aiofiles

from ..config import Config
from ..utils.helpers import ensure_dir

logger = logging.getLogger(__name__)


def empty_state() -> Dict[str, Any]:
    """A blank state document at the current schema version."""
    return {
        "version": Config.STATE_VERSION,
        "words": {},
        "categories": {},
        "reviews": {},
        "settings": {},
        "processingQueue": [],
        "activeQueue": [],
        "selectedCategoryIds": ["all"],
        "categoryOrder": [],
    }


def migrate_state(state: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Bring a loaded document up to the current shape.

    Fills missing top-level keys and per-entity fields that older documents
    lack (``wrongCount``, ``categoryIds``, ``enabled``, ``questions``) and
    drops category ids from the display order that no longer exist.
    Unknown keys are preserved.
    """
    migrated = empty_state()
    if state:
        migrated.update(copy.deepcopy(state))

    for word in migrated["words"].values():
        word.setdefault("questions", [])
        word.setdefault("enabled", True)
        word.setdefault("categoryIds", [])
        word.setdefault("wordTranslation", "")
        word.setdefault("addedAt", 0)

    for review in migrated["reviews"].values():
        review.setdefault("wrongCount", 0)
        review.setdefault("reviewCount", 0)
        review.setdefault("interval", 0)
        review.setdefault("history", [])

    categories = migrated["categories"]
    order = [cid for cid in migrated["categoryOrder"] if cid in categories]
    # Categories created before display order existed go last, oldest first
    missing = sorted(
        (cid for cid in categories if cid not in order),
        key=lambda cid: categories[cid].get("createdAt", 0),
    )
    migrated["categoryOrder"] = order + missing

    if not migrated["selectedCategoryIds"]:
        migrated["selectedCategoryIds"] = ["all"]

    migrated["version"] = Config.STATE_VERSION
    return migrated


class BaseRepository(ABC):
    """
    Abstract base class for state repositories.

    Defines the contract for all persistence operations.
    """

    @abstractmethod
    def load(self) -> Optional[Dict[str, Any]]:
        """Load the raw state document. Returns None if nothing is stored."""
        pass

    @abstractmethod
    def save(self, state: Dict[str, Any]) -> bool:
        """Save the state document. Returns True if successful."""
        pass

    async def save_async(self, state: Dict[str, Any]) -> bool:
        """Save without blocking the event loop."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.save, state)


class MemoryRepository(BaseRepository):
    """Keeps the document in memory. Used for tests and throwaway sessions."""

    def __init__(self, state: Optional[Dict[str, Any]] = None):
        self._state = copy.deepcopy(state) if state is not None else None
        self.save_count = 0

    def load(self) -> Optional[Dict[str, Any]]:
        return copy.deepcopy(self._state) if self._state is not None else None

    def save(self, state: Dict[str, Any]) -> bool:
        self._state = copy.deepcopy(state)
        self.save_count += 1
        return True


class JSONStateRepository(BaseRepository):
    """
    JSON file repository.

    Writes are atomic: the document goes to a temp file that then replaces
    the real one.
    """

    def __init__(self, path: Optional[str] = None):
        """
        Initialize JSON repository.

        Args:
            path: Path to the state file (defaults to Config.STATE_FILE)
        """
        self.path = Path(path or Config.STATE_FILE)

    def load(self) -> Optional[Dict[str, Any]]:
        """Load state from the JSON file."""
        if not self.path.exists():
            return None

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            logger.error("Could not load state file %s: %s", self.path, e)
            return None

        if not isinstance(data, dict):
            logger.error("State file %s does not hold a JSON object", self.path)
            return None
        return data

    def _temp_path(self) -> str:
        return f"{self.path}.{uuid.uuid4().hex[:8]}.tmp"

    def save(self, state: Dict[str, Any]) -> bool:
        """Save state to the JSON file."""
        temp_file = None
        try:
            ensure_dir(str(self.path.parent))
            temp_file = self._temp_path()
            with open(temp_file, "w", encoding="utf-8") as f:
                json.dump(state, f, indent=2, ensure_ascii=False)
            os.replace(temp_file, self.path)
            temp_file = None
            return True
        except (OSError, TypeError, ValueError) as e:
            logger.error("Could not save state file %s: %s", self.path, e)
            return False
        finally:
            self._cleanup(temp_file)

    async def save_async(self, state: Dict[str, Any]) -> bool:
        """Save state to the JSON file using async file I/O."""
        temp_file = None
        try:
            ensure_dir(str(self.path.parent))
            payload = json.dumps(state, indent=2, ensure_ascii=False)
            temp_file = self._temp_path()
            async with aiofiles.open(temp_file, "w", encoding="utf-8") as f:
                await f.write(payload)
            os.replace(temp_file, self.path)
            temp_file = None
            return True
        except (OSError, TypeError, ValueError) as e:
            logger.error("Could not save state file %s: %s", self.path, e)
            return False
        finally:
            self._cleanup(temp_file)

    @staticmethod
    def _cleanup(temp_file: Optional[str]) -> None:
        """Clean up temp file on failure."""
        if temp_file and os.path.exists(temp_file):
            try:
                os.remove(temp_file)
            except OSError as e:
                logger.debug("Could not remove temp file %s: %s", temp_file, e)
