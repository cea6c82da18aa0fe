"""
Identifier Source

Loads the ordered list of news identifiers to harvest from a JSON snapshot of
the remote list endpoint:

    {"success": true, "data": [{"id": 101, ...}, {"id": 102, ...}]}

Load failures are never fatal: the harvester starts with an empty list and
retries the load on the next batch.
"""

import logging
from pathlib import Path
from typing import Optional

import orjson

from utils.config import settings

logger = logging.getLogger(__name__)


class IdSource:
    """Reads news identifiers, in file order, from a snapshot file."""

    def __init__(self, path: Optional[str] = None, dedupe: Optional[bool] = None) -> None:
        """
        Args:
            path: Snapshot file, defaults to settings.IDS_FILE
            dedupe: Drop repeated identifiers (first occurrence wins),
                defaults to settings.DEDUPE_IDS
        """
        self.path = Path(path or settings.IDS_FILE)
        self.dedupe = settings.DEDUPE_IDS if dedupe is None else dedupe

    def load(self) -> list[int]:
        """
        Load identifiers from the snapshot.

        Returns:
            Identifiers in file order, or an empty list if the file is missing,
            unreadable or malformed
        """
        try:
            document = orjson.loads(self.path.read_bytes())
        except OSError as e:
            logger.warning("Failed to read id snapshot: path=%s, error=%s", self.path, str(e))
            return []
        except orjson.JSONDecodeError as e:
            logger.warning("Invalid JSON in id snapshot: path=%s, error=%s", self.path, str(e))
            return []

        if not isinstance(document, dict) or not document.get("success"):
            logger.warning("Id snapshot is not a successful response: path=%s", self.path)
            return []

        items = document.get("data")
        if not isinstance(items, list):
            logger.warning("Id snapshot has no data list: path=%s", self.path)
            return []

        ids: list[int] = []
        invalid = 0
        for item in items:
            news_id = item.get("id") if isinstance(item, dict) else None
            # bool is an int subclass
            if not isinstance(news_id, int) or isinstance(news_id, bool):
                invalid += 1
                continue
            ids.append(news_id)

        if invalid:
            logger.warning(
                "Skipped entries without an integer id: path=%s, skipped=%d",
                self.path, invalid,
            )

        if self.dedupe:
            before = len(ids)
            ids = list(dict.fromkeys(ids))
            if len(ids) != before:
                logger.info("Dropped duplicate ids: path=%s, duplicates=%d", self.path, before - len(ids))

        logger.info("Loaded %d ids from %s", len(ids), self.path)
        return ids
