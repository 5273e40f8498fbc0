"""
Durable storage for the knowledge maps.

One JSON document under a fixed, versioned filename:

    {
      "schema_version": 4,
      "hashToName": {key: name},
      "hashNegatives": {key: [name, ...]}
    }

Writes are atomic (temp file, fsync, rename) under a portalocker
exclusive lock, the same pattern the identity registry uses. Reads never
raise on bad data: anything unusable comes back as None and the caller
starts from empty knowledge.
"""

import json
import logging
import os
from pathlib import Path
from typing import Optional

from facequiz import config
from facequiz.errors import StoreError

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 4


def encode_document(data: dict) -> dict:
    """Wrap {assignment, excluded} in the on-disk document shape."""
    return {
        "schema_version": SCHEMA_VERSION,
        "hashToName": dict(data.get("assignment", {})),
        "hashNegatives": {
            key: sorted(names) for key, names in data.get("excluded", {}).items()
        },
    }


def decode_document(document) -> dict:
    """
    Validate an on-disk document and return {assignment, excluded}.

    Raises:
        StoreError: If the version or any field has the wrong shape
    """
    if not isinstance(document, dict):
        raise StoreError(f"Expected a JSON object, got {type(document).__name__}")

    version = document.get("schema_version")
    if version != SCHEMA_VERSION:
        raise StoreError(
            f"Schema version mismatch: expected {SCHEMA_VERSION}, got {version}"
        )

    assignment = document.get("hashToName", {})
    negatives = document.get("hashNegatives", {})
    if not isinstance(assignment, dict) or not isinstance(negatives, dict):
        raise StoreError("hashToName and hashNegatives must be objects")

    for key, name in assignment.items():
        if not isinstance(name, str):
            raise StoreError(f"Assignment for {key} is not a string")

    excluded = {}
    for key, names in negatives.items():
        if not isinstance(names, list) or not all(isinstance(n, str) for n in names):
            raise StoreError(f"Negatives for {key} must be a list of strings")
        excluded[key] = list(names)

    return {"assignment": dict(assignment), "excluded": excluded}


class JsonKnowledgeStore:
    """Knowledge maps persisted to a single JSON file."""

    def __init__(self, path=None):
        self.path = Path(path or config.STORE_PATH)

    def load(self) -> Optional[dict]:
        """
        Load {assignment, excluded} from disk.

        Returns None if the file is missing, unreadable, or malformed.
        """
        if not self.path.exists():
            logger.info(f"No knowledge file at {self.path}, starting empty")
            return None

        try:
            with open(self.path, encoding="utf-8") as f:
                document = json.load(f)
            return decode_document(document)
        except (OSError, ValueError, StoreError) as e:
            logger.warning(f"Ignoring unreadable knowledge file {self.path}: {e}")
            return None

    def save(self, data: dict) -> None:
        """
        Atomically write {assignment, excluded} to disk.

        Steps:
        1. Acquire exclusive lock on lock file
        2. Write to temp file
        3. fsync to ensure data is on disk
        4. Atomic rename to target path
        """
        import portalocker

        self.path.parent.mkdir(parents=True, exist_ok=True)
        lock_path = self.path.with_suffix(".lock")
        temp_path = self.path.with_suffix(".tmp")

        lock_path.touch(exist_ok=True)

        with open(lock_path, "r+") as lock_file:
            portalocker.lock(lock_file, portalocker.LOCK_EX)

            try:
                with open(temp_path, "w", encoding="utf-8") as f:
                    json.dump(encode_document(data), f, indent=2, ensure_ascii=False)
                    f.flush()
                    os.fsync(f.fileno())

                os.rename(temp_path, self.path)

            finally:
                portalocker.unlock(lock_file)

    def clear(self) -> None:
        """Remove the knowledge file (explicit full wipe)."""
        if self.path.exists():
            self.path.unlink()
            logger.info(f"Removed knowledge file {self.path}")


class MemoryKnowledgeStore:
    """In-process store holding the serialized document (tests, dry runs)."""

    def __init__(self, document: Optional[str] = None):
        self.document = document
        self.saves = 0

    def load(self) -> Optional[dict]:
        if self.document is None:
            return None
        try:
            return decode_document(json.loads(self.document))
        except (ValueError, StoreError) as e:
            logger.warning(f"Ignoring malformed in-memory knowledge: {e}")
            return None

    def save(self, data: dict) -> None:
        self.document = json.dumps(encode_document(data))
        self.saves += 1

    def clear(self) -> None:
        self.document = None
