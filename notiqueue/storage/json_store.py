"""JSON file backed queue store."""
from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import List, Sequence

from notiqueue.errors import PersistenceError
from notiqueue.records import LocalNotification

logger = logging.getLogger(__name__)

FORMAT_VERSION = 1


class JsonFileQueueStore:
    """Persist the queue as a versioned JSON document.

    Writes go to a temporary file in the same directory which then replaces
    the target, so a crash never leaves a half written queue behind.
    """

    def __init__(self, path: Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def save(self, records: Sequence[LocalNotification]) -> None:
        document = {
            "version": FORMAT_VERSION,
            "notifications": [record.to_dict() for record in records],
        }
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self._path.name}.", suffix=".tmp", dir=self._path.parent
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    json.dump(document, handle, indent=2, ensure_ascii=False)
                os.replace(tmp_name, self._path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except (OSError, TypeError, ValueError) as exc:
            raise PersistenceError(f"cannot save queue to {self._path}: {exc}") from exc
        logger.debug("saved %d queued notifications to %s", len(records), self._path)

    def load(self) -> List[LocalNotification]:
        if not self._path.exists():
            return []
        try:
            with self._path.open("r", encoding="utf-8") as handle:
                document = json.load(handle)
        except (OSError, ValueError) as exc:
            raise PersistenceError(f"cannot read queue from {self._path}: {exc}") from exc
        if not isinstance(document, dict) or not isinstance(document.get("notifications"), list):
            raise PersistenceError(f"unexpected queue document in {self._path}")
        version = document.get("version")
        if version != FORMAT_VERSION:
            raise PersistenceError(f"unsupported queue format version: {version!r}")
        try:
            return [LocalNotification.from_dict(entry) for entry in document["notifications"]]
        except (KeyError, TypeError, ValueError) as exc:
            raise PersistenceError(f"corrupt queue entry in {self._path}: {exc}") from exc
