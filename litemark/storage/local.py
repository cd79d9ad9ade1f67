from __future__ import annotations

import os
import tempfile
from pathlib import Path

from litemark.storage.base import DocumentStore


class LocalDocumentStore(DocumentStore):
    kind = "local"

    def __init__(self, paths, root, logger=None):
        super().__init__(paths, logger=logger)
        self.root = Path(root)

    def _file(self, path: str) -> Path:
        return self.root / path.lstrip("/")

    def fetch_text(self, path: str) -> str | None:
        target = self._file(path)
        if not target.exists():
            return None
        return target.read_text(encoding="utf-8")

    def store_text(self, path: str, body: str) -> None:
        target = self._file(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=target.parent, prefix=f".{target.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(body)
            os.replace(tmp_name, target)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
