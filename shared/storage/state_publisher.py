"""
Atomic JSON state publisher.

This module centralizes atomic writes of runtime snapshots (open queues,
attendance ledger) so readers never observe a half-written file.
"""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Optional

from shared.logging.logger import get_logger

log = get_logger("shared.state_publisher")


class StatePublisher:
    """
    Atomic snapshot writer/reader rooted at one directory.
    """

    DEFAULT_BASE_DIR = Path("data")

    def __init__(self, base_dir: Path | str | None = None):
        self._base_dir = Path(base_dir) if base_dir else self.DEFAULT_BASE_DIR

    @property
    def base_dir(self) -> Path:
        return self._base_dir

    # ------------------------------------------------------------------
    # Atomic writer
    # ------------------------------------------------------------------

    def _write_atomic(self, path: Path, payload: Any) -> None:
        serialized = json.dumps(payload, indent=2)
        path.parent.mkdir(parents=True, exist_ok=True)

        with tempfile.NamedTemporaryFile(
            "w", dir=path.parent, delete=False, encoding="utf-8"
        ) as tmp:
            tmp.write(serialized)
            tmp.flush()
            os.fsync(tmp.fileno())
            temp_path = Path(tmp.name)

        temp_path.replace(path)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def publish(self, relative_path: Path | str, payload: Any) -> bool:
        """
        Write payload to <base_dir>/<relative_path>.

        Write failures are logged and reported as False; the in-memory
        state stays authoritative.
        """
        target = self._base_dir / Path(relative_path)

        try:
            self._write_atomic(target, payload)
        except OSError as e:
            log.error(f"Failed to write state snapshot {target}: {e}")
            return False

        return True

    def load(self, relative_path: Path | str) -> Optional[Any]:
        """
        Read <base_dir>/<relative_path>. Missing or unreadable files
        return None.
        """
        source = self._base_dir / Path(relative_path)

        if not source.exists():
            return None

        try:
            return json.loads(source.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            log.warning(f"Failed to load state file {source}: {e}")
            return None
