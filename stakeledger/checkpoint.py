"""
checkpoint.py - Per-epoch balance checkpoints

After an epoch replays, the merged legacy + staking ledger is frozen as a
checkpoint so that balance-tier aggregation can run later, independently of
the replay. Checkpoints are write-once per epoch.

Backends:
- FileCheckpointStore: one JSON object per epoch, epoch{N}.json
- MemoryCheckpointStore: dict-backed, for tests and single-process runs
"""

from __future__ import annotations
import json
import os
from pathlib import Path
import tempfile
from typing import Dict, Mapping, Optional, Protocol, runtime_checkable

from .core import BalanceMap, CheckpointError, parse_amount


@runtime_checkable
class CheckpointStore(Protocol):
    """Keyed store of per-epoch address -> amount snapshots."""

    def get(self, epoch: int) -> Optional[BalanceMap]:
        """Return the snapshot for epoch, or None if none was written."""
        ...

    def put(self, epoch: int, snapshot: Mapping[str, int]) -> None:
        """Persist snapshot for epoch. Raises CheckpointError if one exists."""
        ...


def _encode(snapshot: Mapping[str, int]) -> Dict[str, str]:
    return {address: str(amount) for address, amount in sorted(snapshot.items())}


def _decode(raw: Mapping[str, str]) -> BalanceMap:
    return {address: parse_amount(amount) for address, amount in raw.items()}


class MemoryCheckpointStore:
    """In-memory CheckpointStore. Stores the same encoded form as the file store."""

    def __init__(self):
        self._snapshots: Dict[int, Dict[str, str]] = {}

    def get(self, epoch: int) -> Optional[BalanceMap]:
        raw = self._snapshots.get(epoch)
        return None if raw is None else _decode(raw)

    def put(self, epoch: int, snapshot: Mapping[str, int]) -> None:
        if epoch in self._snapshots:
            raise CheckpointError(f"Checkpoint for epoch {epoch} already written")
        self._snapshots[epoch] = _encode(snapshot)

    def epochs(self) -> list:
        return sorted(self._snapshots)


class FileCheckpointStore:
    """
    CheckpointStore backed by a folder of epoch{N}.json files.

    Files are written to a temporary name and renamed into place, so a
    reader never sees a half-written checkpoint.
    """

    def __init__(self, folder: Path | str):
        self.folder = Path(folder)

    def path_for(self, epoch: int) -> Path:
        return self.folder / f"epoch{epoch}.json"

    def get(self, epoch: int) -> Optional[BalanceMap]:
        path = self.path_for(epoch)
        if not path.exists():
            return None
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise CheckpointError(f"Cannot read checkpoint {path}: {exc}") from exc
        if not isinstance(raw, dict):
            raise CheckpointError(f"Checkpoint {path} is not an address -> amount object")
        return _decode(raw)

    def put(self, epoch: int, snapshot: Mapping[str, int]) -> None:
        path = self.path_for(epoch)
        if path.exists():
            raise CheckpointError(f"Checkpoint {path} already written")

        self.folder.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self.folder, prefix=f".epoch{epoch}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(_encode(snapshot), handle, indent=1)
            os.replace(tmp_path, path)
        except OSError as exc:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise CheckpointError(f"Cannot write checkpoint {path}: {exc}") from exc
