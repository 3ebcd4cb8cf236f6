"""Append-only JSONL transaction ledger with hash chain."""

import hashlib
import json
import uuid
from datetime import UTC, datetime
from pathlib import Path

from paywarden.ledger.base import Ledger
from paywarden.ledger.models import LedgerEntry, Transaction


def compute_entry_hash(entry: LedgerEntry) -> str:
    """Hash everything except entry_hash."""
    hashable = entry.model_dump(mode="json", exclude={"entry_hash"})
    canonical = json.dumps(hashable, sort_keys=True, default=str)
    return "sha256:" + hashlib.sha256(canonical.encode()).hexdigest()


class JsonlLedger(Ledger):
    """Append-only JSONL ledger.

    Each entry's prev_hash points to the previous entry's hash,
    forming an integrity-verifiable chain.
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        self._last_hash = self._read_last_hash()

    def record(self, transaction: Transaction) -> None:
        self.append(transaction)

    def append(self, transaction: Transaction) -> LedgerEntry:
        entry = LedgerEntry(
            entry_id=f"led_{uuid.uuid4().hex[:12]}",
            recorded_at=datetime.now(UTC),
            transaction=transaction,
            prev_hash=self._last_hash,
        )
        entry.entry_hash = compute_entry_hash(entry)
        self._last_hash = entry.entry_hash

        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "a") as f:
            f.write(entry.model_dump_json() + "\n")

        return entry

    def read_entries(self, last_n: int | None = None) -> list[LedgerEntry]:
        if not self.path.exists():
            return []

        entries = []
        with open(self.path) as f:
            for line in f:
                line = line.strip()
                if line:
                    entries.append(LedgerEntry.model_validate_json(line))

        if last_n is not None:
            return entries[-last_n:]
        return entries

    def transactions(self) -> list[Transaction]:
        return [entry.transaction for entry in self.read_entries()]

    def _read_last_hash(self) -> str | None:
        entries = self.read_entries(last_n=1)
        return entries[0].entry_hash if entries else None
