"""Ledger hash chain verification."""

from pathlib import Path

from pydantic import ValidationError

from paywarden.ledger.jsonl import compute_entry_hash
from paywarden.ledger.models import LedgerEntry, VerificationResult


class LedgerVerifier:
    """Verify the integrity of a JSONL ledger's hash chain."""

    def verify(self, path: Path) -> VerificationResult:
        """Check that every entry hashes to its entry_hash and links to its predecessor.

        The first entry must have no prev_hash.
        """
        if not path.exists():
            return VerificationResult(valid=True, entries_checked=0)

        entries: list[LedgerEntry] = []
        with open(path) as f:
            for i, line in enumerate(f):
                line = line.strip()
                if not line:
                    continue
                try:
                    entries.append(LedgerEntry.model_validate_json(line))
                except ValidationError as e:
                    return VerificationResult(
                        valid=False,
                        entries_checked=len(entries),
                        first_error=f"Line {i + 1}: failed to parse entry: {e}",
                    )

        prev_hash: str | None = None
        for i, entry in enumerate(entries):
            if entry.prev_hash != prev_hash:
                return VerificationResult(
                    valid=False,
                    entries_checked=i + 1,
                    first_error=(
                        f"Entry {i + 1} ({entry.entry_id}): prev_hash mismatch. "
                        f"Expected {prev_hash}, got {entry.prev_hash}"
                    ),
                )

            computed_hash = compute_entry_hash(entry)
            if entry.entry_hash != computed_hash:
                return VerificationResult(
                    valid=False,
                    entries_checked=i + 1,
                    first_error=(
                        f"Entry {i + 1} ({entry.entry_id}): hash mismatch. "
                        f"Expected {computed_hash}, got {entry.entry_hash}"
                    ),
                )

            prev_hash = entry.entry_hash

        return VerificationResult(valid=True, entries_checked=len(entries))
