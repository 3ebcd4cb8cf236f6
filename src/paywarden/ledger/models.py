"""Pydantic models for ledger records."""

from datetime import UTC, datetime
from decimal import Decimal

from pydantic import BaseModel, Field


class Transaction(BaseModel):
    id: str
    intent_id: str
    wallet_id: str
    type: str = "payment"
    amount: Decimal
    currency: str = "USDC"
    recipient: str
    recipient_address: str
    chain: str
    tx_hash: str
    fee: Decimal = Decimal("0")
    status: str = "succeeded"
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))


class LedgerEntry(BaseModel):
    entry_id: str
    recorded_at: datetime
    transaction: Transaction
    prev_hash: str | None = None
    entry_hash: str | None = None


class VerificationResult(BaseModel):
    valid: bool
    entries_checked: int
    first_error: str | None = None
