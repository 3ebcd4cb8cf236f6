"""paywarden ledger: transaction ledger commands."""

import json

import click

from paywarden.cli.main import cli
from paywarden.config import ledger_path


@cli.group()
def ledger() -> None:
    """Transaction ledger commands."""


@ledger.command()
def verify() -> None:
    """Verify ledger hash chain integrity."""
    from paywarden.ledger.verifier import LedgerVerifier

    path = ledger_path()
    if not path.exists():
        click.echo(f"No ledger found at {path}")
        return

    result = LedgerVerifier().verify(path)

    if result.valid:
        click.echo(f"Ledger verified: {result.entries_checked} entries, chain intact.")
    else:
        click.echo(f"VERIFICATION FAILED at entry {result.entries_checked}")
        click.echo(f"Error: {result.first_error}")
        raise SystemExit(1)


@ledger.command()
@click.option("--wallet", "wallet_id", default=None, help="Only show this wallet")
@click.option("--last", "n", default=20, type=int, help="Number of entries to show")
def show(wallet_id: str | None, n: int) -> None:
    """Print recent ledger entries."""
    from paywarden.guards.models import format_usd
    from paywarden.ledger.jsonl import JsonlLedger

    path = ledger_path()
    if not path.exists():
        click.echo(f"No ledger found at {path}")
        return

    entries = JsonlLedger(path).read_entries()
    if wallet_id:
        entries = [e for e in entries if e.transaction.wallet_id == wallet_id]

    for entry in entries[-n:]:
        tx = entry.transaction
        click.echo(
            f"  {tx.timestamp.isoformat()[:19]}  {tx.wallet_id:<12} "
            f"{format_usd(tx.amount):>10}  -> {tx.recipient:<20} [{tx.status}]"
        )
        click.echo(f"    intent: {tx.intent_id}  tx: {tx.tx_hash}")


@ledger.command()
@click.option("--format", "fmt", default="json", type=click.Choice(["json", "csv"]))
@click.option("--output", "output_path", default=None, help="Output file path")
def export(fmt: str, output_path: str | None) -> None:
    """Export ledger transactions to JSON or CSV."""
    import csv
    import io

    from paywarden.ledger.jsonl import JsonlLedger

    path = ledger_path()
    if not path.exists():
        click.echo(f"No ledger found at {path}")
        return

    transactions = JsonlLedger(path).transactions()

    if fmt == "json":
        data = [tx.model_dump(mode="json") for tx in transactions]
        content = json.dumps(data, indent=2, default=str)
    else:
        output = io.StringIO()
        if transactions:
            fields = list(transactions[0].model_dump().keys())
            writer = csv.DictWriter(output, fieldnames=fields)
            writer.writeheader()
            for tx in transactions:
                writer.writerow(tx.model_dump(mode="json"))
        content = output.getvalue()

    if output_path:
        with open(output_path, "w") as f:
            f.write(content)
        click.echo(f"Exported {len(transactions)} transactions to {output_path}")
    else:
        click.echo(content)
