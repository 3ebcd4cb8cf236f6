"""paywarden serve: start the MCP server after startup checks."""

import os
import sys
from pathlib import Path

import click
import yaml

from paywarden.cli.main import cli
from paywarden.config import OWNER_DIR, POLICIES_DIR, ledger_path


@cli.command()
@click.option("--transport", default="stdio", type=click.Choice(["stdio", "sse"]))
@click.option("--port", default=8080, type=int, help="Port for SSE transport")
@click.option("--skip-security", is_flag=True, default=False, help="Skip security checks")
def serve(transport: str, port: int, skip_security: bool) -> None:
    """Start the Paywarden MCP server."""
    from paywarden.config import ensure_dirs, load_config

    ensure_dirs()
    config = load_config()

    click.echo()
    click.echo("Paywarden v0.1.0")
    click.echo("================")

    if not skip_security:
        if not _run_security_checks():
            sys.exit(1)

    click.echo()
    click.echo(f"Executor: paper (starting balance: ${config.paper_starting_balance:,.0f} per wallet)")
    click.echo(f"Policy: {config.default_policy}")
    click.echo()
    click.echo(f"MCP server ready on {transport}")

    from paywarden.server import mcp as mcp_server

    if transport == "sse":
        mcp_server.settings.port = port
        mcp_server.run(transport="sse")
    else:
        mcp_server.run(transport="stdio")


def _run_security_checks() -> bool:
    """Run startup checks. Return False if a policy signature is invalid."""
    from paywarden.identity.owner import keypair_exists
    from paywarden.ledger.verifier import LedgerVerifier

    click.echo("Security checks:")
    all_passed = True

    if keypair_exists(OWNER_DIR):
        click.echo("  ✓ Owner keypair found")
    else:
        click.echo("  ⚠ Owner keypair not found (run 'paywarden init')")

    policy_paths = sorted(POLICIES_DIR.glob("*.yaml")) + sorted(POLICIES_DIR.glob("*.yml"))
    if not policy_paths:
        click.echo("  ⚠ No policy files found, default guards apply")
    for pp in policy_paths:
        sig_valid = _check_policy_signature(pp)
        if sig_valid is True:
            click.echo(f"  ✓ Policy signature valid ({pp.name})")
        elif sig_valid is False:
            click.echo(f"  ✗ FATAL: Policy {pp.name} has invalid signature.")
            click.echo(f"    Re-sign with: paywarden policy sign {pp}")
            all_passed = False
        else:
            click.echo(f"  ⚠ Policy {pp.name} is unsigned")

        if pp.stat().st_mode & 0o777 != 0o444:
            click.echo(f"  ⚠ Warning: {pp.name} is writable. Locking down...")
            os.chmod(pp, 0o444)

    result = LedgerVerifier().verify(ledger_path())
    if result.valid:
        click.echo(f"  ✓ Ledger chain intact ({result.entries_checked} entries)")
    else:
        click.echo(f"  ✗ FATAL: Ledger verification failed: {result.first_error}")
        all_passed = False

    if not all_passed:
        click.echo()
        click.echo("  FATAL: Critical security checks failed. Refusing to start.")

    return all_passed


def _check_policy_signature(policy_path: Path) -> bool | None:
    """True/False for signed policies, None when unsigned or no key is available."""
    from paywarden.guards.signer import verify_policy_signature
    from paywarden.identity.owner import load_public_key

    try:
        data = yaml.safe_load(policy_path.read_text()) or {}
        if "_signature" not in data:
            return None
        public_key = load_public_key(OWNER_DIR)
    except FileNotFoundError:
        return None
    except yaml.YAMLError:
        return False
    return verify_policy_signature(data, public_key)
