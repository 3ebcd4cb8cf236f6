"""paywarden policy: guard policy management commands."""

from pathlib import Path

import click
import yaml

from paywarden.cli.main import cli
from paywarden.config import OWNER_DIR, POLICIES_DIR


def _policy_path(path: str | None) -> Path:
    policy_path = Path(path) if path else POLICIES_DIR / "default.yaml"
    if not policy_path.exists():
        click.echo(f"Policy not found: {policy_path}")
        raise SystemExit(1)
    return policy_path


def describe_rule(rule: dict) -> str:
    """One-line summary of a guard rule's config for display."""
    kind = rule.get("kind", "?")
    config = rule.get("config") or {}
    if kind in ("budget", "rate_limit"):
        unit = "$" if kind == "budget" else ""
        return f"{unit}{config.get('limit', '?')} per {config.get('period', 'day' if kind == 'budget' else 'hour')}"
    if kind == "single_tx":
        parts = []
        if "limit" in config:
            parts.append(f"max ${config['limit']}")
        if "min_amount" in config:
            parts.append(f"min ${config['min_amount']}")
        return ", ".join(parts) or "unconfigured"
    if kind in ("allowlist", "blocklist"):
        entries = list(config.get("addresses") or []) + list(config.get("patterns") or [])
        return ", ".join(entries) or "empty"
    if kind == "auto_approve":
        return f"up to ${config.get('threshold', '?')}"
    return str(config)


@cli.group()
def policy() -> None:
    """Guard policy management commands."""


@policy.command()
@click.argument("path", required=False, type=click.Path(exists=True))
def sign(path: str | None) -> None:
    """Sign a policy YAML file with the owner's private key."""
    from paywarden.guards.signer import sign_policy
    from paywarden.identity.owner import load_private_key

    policy_path = _policy_path(path)

    try:
        private_key = load_private_key(OWNER_DIR)
    except FileNotFoundError:
        click.echo("Owner private key not found. Run 'paywarden init' first.")
        raise SystemExit(1)

    sign_policy(policy_path, private_key)
    click.echo("  ✓ Policy signed with owner key")
    click.echo("  ✓ File set to read-only (444)")


@policy.command()
@click.argument("path", required=False, type=click.Path(exists=True))
def verify(path: str | None) -> None:
    """Verify a policy's signature against the owner's public key."""
    from paywarden.guards.signer import verify_policy_signature
    from paywarden.identity.owner import load_public_key

    policy_path = _policy_path(path)

    try:
        public_key = load_public_key(OWNER_DIR)
    except FileNotFoundError:
        click.echo("Owner public key not found. Run 'paywarden init' first.")
        raise SystemExit(1)

    data = yaml.safe_load(policy_path.read_text())
    signed_at = data.get("_signed_at", "unknown")
    signed_by = data.get("_signed_by", "unknown")

    if verify_policy_signature(data, public_key):
        click.echo("  ✓ Signature valid")
        click.echo(f"  ✓ Signed at: {signed_at}")
        click.echo(f"  ✓ Signed by: {signed_by}")
    else:
        click.echo("  ✗ SIGNATURE INVALID: POSSIBLE TAMPERING")
        click.echo(f"  Re-sign with: paywarden policy sign {policy_path}")
        raise SystemExit(1)


@policy.command()
@click.argument("path", required=False, type=click.Path(exists=True))
def show(path: str | None) -> None:
    """Display policy guards and signature status."""
    policy_path = _policy_path(path)
    data = yaml.safe_load(policy_path.read_text()) or {}

    click.echo(f"  Policy: {data.get('policy_id', 'unknown')} (v{data.get('version', '?')})")
    if data.get("description"):
        click.echo(f"  {data['description']}")

    for rule in data.get("guards") or []:
        state = "on " if rule.get("enabled", True) else "off"
        click.echo(
            f"  [{state}] {rule.get('id', '?'):<10} {rule.get('name', '?'):<28} "
            f"{rule.get('kind', '?'):<12} {describe_rule(rule)}"
        )

    has_sig = "_signature" in data
    mode = oct(policy_path.stat().st_mode & 0o777)
    is_readonly = mode == "0o444"
    status_parts = ["signed" if has_sig else "unsigned"]
    status_parts.append("read-only" if is_readonly else f"writable ({mode})")

    icon = "✓" if has_sig and is_readonly else "⚠"
    click.echo(f"  Status: {icon} {', '.join(status_parts)}")


@policy.command()
@click.argument("path", type=click.Path(exists=True))
def check(path: str) -> None:
    """Validate a policy YAML file."""
    from paywarden.guards.loader import load_policy

    try:
        p = load_policy(Path(path))
    except Exception as e:
        click.echo(f"Invalid policy: {e}")
        raise SystemExit(1)

    click.echo(f"Policy is valid: {p.policy_id} ({len(p.guards)} guards)")
    for rule in p.guards:
        click.echo(f"  {rule.id}: {rule.name} [{rule.kind.value}] {describe_rule(rule.model_dump(mode='json'))}")
