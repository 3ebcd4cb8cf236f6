"""Load and validate YAML guard policy files."""

import uuid
from datetime import UTC, datetime
from pathlib import Path

import yaml

from paywarden.guards.models import GuardPolicy

SIGNATURE_FIELDS = ("_signature", "_signed_at", "_signed_by")


def load_policy(path: Path) -> GuardPolicy:
    """Load a guard policy from a YAML file."""
    with open(path) as f:
        data = yaml.safe_load(f)

    if not data:
        raise ValueError(f"Empty policy file: {path}")

    for field in SIGNATURE_FIELDS:
        data.pop(field, None)

    # Set defaults for auto-generated fields
    if "policy_id" not in data or not data["policy_id"]:
        data["policy_id"] = f"pol_{uuid.uuid4().hex[:8]}"
    if "created_at" not in data:
        data["created_at"] = datetime.now(UTC)

    guards = data.get("guards") or []
    taken = {g["id"] for g in guards if isinstance(g, dict) and g.get("id")}
    n = 0
    for guard in guards:
        if isinstance(guard, dict) and not guard.get("id"):
            n += 1
            while f"guard_{n}" in taken:
                n += 1
            guard["id"] = f"guard_{n}"
            taken.add(guard["id"])
    data["guards"] = guards

    return GuardPolicy(**data)


def find_policy_path(policies_dir: Path, name: str = "default") -> Path:
    path = policies_dir / f"{name}.yaml"
    if not path.exists():
        path = policies_dir / f"{name}.yml"
    if not path.exists():
        raise FileNotFoundError(f"Policy not found: {path}")
    return path


def load_policy_from_dir(policies_dir: Path, name: str = "default") -> GuardPolicy:
    """Load a named policy from the policies directory."""
    return load_policy(find_policy_path(policies_dir, name))
