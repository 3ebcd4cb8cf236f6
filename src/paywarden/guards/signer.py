"""Sign and verify guard policy files with Ed25519 owner keys."""

import hashlib
import json
import os
from datetime import UTC, datetime
from pathlib import Path

import yaml
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)

from paywarden.guards.loader import SIGNATURE_FIELDS
from paywarden.identity.owner import owner_key_fingerprint


def _policy_bytes(raw: dict) -> bytes:
    """Canonical JSON serialization for deterministic signing."""
    return json.dumps(raw, sort_keys=True, default=str).encode()


def sign_policy(policy_path: Path, private_key: Ed25519PrivateKey) -> None:
    """Sign a policy YAML file in-place and leave it read-only (0o444)."""
    raw = yaml.safe_load(policy_path.read_text())
    for field in SIGNATURE_FIELDS:
        raw.pop(field, None)

    signature = private_key.sign(_policy_bytes(raw))

    raw["_signature"] = "ed25519:" + signature.hex()
    raw["_signed_at"] = datetime.now(UTC).isoformat().replace("+00:00", "Z")
    raw["_signed_by"] = "owner:" + owner_key_fingerprint(private_key.public_key())

    os.chmod(policy_path, 0o644)
    policy_path.write_text(yaml.dump(raw, sort_keys=False, default_flow_style=False))
    os.chmod(policy_path, 0o444)


def verify_policy_signature(policy_data: dict, public_key: Ed25519PublicKey) -> bool:
    """Verify a policy dict's signature against the owner's public key.

    The input dict is not modified.
    """
    data = dict(policy_data)
    signature_hex = data.pop("_signature", None)
    data.pop("_signed_at", None)
    data.pop("_signed_by", None)

    if not signature_hex:
        return False

    try:
        signature = bytes.fromhex(signature_hex.replace("ed25519:", ""))
    except ValueError:
        return False

    try:
        public_key.verify(signature, _policy_bytes(data))
        return True
    except InvalidSignature:
        return False


def compute_policy_hash(policy_path: Path) -> str:
    """Compute sha256 hash of a policy file's contents."""
    return "sha256:" + hashlib.sha256(policy_path.read_bytes()).hexdigest()
