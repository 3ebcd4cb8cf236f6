"""Policy owner keys: the Ed25519 keypair that signs guard policies."""

import hashlib
from pathlib import Path

from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)
from cryptography.hazmat.primitives.serialization import (
    Encoding,
    NoEncryption,
    PrivateFormat,
    PublicFormat,
    load_pem_private_key,
    load_pem_public_key,
)

from paywarden.config import OWNER_DIR

PRIVATE_KEY_FILE = "private.pem"
PUBLIC_KEY_FILE = "public.pem"


def owner_key_fingerprint(public_key: Ed25519PublicKey) -> str:
    """sha256 hex digest of the public key's raw bytes."""
    return hashlib.sha256(public_key.public_bytes_raw()).hexdigest()


def keypair_exists(owner_dir: Path | None = None) -> bool:
    owner_dir = owner_dir or OWNER_DIR
    return (owner_dir / PRIVATE_KEY_FILE).exists() and (owner_dir / PUBLIC_KEY_FILE).exists()


def generate_and_store_keypair(owner_dir: Path | None = None) -> Ed25519PrivateKey:
    """Generate a keypair; the private PEM is written owner-read-only (0o400)."""
    owner_dir = owner_dir or OWNER_DIR
    owner_dir.mkdir(parents=True, exist_ok=True)
    private_key = Ed25519PrivateKey.generate()

    private_path = owner_dir / PRIVATE_KEY_FILE
    if private_path.exists():
        private_path.chmod(0o600)
    private_path.write_bytes(
        private_key.private_bytes(
            encoding=Encoding.PEM,
            format=PrivateFormat.PKCS8,
            encryption_algorithm=NoEncryption(),
        )
    )
    private_path.chmod(0o400)

    (owner_dir / PUBLIC_KEY_FILE).write_bytes(
        private_key.public_key().public_bytes(
            encoding=Encoding.PEM,
            format=PublicFormat.SubjectPublicKeyInfo,
        )
    )
    return private_key


def load_private_key(owner_dir: Path | None = None) -> Ed25519PrivateKey:
    path = (owner_dir or OWNER_DIR) / PRIVATE_KEY_FILE
    if not path.exists():
        raise FileNotFoundError(f"Owner private key not found: {path}")

    key = load_pem_private_key(path.read_bytes(), password=None)
    if not isinstance(key, Ed25519PrivateKey):
        raise TypeError(f"Expected Ed25519 private key, got {type(key).__name__}")
    return key


def load_public_key(owner_dir: Path | None = None) -> Ed25519PublicKey:
    path = (owner_dir or OWNER_DIR) / PUBLIC_KEY_FILE
    if not path.exists():
        raise FileNotFoundError(f"Owner public key not found: {path}")

    key = load_pem_public_key(path.read_bytes())
    if not isinstance(key, Ed25519PublicKey):
        raise TypeError(f"Expected Ed25519 public key, got {type(key).__name__}")
    return key
