"""
Issuer seal keys.

The certification authority may seal each certificate by signing its
integrity hash with Ed25519. The seal lets a third party holding only the
authority's public key confirm who issued the certificate; it never
participates in the integrity hash itself.
"""

import base64
import json
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional, Tuple

from nacl.exceptions import BadSignatureError
from nacl.signing import SigningKey, VerifyKey

from . import config as settings

SEAL_ALGORITHM = "ed25519"


def b64e(b: bytes) -> str:
    return base64.b64encode(b).decode('ascii')


def b64d(s: str) -> bytes:
    return base64.b64decode(s.encode('ascii'))


class KeyProvider(ABC):
    """Abstract interface for certificate sealing."""

    @abstractmethod
    def sign(self, payload: bytes) -> Tuple[str, str]:
        """
        Sign a payload.

        Returns:
            Tuple of (key_id, base64_encoded_signature)
        """
        pass

    @abstractmethod
    def public_keys(self) -> Dict[str, str]:
        """Map of key id to base64 public key for verifiers."""
        pass


class StaticKeyProvider(KeyProvider):
    """Key provider over an in-memory Ed25519 key."""

    def __init__(self, kid: str, signing_key: SigningKey):
        self._kid = kid
        self._sk = signing_key

    @classmethod
    def generate(cls, kid: str = "certengine-seal-001") -> 'StaticKeyProvider':
        return cls(kid, SigningKey.generate())

    def sign(self, payload: bytes) -> Tuple[str, str]:
        sig = self._sk.sign(payload).signature
        return self._kid, b64e(sig)

    def public_keys(self) -> Dict[str, str]:
        return {self._kid: b64e(bytes(self._sk.verify_key))}

    def export(self) -> Dict[str, str]:
        """JSON-serialisable key file content."""
        return {
            "kid": self._kid,
            "alg": SEAL_ALGORITHM,
            "private_key_b64": b64e(bytes(self._sk)),
            "public_key_b64": b64e(bytes(self._sk.verify_key)),
        }


class FileKeyProvider(StaticKeyProvider):
    """Ed25519 key loaded once from a JSON key file."""

    def __init__(self, signing_key_path: str):
        with open(signing_key_path, "r", encoding="utf-8") as f:
            raw = json.load(f)
        super().__init__(raw["kid"], SigningKey(b64d(raw["private_key_b64"])))


def write_key_file(path: str, kid: str) -> StaticKeyProvider:
    """Generate a new key and write it to path with owner-only permissions."""
    provider = StaticKeyProvider.generate(kid)
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    fd = os.open(target, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    # mode only applies on creation
    os.fchmod(fd, 0o600)
    with os.fdopen(fd, "w", encoding="utf-8") as f:
        json.dump(provider.export(), f, indent=2)
    return provider


def verify_ed25519(signature_b64: str, payload: bytes, public_key_b64: str) -> bool:
    """
    Verify an Ed25519 signature.

    Returns:
        True if signature is valid, False otherwise
    """
    try:
        vk = VerifyKey(b64d(public_key_b64))
        vk.verify(payload, b64d(signature_b64))
        return True
    except (BadSignatureError, ValueError, TypeError):
        return False


def get_key_provider(signing_key_path: Optional[str] = None) -> Optional[KeyProvider]:
    """Key provider from settings, or None when sealing is not configured."""
    path = signing_key_path if signing_key_path is not None else settings.SIGNING_KEY_PATH
    if not path:
        return None
    return FileKeyProvider(path)
