"""
Certificate Verifier

Confirms that a certificate's canonical fields still match its declared
integrity hash. Works on a CertificateRecord or on its dict form (as
stored or as presented by a third party), without access to the
composer or the assessments it was built from.

Verification steps:
1. Extract the five canonical fields and the declared hash
2. Recompute the hash and compare in constant time
3. If trusted issuer keys are supplied, check the Ed25519 seal

Only the canonical fields are covered by the hash; recommendations,
criteria and dates other than issuedAt may change without affecting it.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Union

from .certificate import CertificateRecord
from .hashing import certificate_hash, constant_time_equals
from .keys import SEAL_ALGORITHM, verify_ed25519
from .logging_config import audit_log


class VerificationOutcome(str, Enum):
    """
    VALID: hash matches (and seal checks out when keys were supplied)
    TAMPERED: canonical fields no longer match the declared hash
    MALFORMED: required fields missing or of the wrong type
    UNSEALED: a seal was required but the certificate carries none
    BAD_SEAL: the seal signature does not verify
    UNKNOWN_KEY: the seal names a key the verifier does not trust
    """
    VALID = "VALID"
    TAMPERED = "TAMPERED"
    MALFORMED = "MALFORMED"
    UNSEALED = "UNSEALED"
    BAD_SEAL = "BAD_SEAL"
    UNKNOWN_KEY = "UNKNOWN_KEY"


@dataclass
class VerificationResult:
    """Result of verifying a certificate."""
    outcome: VerificationOutcome
    certificate_number: Optional[str] = None
    reason: Optional[str] = None
    details: Optional[Dict[str, Any]] = None

    def is_valid(self) -> bool:
        return self.outcome == VerificationOutcome.VALID

    def to_dict(self) -> Dict[str, Any]:
        d = {
            "valid": self.is_valid(),
            "outcome": self.outcome.value,
            "certificateNumber": self.certificate_number,
        }
        if self.reason:
            d["reason"] = self.reason
        if self.details:
            d["details"] = self.details
        return d

    @classmethod
    def valid(cls, certificate_number: str) -> 'VerificationResult':
        return cls(outcome=VerificationOutcome.VALID, certificate_number=certificate_number)

    @classmethod
    def invalid(cls, outcome: VerificationOutcome, reason: str,
                certificate_number: Optional[str] = None,
                details: Optional[Dict[str, Any]] = None) -> 'VerificationResult':
        return cls(outcome=outcome, certificate_number=certificate_number,
                   reason=reason, details=details)


CertificateLike = Union[CertificateRecord, Dict[str, Any]]


class CertificateVerifier:
    """
    Verifies certificate integrity and, optionally, the issuer seal.
    """

    def __init__(self, trusted_keys: Optional[Dict[str, str]] = None,
                 require_seal: bool = False):
        """
        Args:
            trusted_keys: key id -> base64 Ed25519 public key. When empty,
                seals are not checked.
            require_seal: reject certificates without a seal
        """
        self.trusted_keys = dict(trusted_keys or {})
        self.require_seal = require_seal

    def verify(self, record: CertificateLike) -> VerificationResult:
        result = self._verify(record)
        audit_log.certificate_verified(
            certificate_number=result.certificate_number,
            outcome=result.outcome.value,
            reason=result.reason,
        )
        return result

    def _verify(self, record: CertificateLike) -> VerificationResult:
        # Step 1: extract
        try:
            fields, declared, seal = _extract(record)
        except (KeyError, TypeError, AttributeError) as e:
            return VerificationResult.invalid(
                VerificationOutcome.MALFORMED, f"Missing or invalid field: {e}"
            )
        number = fields.get("certificate_number") if isinstance(fields.get("certificate_number"), str) else None

        if not isinstance(declared, str) or not declared:
            return VerificationResult.invalid(
                VerificationOutcome.MALFORMED, "Certificate carries no integrity hash", number
            )

        # Step 2: recompute
        try:
            computed = certificate_hash(**fields)
        except (ValueError, TypeError) as e:
            return VerificationResult.invalid(VerificationOutcome.MALFORMED, str(e), number)

        if not constant_time_equals(computed, declared):
            return VerificationResult.invalid(
                VerificationOutcome.TAMPERED,
                "Integrity hash mismatch",
                number,
                {"computed": computed, "declared": declared},
            )

        # Step 3: seal
        if self.trusted_keys or self.require_seal:
            seal_result = self._verify_seal(seal, declared, number)
            if seal_result is not None:
                return seal_result

        return VerificationResult.valid(number)

    def _verify_seal(self, seal: Any, digest: str,
                     number: Optional[str]) -> Optional[VerificationResult]:
        if not seal:
            if self.require_seal:
                return VerificationResult.invalid(
                    VerificationOutcome.UNSEALED, "Certificate is not sealed", number
                )
            return None

        if not isinstance(seal, dict):
            return VerificationResult.invalid(VerificationOutcome.MALFORMED, "Seal must be an object", number)
        if seal.get("alg") != SEAL_ALGORITHM:
            return VerificationResult.invalid(
                VerificationOutcome.BAD_SEAL, f"Unsupported seal algorithm: {seal.get('alg')}", number
            )

        kid = seal.get("kid")
        public_key = self.trusted_keys.get(kid) if isinstance(kid, str) else None
        if public_key is None:
            return VerificationResult.invalid(
                VerificationOutcome.UNKNOWN_KEY, f"Untrusted seal key: {kid}", number
            )

        sig = seal.get("sig_b64")
        if not isinstance(sig, str) or not verify_ed25519(sig, digest.encode('ascii'), public_key):
            return VerificationResult.invalid(
                VerificationOutcome.BAD_SEAL, "Seal signature verification failed", number, {"kid": kid}
            )
        return None


def _extract(record: CertificateLike):
    """Return (canonical field kwargs, declared hash, seal)."""
    if isinstance(record, CertificateRecord):
        fields = {
            "certificate_number": record.certificate_number,
            "organization_name": record.organization_name,
            "system_name": record.system_name,
            "issued_at": record.issued_at,
            "compliance_score": record.compliance_score,
        }
        return fields, record.certification.hash, record.certification.seal

    certification = record["certification"]
    fields = {
        "certificate_number": record["certificateNumber"],
        "organization_name": record["organizationName"],
        "system_name": record.get("systemName"),
        "issued_at": record["issuedAt"],
        "compliance_score": record["complianceScore"],
    }
    return fields, certification["hash"], certification.get("seal")


def verify_certificate(record: CertificateLike) -> bool:
    """
    True iff the record's canonical fields match its declared hash.

    Never raises; malformed input is simply not valid.
    """
    try:
        return CertificateVerifier().verify(record).is_valid()
    except Exception:
        return False
