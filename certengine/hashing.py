"""
Certificate Hashing

All digests are SHA-256 with lowercase hexadecimal output.

The certificate integrity hash covers exactly five canonical fields, in
this order:

    certificateNumber, organizationName, systemName, issuedAt, complianceScore

serialised with canonicalize_fields(): compact JSON, UTF-8, systemName null
when absent, issuedAt as RFC 3339 UTC with milliseconds
(e.g. "2025-03-01T09:30:00.000Z"), complianceScore as an integer. No other
field participates.
"""

import hashlib
import hmac
from datetime import datetime
from typing import Any, List, Optional, Tuple, Union

from .canonicalization import canonicalize, canonicalize_fields, parse_timestamp


CANONICAL_FIELDS = (
    "certificateNumber",
    "organizationName",
    "systemName",
    "issuedAt",
    "complianceScore",
)


def sha256_hex(data: Union[bytes, str]) -> str:
    """Compute SHA-256 hash and return as lowercase hex string."""
    if isinstance(data, str):
        data = data.encode('utf-8')
    return hashlib.sha256(data).hexdigest().lower()


def content_hash(obj: Any) -> str:
    """Hash of the sorted-key canonical JSON form of obj."""
    return sha256_hex(canonicalize(obj))


def canonical_certificate_fields(
    certificate_number: str,
    organization_name: str,
    system_name: Optional[str],
    issued_at: Union[str, datetime],
    compliance_score: int,
) -> List[Tuple[str, Any]]:
    """
    Build the ordered canonical field list for the certificate hash.

    Raises ValueError/TypeError on structurally invalid values.
    """
    if not isinstance(certificate_number, str) or not certificate_number:
        raise ValueError("certificateNumber must be a non-empty string")
    if not isinstance(organization_name, str):
        raise ValueError("organizationName must be a string")
    if system_name is not None and not isinstance(system_name, str):
        raise ValueError("systemName must be a string or null")
    if isinstance(compliance_score, bool) or not isinstance(compliance_score, int):
        raise ValueError("complianceScore must be an integer")

    return [
        ("certificateNumber", certificate_number),
        ("organizationName", organization_name),
        ("systemName", system_name),
        ("issuedAt", parse_timestamp(issued_at)),
        ("complianceScore", compliance_score),
    ]


def certificate_hash_input(**fields) -> bytes:
    """Exact bytes fed to SHA-256 for the certificate hash."""
    return canonicalize_fields(canonical_certificate_fields(**fields))


def certificate_hash(
    certificate_number: str,
    organization_name: str,
    system_name: Optional[str],
    issued_at: Union[str, datetime],
    compliance_score: int,
) -> str:
    """Compute the certificate integrity hash (64 lowercase hex chars)."""
    return sha256_hex(certificate_hash_input(
        certificate_number=certificate_number,
        organization_name=organization_name,
        system_name=system_name,
        issued_at=issued_at,
        compliance_score=compliance_score,
    ))


def constant_time_equals(a: str, b: str) -> bool:
    """Compare two hex digests without leaking timing."""
    if not isinstance(a, str) or not isinstance(b, str):
        return False
    return hmac.compare_digest(a.encode('utf-8'), b.encode('utf-8'))
