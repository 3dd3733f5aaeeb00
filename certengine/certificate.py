"""
Certificate Composer

Assembles risk/maturity results and identity metadata into a
CertificateRecord. Steps run in a fixed order and the integrity hash is
computed last, over fully materialised canonical fields:

1. serial number      <PP>-<YYYY>-<8 x [A-Z0-9]>
2. compliance score   weighted blend of the present assessments
3. overall status     from compliance score bands
4. criteria           fixed entries per present component
5. risk mitigation    fixed entries per risk tier
6. recommendations    RecommendationGenerator (generative or fallback)
7. review/validity    score-banded review offset, fixed validity
8. hash               SHA-256 over the canonical fields (see hashing.py)

Serial uniqueness is probabilistic (36^8 suffixes per prefix and year).
The composer does not check it; storage enforces a unique constraint and
raises SerialCollisionError on a clash.
"""

import math
import secrets
import string
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from . import config as settings
from .canonicalization import format_timestamp, parse_timestamp, truncate_to_millis
from .config import DEFAULT_SCORING_CONFIG, ScoringConfig, band_for
from .errors import ValidationError
from .hashing import certificate_hash
from .keys import KeyProvider, SEAL_ALGORITHM
from .logging_config import audit_log
from .maturity import MaturityAssessmentResult
from .recommendations import RecommendationContext, RecommendationGenerator
from .risk import RiskAssessmentResult


class CertificateType(str, Enum):
    CONFORMITY = "conformity"
    RISK_ASSESSMENT = "risk_assessment"
    MATURITY = "maturity"
    COMPLIANCE_SUMMARY = "compliance_summary"


class ComplianceStatus(str, Enum):
    COMPLIANT = "compliant"
    PARTIALLY_COMPLIANT = "partially_compliant"
    NON_COMPLIANT = "non_compliant"


SERIAL_PREFIXES = {
    "conformity": "CF",
    "risk_assessment": "RA",
    "maturity": "MA",
    "compliance_summary": "CS",
}
DEFAULT_SERIAL_PREFIX = "CC"
SERIAL_ALPHABET = string.ascii_uppercase + string.digits
SERIAL_SUFFIX_LENGTH = 8


def serial_prefix(certificate_type: str) -> str:
    return SERIAL_PREFIXES.get(certificate_type, DEFAULT_SERIAL_PREFIX)


def random_serial_suffix() -> str:
    return ''.join(secrets.choice(SERIAL_ALPHABET) for _ in range(SERIAL_SUFFIX_LENGTH))


def generate_certificate_number(certificate_type: str, year: int,
                                suffix_source: Callable[[], str] = random_serial_suffix) -> str:
    """Build a serial such as RA-2025-K3F9QZ21."""
    suffix = suffix_source()
    if len(suffix) != SERIAL_SUFFIX_LENGTH or any(c not in SERIAL_ALPHABET for c in suffix):
        raise ValueError(f"Serial suffix must be {SERIAL_SUFFIX_LENGTH} characters of [A-Z0-9]")
    return f"{serial_prefix(certificate_type)}-{year:04d}-{suffix}"


# Criteria contributed by each present component
RISK_CRITERIA = {
    "evaluatedDomains": ["AI risk assessment"],
    "complianceChecks": ["Risk level classification", "Identified mitigation measures"],
    "assessmentMethods": ["EU AI Act questionnaire"],
}
MATURITY_CRITERIA = {
    "evaluatedDomains": ["Organisational AI maturity"],
    "complianceChecks": [
        "AI strategy and leadership",
        "Governance and risk management",
        "Ethics and responsible AI",
        "Technical and human capabilities",
    ],
    "assessmentMethods": ["Positive AI Framework"],
}
SYSTEM_CRITERIA = {
    "evaluatedDomains": ["Specific AI system"],
    "complianceChecks": ["Technical documentation", "Human oversight"],
    "assessmentMethods": ["Compliance audit"],
}

RISK_MITIGATION = {
    "unacceptable": [
        "Enhanced human oversight",
        "Extended robustness testing",
        "Complete technical documentation",
    ],
    "high": [
        "Enhanced human oversight",
        "Extended robustness testing",
        "Complete technical documentation",
    ],
    "limited": [
        "User information",
        "Decision traceability",
    ],
    "minimal": [],
}


@dataclass(frozen=True)
class AiSystemRecord:
    """The subset of an AI system record the composer reads."""
    id: Optional[str]
    name: str
    compliance_score: Optional[int] = None
    sector: Optional[str] = None
    description: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "complianceScore": self.compliance_score,
            "sector": self.sector,
            "description": self.description,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AiSystemRecord':
        if not data.get("name"):
            raise ValidationError("aiSystem.name", "is required")
        score = data.get("complianceScore")
        return cls(
            id=data.get("id"),
            name=data["name"],
            compliance_score=int(score) if score is not None else None,
            sector=data.get("sector"),
            description=data.get("description"),
        )


@dataclass(frozen=True)
class CertificateRequest:
    """Input to certificate issuance."""
    user_id: str
    organization_name: str
    certificate_type: str
    ai_system: Optional[AiSystemRecord] = None
    risk_assessment: Optional[RiskAssessmentResult] = None
    maturity_assessment: Optional[MaturityAssessmentResult] = None
    language: str = "en"


@dataclass(frozen=True)
class CertificationCriteria:
    evaluated_domains: List[str] = field(default_factory=list)
    compliance_checks: List[str] = field(default_factory=list)
    assessment_methods: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "evaluatedDomains": list(self.evaluated_domains),
            "complianceChecks": list(self.compliance_checks),
            "assessmentMethods": list(self.assessment_methods),
        }


@dataclass(frozen=True)
class ComplianceDetails:
    overall_status: ComplianceStatus
    risk_mitigation: List[str]
    recommendations: List[str]
    next_review_date: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "overallStatus": self.overall_status.value,
            "riskMitigation": list(self.risk_mitigation),
            "recommendations": list(self.recommendations),
            "nextReviewDate": format_timestamp(self.next_review_date),
        }


@dataclass(frozen=True)
class Certification:
    authority: str
    standard: str
    version: str
    hash: str
    seal: Optional[Dict[str, str]] = None

    def to_dict(self) -> Dict[str, Any]:
        d = {
            "authority": self.authority,
            "standard": self.standard,
            "version": self.version,
            "hash": self.hash,
        }
        if self.seal:
            d["seal"] = dict(self.seal)
        return d


@dataclass(frozen=True)
class CertificateRecord:
    """
    An issued certificate. Logically immutable: corrections require a new
    certificate with a new serial.
    """
    certificate_number: str
    organization_name: str
    system_name: Optional[str]
    certificate_type: str
    issued_at: datetime
    valid_until: datetime
    risk_level: Optional[str]
    compliance_score: int
    maturity_level: Optional[str]
    certification_criteria: CertificationCriteria
    compliance_details: ComplianceDetails
    certification: Certification

    def compute_hash(self) -> str:
        """Recompute the integrity hash from this record's canonical fields."""
        return certificate_hash(
            certificate_number=self.certificate_number,
            organization_name=self.organization_name,
            system_name=self.system_name,
            issued_at=self.issued_at,
            compliance_score=self.compliance_score,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "certificateNumber": self.certificate_number,
            "organizationName": self.organization_name,
            "systemName": self.system_name,
            "certificateType": self.certificate_type,
            "issuedAt": format_timestamp(self.issued_at),
            "validUntil": format_timestamp(self.valid_until),
            "riskLevel": self.risk_level,
            "complianceScore": self.compliance_score,
            "maturityLevel": self.maturity_level,
            "certificationCriteria": self.certification_criteria.to_dict(),
            "complianceDetails": self.compliance_details.to_dict(),
            "certification": self.certification.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CertificateRecord':
        """
        Rebuild a record from its stored dict form.

        Raises KeyError/ValueError/TypeError on malformed input.
        """
        criteria = data["certificationCriteria"]
        details = data["complianceDetails"]
        cert = data["certification"]
        return cls(
            certificate_number=data["certificateNumber"],
            organization_name=data["organizationName"],
            system_name=data.get("systemName"),
            certificate_type=data["certificateType"],
            issued_at=parse_timestamp(data["issuedAt"]),
            valid_until=parse_timestamp(data["validUntil"]),
            risk_level=data.get("riskLevel"),
            compliance_score=data["complianceScore"],
            maturity_level=data.get("maturityLevel"),
            certification_criteria=CertificationCriteria(
                evaluated_domains=list(criteria.get("evaluatedDomains", [])),
                compliance_checks=list(criteria.get("complianceChecks", [])),
                assessment_methods=list(criteria.get("assessmentMethods", [])),
            ),
            compliance_details=ComplianceDetails(
                overall_status=ComplianceStatus(details["overallStatus"]),
                risk_mitigation=list(details.get("riskMitigation", [])),
                recommendations=list(details.get("recommendations", [])),
                next_review_date=parse_timestamp(details["nextReviewDate"]),
            ),
            certification=Certification(
                authority=cert["authority"],
                standard=cert["standard"],
                version=cert["version"],
                hash=cert["hash"],
                seal=dict(cert["seal"]) if cert.get("seal") else None,
            ),
        )


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class CertificateComposer:
    """Builds CertificateRecords from assessment outcomes."""

    def __init__(self,
                 recommendation_generator: Optional[RecommendationGenerator] = None,
                 config: Optional[ScoringConfig] = None,
                 key_provider: Optional[KeyProvider] = None,
                 clock: Callable[[], datetime] = utc_now,
                 suffix_source: Callable[[], str] = random_serial_suffix):
        self.config = config or DEFAULT_SCORING_CONFIG
        self.recommendation_generator = recommendation_generator or RecommendationGenerator(config=self.config)
        self.key_provider = key_provider
        self.clock = clock
        self.suffix_source = suffix_source

    def compose(self, request: CertificateRequest) -> CertificateRecord:
        self._validate(request)
        issued_at = self._issued_at()

        # 1. Serial
        certificate_number = generate_certificate_number(
            request.certificate_type, issued_at.year, self.suffix_source
        )

        # 2-3. Score and status
        compliance_score = self.compliance_score(request)
        status = ComplianceStatus(band_for(self.config.compliance_status_bands, compliance_score))

        # 4-5. Criteria and mitigation
        criteria = self.certification_criteria(request)
        risk_level = request.risk_assessment.risk_level.value if request.risk_assessment else None
        mitigation = list(RISK_MITIGATION.get(risk_level, [])) if risk_level else []

        # 6. Recommendations
        recommendations = self.recommendation_generator.generate(self._context(request))

        # 7. Dates
        next_review = issued_at + timedelta(days=self.review_offset_days(compliance_score))
        valid_until = issued_at + timedelta(days=self.config.validity_days)

        record = CertificateRecord(
            certificate_number=certificate_number,
            organization_name=request.organization_name,
            system_name=request.ai_system.name if request.ai_system else None,
            certificate_type=request.certificate_type,
            issued_at=issued_at,
            valid_until=valid_until,
            risk_level=risk_level,
            compliance_score=compliance_score,
            maturity_level=(request.maturity_assessment.overall_maturity.value
                            if request.maturity_assessment else None),
            certification_criteria=criteria,
            compliance_details=ComplianceDetails(
                overall_status=status,
                risk_mitigation=mitigation,
                recommendations=recommendations,
                next_review_date=next_review,
            ),
            certification=Certification(
                authority=settings.AUTHORITY,
                standard=settings.STANDARD,
                version=settings.CERTIFICATE_VERSION,
                hash="",
            ),
        )

        # 8. Hash last, over the materialised record
        digest = record.compute_hash()
        record = replace(record, certification=replace(
            record.certification, hash=digest, seal=self._seal(digest)
        ))

        audit_log.certificate_issued(
            certificate_number=certificate_number,
            certificate_type=request.certificate_type,
            compliance_score=compliance_score,
            certificate_hash=digest,
            sealed=record.certification.seal is not None,
        )
        return record

    def compliance_score(self, request: CertificateRequest) -> int:
        """
        Weighted mean of the present components:
        risk (100 - riskScore) at the risk weight, maturity overallScore at
        the maturity weight. Falls back to the AI system score, then to the
        configured default.
        """
        weights = self.config.compliance_weights
        components = []
        if request.risk_assessment is not None:
            components.append((max(0, 100 - request.risk_assessment.risk_score), weights["risk"]))
        if request.maturity_assessment is not None:
            components.append((request.maturity_assessment.overall_score, weights["maturity"]))

        if components:
            total_weight = sum(w for _, w in components)
            raw = sum(score * w for score, w in components) / total_weight
        elif request.ai_system is not None and request.ai_system.compliance_score is not None:
            raw = request.ai_system.compliance_score
        else:
            raw = self.config.default_compliance_score
        return max(0, min(100, int(math.floor(raw + 0.5))))

    def review_offset_days(self, compliance_score: int) -> int:
        return int(band_for(self.config.review_offset_bands, compliance_score))

    @staticmethod
    def certification_criteria(request: CertificateRequest) -> CertificationCriteria:
        parts = []
        if request.risk_assessment is not None:
            parts.append(RISK_CRITERIA)
        if request.maturity_assessment is not None:
            parts.append(MATURITY_CRITERIA)
        if request.ai_system is not None:
            parts.append(SYSTEM_CRITERIA)
        return CertificationCriteria(
            evaluated_domains=[e for p in parts for e in p["evaluatedDomains"]],
            compliance_checks=[e for p in parts for e in p["complianceChecks"]],
            assessment_methods=[e for p in parts for e in p["assessmentMethods"]],
        )

    def _issued_at(self) -> datetime:
        now = self.clock()
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        return truncate_to_millis(now.astimezone(timezone.utc))

    def _seal(self, digest: str) -> Optional[Dict[str, str]]:
        if self.key_provider is None:
            return None
        kid, sig_b64 = self.key_provider.sign(digest.encode('ascii'))
        return {"kid": kid, "alg": SEAL_ALGORITHM, "sig_b64": sig_b64}

    @staticmethod
    def _context(request: CertificateRequest) -> RecommendationContext:
        risk = request.risk_assessment
        maturity = request.maturity_assessment
        return RecommendationContext(
            organization_name=request.organization_name,
            certificate_type=request.certificate_type,
            system_name=request.ai_system.name if request.ai_system else None,
            risk_level=risk.risk_level.value if risk else None,
            risk_score=risk.risk_score if risk else None,
            maturity_level=maturity.overall_maturity.value if maturity else None,
            maturity_score=maturity.overall_score if maturity else None,
            language=request.language,
        )

    @staticmethod
    def _validate(request: CertificateRequest) -> None:
        if not request.organization_name or not request.organization_name.strip():
            raise ValidationError("organizationName", "is required")
        if request.certificate_type not in SERIAL_PREFIXES:
            raise ValidationError(
                "certificateType",
                f"must be one of {sorted(SERIAL_PREFIXES)}, got '{request.certificate_type}'"
            )


def determine_certificate_type(ai_system: Optional[AiSystemRecord] = None,
                               risk_assessment: Optional[RiskAssessmentResult] = None,
                               maturity_assessment: Optional[MaturityAssessmentResult] = None) -> str:
    """Pick the certificate type that best describes the available evidence."""
    if risk_assessment and maturity_assessment:
        return CertificateType.COMPLIANCE_SUMMARY.value
    if risk_assessment and ai_system:
        return CertificateType.CONFORMITY.value
    if risk_assessment:
        return CertificateType.RISK_ASSESSMENT.value
    if maturity_assessment:
        return CertificateType.MATURITY.value
    return CertificateType.COMPLIANCE_SUMMARY.value


def should_issue_automatically(risk_assessment: Optional[RiskAssessmentResult] = None,
                               maturity_assessment: Optional[MaturityAssessmentResult] = None,
                               config: Optional[ScoringConfig] = None) -> bool:
    """
    Completed risk assessments always qualify; maturity assessments qualify
    once they reach the configured minimum score.
    """
    config = config or DEFAULT_SCORING_CONFIG
    if risk_assessment is not None:
        return True
    if maturity_assessment is not None:
        return maturity_assessment.overall_score >= config.automatic_issue_min_maturity
    return False
