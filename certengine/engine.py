"""
Certification engine facade.

Wires the classifier, scorer, composer, verifier and record store together
and emits an audit event for every step. The module-level classify_risk,
score_maturity and issue_certificate run against a lazily built default
engine. verify_certificate needs no engine: it checks the hash only.
"""

import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Mapping, Optional

from .certificate import (
    CertificateComposer,
    CertificateRecord,
    CertificateRequest,
    determine_certificate_type,
    random_serial_suffix,
    should_issue_automatically,
    utc_now,
)
from .config import ScoringConfig, WORKING_LANGUAGE, load_scoring_config
from .errors import ValidationError
from .framework import Framework, load_framework
from .keys import KeyProvider, get_key_provider
from .logging_config import audit_log
from .maturity import MaturityAssessmentResult, MaturityScorer
from .recommendations import RecommendationGenerator, TextGenerator, get_text_generator
from .risk import RiskAssessmentResult, RiskClassifier
from .storage import RecordStore
from .verifier import CertificateLike, CertificateVerifier, VerificationResult
from .verifier import verify_certificate as _verify_hash

logger = logging.getLogger(__name__)


@dataclass
class AssessmentOutcome:
    """A stored assessment and, when issued automatically, its certificate."""
    assessment_id: Optional[str]
    result: Any
    certificate: Optional[CertificateRecord] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "assessmentId": self.assessment_id,
            "result": self.result.to_dict(),
            "certificate": self.certificate.to_dict() if self.certificate else None,
        }


class CertificationEngine:
    """Scoring, issuance and verification over one configuration."""

    def __init__(self,
                 store: Optional[RecordStore] = None,
                 config: Optional[ScoringConfig] = None,
                 framework: Optional[Framework] = None,
                 text_generator: Optional[TextGenerator] = None,
                 key_provider: Optional[KeyProvider] = None,
                 clock: Callable[[], datetime] = utc_now,
                 suffix_source: Callable[[], str] = random_serial_suffix,
                 generation_timeout: Optional[float] = None):
        self.store = store
        self.config = config or load_scoring_config()
        self.framework = framework or load_framework()
        self.key_provider = key_provider
        self.classifier = RiskClassifier(self.config)
        self.scorer = MaturityScorer(self.framework, self.config)
        self.recommendations = RecommendationGenerator(
            text_generator=text_generator, config=self.config, timeout=generation_timeout
        )
        self.composer = CertificateComposer(
            recommendation_generator=self.recommendations,
            config=self.config,
            key_provider=key_provider,
            clock=clock,
            suffix_source=suffix_source,
        )
        self.verifier = CertificateVerifier(
            trusted_keys=key_provider.public_keys() if key_provider else None
        )

    # Scoring

    def classify_risk(self, response: Mapping[str, Any]) -> RiskAssessmentResult:
        result = self.classifier.classify(response)
        audit_log.risk_classified(
            risk_level=result.risk_level.value,
            risk_score=result.risk_score,
            config_hash=self.config.get_hash(),
            prohibited=result.prohibited_practices,
        )
        return result

    def score_maturity(self, domain_responses: Mapping[str, Mapping[str, Any]]) -> MaturityAssessmentResult:
        result = self.scorer.score(domain_responses)
        audit_log.maturity_scored(
            overall_maturity=result.overall_maturity.value,
            overall_score=result.overall_score,
            framework_hash=self.framework.get_hash(),
            config_hash=self.config.get_hash(),
        )
        return result

    # Issuance

    def issue_certificate(self, request: CertificateRequest) -> CertificateRecord:
        """
        Compose a certificate and, when a store is attached, persist it.

        Raises:
            ValidationError: invalid request
            SerialCollisionError: the serial already exists (retryable)
        """
        record = self.composer.compose(request)
        if self.store is not None:
            self.store.create_certificate(request.user_id, record)
        return record

    def build_request(self,
                      user_id: str,
                      organization_name: str,
                      certificate_type: Optional[str] = None,
                      ai_system_id: Optional[str] = None,
                      risk_assessment_id: Optional[str] = None,
                      maturity_assessment_id: Optional[str] = None,
                      language: Optional[str] = None) -> CertificateRequest:
        """Resolve stored references into a CertificateRequest."""
        if self.store is None and (ai_system_id or risk_assessment_id or maturity_assessment_id):
            raise ValidationError("store", "record references need a configured store")

        ai_system = self.store.get_ai_system(ai_system_id) if ai_system_id else None
        risk = self.store.get_risk_assessment(risk_assessment_id) if risk_assessment_id else None
        maturity = self.store.get_maturity_assessment(maturity_assessment_id) if maturity_assessment_id else None

        return CertificateRequest(
            user_id=user_id,
            organization_name=organization_name,
            certificate_type=certificate_type or determine_certificate_type(ai_system, risk, maturity),
            ai_system=ai_system,
            risk_assessment=risk,
            maturity_assessment=maturity,
            language=language or WORKING_LANGUAGE,
        )

    def submit_risk_assessment(self, user_id: str, organization_name: str,
                               response: Mapping[str, Any],
                               ai_system_id: Optional[str] = None,
                               auto_issue: bool = True) -> AssessmentOutcome:
        """Classify, store, and issue a certificate when the issuance rule allows."""
        result = self.classify_risk(response)
        ai_system = None
        assessment_id = None
        if self.store is not None:
            if ai_system_id:
                ai_system = self.store.get_ai_system(ai_system_id)
            assessment_id = self.store.create_risk_assessment(user_id, result, ai_system_id)

        certificate = None
        if auto_issue and should_issue_automatically(risk_assessment=result, config=self.config):
            certificate = self.issue_certificate(CertificateRequest(
                user_id=user_id,
                organization_name=organization_name,
                certificate_type=determine_certificate_type(ai_system, result, None),
                ai_system=ai_system,
                risk_assessment=result,
                language=WORKING_LANGUAGE,
            ))
        return AssessmentOutcome(assessment_id, result, certificate)

    def submit_maturity_assessment(self, user_id: str, organization_name: str,
                                   domain_responses: Mapping[str, Mapping[str, Any]],
                                   auto_issue: bool = True) -> AssessmentOutcome:
        result = self.score_maturity(domain_responses)
        assessment_id = None
        if self.store is not None:
            assessment_id = self.store.create_maturity_assessment(user_id, result)

        certificate = None
        if auto_issue and should_issue_automatically(maturity_assessment=result, config=self.config):
            certificate = self.issue_certificate(CertificateRequest(
                user_id=user_id,
                organization_name=organization_name,
                certificate_type=determine_certificate_type(None, None, result),
                maturity_assessment=result,
                language=WORKING_LANGUAGE,
            ))
        elif auto_issue:
            logger.info("Maturity score %s below automatic issuance threshold", result.overall_score)
        return AssessmentOutcome(assessment_id, result, certificate)

    # Verification

    def verify(self, record: CertificateLike) -> VerificationResult:
        """Full check: hash, then the seal against this engine's trusted keys."""
        return self.verifier.verify(record)

    def verify_certificate(self, record: CertificateLike) -> bool:
        """Hash-only verdict; seals and key configuration play no part."""
        return _verify_hash(record)

    def verify_stored(self, certificate_number: str) -> VerificationResult:
        """Verify a certificate exactly as persisted. Raises RecordNotFoundError."""
        if self.store is None:
            raise ValidationError("store", "no record store configured")
        return self.verify(self.store.get_certificate(certificate_number))


_default_engine: Optional[CertificationEngine] = None
_default_lock = threading.Lock()


def get_engine() -> CertificationEngine:
    """Default engine built from environment settings (no store)."""
    global _default_engine
    with _default_lock:
        if _default_engine is None:
            _default_engine = CertificationEngine(
                text_generator=get_text_generator(),
                key_provider=get_key_provider(),
            )
        return _default_engine


def classify_risk(response: Mapping[str, Any]) -> RiskAssessmentResult:
    return get_engine().classify_risk(response)


def score_maturity(domain_responses: Mapping[str, Mapping[str, Any]]) -> MaturityAssessmentResult:
    return get_engine().score_maturity(domain_responses)


def issue_certificate(request: CertificateRequest) -> CertificateRecord:
    return get_engine().issue_certificate(request)


def verify_certificate(record: CertificateLike) -> bool:
    """True iff the record's canonical fields match its declared hash. Never raises."""
    return _verify_hash(record)
