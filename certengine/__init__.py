"""
certengine: EU AI Act Assessment Scoring & Certification Engine

Version: 1.0.0

Turns questionnaire responses into two deterministic scores and an
integrity-protected certificate:

- Risk classification of an AI system into the EU AI Act tiers
  (minimal, limited, high, unacceptable)
- Organisational maturity scoring against a weighted framework
- Certificate composition with a SHA-256 hash over its canonical fields,
  optionally sealed with the authority's Ed25519 key
- Offline verification of a presented certificate

Usage:
    from certengine import (
        CertificationEngine,
        CertificateRequest,
        verify_certificate,
    )

    engine = CertificationEngine()

    risk = engine.classify_risk({
        "sensitiveData": "yes",
        "discriminationRisk": "high",
        "humanOversight": "minimal",
        "safetyImpact": "critical",
    })

    record = engine.issue_certificate(CertificateRequest(
        user_id="user-1",
        organization_name="Acme SAS",
        certificate_type="risk_assessment",
        risk_assessment=risk,
    ))

    assert verify_certificate(record.to_dict())
"""

__version__ = "1.0.0"

# Canonicalization and hashing
from .canonicalization import canonicalize, canonicalize_str, format_timestamp, parse_timestamp
from .hashing import (
    CANONICAL_FIELDS,
    sha256_hex,
    content_hash,
    certificate_hash,
    certificate_hash_input,
)

# Configuration and errors
from .config import ScoringConfig, DEFAULT_SCORING_CONFIG, load_scoring_config
from .errors import (
    CertEngineError,
    ValidationError,
    IncompleteResponseError,
    GenerationError,
    SerialCollisionError,
    RecordNotFoundError,
)

# Risk classifier
from .risk import RiskLevel, RiskAssessmentResult, RiskClassifier

# Maturity scorer
from .framework import (
    Framework,
    MaturityDomain,
    MaturityQuestion,
    MaturityOption,
    create_positive_ai_framework,
    load_framework,
)
from .maturity import (
    MaturityLevel,
    ActionPriority,
    DomainScore,
    ActionItem,
    MaturityAssessmentResult,
    MaturityScorer,
)

# Recommendations
from .recommendations import (
    TextGenerator,
    HttpTextGenerator,
    NullTextGenerator,
    GenerationPool,
    RecommendationContext,
    RecommendationGenerator,
)

# Certificates
from .certificate import (
    CertificateType,
    ComplianceStatus,
    AiSystemRecord,
    CertificateRequest,
    CertificateRecord,
    CertificateComposer,
    generate_certificate_number,
    determine_certificate_type,
    should_issue_automatically,
)
from .keys import KeyProvider, StaticKeyProvider, FileKeyProvider
from .verifier import CertificateVerifier, VerificationResult, VerificationOutcome

# Storage and engine
from .storage import RecordStore, SqliteRecordStore
from .engine import (
    CertificationEngine,
    AssessmentOutcome,
    classify_risk,
    score_maturity,
    issue_certificate,
    verify_certificate,
)


__all__ = [
    # Version
    "__version__",

    # Canonicalization
    "canonicalize",
    "canonicalize_str",
    "format_timestamp",
    "parse_timestamp",

    # Hashing
    "CANONICAL_FIELDS",
    "sha256_hex",
    "content_hash",
    "certificate_hash",
    "certificate_hash_input",

    # Configuration
    "ScoringConfig",
    "DEFAULT_SCORING_CONFIG",
    "load_scoring_config",

    # Errors
    "CertEngineError",
    "ValidationError",
    "IncompleteResponseError",
    "GenerationError",
    "SerialCollisionError",
    "RecordNotFoundError",

    # Risk
    "RiskLevel",
    "RiskAssessmentResult",
    "RiskClassifier",

    # Maturity
    "Framework",
    "MaturityDomain",
    "MaturityQuestion",
    "MaturityOption",
    "create_positive_ai_framework",
    "load_framework",
    "MaturityLevel",
    "ActionPriority",
    "DomainScore",
    "ActionItem",
    "MaturityAssessmentResult",
    "MaturityScorer",

    # Recommendations
    "TextGenerator",
    "HttpTextGenerator",
    "NullTextGenerator",
    "RecommendationContext",
    "RecommendationGenerator",
    "GenerationPool",

    # Certificates
    "CertificateType",
    "ComplianceStatus",
    "AiSystemRecord",
    "CertificateRequest",
    "CertificateRecord",
    "CertificateComposer",
    "generate_certificate_number",
    "determine_certificate_type",
    "should_issue_automatically",
    "KeyProvider",
    "StaticKeyProvider",
    "FileKeyProvider",
    "CertificateVerifier",
    "VerificationResult",
    "VerificationOutcome",

    # Engine
    "RecordStore",
    "SqliteRecordStore",
    "CertificationEngine",
    "AssessmentOutcome",
    "classify_risk",
    "score_maturity",
    "issue_certificate",
    "verify_certificate",
]
