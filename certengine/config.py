"""
Configuration module for the certification engine.

Two layers:

- Environment settings (paths, LLM endpoint, timeouts, logging) read once
  at import time.
- ScoringConfig: the single named table of every threshold, point weight
  and offset used by the classifier, scorer and composer. It can be loaded
  from JSON, is validated on construction and exposes a content hash so a
  given set of thresholds can be versioned independently of code.
"""

import json
import os
import threading
import time
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from .hashing import content_hash


# ============================================================
# Environment Configuration
# ============================================================

ENV = os.getenv("CERTENGINE_ENV", "dev")  # dev|stage|prod

DB_PATH = os.getenv("CERTENGINE_DB_PATH", "data/certengine.db")
SCORING_CONFIG_PATH = os.getenv("SCORING_CONFIG_PATH", "")
FRAMEWORK_PATH = os.getenv("FRAMEWORK_PATH", "")

# Generative text capability
LLM_ENDPOINT = os.getenv("LLM_ENDPOINT", "")
LLM_API_KEY = os.getenv("LLM_API_KEY", "")
LLM_MODEL = os.getenv("LLM_MODEL", "gpt-4o-mini")
LLM_TIMEOUT_SECONDS = float(os.getenv("LLM_TIMEOUT_SECONDS", "15"))
GENERATION_WORKERS = int(os.getenv("GENERATION_WORKERS", "4"))
WORKING_LANGUAGE = os.getenv("CERTENGINE_LANGUAGE", "en")

# Issuer seal
SIGNING_KEY_PATH = os.getenv("SIGNING_KEY_PATH", "")

# Logging
LOG_LEVEL = os.getenv("CERTENGINE_LOG_LEVEL", "INFO")
LOG_JSON = os.getenv("CERTENGINE_LOG_JSON", "1").lower() in ("1", "true", "yes")

# Certification authority
AUTHORITY = os.getenv("CERTENGINE_AUTHORITY", "IA-ACT-NAVIGATOR")
STANDARD = "EU AI Act (Regulation (EU) 2024/1689)"
CERTIFICATE_VERSION = "1.0"

# Cache TTL (seconds)
CONFIG_CACHE_TTL = int(os.getenv("CONFIG_CACHE_TTL", "60"))


# ============================================================
# Cached Configuration Loaders
# ============================================================

class CachedConfig:
    """
    Thread-safe cached JSON loader.
    Reloads files once their cached copy is older than the TTL.
    """

    def __init__(self, ttl_seconds: int = 60):
        self._cache: Dict[str, Any] = {}
        self._timestamps: Dict[str, float] = {}
        self._lock = threading.RLock()
        self._ttl = ttl_seconds

    def _is_stale(self, key: str) -> bool:
        if key not in self._timestamps:
            return True
        return (time.time() - self._timestamps[key]) > self._ttl

    def get_json(self, path: str) -> Dict[str, Any]:
        with self._lock:
            if path in self._cache and not self._is_stale(path):
                return self._cache[path]

            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)

            self._cache[path] = data
            self._timestamps[path] = time.time()
            return data


_config_cache = CachedConfig(ttl_seconds=CONFIG_CACHE_TTL)


def load_json_cached(path: str) -> Dict[str, Any]:
    """Load JSON file with caching."""
    return _config_cache.get_json(path)


# ============================================================
# Scoring Configuration Table
# ============================================================


def band_for(bands: Sequence[Sequence[Any]], score: float) -> Any:
    """
    Return the label of the highest band whose lower bound is <= score.

    Bands are [lower_bound, label] pairs in ascending order starting at 0.
    """
    label = bands[0][1]
    for lower, value in bands:
        if score >= lower:
            label = value
        else:
            break
    return label


def _default_risk_factors() -> Dict[str, Dict[str, int]]:
    return {
        "sensitiveData": {"yes": 25, "limited": 15, "no": 5},
        "discriminationRisk": {"high": 20, "medium": 12, "low": 4},
        "humanOversight": {"minimal": 20, "intermittent": 12, "full": 4},
        "safetyImpact": {"critical": 20, "significant": 12, "minimal": 3},
    }


def _default_prohibited_markers() -> List[str]:
    # Article 5 prohibited practices
    return [
        # 5(1)(a)
        "subliminal",
        "manipulation",
        "cognitive behavioral",
        # 5(1)(b)
        "social_scoring",
        "social scoring",
        "social credit",
        "citizen_rating",
        "citizen rating",
        # 5(1)(d)
        "real-time biometric",
        # 5(1)(f)
        "facial scraping",
        "facial recognition database",
    ]


def _default_prohibited_rules() -> List[Dict[str, Any]]:
    """
    Article 5 practices recognised from a combination of answers.

    A rule matches when every condition in "all" holds and none in "none"
    does. A condition tests one answer field: "equals" (case-insensitive)
    or "contains" (any of the substrings, case-insensitive).
    """
    vulnerable = ["children", "elderly", "disability", "vulnerable"]
    return [
        {
            "name": "manipulative_techniques",
            "article": "5(1)(a)",
            "all": [
                {"field": "userInformed", "equals": "none"},
                {"field": "autonomyLevel", "equals": "high"},
            ],
        },
        {
            "name": "public_authority_social_scoring",
            "article": "5(1)(b)",
            "all": [
                {"field": "sector", "contains": ["government"]},
                {"field": "applicationDomain", "contains": ["scoring"]},
            ],
        },
        {
            "name": "sensitive_biometric_categorisation",
            "article": "5(1)(c)",
            "all": [
                {"field": "applicationDomain", "contains": ["biometric"]},
                {"field": "applicationDomain", "contains": ["race", "religion", "sexual", "political"]},
            ],
        },
        {
            "name": "remote_biometric_identification",
            "article": "5(1)(d)",
            "all": [
                {"field": "applicationDomain", "contains": ["biometric identification"]},
                {"field": "safetyImpact", "equals": "critical"},
            ],
            "none": [
                {"field": "geographicalScope", "equals": "local"},
                {"field": "sector", "contains": ["law", "security"]},
                {"field": "applicationDomain", "contains": ["law enforcement"]},
            ],
        },
        {
            "name": "exploitation_of_vulnerabilities",
            "article": "5(1)(e)",
            "all": [
                {"field": "applicationDomain", "contains": vulnerable},
                {"field": "discriminationRisk", "equals": "high"},
            ],
        },
        {
            "name": "exploitation_of_vulnerabilities",
            "article": "5(1)(e)",
            "all": [
                {"field": "applicationDomain", "contains": vulnerable},
                {"field": "autonomyLevel", "equals": "high"},
            ],
        },
        {
            "name": "untargeted_facial_scraping",
            "article": "5(1)(f)",
            "all": [
                {"field": "applicationDomain", "contains": ["facial"]},
                {"field": "applicationDomain", "contains": ["scraping"]},
            ],
        },
    ]


def _default_high_risk_domains() -> List[str]:
    # Annex III
    return [
        "biometric_identification",
        "critical_infrastructure",
        "education_training",
        "employment",
        "essential_services",
        "law_enforcement",
        "migration_asylum",
        "justice_democracy",
        "safety_components",
    ]


UNKNOWN_ANSWER_POLICIES = ("error", "zero")


@dataclass
class ScoringConfig:
    """
    Every threshold, weight and offset the engine scores with.

    Band lists are [lower_bound, label] pairs, ascending, starting at 0.
    """
    version: str = "1.0.0"

    # Risk classifier
    risk_factors: Dict[str, Dict[str, int]] = field(default_factory=_default_risk_factors)
    risk_bands: List[List[Any]] = field(default_factory=lambda: [
        [0, "minimal"], [40, "limited"], [70, "high"],
    ])
    prohibited_markers: List[str] = field(default_factory=_default_prohibited_markers)
    prohibited_fields: List[str] = field(default_factory=lambda: ["applicationDomain", "description"])
    prohibited_rules: List[Dict[str, Any]] = field(default_factory=_default_prohibited_rules)
    high_risk_domains: List[str] = field(default_factory=_default_high_risk_domains)
    high_risk_fields: List[str] = field(default_factory=lambda: ["applicationDomain", "sector"])
    unknown_answer_policy: str = "error"

    # Maturity scorer
    maturity_bands: List[List[Any]] = field(default_factory=lambda: [
        [0, "initial"], [20, "developing"], [40, "defined"], [60, "managed"], [80, "optimizing"],
    ])
    strength_threshold: int = 60
    action_priority_bands: List[List[Any]] = field(default_factory=lambda: [
        [0, "high"], [40, "medium"], [70, "low"],
    ])
    action_plan_size: int = 3

    # Recommendation generator
    max_recommendations: int = 5
    low_maturity_threshold: int = 60

    # Certificate composer
    compliance_weights: Dict[str, float] = field(default_factory=lambda: {"risk": 0.4, "maturity": 0.6})
    default_compliance_score: int = 50
    compliance_status_bands: List[List[Any]] = field(default_factory=lambda: [
        [0, "non_compliant"], [60, "partially_compliant"], [80, "compliant"],
    ])
    review_offset_bands: List[List[Any]] = field(default_factory=lambda: [
        [0, 180], [60, 270], [80, 365],
    ])
    validity_days: int = 365
    automatic_issue_min_maturity: int = 40

    def __post_init__(self):
        self._validate()

    def _validate(self):
        if self.unknown_answer_policy not in UNKNOWN_ANSWER_POLICIES:
            raise ValueError(
                f"unknown_answer_policy must be one of {UNKNOWN_ANSWER_POLICIES}, "
                f"got '{self.unknown_answer_policy}'"
            )
        if not self.risk_factors:
            raise ValueError("risk_factors must define at least one factor")
        for factor, options in self.risk_factors.items():
            if not options:
                raise ValueError(f"risk factor '{factor}' has no options")
            for option, points in options.items():
                if points < 0:
                    raise ValueError(f"risk factor '{factor}.{option}' has negative points")

        for name in ("risk_bands", "maturity_bands", "action_priority_bands",
                     "compliance_status_bands", "review_offset_bands"):
            _validate_bands(name, getattr(self, name))

        offsets = [days for _, days in self.review_offset_bands]
        if any(days <= 0 for days in offsets):
            raise ValueError("review offsets must be positive")
        if offsets != sorted(offsets):
            raise ValueError("review offsets must not shrink as the score rises")

        if set(self.compliance_weights) != {"risk", "maturity"}:
            raise ValueError("compliance_weights must define exactly 'risk' and 'maturity'")
        if any(w <= 0 for w in self.compliance_weights.values()):
            raise ValueError("compliance weights must be positive")
        if self.max_recommendations < 1:
            raise ValueError("max_recommendations must be at least 1")
        if self.validity_days <= 0:
            raise ValueError("validity_days must be positive")
        for rule in self.prohibited_rules:
            _validate_rule(rule)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def get_hash(self) -> str:
        """Fingerprint of the whole table; changes whenever any threshold does."""
        return content_hash(self.to_dict())

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ScoringConfig':
        known = {f for f in cls.__dataclass_fields__}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown scoring config keys: {', '.join(sorted(unknown))}")
        return cls(**data)


def _validate_bands(name: str, bands: List[List[Any]]) -> None:
    if not bands:
        raise ValueError(f"{name} must not be empty")
    lowers = [b[0] for b in bands]
    if lowers[0] != 0:
        raise ValueError(f"{name} must start at 0")
    if any(prev >= nxt for nxt, prev in zip(lowers[1:], lowers)):
        raise ValueError(f"{name} lower bounds must be strictly ascending")


def _validate_rule(rule: Dict[str, Any]) -> None:
    name = rule.get("name")
    if not name:
        raise ValueError("prohibited rule must have a name")
    if not rule.get("all"):
        raise ValueError(f"prohibited rule '{name}' needs at least one condition in 'all'")
    for cond in list(rule["all"]) + list(rule.get("none", [])):
        if not cond.get("field") or ("equals" in cond) == ("contains" in cond):
            raise ValueError(
                f"prohibited rule '{name}': each condition needs a field and "
                f"exactly one of 'equals' or 'contains'"
            )


DEFAULT_SCORING_CONFIG = ScoringConfig()


def load_scoring_config(path: Optional[str] = None) -> ScoringConfig:
    """
    Load the scoring table from JSON, or return the defaults.

    Keys absent from the file keep their default values.
    """
    path = path if path is not None else SCORING_CONFIG_PATH
    if not path:
        return DEFAULT_SCORING_CONFIG
    return ScoringConfig.from_dict(load_json_cached(path))


# ============================================================
# Validation
# ============================================================

def validate_config() -> Dict[str, bool]:
    """
    Report which configured files exist.
    Returns dict of name -> exists.
    """
    paths = {
        "scoring_config": SCORING_CONFIG_PATH,
        "framework": FRAMEWORK_PATH,
        "signing_key": SIGNING_KEY_PATH,
    }
    return {name: Path(p).exists() for name, p in paths.items() if p}


def is_production() -> bool:
    return ENV == "prod"
