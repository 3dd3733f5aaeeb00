"""
EU AI Act Risk Classifier

Maps a risk questionnaire to a risk tier, a 0-100 score and a rationale.

Scoring:
- Each configured factor contributes a fixed number of points for the
  selected option (higher risk, more points).
- The sum is mapped to a tier with ascending bands
  (minimal < 40 <= limited < 70 <= high by default).
- Prohibited-practice markers (Article 5) in the declared domain or
  description, and rules that combine domain keywords with other answers
  (sector, autonomy, discrimination risk), override the weighted sum:
  tier "unacceptable", score 100.

The classifier is a pure function of (response, config).
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from .config import DEFAULT_SCORING_CONFIG, ScoringConfig, band_for
from .errors import ValidationError


class RiskLevel(str, Enum):
    """EU AI Act risk tiers."""
    MINIMAL = "minimal"
    LIMITED = "limited"
    HIGH = "high"
    UNACCEPTABLE = "unacceptable"


PROHIBITED_SCORE = 100


@dataclass(frozen=True)
class RiskAssessmentResult:
    """Outcome of classifying one questionnaire. Never mutated after creation."""
    risk_level: RiskLevel
    risk_score: int
    reasoning: str
    obligations: List[str]
    recommendations: List[str]
    timeline: Dict[str, List[str]]
    prohibited_practices: List[str] = field(default_factory=list)
    high_risk_domains: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "riskLevel": self.risk_level.value,
            "riskScore": self.risk_score,
            "reasoning": self.reasoning,
            "obligations": list(self.obligations),
            "recommendations": list(self.recommendations),
            "timeline": {k: list(v) for k, v in self.timeline.items()},
            "prohibitedPractices": list(self.prohibited_practices),
            "highRiskDomains": list(self.high_risk_domains),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'RiskAssessmentResult':
        try:
            level = RiskLevel(data["riskLevel"])
            score = int(data["riskScore"])
        except (KeyError, ValueError, TypeError) as e:
            raise ValidationError("riskAssessment", f"invalid risk assessment: {e}") from e
        timeline = data.get("timeline") or {}
        return cls(
            risk_level=level,
            risk_score=max(0, min(100, score)),
            reasoning=data.get("reasoning", ""),
            obligations=list(data.get("obligations", [])),
            recommendations=list(data.get("recommendations", [])),
            timeline={k: list(timeline.get(k, [])) for k in TIMELINE_KEYS},
            prohibited_practices=list(data.get("prohibitedPractices", [])),
            high_risk_domains=list(data.get("highRiskDomains", [])),
        )


TIMELINE_KEYS = ("immediate", "short_term", "long_term")


# Per-tier guidance. Keys match RiskLevel values.
TIER_GUIDANCE: Dict[str, Dict[str, Any]] = {
    "unacceptable": {
        "reasoning": (
            "This system shows characteristics prohibited by Article 5 of the EU AI Act. "
            "Placing it on the market or using it in the EU is forbidden."
        ),
        "recommendations": [
            "Stop using the system immediately",
            "Seek urgent legal advice",
            "Evaluate compliant alternatives",
        ],
        "timeline": {
            "immediate": ["Shut the system down", "Contact legal counsel"],
            "short_term": ["Document the measures taken"],
            "long_term": ["Develop a compliant alternative solution"],
        },
        "obligations": [
            "Absolute prohibition: use of this system is forbidden in the EU",
            "Article 5: cease all use immediately",
            "Notify the competent authorities",
            "Exposure to criminal and administrative penalties",
        ],
    },
    "high": {
        "reasoning": (
            "This system is classified as high risk. It must meet the strict requirements "
            "of Articles 8-15 before being placed on the market and Articles 16-27 afterwards."
        ),
        "recommendations": [
            "Establish a quality management system (Article 17)",
            "Put human oversight in place (Article 14)",
            "Carry out the conformity assessment and CE marking",
            "Produce the technical documentation (Article 11)",
        ],
        "timeline": {
            "immediate": ["Data protection impact assessment", "Team training"],
            "short_term": ["Technical documentation", "Testing and validation"],
            "long_term": ["CE certification", "Continuous monitoring"],
        },
        "obligations": [
            "Article 17: quality management system",
            "Article 11: technical documentation and record keeping",
            "Article 12: automatic logging",
            "Article 13: transparency and information to deployers",
            "Article 14: appropriate human oversight",
            "Article 15: accuracy, robustness and cybersecurity",
            "Article 10: data and data governance",
            "Articles 43-51: conformity assessment before placing on the market",
            "Article 48: CE marking and EU declaration of conformity",
        ],
    },
    "limited": {
        "reasoning": (
            "This system presents limited risk and is mainly subject to the transparency "
            "obligations of Article 50."
        ),
        "recommendations": [
            "Clearly inform users that they are interacting with AI",
            "Provide appropriate instructions for use",
            "Document capabilities and limitations",
        ],
        "timeline": {
            "immediate": ["Put transparency notices in place"],
            "short_term": ["User documentation"],
            "long_term": ["Performance monitoring"],
        },
        "obligations": [
            "Article 50: clear information to users about AI interaction",
            "Design allowing automatic disclosure",
            "User interface transparent about the AI nature of the system",
            "Appropriate instructions for use",
        ],
    },
    "minimal": {
        "reasoning": (
            "This system presents minimal risk. It has no specific EU AI Act obligations "
            "but should follow general ethical AI principles."
        ),
        "recommendations": [
            "Apply responsible AI good practice",
            "Monitor performance and potential bias",
            "Maintain baseline documentation",
        ],
        "timeline": {
            "immediate": ["Review good practices"],
            "short_term": ["Baseline documentation"],
            "long_term": ["Periodic evaluation"],
        },
        "obligations": [
            "No specific EU AI Act obligation",
            "Continuous monitoring of regulatory developments recommended",
            "Ethical AI good practice encouraged",
        ],
    },
}


def _holds(answers: Dict[str, Any], condition: Dict[str, Any]) -> bool:
    value = answers.get(condition["field"])
    if not isinstance(value, str):
        return False
    value = value.strip().lower()
    if "equals" in condition:
        return value == str(condition["equals"]).lower()
    return any(s.lower() in value for s in condition["contains"])


class RiskClassifier:
    """
    Deterministic EU AI Act risk classifier.

    Thresholds, point tables and markers all come from the ScoringConfig.
    """

    def __init__(self, config: Optional[ScoringConfig] = None):
        self.config = config or DEFAULT_SCORING_CONFIG

    def classify(self, response: Mapping[str, Any]) -> RiskAssessmentResult:
        """
        Classify a questionnaire response.

        Raises:
            ValidationError: response is not a mapping, or a scored factor
                is missing/unrecognised under the "error" policy.
        """
        if not isinstance(response, Mapping):
            raise ValidationError("response", "must be a mapping of question id to answer")
        answers = dict(response)

        breakdown = self._score_factors(answers)
        weighted = max(0, min(100, sum(breakdown.values())))

        prohibited = self._find_markers(answers, self.config.prohibited_fields,
                                        self.config.prohibited_markers)
        for name in self._matching_rules(answers, self.config.prohibited_rules):
            if name not in prohibited:
                prohibited.append(name)
        annex_iii = self._find_markers(answers, self.config.high_risk_fields,
                                       self.config.high_risk_domains)

        if prohibited:
            level = RiskLevel.UNACCEPTABLE
            score = PROHIBITED_SCORE
        else:
            level = RiskLevel(band_for(self.config.risk_bands, weighted))
            score = weighted

        guidance = TIER_GUIDANCE[level.value]
        return RiskAssessmentResult(
            risk_level=level,
            risk_score=score,
            reasoning=self._reasoning(level, score, breakdown, prohibited, annex_iii),
            obligations=self._obligations(level, annex_iii),
            recommendations=list(guidance["recommendations"]),
            timeline={k: list(guidance["timeline"][k]) for k in TIMELINE_KEYS},
            prohibited_practices=prohibited,
            high_risk_domains=annex_iii,
        )

    def _score_factors(self, answers: Dict[str, Any]) -> Dict[str, int]:
        """Points per factor. Unknown answers raise or score zero per policy."""
        breakdown: Dict[str, int] = {}
        for factor, options in self.config.risk_factors.items():
            value = answers.get(factor)
            key = str(value).strip().lower() if isinstance(value, (str, int)) else None
            if key is not None and key in options:
                breakdown[factor] = options[key]
                continue

            if self.config.unknown_answer_policy == "error":
                if value is None:
                    raise ValidationError(factor, "answer is required")
                raise ValidationError(
                    factor,
                    f"unrecognised answer '{value}'; expected one of {sorted(options)}"
                )
            breakdown[factor] = 0
        return breakdown

    @staticmethod
    def _find_markers(answers: Dict[str, Any], fields: List[str], markers: List[str]) -> List[str]:
        haystack = " ".join(
            str(answers[f]).lower() for f in fields if isinstance(answers.get(f), str)
        )
        return [m for m in markers if m.lower() in haystack]

    @staticmethod
    def _matching_rules(answers: Dict[str, Any], rules: List[Dict[str, Any]]) -> List[str]:
        return [r["name"] for r in rules
                if all(_holds(answers, c) for c in r["all"])
                and not any(_holds(answers, c) for c in r.get("none", []))]

    @staticmethod
    def _reasoning(level: RiskLevel, score: int, breakdown: Dict[str, int],
                   prohibited: List[str], annex_iii: List[str]) -> str:
        parts = [TIER_GUIDANCE[level.value]["reasoning"]]
        if prohibited:
            parts.append(f"Prohibited practice markers detected: {', '.join(prohibited)}.")
        if annex_iii:
            parts.append(f"Annex III domains referenced: {', '.join(annex_iii)}.")
        factors = ", ".join(f"{name}={points}" for name, points in breakdown.items())
        parts.append(f"Risk score {score}/100 ({factors}).")
        return " ".join(parts)

    @staticmethod
    def _obligations(level: RiskLevel, annex_iii: List[str]) -> List[str]:
        obligations = list(TIER_GUIDANCE[level.value]["obligations"])
        if annex_iii and level is not RiskLevel.UNACCEPTABLE:
            obligations.append(f"Domains concerned: {', '.join(annex_iii)}")
        return obligations


def classify_risk(response: Mapping[str, Any],
                  config: Optional[ScoringConfig] = None) -> RiskAssessmentResult:
    """Classify a risk questionnaire with the given (or default) scoring table."""
    return RiskClassifier(config).classify(response)
