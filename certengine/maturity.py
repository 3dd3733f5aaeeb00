"""
Organisational Maturity Scorer

Scores per-domain questionnaire responses against a Framework:

    question score = points of the selected option (0-100)
    domain score   = sum(question score * question weight) / sum(question weights)
    overall score  = sum(domain score * domain weight) / sum(domain weights)

Scores are rounded half-up and clamped to [0, 100]. The overall score is
computed from the unrounded domain means.

A submission must answer every question the framework defines; partial
submissions raise IncompleteResponseError instead of being scored.
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .config import DEFAULT_SCORING_CONFIG, ScoringConfig, band_for
from .errors import IncompleteResponseError, ValidationError
from .framework import Framework, MaturityDomain, create_positive_ai_framework


class MaturityLevel(str, Enum):
    INITIAL = "initial"
    DEVELOPING = "developing"
    DEFINED = "defined"
    MANAGED = "managed"
    OPTIMIZING = "optimizing"


class ActionPriority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


ACTION_TIMELINES = {
    ActionPriority.HIGH: "3 months",
    ActionPriority.MEDIUM: "6 months",
    ActionPriority.LOW: "12 months",
}

# Score buckets: (exclusive upper bound, recommendations)
MATURITY_RECOMMENDATIONS: List[Tuple[float, List[str]]] = [
    (30, [
        "Develop a clear AI strategy with measurable objectives",
        "Establish baseline AI governance with defined roles",
        "Train teams on the fundamentals of ethical AI",
        "Invest in core AI technical skills",
        "Improve data quality and accessibility",
    ]),
    (60, [
        "Formalise existing AI governance processes",
        "Implement AI risk management mechanisms",
        "Write detailed ethical guidelines for AI projects",
        "Build internal AI centres of excellence",
        "Define performance metrics for AI systems",
    ]),
    (math.inf, [
        "Optimise existing AI governance processes",
        "Adopt a proactive approach to risk management",
        "Embed AI ethics in every business process",
        "Establish AI technology leadership in the market",
        "Build a collaborative AI innovation ecosystem",
    ]),
]


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def clamp_score(value: float) -> int:
    return max(0, min(100, round_half_up(value)))


@dataclass(frozen=True)
class DomainScore:
    score: int
    maturity_level: MaturityLevel
    strengths: List[str] = field(default_factory=list)
    improvements: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "score": self.score,
            "maturityLevel": self.maturity_level.value,
            "strengths": list(self.strengths),
            "improvements": list(self.improvements),
        }


@dataclass(frozen=True)
class ActionItem:
    priority: ActionPriority
    domain: str
    action: str
    timeline: str
    resources: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "priority": self.priority.value,
            "domain": self.domain,
            "action": self.action,
            "timeline": self.timeline,
            "resources": list(self.resources),
        }


@dataclass(frozen=True)
class MaturityAssessmentResult:
    overall_maturity: MaturityLevel
    overall_score: int
    domain_scores: Dict[str, DomainScore]
    recommendations: List[str]
    action_plan: List[ActionItem]
    framework_hash: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        d = {
            "overallMaturity": self.overall_maturity.value,
            "overallScore": self.overall_score,
            "domainScores": {k: v.to_dict() for k, v in self.domain_scores.items()},
            "recommendations": list(self.recommendations),
            "actionPlan": [a.to_dict() for a in self.action_plan],
        }
        if self.framework_hash:
            d["frameworkHash"] = self.framework_hash
        return d

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'MaturityAssessmentResult':
        try:
            overall = MaturityLevel(data["overallMaturity"])
            score = int(data["overallScore"])
            domains = {
                name: DomainScore(
                    score=int(d["score"]),
                    maturity_level=MaturityLevel(d["maturityLevel"]),
                    strengths=list(d.get("strengths", [])),
                    improvements=list(d.get("improvements", [])),
                )
                for name, d in (data.get("domainScores") or {}).items()
            }
            actions = [
                ActionItem(
                    priority=ActionPriority(a["priority"]),
                    domain=a["domain"],
                    action=a["action"],
                    timeline=a["timeline"],
                    resources=list(a.get("resources", [])),
                )
                for a in data.get("actionPlan", [])
            ]
        except (KeyError, ValueError, TypeError) as e:
            raise ValidationError("maturityAssessment", f"invalid maturity assessment: {e}") from e
        return cls(
            overall_maturity=overall,
            overall_score=max(0, min(100, score)),
            domain_scores=domains,
            recommendations=list(data.get("recommendations", [])),
            action_plan=actions,
            framework_hash=data.get("frameworkHash"),
        )


class MaturityScorer:
    """Weighted maturity scorer over a Framework."""

    def __init__(self, framework: Optional[Framework] = None,
                 config: Optional[ScoringConfig] = None):
        self.framework = framework or create_positive_ai_framework()
        self.config = config or DEFAULT_SCORING_CONFIG

    def score(self, domain_responses: Mapping[str, Mapping[str, Any]]) -> MaturityAssessmentResult:
        """
        Score a complete submission.

        Raises:
            ValidationError: unknown domain/question, answer outside the
                option set, or malformed structure.
            IncompleteResponseError: any framework question left unanswered.
        """
        answers = self._validate(domain_responses)

        domain_means: Dict[str, float] = {}
        domain_scores: Dict[str, DomainScore] = {}
        for domain in self.framework.domains:
            mean, strengths, improvements = self._score_domain(domain, answers)
            domain_means[domain.name] = mean
            rounded = clamp_score(mean)
            domain_scores[domain.name] = DomainScore(
                score=rounded,
                maturity_level=MaturityLevel(band_for(self.config.maturity_bands, rounded)),
                strengths=strengths,
                improvements=improvements,
            )

        total_weight = sum(d.weight for d in self.framework.domains)
        weighted = sum(domain_means[d.name] * d.weight for d in self.framework.domains)
        overall_score = clamp_score(weighted / total_weight)

        return MaturityAssessmentResult(
            overall_maturity=MaturityLevel(band_for(self.config.maturity_bands, overall_score)),
            overall_score=overall_score,
            domain_scores=domain_scores,
            recommendations=self._recommendations(overall_score),
            action_plan=self._action_plan(domain_scores),
            framework_hash=self.framework.get_hash(),
        )

    def _validate(self, domain_responses: Mapping[str, Mapping[str, Any]]) -> Dict[str, Any]:
        """Flatten to question id -> option value after structural checks."""
        if not isinstance(domain_responses, Mapping):
            raise ValidationError("responses", "must map domain name to question answers")

        answers: Dict[str, Any] = {}
        for domain_name, responses in domain_responses.items():
            domain = self.framework.domain(domain_name)
            if domain is None:
                raise ValidationError(domain_name, "unknown domain")
            if not isinstance(responses, Mapping):
                raise ValidationError(domain_name, "answers must map question id to option value")

            questions = {q.id: q for q in domain.questions}
            for qid, value in responses.items():
                question = questions.get(qid)
                if question is None:
                    raise ValidationError(qid, f"not a question of domain '{domain_name}'")
                if value is None:
                    continue
                if isinstance(value, bool) or question.option_for(value) is None:
                    raise ValidationError(
                        qid,
                        f"answer {value!r} is not one of {[o.value for o in question.options]}"
                    )
                answers[qid] = value

        expected = {q.id for q in self.framework.iter_questions()}
        missing = expected - set(answers)
        if missing:
            raise IncompleteResponseError(missing, expected=len(expected), answered=len(answers))
        return answers

    def _score_domain(self, domain: MaturityDomain,
                      answers: Dict[str, Any]) -> Tuple[float, List[str], List[str]]:
        total = 0.0
        weight = 0.0
        strengths: List[str] = []
        improvements: List[str] = []
        for question in domain.questions:
            points = question.option_for(answers[question.id]).points
            total += points * question.weight
            weight += question.weight
            if points >= self.config.strength_threshold:
                if question.strength:
                    strengths.append(question.strength)
            elif question.improvement:
                improvements.append(question.improvement)
        return total / weight, strengths, improvements

    @staticmethod
    def _recommendations(overall_score: int) -> List[str]:
        for upper, recommendations in MATURITY_RECOMMENDATIONS:
            if overall_score < upper:
                return list(recommendations)
        return []

    def _action_plan(self, domain_scores: Dict[str, DomainScore]) -> List[ActionItem]:
        """Priority actions for the lowest scoring domains."""
        ranked = sorted(domain_scores.items(), key=lambda item: item[1].score)
        plan = []
        for name, scored in ranked[:self.config.action_plan_size]:
            priority = ActionPriority(band_for(self.config.action_priority_bands, scored.score))
            domain = self.framework.domain(name)
            plan.append(ActionItem(
                priority=priority,
                domain=name,
                action=scored.improvements[0] if scored.improvements else f"Improve {name}",
                timeline=ACTION_TIMELINES[priority],
                resources=list(domain.resources) or ["Dedicated staff", "Allocated budget", "Training"],
            ))
        return plan


def score_maturity(domain_responses: Mapping[str, Mapping[str, Any]],
                   framework: Optional[Framework] = None,
                   config: Optional[ScoringConfig] = None) -> MaturityAssessmentResult:
    """Score a maturity submission with the given (or default) framework."""
    return MaturityScorer(framework, config).score(domain_responses)
