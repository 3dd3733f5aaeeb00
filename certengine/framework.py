"""
Maturity Framework Definitions

A framework is a versioned set of weighted domains, each holding weighted
questions whose discrete answer options carry point values (0-100).

The default framework is the seven-dimension Positive AI organisational
maturity framework. Frameworks can also be loaded from JSON with
Framework.from_dict().
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional

from .config import FRAMEWORK_PATH, load_json_cached
from .hashing import content_hash


VERSION_PATTERN = re.compile(r'^[0-9]+\.[0-9]+\.[0-9]+$')
IDENTIFIER_PATTERN = re.compile(r'^[a-z][a-z0-9_]*$')


@dataclass(frozen=True)
class MaturityOption:
    value: int
    label: str
    points: float

    def to_dict(self) -> Dict[str, Any]:
        return {"value": self.value, "label": self.label, "points": self.points}


@dataclass(frozen=True)
class MaturityQuestion:
    """A weighted question with its strength/improvement texts."""
    id: str
    text: str
    options: List[MaturityOption]
    strength: str
    improvement: str
    weight: float = 1.0

    def option_for(self, value: Any) -> Optional[MaturityOption]:
        for option in self.options:
            if option.value == value:
                return option
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "text": self.text,
            "weight": self.weight,
            "strength": self.strength,
            "improvement": self.improvement,
            "options": [o.to_dict() for o in self.options],
        }


@dataclass(frozen=True)
class MaturityDomain:
    name: str
    description: str
    weight: float
    questions: List[MaturityQuestion]
    resources: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "weight": self.weight,
            "resources": list(self.resources),
            "questions": [q.to_dict() for q in self.questions],
        }


@dataclass
class Framework:
    """
    A versioned maturity framework.

    Validation on construction:
    - id is snake_case and version is semantic
    - at least one domain; domain names unique
    - every weight positive
    - question ids unique across the whole framework
    - every question has options with unique values and points in [0, 100]
    """
    id: str
    version: str
    domains: List[MaturityDomain]

    _hash: Optional[str] = field(default=None, repr=False)

    def __post_init__(self):
        self._validate()
        self._hash = None

    def _validate(self):
        if not IDENTIFIER_PATTERN.match(self.id):
            raise ValueError(f"Invalid framework id '{self.id}'")
        if not VERSION_PATTERN.match(self.version):
            raise ValueError(f"Invalid version '{self.version}': must be semantic version")
        if not self.domains:
            raise ValueError("Framework must have at least one domain")

        domain_names = set()
        question_ids = set()
        for domain in self.domains:
            if domain.name in domain_names:
                raise ValueError(f"Duplicate domain: {domain.name}")
            domain_names.add(domain.name)
            if domain.weight <= 0:
                raise ValueError(f"Domain '{domain.name}' weight must be positive")
            if not domain.questions:
                raise ValueError(f"Domain '{domain.name}' has no questions")

            for question in domain.questions:
                if question.id in question_ids:
                    raise ValueError(f"Duplicate question id: {question.id}")
                question_ids.add(question.id)
                if question.weight <= 0:
                    raise ValueError(f"Question '{question.id}' weight must be positive")
                if not question.options:
                    raise ValueError(f"Question '{question.id}' has no options")
                values = [o.value for o in question.options]
                if len(set(values)) != len(values):
                    raise ValueError(f"Question '{question.id}' has duplicate option values")
                for option in question.options:
                    if not 0 <= option.points <= 100:
                        raise ValueError(
                            f"Question '{question.id}' option {option.value} points out of range"
                        )

    def iter_questions(self) -> Iterator[MaturityQuestion]:
        for domain in self.domains:
            yield from domain.questions

    @property
    def question_count(self) -> int:
        return sum(len(d.questions) for d in self.domains)

    def domain(self, name: str) -> Optional[MaturityDomain]:
        for d in self.domains:
            if d.name == name:
                return d
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "version": self.version,
            "domains": [d.to_dict() for d in self.domains],
        }

    def get_hash(self) -> str:
        """Compute and cache the framework fingerprint."""
        if self._hash is None:
            self._hash = content_hash(self.to_dict())
        return self._hash

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Framework':
        domains = []
        for d in data.get("domains", []):
            questions = [
                MaturityQuestion(
                    id=q["id"],
                    text=q.get("text", ""),
                    weight=float(q.get("weight", 1.0)),
                    strength=q.get("strength", ""),
                    improvement=q.get("improvement", ""),
                    options=[
                        MaturityOption(value=o["value"], label=o.get("label", ""),
                                       points=float(o["points"]))
                        for o in q.get("options", [])
                    ] or likert_options(),
                )
                for q in d.get("questions", [])
            ]
            domains.append(MaturityDomain(
                name=d["name"],
                description=d.get("description", ""),
                weight=float(d["weight"]),
                questions=questions,
                resources=list(d.get("resources", [])),
            ))
        return cls(id=data["id"], version=data["version"], domains=domains)


LIKERT_LABELS = ("Initial", "Developing", "Defined", "Managed", "Optimizing")


def likert_options() -> List[MaturityOption]:
    """Five-point scale: value 1..5 maps to 0, 25, 50, 75, 100 points."""
    return [
        MaturityOption(value=i + 1, label=label, points=i * 25.0)
        for i, label in enumerate(LIKERT_LABELS)
    ]


def _q(qid: str, text: str, strength: str, improvement: str) -> MaturityQuestion:
    return MaturityQuestion(id=qid, text=text, options=likert_options(),
                            strength=strength, improvement=improvement)


def create_positive_ai_framework() -> Framework:
    """The seven-dimension Positive AI organisational maturity framework."""
    return Framework(
        id="positive_ai",
        version="3.0.0",
        domains=[
            MaturityDomain(
                name="justice_fairness",
                description="Justice and fairness",
                weight=0.15,
                resources=["Algorithmic bias expert", "Diversity and inclusion specialist",
                           "Bias detection tooling"],
                questions=[
                    _q("justice_bias_detection",
                       "How does your organisation detect bias in its AI systems?",
                       "Robust bias detection mechanisms",
                       "Implement bias detection tooling"),
                    _q("justice_protected_groups",
                       "How do you protect vulnerable groups in your AI systems?",
                       "Policies protecting vulnerable groups",
                       "Develop inclusive protection policies"),
                    _q("justice_inclusive_teams",
                       "Are your AI development teams diverse and inclusive?",
                       "Diverse and inclusive teams",
                       "Diversify AI development teams"),
                ],
            ),
            MaturityDomain(
                name="transparency_explainability",
                description="Transparency and explainability",
                weight=0.15,
                resources=["AI explainability expert", "Technical writer", "Documentation tooling"],
                questions=[
                    _q("transparency_decision_process",
                       "To what extent can your AI systems explain their decisions?",
                       "Explainable and transparent systems",
                       "Improve model explainability"),
                    _q("transparency_data_source",
                       "Does your organisation document data sources and processing?",
                       "Complete documentation of data lineage",
                       "Document data sources and processing"),
                    _q("transparency_algorithmic_impact",
                       "How do you communicate algorithmic impact to users?",
                       "Clear communication of algorithmic impact",
                       "Communicate algorithmic impact clearly"),
                ],
            ),
            MaturityDomain(
                name="human_ai_interaction",
                description="Human and AI interaction",
                weight=0.15,
                resources=["AI UX designer", "Ergonomist", "Training platform"],
                questions=[
                    _q("human_ai_collaboration",
                       "How are your AI systems designed to collaborate with people?",
                       "Well-designed human-AI collaboration",
                       "Optimise human-AI collaboration"),
                    _q("human_ai_control",
                       "Can users exercise meaningful control over AI systems?",
                       "Well-defined user control",
                       "Strengthen user control"),
                    _q("human_ai_training",
                       "How do you train users to work with AI?",
                       "Continuous team training",
                       "Train users on AI interaction"),
                ],
            ),
            MaturityDomain(
                name="social_environmental_impact",
                description="Social and environmental impact",
                weight=0.10,
                resources=["Social impact analyst", "Sustainability expert", "Impact measurement tooling"],
                questions=[
                    _q("social_impact_assessment",
                       "Does your organisation assess the social impact of its AI systems?",
                       "Systematic social impact assessment",
                       "Introduce social impact assessment"),
                    _q("environmental_sustainability",
                       "How do you manage the environmental footprint of your AI systems?",
                       "Environmental footprint reduction strategy",
                       "Measure and reduce the environmental footprint"),
                ],
            ),
            MaturityDomain(
                name="responsibility",
                description="Responsibility",
                weight=0.15,
                resources=["AI ethics officer", "Specialised legal counsel", "Redress system"],
                questions=[
                    _q("responsibility_accountability",
                       "How is accountability for AI decisions organised?",
                       "Clear chain of accountability",
                       "Clarify accountability chains"),
                    _q("responsibility_redress",
                       "Are there redress mechanisms when an AI system errs?",
                       "Effective redress mechanisms",
                       "Create redress mechanisms"),
                ],
            ),
            MaturityDomain(
                name="data_privacy",
                description="Data and privacy",
                weight=0.15,
                resources=["Data protection officer", "GDPR expert", "Consent management tooling"],
                questions=[
                    _q("data_privacy_protection",
                       "How does your organisation protect privacy in its AI systems?",
                       "Privacy by design in place",
                       "Implement privacy by design"),
                    _q("data_governance",
                       "Is there clear data governance for AI?",
                       "Exemplary data governance",
                       "Formalise data governance"),
                    _q("data_consent_rights",
                       "How do you handle individuals' rights over their data?",
                       "Proactive handling of individual rights",
                       "Make individual rights easy to exercise"),
                ],
            ),
            MaturityDomain(
                name="technical_robustness_security",
                description="Technical robustness and security",
                weight=0.15,
                resources=["AI security engineer", "Adversarial testing expert", "Monitoring infrastructure"],
                questions=[
                    _q("technical_reliability",
                       "How reliable are your AI systems technically?",
                       "High technical reliability",
                       "Improve technical reliability"),
                    _q("security_measures",
                       "How do you secure your AI systems against attacks?",
                       "Advanced protection against attacks",
                       "Strengthen AI security measures"),
                    _q("testing_validation",
                       "How do you test and validate your AI systems?",
                       "Continuous and complete validation",
                       "Implement complete testing and validation"),
                ],
            ),
        ],
    )


def load_framework(path: Optional[str] = None) -> Framework:
    """Framework from a JSON file, or the built-in Positive AI framework."""
    path = path if path is not None else FRAMEWORK_PATH
    if not path:
        return create_positive_ai_framework()
    return Framework.from_dict(load_json_cached(path))
