"""
Recommendation Generator

Produces at most five short remediation strings for a certificate.

Primary path: build a prompt, call the generative-text capability on a
worker thread and wait at most `timeout` seconds. The pool never queues:
when every worker is busy the call is skipped. The reply is split into
lines, blank lines dropped, enumeration markers stripped and the list
truncated.

Fallback path: a fixed rule table keyed on risk tier and maturity score,
always followed by two baseline recommendations. Used whenever the
capability is absent, raises, times out, or returns nothing usable.
There is exactly one generative attempt per call; failures never reach
the caller.
"""

import logging
import re
import threading
from abc import ABC, abstractmethod
from concurrent.futures import Future, ThreadPoolExecutor, TimeoutError as FuturesTimeout
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

import requests

from . import config as settings
from .config import DEFAULT_SCORING_CONFIG, ScoringConfig
from .errors import GenerationError
from .logging_config import audit_log

logger = logging.getLogger(__name__)


ENUMERATION_MARKER = re.compile(r'^\s*(?:[-*•]+|\(?\d+\s*[.):]?)\s*')

HIGH_RISK_RECOMMENDATIONS = [
    "Put enhanced human oversight in place",
    "Carry out thorough robustness testing",
    "Document every AI decision process",
]
LOW_MATURITY_RECOMMENDATIONS = [
    "Develop a clear, formalised AI strategy",
    "Strengthen the team's technical skills",
]
BASELINE_RECOMMENDATIONS = [
    "Maintain continuous regulatory monitoring",
    "Carry out regular compliance audits",
]


# ============================================================
# Generative text capability
# ============================================================

class TextGenerator(ABC):
    """Interface to a generative-text capability."""

    @abstractmethod
    def generate(self, prompt: str) -> Dict[str, Any]:
        """
        Generate text for a prompt.

        Returns:
            {"content": str}

        Raises:
            GenerationError (or any exception) on failure.
        """
        pass


class NullTextGenerator(TextGenerator):
    """Used when no capability is configured; always fails."""

    def generate(self, prompt: str) -> Dict[str, Any]:
        raise GenerationError("No generative text capability configured")


class HttpTextGenerator(TextGenerator):
    """
    Client for an OpenAI-compatible chat completions endpoint.

    The request carries its own socket timeout; the generator's outer
    deadline still applies on top of it.
    """

    SYSTEM_PROMPT = (
        "You are an EU AI Act compliance expert. Give practical, specific, "
        "actionable recommendations, one per line."
    )

    def __init__(self, endpoint: str, api_key: str = "", model: str = "gpt-4o-mini",
                 timeout: float = 15.0, max_tokens: int = 600,
                 session: Optional[requests.Session] = None):
        self.endpoint = endpoint
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self.max_tokens = max_tokens
        self._session = session or requests.Session()

    def generate(self, prompt: str) -> Dict[str, Any]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        payload = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "messages": [
                {"role": "system", "content": self.SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
        }
        try:
            r = self._session.post(self.endpoint, json=payload, headers=headers, timeout=self.timeout)
            r.raise_for_status()
            body = r.json()
        except (requests.RequestException, ValueError) as e:
            raise GenerationError(f"Generative endpoint call failed: {e}") from e

        try:
            content = body["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise GenerationError("Unexpected generative endpoint response shape") from e
        return {"content": content or ""}


def get_text_generator() -> TextGenerator:
    """Build the configured capability from environment settings."""
    if not settings.LLM_ENDPOINT:
        return NullTextGenerator()
    return HttpTextGenerator(
        endpoint=settings.LLM_ENDPOINT,
        api_key=settings.LLM_API_KEY,
        model=settings.LLM_MODEL,
        timeout=settings.LLM_TIMEOUT_SECONDS,
    )


# ============================================================
# Shared worker pool
# ============================================================

class GenerationPool:
    """
    Bounded pool for generative calls that refuses work instead of queueing it.

    A call that never returns keeps its worker. Once every worker is held,
    submit() raises GenerationError at once, so callers fall back without
    waiting out a timeout for a call that would never start.
    """

    def __init__(self, max_workers: int):
        self._executor = ThreadPoolExecutor(max_workers=max_workers,
                                            thread_name_prefix="certengine-gen")
        self._slots = threading.BoundedSemaphore(max_workers)

    def submit(self, fn: Callable[..., Any], *args: Any) -> Future:
        if not self._slots.acquire(blocking=False):
            raise GenerationError("all generation workers are busy")
        try:
            future = self._executor.submit(fn, *args)
        except BaseException:
            self._slots.release()
            raise
        future.add_done_callback(lambda _: self._slots.release())
        return future

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)


_pool: Optional[GenerationPool] = None
_pool_lock = threading.Lock()


def _get_pool() -> GenerationPool:
    global _pool
    with _pool_lock:
        if _pool is None:
            _pool = GenerationPool(settings.GENERATION_WORKERS)
        return _pool


# ============================================================
# Generator
# ============================================================

@dataclass(frozen=True)
class RecommendationContext:
    organization_name: str
    certificate_type: str
    system_name: Optional[str] = None
    risk_level: Optional[str] = None
    risk_score: Optional[int] = None
    maturity_level: Optional[str] = None
    maturity_score: Optional[int] = None
    language: str = "en"


class RecommendationGenerator:
    """Generative recommendations with a mandatory deterministic fallback."""

    def __init__(self, text_generator: Optional[TextGenerator] = None,
                 config: Optional[ScoringConfig] = None,
                 timeout: Optional[float] = None,
                 pool: Optional[GenerationPool] = None):
        self.text_generator = text_generator or NullTextGenerator()
        self.config = config or DEFAULT_SCORING_CONFIG
        self.timeout = settings.LLM_TIMEOUT_SECONDS if timeout is None else timeout
        self._pool = pool

    def generate(self, context: RecommendationContext) -> List[str]:
        """Return 1..max_recommendations non-empty strings. Never raises."""
        reason = None
        try:
            items = self._generate_primary(context)
            if items:
                audit_log.recommendations_generated("generative", len(items))
                return items
            reason = "empty or unparseable content"
        except FuturesTimeout:
            reason = f"timed out after {self.timeout}s"
        except Exception as e:
            reason = f"{type(e).__name__}: {e}"

        logger.warning("Falling back to deterministic recommendations: %s", reason)
        items = self.fallback(context)
        audit_log.recommendations_generated("fallback", len(items), reason=reason)
        return items

    def _generate_primary(self, context: RecommendationContext) -> List[str]:
        prompt = self.build_prompt(context)
        pool = self._pool or _get_pool()
        future = pool.submit(self.text_generator.generate, prompt)
        try:
            response = future.result(timeout=self.timeout)
        except FuturesTimeout:
            # A running call cannot be interrupted; its result is discarded.
            future.cancel()
            raise
        content = response.get("content") if isinstance(response, dict) else None
        if not isinstance(content, str):
            return []
        return self.parse_content(content)

    def build_prompt(self, context: RecommendationContext) -> str:
        lines = [
            f"As an EU AI Act compliance expert, give {self.config.max_recommendations} "
            f"specific, actionable recommendations to improve this organisation's compliance.",
            "",
            f"Organisation: {context.organization_name}",
        ]
        if context.system_name:
            lines.append(f"AI system: {context.system_name}")
        if context.risk_level:
            score = f" ({context.risk_score}/100)" if context.risk_score is not None else ""
            lines.append(f"Risk level: {context.risk_level}{score}")
        if context.maturity_level:
            score = f" ({context.maturity_score}/100)" if context.maturity_score is not None else ""
            lines.append(f"Organisational maturity: {context.maturity_level}{score}")
        lines.append(f"Certificate type: {context.certificate_type}")
        lines.append("")
        lines.append(
            f"Answer in the language with code '{context.language}', "
            f"one recommendation per line, without introduction."
        )
        return "\n".join(lines)

    def parse_content(self, content: str) -> List[str]:
        items = []
        for line in content.splitlines():
            text = ENUMERATION_MARKER.sub('', line.strip()).strip()
            if text:
                items.append(text)
        return items[:self.config.max_recommendations]

    def fallback(self, context: RecommendationContext) -> List[str]:
        items: List[str] = []
        if context.risk_level in ("high", "unacceptable"):
            items.extend(HIGH_RISK_RECOMMENDATIONS)
        if context.maturity_score is not None and context.maturity_score < self.config.low_maturity_threshold:
            items.extend(LOW_MATURITY_RECOMMENDATIONS)
        items.extend(BASELINE_RECOMMENDATIONS)
        return items[:self.config.max_recommendations]
