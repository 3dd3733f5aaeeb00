"""
Error taxonomy for the certification engine.

- ValidationError: malformed input, rejected before scoring.
- IncompleteResponseError: a maturity submission that does not answer every
  framework question.
- GenerationError: the generative-text capability failed. Always recovered
  locally by the deterministic fallback.
- SerialCollisionError: a certificate serial already exists in storage.
  Retryable by issuing a fresh certificate.
- RecordNotFoundError: storage lookup miss.

Integrity failures are not exceptions; the verifier returns a verdict.
"""

from typing import Iterable, List


class CertEngineError(Exception):
    """Base class for engine errors."""
    retryable = False


class ValidationError(CertEngineError):
    """Raised when questionnaire or request input fails validation."""

    def __init__(self, field: str, message: str):
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}")


class IncompleteResponseError(ValidationError):
    """Raised when fewer questions are answered than the framework defines."""

    def __init__(self, missing: Iterable[str], expected: int, answered: int):
        self.missing: List[str] = sorted(missing)
        self.expected = expected
        self.answered = answered
        super().__init__(
            "responses",
            f"{answered} of {expected} questions answered; missing: {', '.join(self.missing)}"
        )


class GenerationError(CertEngineError):
    """Raised by text generators when no usable content is produced."""


class SerialCollisionError(CertEngineError):
    """Raised when a certificate serial is already taken."""
    retryable = True

    def __init__(self, certificate_number: str):
        self.certificate_number = certificate_number
        super().__init__(f"Certificate number already issued: {certificate_number}")


class RecordNotFoundError(CertEngineError):
    """Raised when a stored record does not exist."""

    def __init__(self, kind: str, key: str):
        self.kind = kind
        self.key = key
        super().__init__(f"{kind} not found: {key}")
