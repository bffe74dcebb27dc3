"""Error taxonomy shared by the ingestion components."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class ErrorKind(str, Enum):
    CLASSIFICATION = "classification"
    STRUCTURAL = "structural"
    EMPTY_RESULT = "empty_result"
    DISTRIBUTION = "distribution"


class InferenceErrorKind(str, Enum):
    TRANSIENT = "transient"
    QUOTA = "quota"
    TERMINAL = "terminal"


@dataclass(frozen=True, slots=True)
class NormalizationError:
    """Returned (not raised) when a date or time cannot be classified."""

    raw: Any
    reason: str
    kind: ErrorKind = ErrorKind.CLASSIFICATION

    def __bool__(self) -> bool:
        return False

    def __str__(self) -> str:
        return f"{self.reason}: {self.raw!r}"


@dataclass
class IngestionIssue:
    """Structured detail describing why an ingestion run could not complete."""

    code: ErrorKind
    message: str
    filename: Optional[str] = None
    detail: Dict[str, Any] = field(default_factory=dict)


class IngestionError(Exception):
    """Raised when a whole file cannot produce anything to persist."""

    def __init__(self, issue: IngestionIssue):
        super().__init__(issue.message)
        self.issue = issue

    @property
    def code(self) -> ErrorKind:
        return self.issue.code


class InferenceError(Exception):
    """Failure talking to the text-inference service."""

    def __init__(
        self,
        kind: InferenceErrorKind,
        message: str,
        *,
        status_code: Optional[int] = None,
        history: Optional[List[Tuple[Any, int]]] = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.status_code = status_code
        # (state, attempt) pairs of the pipeline run that raised, when known
        self.history = history or []

    @property
    def is_transient(self) -> bool:
        return self.kind is InferenceErrorKind.TRANSIENT

    def __repr__(self) -> str:
        return f"InferenceError(kind={self.kind.value!r}, status_code={self.status_code!r}, message={self.message!r})"
