"""PII redaction for log output.

Patterns target the demographics this service stores: names, Ontario
health card numbers, North American phone numbers and email addresses.
Order matters: emails and health card numbers are masked before the looser
phone pattern runs.
"""

import logging
import re
from typing import List, Tuple

REDACTION_PATTERNS: List[Tuple[re.Pattern[str], str]] = [
    # marie.tremblay@example.com
    (re.compile(r"[\w.+-]+@[\w-]+(?:\.[\w-]+)+"), "[EMAIL-REDACTED]"),
    # 1234-567-890-ON, 1234567890
    (re.compile(r"\b\d{4}-?\d{3}-?\d{3}(?:-?[A-Z]{2})?\b"), "[HCN-REDACTED]"),
    # 416-555-0101, (416) 555-0101, +1 416 555 0101
    (re.compile(r"(?:\+?1[\s.-]?)?\(?\b\d{3}\)?[\s.-]\d{3}[\s.-]\d{4}\b"), "[PHONE-REDACTED]"),
    # family=Tremblay, given='Marie', name="Chen Wei"
    (re.compile(r"\b(family|given|name)=(?:\"[^\"]*\"|'[^']*'|[^\s|,;]+)"),
     r"\1=[NAME-REDACTED]"),
    # {'family': 'Tremblay'}
    (re.compile(r"(['\"](?:family|given|name)['\"]:\s*)['\"][^'\"]*['\"]"),
     r"\1'[NAME-REDACTED]'"),
    # Patient: Marie Tremblay
    (re.compile(r"(Patient|Name):\s+([A-Z][a-z]+(?:\s+[A-Z][a-z]+)+)"),
     r"\1: [NAME-REDACTED]"),
]


def redact(text: str) -> str:
    """Apply every redaction pattern to ``text``."""
    for pattern, replacement in REDACTION_PATTERNS:
        text = pattern.sub(replacement, text)
    return text


class PIIRedactingFormatter(logging.Formatter):
    """Formatter that masks patient PII when ``redact_pii`` is set.

    Redaction runs on the fully formatted line, so interpolated arguments
    and exception tracebacks are covered too.

    Example:
        >>> handler = logging.StreamHandler()
        >>> handler.setFormatter(PIIRedactingFormatter(redact_pii=True))
    """

    def __init__(
        self,
        fmt: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt: str | None = None,
        redact_pii: bool = False,
    ) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        self.redact_pii = redact_pii

    def format(self, record: logging.LogRecord) -> str:
        formatted = super().format(record)
        return redact(formatted) if self.redact_pii else formatted
