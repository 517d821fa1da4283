"""Unique confirmation/access code generation.

The existence check is an optimisation only. The unique constraint on the
code column is what actually guarantees uniqueness; callers retry with a
fresh code when an insert reports a collision.
"""

import logging
import re
import secrets
import string
from collections.abc import Callable

from registrations.domain.errors import CodeGenerationExhaustedError

logger = logging.getLogger(__name__)

CODE_ALPHABET = string.ascii_uppercase + string.digits
DEFAULT_MAX_ATTEMPTS = 5


def code_prefix(slug: str, length: int = 6) -> str:
    """Uppercase alphanumeric prefix derived from an event slug."""
    return re.sub(r"[^A-Za-z0-9]", "", slug)[:length].upper()


def random_code(prefix: str = "", length: int = 8) -> str:
    body = "".join(secrets.choice(CODE_ALPHABET) for _ in range(length))
    return f"{prefix}-{body}" if prefix else body


def issue_unique_code(
    prefix: str,
    generator: Callable[[str], str],
    exists_check: Callable[[str], bool],
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
) -> str:
    """Return a code that `exists_check` does not know about.

    Raises:
        CodeGenerationExhaustedError: If every candidate was taken.
    """
    for attempt in range(1, max_attempts + 1):
        candidate = generator(prefix)
        if not exists_check(candidate):
            return candidate
        logger.info("Code candidate already taken (attempt %s of %s)", attempt, max_attempts)

    logger.error("No unique code after %s attempts for prefix %r", max_attempts, prefix)
    raise CodeGenerationExhaustedError(max_attempts)


class CodeIssuer:
    """Binds the generator and the code store together."""

    def __init__(
        self,
        exists_check: Callable[[str], bool],
        length: int = 8,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        generator: Callable[[str], str] | None = None,
    ) -> None:
        self._exists = exists_check
        self._max_attempts = max_attempts
        self._generator = generator or (lambda prefix: random_code(prefix, length))

    @property
    def max_attempts(self) -> int:
        return self._max_attempts

    def issue(self, slug: str) -> str:
        return issue_unique_code(
            code_prefix(slug), self._generator, self._exists, self._max_attempts
        )
