from __future__ import annotations

import logging
import math
import secrets
import string
from typing import Awaitable, Callable, TypeVar

from core.errors import DuplicateInvoiceId, GenerationExhausted

logger = logging.getLogger(__name__)

ALPHABET = string.ascii_uppercase + string.digits
MIN_ENTROPY_BITS = 36

T = TypeVar("T")


class InvoiceIdGenerator:
    def __init__(self, *, prefix: str = "INV-", length: int = 12, max_attempts: int = 5) -> None:
        entropy_bits = length * math.log2(len(ALPHABET))
        if entropy_bits < MIN_ENTROPY_BITS:
            raise ValueError(
                f"Invoice id suffix of {length} chars gives {entropy_bits:.1f} bits; "
                f"at least {MIN_ENTROPY_BITS} are required"
            )
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._prefix = prefix
        self._length = length
        self._max_attempts = max_attempts

    @property
    def prefix(self) -> str:
        return self._prefix

    def generate(self) -> str:
        suffix = "".join(secrets.choice(ALPHABET) for _ in range(self._length))
        return f"{self._prefix}{suffix}"

    async def allocate(self, attempt_create: Callable[[str], Awaitable[T]]) -> T:
        """
        Run ``attempt_create`` with fresh ids until the store accepts one.

        Only ``DuplicateInvoiceId`` triggers a retry; any other store error
        propagates on the first attempt.
        """
        for attempt in range(1, self._max_attempts + 1):
            candidate = self.generate()
            try:
                return await attempt_create(candidate)
            except DuplicateInvoiceId:
                logger.warning(
                    "Invoice id collision on attempt %s/%s, retrying",
                    attempt,
                    self._max_attempts,
                )
        logger.error("Invoice id allocation exhausted after %s attempts", self._max_attempts)
        raise GenerationExhausted(attempts=self._max_attempts)
