"""Sequential document numbers such as ``INV-202501-0001``."""

import uuid
from collections.abc import Callable, Iterable
from datetime import datetime


def next_document_number(
    prefix: str, issued_at: datetime, existing: Iterable[str]
) -> str:
    """Next free ``{prefix}-YYYYMM-NNNN`` number for the month of ``issued_at``.

    The sequence restarts every month and skips numbers already taken.
    """
    month_prefix = f"{prefix}-{issued_at.year}{issued_at.month:02d}-"
    taken = {number for number in existing if number.startswith(month_prefix)}
    sequence = len(taken) + 1
    while f"{month_prefix}{sequence:04d}" in taken:
        sequence += 1
    return f"{month_prefix}{sequence:04d}"


def document_id(kind: str, clock: Callable[[], datetime]) -> str:
    """Opaque id for an in-memory document."""
    return f"{kind}-{int(clock().timestamp() * 1000)}-{uuid.uuid4().hex[:7]}"
