"""Reservation code candidates."""

from __future__ import annotations

import random
from datetime import date
from typing import Iterator

from shared.domain.exceptions import CodeGenerationExhausted
from shared.domain.value_objects import ReservationCode


def code_candidates(issued_on: date, rng: random.Random, max_attempts: int) -> Iterator[ReservationCode]:
    """
    Yield up to ``max_attempts`` fresh codes, then fail loudly

    The caller stops iterating as soon as a candidate is stored. Running
    out means the code space for the day is effectively taken, which is a
    data problem rather than bad luck.
    """
    for _ in range(max_attempts):
        yield ReservationCode.generate(issued_on, rng)
    raise CodeGenerationExhausted(
        f"No free reservation code for {issued_on:%y%m%d} after {max_attempts} attempts"
    )
