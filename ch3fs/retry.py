"""Jittered exponential backoff."""

from __future__ import annotations

import random

CAP = 15000.0

_default_rng = random.Random()


def backoff_with_jitter(backoff: float, rng: random.Random | None = None) -> float:
    """Double the backoff up to CAP and return a random value below it."""
    rng = rng or _default_rng
    return rng.random() * min(backoff * 2, CAP)