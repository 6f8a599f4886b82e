from __future__ import annotations

from collections.abc import Callable
from time import time

Clock = Callable[[], float]


def system_clock() -> float:
    return time()
