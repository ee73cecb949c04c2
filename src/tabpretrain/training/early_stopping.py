from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass
class BestMetricState:
    value: Optional[float] = None
    patience_counter: int = 0


class EarlyStopping:
    """
    Early stopping on the relative change of a monitored loss.

    The first evaluated value only initialises the best value. After that,
    ``change = (current - best) / current``; a change strictly greater than
    ``tolerance`` counts against patience, anything else becomes the new best
    and resets the counter.
    """

    def __init__(self, patience: int = 1, tolerance: float = 0.0):
        self.patience = int(patience)
        self.tolerance = float(tolerance)
        self.state = BestMetricState()
        self.should_stop = False

    @property
    def best(self) -> Optional[float]:
        return self.state.value

    def step(self, current: float) -> bool:
        if self.state.value is None:
            self.state.value = current
            return False

        if current == 0:
            # a zero loss cannot be a regression
            change = 0.0 if self.state.value == 0 else float("-inf")
        else:
            change = (current - self.state.value) / current
        if change > self.tolerance:
            self.state.patience_counter += 1
            self.should_stop = self.state.patience_counter >= self.patience
        else:
            self.state.value = current
            self.state.patience_counter = 0
        return self.should_stop
