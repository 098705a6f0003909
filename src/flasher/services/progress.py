"""Aggregation of per-image progress into a single phase progress value."""

from typing import Callable, Iterable, Iterator, Optional, Sequence, TypeVar

from flasher.services.interfaces import ProgressCallback

T = TypeVar("T")


class ProgressAggregator:
    """Combines fractional progress of several items into one value.

    Each item contributes in proportion to its weight. The combined value
    only ever increases; callbacks reporting a lower fraction than an item
    already reached are ignored.
    """

    def __init__(self, weights: Sequence[float], on_progress: ProgressCallback):
        """Initialize aggregator.

        Args:
            weights: Relative weight of each item (non-positive weights count as 1)
            on_progress: Receives the combined value in [0, 1]
        """
        self._weights = [w if w > 0 else 1 for w in weights]
        self._total = sum(self._weights)
        self._fractions = [0.0] * len(self._weights)
        self._on_progress = on_progress
        self._value = 0.0

    @property
    def value(self) -> float:
        return self._value

    def update(self, index: int, fraction: float) -> None:
        """Record progress of one item and publish the combined value."""
        fraction = min(max(float(fraction), 0.0), 1.0)
        if fraction <= self._fractions[index]:
            return
        self._fractions[index] = fraction

        if all(f >= 1.0 for f in self._fractions):
            value = 1.0
        else:
            done = sum(w * f for w, f in zip(self._weights, self._fractions))
            value = min(done / self._total, 1.0)

        if value > self._value:
            self._value = value
            self._on_progress(value)

    def callback_for(self, index: int) -> ProgressCallback:
        """Per-item progress callback to hand to a worker or driver."""
        return lambda fraction: self.update(index, fraction)

    def complete(self, index: int) -> None:
        self.update(index, 1.0)

    def finish(self) -> None:
        """Mark everything done, publishing 1 if not already reached."""
        if self._value < 1.0:
            self._value = 1.0
            self._on_progress(1.0)


def with_progress(
    items: Iterable[T],
    on_progress: ProgressCallback,
    weight: Optional[Callable[[T], float]] = None,
) -> Iterator[tuple[T, ProgressCallback]]:
    """Iterate items together with a per-item progress callback.

    An item counts as complete once the loop body for it finishes, and the
    combined progress reaches exactly 1 after the last item. Leaving the
    loop early (break or exception) stops reporting.

    Args:
        items: Items to process, in order
        on_progress: Receives the combined value in [0, 1]
        weight: Returns the relative weight of an item (default: equal weights)

    Yields:
        (item, callback) pairs
    """
    items = list(items)
    weights = [weight(item) if weight else 1 for item in items]
    aggregator = ProgressAggregator(weights, on_progress)

    for index, item in enumerate(items):
        yield item, aggregator.callback_for(index)
        aggregator.complete(index)

    aggregator.finish()
