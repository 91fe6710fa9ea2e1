from __future__ import annotations

import numpy as np


class HistogramAggregator:
    """Class-label counts for the examples reaching one node (or one side of a split)."""

    def __init__(self, n_classes: int, bins: np.ndarray | None = None) -> None:
        if n_classes <= 0:
            raise ValueError("n_classes must be positive")

        self.n_classes = int(n_classes)
        if bins is None:
            self.bins = np.zeros(self.n_classes, dtype=np.int64)
        else:
            bins = np.asarray(bins, dtype=np.int64)
            if bins.shape != (self.n_classes,):
                raise ValueError("bins must have one count per class")
            if np.any(bins < 0):
                raise ValueError("bin counts must be non-negative")
            self.bins = bins.copy()

    @classmethod
    def from_labels(cls, labels: np.ndarray, n_classes: int) -> HistogramAggregator:
        labels = np.asarray(labels, dtype=np.int64)
        if labels.size and (labels.min() < 0 or labels.max() >= n_classes):
            raise ValueError(f"labels must lie in [0, {n_classes})")
        return cls(n_classes, np.bincount(labels, minlength=n_classes))

    @property
    def sample_count(self) -> int:
        return int(self.bins.sum())

    def add(self, label: int) -> None:
        if not 0 <= label < self.n_classes:
            raise ValueError(f"label {label} outside [0, {self.n_classes})")
        self.bins[label] += 1

    def clone(self) -> HistogramAggregator:
        return HistogramAggregator(self.n_classes, self.bins)

    def _check_compatible(self, other: HistogramAggregator) -> None:
        if other.n_classes != self.n_classes:
            raise ValueError("histograms have different numbers of classes")

    def merge(self, other: HistogramAggregator) -> HistogramAggregator:
        self._check_compatible(other)
        return HistogramAggregator(self.n_classes, self.bins + other.bins)

    def minus(self, other: HistogramAggregator) -> HistogramAggregator:
        """Sibling statistics: ``self`` is the parent, ``other`` one of its children."""
        self._check_compatible(other)
        diff = self.bins - other.bins
        if np.any(diff < 0):
            raise ValueError("child histogram exceeds its parent")
        return HistogramAggregator(self.n_classes, diff)

    def probabilities(self) -> np.ndarray:
        total = self.sample_count
        if total == 0:
            return np.full(self.n_classes, 1.0 / self.n_classes, dtype=np.float64)
        return self.bins.astype(np.float64) / float(total)

    def entropy(self) -> float:
        total = self.sample_count
        if total == 0:
            return 0.0
        p = self.bins[self.bins > 0].astype(np.float64) / float(total)
        return float(-(p * np.log2(p)).sum())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, HistogramAggregator):
            return NotImplemented
        return self.n_classes == other.n_classes and np.array_equal(self.bins, other.bins)

    def __repr__(self) -> str:
        return f"HistogramAggregator(bins={self.bins.tolist()})"


def information_gain(
    parent: HistogramAggregator,
    left: HistogramAggregator,
    right: HistogramAggregator,
) -> float:
    total = parent.sample_count
    if total == 0:
        return 0.0

    n_left = left.sample_count
    n_right = right.sample_count
    # One empty side leaves the parent distribution unchanged.
    if n_left == 0 or n_right == 0:
        return 0.0
    children = (n_left * left.entropy() + n_right * right.entropy()) / float(total)
    return parent.entropy() - children
