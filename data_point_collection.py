from __future__ import annotations

import threading
from dataclasses import dataclass

import numpy as np

from training_parameters import ConfigurationError


@dataclass(frozen=True)
class FeatureStats:
    mean: float
    stdev: float


class DataPointCollection:
    """Read-only training set: a dense feature matrix plus integer class labels.

    ``features`` follows the external layout, one row per feature and one
    column per example (F x N). Use :meth:`from_rows` for the usual N x F
    layout. Internally the matrix is kept example-major so that weak learners
    can gather the rows reaching a node.
    """

    def __init__(
        self,
        features: np.ndarray,
        labels: np.ndarray,
        n_classes: int | None = None,
    ) -> None:
        features = np.asarray(features, dtype=np.float64)
        if features.ndim != 2:
            raise ConfigurationError("features must be a 2D (features x examples) matrix")
        if not np.all(np.isfinite(features)):
            raise ConfigurationError("features must be finite")

        labels = np.asarray(labels)
        if labels.ndim == 2 and 1 in labels.shape:
            labels = labels.reshape(-1)
        if labels.ndim != 1:
            raise ConfigurationError("labels must be a vector")
        if labels.shape[0] != features.shape[1]:
            raise ConfigurationError(
                f"feature/label count mismatch: {features.shape[1]} examples "
                f"but {labels.shape[0]} labels"
            )
        if features.shape[0] == 0 or features.shape[1] == 0:
            raise ConfigurationError("training data needs at least one feature and one example")
        if not np.all(np.equal(np.mod(labels, 1), 0)):
            raise ConfigurationError("labels must be integers")

        labels = labels.astype(np.int64)
        if labels.min() < 0:
            raise ConfigurationError("labels must be non-negative")
        if n_classes is None:
            n_classes = int(labels.max()) + 1
        elif labels.max() >= n_classes:
            raise ConfigurationError(
                f"label {int(labels.max())} outside [0, {n_classes})"
            )

        # Own copy: later writes to the caller's array must not reach the training set.
        self.X = np.array(features.T, dtype=np.float64, order="C", copy=True)
        self.X.setflags(write=False)
        self.labels = np.array(labels, copy=True)
        self.labels.setflags(write=False)
        self.n_samples, self.n_features = self.X.shape
        self.n_classes = int(n_classes)

        self._stats: dict[int, FeatureStats] = {}
        self._stats_lock = threading.Lock()

    @classmethod
    def from_rows(
        cls,
        X: np.ndarray,
        y: np.ndarray,
        n_classes: int | None = None,
    ) -> DataPointCollection:
        X = np.asarray(X, dtype=np.float64)
        if X.ndim != 2:
            raise ConfigurationError("X must be a 2D (examples x features) matrix")
        return cls(X.T, y, n_classes=n_classes)

    def dimensions(self) -> int:
        return self.n_features

    def count(self) -> int:
        return self.n_samples

    def count_classes(self) -> int:
        return self.n_classes

    def get_feature_stats(self, d: int) -> FeatureStats:
        if not 0 <= d < self.n_features:
            raise IndexError(f"feature {d} out of range [0, {self.n_features})")

        with self._stats_lock:
            stats = self._stats.get(d)
            if stats is None:
                column = self.X[:, d]
                stats = FeatureStats(mean=float(column.mean()), stdev=float(column.std()))
                self._stats[d] = stats
        return stats

    def all_feature_stats(self) -> list[FeatureStats]:
        return [self.get_feature_stats(d) for d in range(self.n_features)]
