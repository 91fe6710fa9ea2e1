from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import BinaryIO, ClassVar, Sequence

import numpy as np

from data_structures.binary_io import (
    ForestFormatError,
    read_f64_array,
    read_u8,
    read_u32,
    read_u32_array,
    write_f64_array,
    write_u8,
    write_u32,
    write_u32_array,
)


class WeakLearner(str, Enum):
    AXIS_ALIGNED = "axis_aligned"
    RANDOM_HYPERPLANE = "random_hyperplane"
    RANDOM_HYPERPLANE_NORMALIZED = "random_hyperplane_normalized"

    @property
    def tag(self) -> int:
        return _TAGS[self]


_TAGS = {
    WeakLearner.AXIS_ALIGNED: 0,
    WeakLearner.RANDOM_HYPERPLANE: 1,
    WeakLearner.RANDOM_HYPERPLANE_NORMALIZED: 2,
}


def _frozen_array(values, dtype) -> np.ndarray:
    arr = np.array(values, dtype=dtype)
    arr.setflags(write=False)
    return arr


def _draw_axes(
    rng: np.random.Generator,
    dimensions: int,
    max_dimensions: int | None,
) -> np.ndarray:
    if max_dimensions is None or max_dimensions >= dimensions:
        return np.arange(dimensions, dtype=np.int64)
    chosen = rng.choice(dimensions, size=max_dimensions, replace=False)
    return np.sort(chosen).astype(np.int64)


def _draw_hyperplane(
    rng: np.random.Generator,
    dimensions: int,
    max_dimensions: int | None,
) -> tuple[np.ndarray, np.ndarray]:
    axes = _draw_axes(rng, dimensions, max_dimensions)
    return axes, rng.uniform(-1.0, 1.0, size=axes.size)


def _check_hyperplane(axes: np.ndarray, weights: np.ndarray) -> None:
    if axes.ndim != 1 or axes.shape != weights.shape:
        raise ValueError("axes and weights must be 1D arrays of equal length")
    if axes.size == 0:
        raise ValueError("a hyperplane needs at least one axis")


@dataclass(frozen=True, eq=False)
class AxisAlignedFeatureResponse:
    """Raw value of a single feature dimension."""

    axis: int

    kind: ClassVar[WeakLearner] = WeakLearner.AXIS_ALIGNED

    @classmethod
    def create_random(
        cls,
        rng: np.random.Generator,
        dimensions: int,
        feature_stats: Sequence = (),
        max_dimensions: int | None = None,
    ) -> AxisAlignedFeatureResponse:
        return cls(axis=int(rng.integers(0, dimensions)))

    def response(self, X: np.ndarray, rows: np.ndarray) -> np.ndarray:
        return X[rows, self.axis]

    def parameters(self) -> tuple:
        return (self.axis,)

    def serialize(self, sink: BinaryIO) -> None:
        write_u8(sink, self.kind.tag)
        write_u32(sink, self.axis)

    @classmethod
    def read_parameters(cls, source: BinaryIO) -> AxisAlignedFeatureResponse:
        return cls(axis=read_u32(source))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AxisAlignedFeatureResponse):
            return NotImplemented
        return self.axis == other.axis


@dataclass(frozen=True, eq=False)
class RandomHyperplaneFeatureResponse:
    """Projection onto a random direction over a subset of the feature axes."""

    axes: np.ndarray
    weights: np.ndarray

    kind: ClassVar[WeakLearner] = WeakLearner.RANDOM_HYPERPLANE

    def __post_init__(self) -> None:
        object.__setattr__(self, "axes", _frozen_array(self.axes, np.int64))
        object.__setattr__(self, "weights", _frozen_array(self.weights, np.float64))
        _check_hyperplane(self.axes, self.weights)

    @classmethod
    def create_random(
        cls,
        rng: np.random.Generator,
        dimensions: int,
        feature_stats: Sequence = (),
        max_dimensions: int | None = None,
    ) -> RandomHyperplaneFeatureResponse:
        axes, weights = _draw_hyperplane(rng, dimensions, max_dimensions)
        return cls(axes=axes, weights=weights)

    def response(self, X: np.ndarray, rows: np.ndarray) -> np.ndarray:
        return X[np.ix_(rows, self.axes)] @ self.weights

    def parameters(self) -> tuple:
        return (tuple(self.axes.tolist()), tuple(self.weights.tolist()))

    def serialize(self, sink: BinaryIO) -> None:
        write_u8(sink, self.kind.tag)
        write_u32(sink, self.axes.size)
        write_u32_array(sink, self.axes)
        write_f64_array(sink, self.weights)

    @classmethod
    def read_parameters(cls, source: BinaryIO) -> RandomHyperplaneFeatureResponse:
        k = read_u32(source)
        axes = read_u32_array(source, k)
        weights = read_f64_array(source, k)
        return cls(axes=axes, weights=weights)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RandomHyperplaneFeatureResponse):
            return NotImplemented
        return self.parameters() == other.parameters()


@dataclass(frozen=True, eq=False)
class RandomHyperplaneNormalizedFeatureResponse:
    """Random hyperplane applied after standardizing each selected axis.

    Carries its own per-axis means and stdevs, so its records and its
    equality are independent of the plain hyperplane's.
    """

    axes: np.ndarray
    weights: np.ndarray
    means: np.ndarray
    stdevs: np.ndarray

    kind: ClassVar[WeakLearner] = WeakLearner.RANDOM_HYPERPLANE_NORMALIZED

    def __post_init__(self) -> None:
        object.__setattr__(self, "axes", _frozen_array(self.axes, np.int64))
        object.__setattr__(self, "weights", _frozen_array(self.weights, np.float64))
        object.__setattr__(self, "means", _frozen_array(self.means, np.float64))
        stdevs = np.array(self.stdevs, dtype=np.float64)
        # Constant features would divide by zero.
        stdevs[stdevs == 0.0] = 1.0
        object.__setattr__(self, "stdevs", _frozen_array(stdevs, np.float64))
        _check_hyperplane(self.axes, self.weights)
        if self.means.shape != self.axes.shape or self.stdevs.shape != self.axes.shape:
            raise ValueError("means and stdevs must match the number of axes")

    @classmethod
    def create_random(
        cls,
        rng: np.random.Generator,
        dimensions: int,
        feature_stats: Sequence = (),
        max_dimensions: int | None = None,
    ) -> RandomHyperplaneNormalizedFeatureResponse:
        if len(feature_stats) != dimensions:
            raise ValueError(
                "Normalized hyperplanes require statistics for every feature; "
                "enable feature scaling"
            )
        axes, weights = _draw_hyperplane(rng, dimensions, max_dimensions)
        means = [feature_stats[a].mean for a in axes]
        stdevs = [feature_stats[a].stdev for a in axes]
        return cls(axes=axes, weights=weights, means=means, stdevs=stdevs)

    def response(self, X: np.ndarray, rows: np.ndarray) -> np.ndarray:
        standardized = (X[np.ix_(rows, self.axes)] - self.means) / self.stdevs
        return standardized @ self.weights

    def parameters(self) -> tuple:
        return (
            tuple(self.axes.tolist()),
            tuple(self.weights.tolist()),
            tuple(self.means.tolist()),
            tuple(self.stdevs.tolist()),
        )

    def serialize(self, sink: BinaryIO) -> None:
        write_u8(sink, self.kind.tag)
        write_u32(sink, self.axes.size)
        write_u32_array(sink, self.axes)
        write_f64_array(sink, self.weights)
        write_f64_array(sink, self.means)
        write_f64_array(sink, self.stdevs)

    @classmethod
    def read_parameters(cls, source: BinaryIO) -> RandomHyperplaneNormalizedFeatureResponse:
        k = read_u32(source)
        axes = read_u32_array(source, k)
        weights = read_f64_array(source, k)
        means = read_f64_array(source, k)
        stdevs = read_f64_array(source, k)
        return cls(axes=axes, weights=weights, means=means, stdevs=stdevs)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RandomHyperplaneNormalizedFeatureResponse):
            return NotImplemented
        return self.parameters() == other.parameters()


FeatureResponse = (
    AxisAlignedFeatureResponse
    | RandomHyperplaneFeatureResponse
    | RandomHyperplaneNormalizedFeatureResponse
)

FEATURE_RESPONSES = {
    WeakLearner.AXIS_ALIGNED: AxisAlignedFeatureResponse,
    WeakLearner.RANDOM_HYPERPLANE: RandomHyperplaneFeatureResponse,
    WeakLearner.RANDOM_HYPERPLANE_NORMALIZED: RandomHyperplaneNormalizedFeatureResponse,
}

_BY_TAG = {learner.tag: cls for learner, cls in FEATURE_RESPONSES.items()}


def read_feature_response(source: BinaryIO) -> FeatureResponse:
    tag = read_u8(source)
    cls = _BY_TAG.get(tag)
    if cls is None:
        raise ForestFormatError(f"Unknown weak learner tag: {tag}")
    return cls.read_parameters(source)


class FeatureResponseFactory:
    """Draws a fresh randomized weak learner for every split candidate."""

    def __init__(
        self,
        weak_learner: WeakLearner | str,
        dimensions: int,
        feature_stats: Sequence = (),
        max_hyperplane_dimensions: int | None = None,
    ) -> None:
        self.weak_learner = WeakLearner(weak_learner)
        if dimensions <= 0:
            raise ValueError("dimensions must be positive")
        if (
            self.weak_learner is WeakLearner.RANDOM_HYPERPLANE_NORMALIZED
            and len(feature_stats) != dimensions
        ):
            raise ValueError("Normalized hyperplanes require per-feature statistics")

        self.dimensions = int(dimensions)
        self.feature_stats = list(feature_stats)
        self.max_hyperplane_dimensions = max_hyperplane_dimensions
        self._cls = FEATURE_RESPONSES[self.weak_learner]

    def create_random(self, rng: np.random.Generator) -> FeatureResponse:
        return self._cls.create_random(
            rng,
            self.dimensions,
            self.feature_stats,
            self.max_hyperplane_dimensions,
        )
