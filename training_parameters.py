from __future__ import annotations

import numbers
from dataclasses import dataclass
from typing import Any, Mapping

from feature_responses import WeakLearner


class ConfigurationError(ValueError):
    """Invalid training inputs, detected before any tree is trained."""


_OPTION_NAMES = {
    "MaxDecisionLevels": "max_decision_levels",
    "NumberOfCandidateFeatures": "number_of_candidate_features",
    "NumberOfCandidateThresholdsPerFeature": "number_of_candidate_thresholds_per_feature",
    "NumberOfTrees": "number_of_trees",
    "MaxThreads": "max_threads",
    "WeakLearner": "weak_learner",
    "FeatureScaling": "feature_scaling",
    "Verbose": "verbose",
    "ForestOutputPath": "forest_output_path",
    "RandomState": "random_state",
}

_WEAK_LEARNER_OPTIONS = {
    "AxisAligned": WeakLearner.AXIS_ALIGNED,
    "RandomHyperplane": WeakLearner.RANDOM_HYPERPLANE,
    "RandomHyperplaneNormalized": WeakLearner.RANDOM_HYPERPLANE_NORMALIZED,
}


@dataclass(frozen=True)
class TrainingParameters:
    max_decision_levels: int = 10
    number_of_candidate_features: int = 10
    number_of_candidate_thresholds_per_feature: int = 10
    number_of_trees: int = 10
    max_threads: int = 1

    weak_learner: WeakLearner | str = WeakLearner.AXIS_ALIGNED
    feature_scaling: bool = False
    verbose: bool = False
    forest_output_path: str | None = None

    random_state: int = 0
    min_samples_split: int = 2
    min_information_gain: float = 0.0
    max_hyperplane_dimensions: int | None = None  # None: every dimension

    def __post_init__(self) -> None:
        for name in (
            "max_decision_levels",
            "number_of_candidate_features",
            "number_of_candidate_thresholds_per_feature",
            "number_of_trees",
        ):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, numbers.Integral) or value <= 0:
                raise ConfigurationError(f"{name} must be a positive integer, got {value!r}")
            object.__setattr__(self, name, int(value))

        if isinstance(self.max_threads, bool) or not isinstance(self.max_threads, numbers.Integral):
            raise ConfigurationError("max_threads must be an integer")
        object.__setattr__(self, "max_threads", int(self.max_threads))
        if self.max_threads < 1:
            raise ConfigurationError("max_threads must be >= 1")
        if (
            isinstance(self.min_samples_split, bool)
            or not isinstance(self.min_samples_split, numbers.Integral)
            or self.min_samples_split < 2
        ):
            raise ConfigurationError("min_samples_split must be >= 2")
        gain = self.min_information_gain
        if isinstance(gain, bool) or not isinstance(gain, numbers.Real) or not gain >= 0.0:
            raise ConfigurationError(f"min_information_gain must be a number >= 0, got {gain!r}")
        object.__setattr__(self, "min_information_gain", float(gain))

        dims = self.max_hyperplane_dimensions
        if dims is not None:
            if isinstance(dims, bool) or not isinstance(dims, numbers.Integral) or dims <= 0:
                raise ConfigurationError(
                    f"max_hyperplane_dimensions must be a positive integer or None, got {dims!r}"
                )
            object.__setattr__(self, "max_hyperplane_dimensions", int(dims))

        try:
            learner = WeakLearner(self.weak_learner)
        except ValueError as e:
            choices = ", ".join(w.value for w in WeakLearner)
            raise ConfigurationError(
                f"weak_learner must be one of: {choices}; got {self.weak_learner!r}"
            ) from e
        object.__setattr__(self, "weak_learner", learner)

        if learner is WeakLearner.RANDOM_HYPERPLANE_NORMALIZED and not self.feature_scaling:
            raise ConfigurationError(
                "random_hyperplane_normalized requires feature_scaling to be enabled"
            )

    def resolved_weak_learner(self) -> WeakLearner:
        """Weak learner actually trained; scaled hyperplanes use the normalized variant."""
        if self.weak_learner is WeakLearner.RANDOM_HYPERPLANE and self.feature_scaling:
            return WeakLearner.RANDOM_HYPERPLANE_NORMALIZED
        return self.weak_learner

    @classmethod
    def from_options(cls, options: Mapping[str, Any]) -> TrainingParameters:
        kwargs: dict[str, Any] = {}
        for key, value in options.items():
            name = _OPTION_NAMES.get(key)
            if name is None:
                raise ConfigurationError(f"Unknown training option: {key}")
            kwargs[name] = value

        learner = kwargs.get("weak_learner")
        if isinstance(learner, str) and learner in _WEAK_LEARNER_OPTIONS:
            kwargs["weak_learner"] = _WEAK_LEARNER_OPTIONS[learner]
        for name in ("feature_scaling", "verbose"):
            if name in kwargs:
                kwargs[name] = bool(kwargs[name])

        return cls(**kwargs)
