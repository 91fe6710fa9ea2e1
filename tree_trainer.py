from __future__ import annotations

import logging
import time
from dataclasses import dataclass

import numpy as np

from data_point_collection import DataPointCollection
from data_structures.histogram import HistogramAggregator, information_gain
from data_structures.tree import Node, Tree
from feature_responses import FeatureResponse, FeatureResponseFactory
from training_parameters import TrainingParameters

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SplitCandidate:
    feature: FeatureResponse
    threshold: float
    gain: float
    left: HistogramAggregator
    right: HistogramAggregator


@dataclass
class TreeTrainMetrics:
    nodes_visited: int = 0
    nodes_split: int = 0
    candidates_evaluated: int = 0
    split_search_time_sec: float = 0.0


class TrainingContext:
    """Classification context: weak-learner factory plus label histograms."""

    def __init__(self, n_classes: int, feature_factory: FeatureResponseFactory) -> None:
        self.n_classes = int(n_classes)
        self.feature_factory = feature_factory

    def get_random_feature(self, rng: np.random.Generator) -> FeatureResponse:
        return self.feature_factory.create_random(rng)

    def aggregate(self, labels: np.ndarray) -> HistogramAggregator:
        return HistogramAggregator.from_labels(labels, self.n_classes)

    def compute_information_gain(
        self,
        parent: HistogramAggregator,
        left: HistogramAggregator,
        right: HistogramAggregator,
    ) -> float:
        return information_gain(parent, left, right)


class TreeTrainer:
    def __init__(
        self,
        data: DataPointCollection,
        context: TrainingContext,
        params: TrainingParameters,
        rng: np.random.Generator | None = None,
    ) -> None:
        self.data = data
        self.context = context
        self.params = params
        self.rng = rng if rng is not None else np.random.default_rng(params.random_state)

        self.X = data.X
        self.labels = data.labels
        self.metrics = TreeTrainMetrics()

    def _choose_candidate_thresholds(self, responses: np.ndarray) -> np.ndarray:
        n = responses.size
        n_thresholds = self.params.number_of_candidate_thresholds_per_feature

        # Approximate quantiles from a random sample of the responses.
        if n > n_thresholds:
            quantiles = responses[self.rng.integers(0, n, size=n_thresholds + 1)]
        else:
            quantiles = responses.copy()
        quantiles = np.sort(quantiles)

        if quantiles[0] == quantiles[-1]:
            return np.empty(0, dtype=np.float64)

        u = self.rng.random(quantiles.size - 1)
        thresholds = quantiles[:-1] + u * (quantiles[1:] - quantiles[:-1])
        # Rounding may overshoot the upper quantile; keep thresholds sorted.
        return np.minimum(thresholds, quantiles[1:])

    def _evaluate_feature(
        self,
        feature: FeatureResponse,
        rows: np.ndarray,
        parent: HistogramAggregator,
    ) -> SplitCandidate | None:
        responses = feature.response(self.X, rows)
        thresholds = self._choose_candidate_thresholds(responses)
        if thresholds.size == 0:
            return None

        # Bin b holds the responses with thresholds[b - 1] < r <= thresholds[b],
        # so the left child of threshold t is the sum of bins 0..t.
        n_classes = self.context.n_classes
        n_bins = thresholds.size + 1
        bin_index = np.searchsorted(thresholds, responses, side="left")
        counts = np.bincount(
            bin_index * n_classes + self.labels[rows],
            minlength=n_bins * n_classes,
        ).reshape(n_bins, n_classes)
        left_counts = np.cumsum(counts[:-1], axis=0)

        best: SplitCandidate | None = None
        for t in range(thresholds.size):
            left = HistogramAggregator(n_classes, left_counts[t])
            right = parent.minus(left)
            gain = self.context.compute_information_gain(parent, left, right)
            self.metrics.candidates_evaluated += 1

            if best is None or gain > best.gain:
                best = SplitCandidate(
                    feature=feature,
                    threshold=float(thresholds[t]),
                    gain=float(gain),
                    left=left,
                    right=right,
                )
        return best

    def _find_best_split(
        self,
        rows: np.ndarray,
        statistics: HistogramAggregator,
    ) -> SplitCandidate | None:
        t0 = time.perf_counter()
        best: SplitCandidate | None = None

        for _ in range(self.params.number_of_candidate_features):
            feature = self.context.get_random_feature(self.rng)
            candidate = self._evaluate_feature(feature, rows, statistics)
            if candidate is None:
                continue
            # Strict comparison: the first candidate wins ties.
            if best is None or candidate.gain > best.gain:
                best = candidate

        self.metrics.split_search_time_sec += time.perf_counter() - t0
        return best

    def _stop_reason(self, node: Node) -> str | None:
        if node.depth >= self.params.max_decision_levels:
            return "max depth"
        if node.sample_count < self.params.min_samples_split:
            return "too few examples"
        if node.statistics.entropy() == 0.0:
            return "pure"
        return None

    def _partition_rows(
        self,
        rows: np.ndarray,
        candidate: SplitCandidate,
    ) -> tuple[np.ndarray, np.ndarray]:
        responses = candidate.feature.response(self.X, rows)
        left_mask = responses <= candidate.threshold
        return rows[left_mask], rows[~left_mask]

    def train_tree(self, rows: np.ndarray | None = None) -> Tree:
        if rows is None:
            rows = np.arange(self.data.count(), dtype=np.int64)
        else:
            rows = np.asarray(rows, dtype=np.int64)

        nodes: list[Node] = []
        # (rows, depth, parent index, is left child); left is pushed last so
        # the arena comes out in depth-first preorder.
        stack: list[tuple[np.ndarray, int, int | None, bool]] = [(rows, 0, None, True)]

        while stack:
            node_rows, depth, parent_index, is_left = stack.pop()
            index = len(nodes)
            if parent_index is not None:
                if is_left:
                    nodes[parent_index].left = index
                else:
                    nodes[parent_index].right = index

            statistics = self.context.aggregate(self.labels[node_rows])
            node = Node(depth=depth, sample_count=int(node_rows.size), statistics=statistics)
            nodes.append(node)
            self.metrics.nodes_visited += 1

            reason = self._stop_reason(node)
            candidate = None
            if reason is None:
                candidate = self._find_best_split(node_rows, statistics)
                if candidate is None:
                    reason = "no thresholds"
                elif candidate.gain <= self.params.min_information_gain:
                    reason = "no gain"

            if reason is not None:
                node.distribution = statistics.probabilities()
                logger.debug("Leaf at depth %d with %d examples (%s)", depth, node.sample_count, reason)
                continue

            if candidate.left.merge(candidate.right) != statistics:
                raise RuntimeError("split statistics do not add up to the parent histogram")

            left_rows, right_rows = self._partition_rows(node_rows, candidate)
            if left_rows.size != candidate.left.sample_count:
                raise RuntimeError("partition disagrees with the evaluated split statistics")

            node.feature = candidate.feature
            node.threshold = candidate.threshold
            node.gain = candidate.gain
            self.metrics.nodes_split += 1
            logger.debug(
                "Split at depth %d: %d -> %d / %d (gain=%.6f)",
                depth,
                node.sample_count,
                left_rows.size,
                right_rows.size,
                candidate.gain,
            )

            stack.append((right_rows, depth + 1, index, False))
            stack.append((left_rows, depth + 1, index, True))

        return Tree(nodes, n_classes=self.context.n_classes)
