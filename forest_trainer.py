from __future__ import annotations

import logging
import sys
import time
from concurrent.futures import ThreadPoolExecutor, as_completed

import numpy as np

from data_point_collection import DataPointCollection
from data_structures.forest import Forest
from data_structures.tree import Tree
from feature_responses import FeatureResponseFactory, WeakLearner
from training_parameters import TrainingParameters
from tree_trainer import TrainingContext, TreeTrainer, TreeTrainMetrics

logger = logging.getLogger(__name__)

_PLATFORMS_WITHOUT_THREADS = {"emscripten", "wasi"}


def concurrency_available() -> bool:
    return sys.platform not in _PLATFORMS_WITHOUT_THREADS


class ForestTrainer:
    """Trains ``number_of_trees`` independent trees into one forest."""

    def __init__(self, params: TrainingParameters | None = None) -> None:
        self.params = params or TrainingParameters()
        self.metrics: dict = {}

    def _build_context(self, data: DataPointCollection) -> TrainingContext:
        learner = self.params.resolved_weak_learner()
        if self.params.verbose:
            logger.info(
                "Training data has: %d features %d classes and %d examples.",
                data.dimensions(),
                data.count_classes(),
                data.count(),
            )
            logger.info("Using WeakLearner: %s.", learner.value)

        feature_stats = []
        if not self.params.feature_scaling:
            if learner is not WeakLearner.AXIS_ALIGNED:
                logger.warning("No feature scaling is performed: make sure your features are scaled.")
        else:
            feature_stats = data.all_feature_stats()
            if self.params.verbose:
                for d, stats in enumerate(feature_stats):
                    logger.info("Feature: %d mean: %f stdev: %f.", d, stats.mean, stats.stdev)

        factory = FeatureResponseFactory(
            learner,
            data.dimensions(),
            feature_stats,
            max_hyperplane_dimensions=self.params.max_hyperplane_dimensions,
        )
        return TrainingContext(data.count_classes(), factory)

    def _effective_threads(self) -> int:
        n_threads = self.params.max_threads
        if n_threads > 1 and not concurrency_available():
            logger.warning(
                "Parallel training is unavailable on %s, falling back to single thread code.",
                sys.platform,
            )
            return 1
        return n_threads

    def _train_one(
        self,
        data: DataPointCollection,
        context: TrainingContext,
        rng: np.random.Generator,
    ) -> tuple[Tree, TreeTrainMetrics]:
        trainer = TreeTrainer(data=data, context=context, params=self.params, rng=rng)
        tree = trainer.train_tree()
        return tree, trainer.metrics

    def _train_and_add(
        self,
        data: DataPointCollection,
        context: TrainingContext,
        rng: np.random.Generator,
        forest: Forest,
    ) -> TreeTrainMetrics:
        tree, metrics = self._train_one(data, context, rng)
        forest.add_tree(tree)
        return metrics

    def _record_tree(self, tree_idx: int, metrics: TreeTrainMetrics) -> None:
        self.metrics["nodes_visited"] += metrics.nodes_visited
        self.metrics["nodes_split"] += metrics.nodes_split
        self.metrics["candidates_evaluated"] += metrics.candidates_evaluated
        self.metrics["split_search_time_sec"] += metrics.split_search_time_sec
        self.metrics["tree_metrics"].append(
            {
                "tree_idx": tree_idx,
                "nodes_visited": metrics.nodes_visited,
                "nodes_split": metrics.nodes_split,
                "candidates_evaluated": metrics.candidates_evaluated,
            }
        )
        if self.params.verbose:
            logger.info(
                "Trained tree %d (%d nodes, %d splits).",
                tree_idx,
                metrics.nodes_visited,
                metrics.nodes_split,
            )

    def _train_sequential(
        self,
        data: DataPointCollection,
        context: TrainingContext,
        forest: Forest,
    ) -> None:
        # One generator shared in sequence; each tree advances it.
        rng = np.random.default_rng(self.params.random_state)
        for tree_idx in range(self.params.number_of_trees):
            try:
                metrics = self._train_and_add(data, context, rng, forest)
            except Exception as e:
                raise RuntimeError(f"Training tree {tree_idx} failed") from e
            self._record_tree(tree_idx, metrics)

    def _train_parallel(
        self,
        data: DataPointCollection,
        context: TrainingContext,
        forest: Forest,
        n_threads: int,
    ) -> None:
        # Independent per-tree generators keep the set of trees reproducible
        # whatever order the workers finish in.
        seeds = np.random.SeedSequence(self.params.random_state).spawn(self.params.number_of_trees)

        with ThreadPoolExecutor(max_workers=n_threads, thread_name_prefix="tree-trainer") as executor:
            futures = {
                executor.submit(
                    self._train_and_add,
                    data,
                    context,
                    np.random.default_rng(seed),
                    forest,
                ): tree_idx
                for tree_idx, seed in enumerate(seeds)
            }
            for future in as_completed(futures):
                tree_idx = futures[future]
                try:
                    metrics = future.result()
                except Exception as e:
                    for pending in futures:
                        pending.cancel()
                    raise RuntimeError(f"Training tree {tree_idx} failed") from e
                self._record_tree(tree_idx, metrics)

    def train(self, data: DataPointCollection) -> Forest:
        context = self._build_context(data)
        n_threads = self._effective_threads()

        self.metrics = {
            "n_threads": n_threads,
            "nodes_visited": 0,
            "nodes_split": 0,
            "candidates_evaluated": 0,
            "split_search_time_sec": 0.0,
            "train_time_sec": 0.0,
            "tree_metrics": [],
        }

        forest = Forest(n_classes=data.count_classes(), dimensions=data.dimensions())
        t0 = time.perf_counter()
        if n_threads == 1:
            logger.info("Using 1 thread.")
            self._train_sequential(data, context, forest)
        else:
            logger.info("Using %d threads.", n_threads)
            self._train_parallel(data, context, forest, n_threads)
        self.metrics["train_time_sec"] = time.perf_counter() - t0

        if len(forest) != self.params.number_of_trees:
            raise RuntimeError(
                f"Forest has {len(forest)} trees, expected {self.params.number_of_trees}"
            )
        return forest


def train_forest(
    features: np.ndarray,
    labels: np.ndarray,
    params: TrainingParameters | None = None,
    n_classes: int | None = None,
) -> Forest:
    """Train a forest from an F x N feature matrix and save it if requested."""
    params = params or TrainingParameters()
    data = DataPointCollection(features, labels, n_classes=n_classes)

    forest = ForestTrainer(params).train(data)

    if params.forest_output_path:
        forest.save(params.forest_output_path)
    return forest
