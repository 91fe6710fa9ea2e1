import argparse
import logging
import sys
import time
from pathlib import Path

import numpy as np
import pandas as pd

# Allow running as: python experiments/train_forest_from_csv.py
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from data_point_collection import DataPointCollection
from data_structures.forest import Forest
from forest_trainer import ForestTrainer
from training_parameters import TrainingParameters


def _synthetic_classification(n_samples, n_features, n_classes, random_state):
    rng = np.random.default_rng(random_state)
    centers = rng.normal(scale=3.0, size=(n_classes, n_features))
    y = rng.integers(0, n_classes, size=n_samples)
    X = centers[y] + rng.normal(size=(n_samples, n_features))
    return X.astype(np.float64), y.astype(np.int64)


def load_dataset(args):
    if args.csv is None:
        return _synthetic_classification(
            args.synthetic_samples,
            args.synthetic_features,
            args.synthetic_classes,
            args.random_state,
        )

    df = pd.read_csv(args.csv)
    if args.label_col not in df.columns:
        raise ValueError(f"Label column '{args.label_col}' not found in {args.csv}")

    labels = df[args.label_col]
    if not pd.api.types.is_integer_dtype(labels):
        # Map arbitrary class values onto 0..C-1.
        labels = pd.Series(pd.factorize(labels, sort=True)[0], index=labels.index)

    features = df.drop(columns=[args.label_col]).select_dtypes(include=[np.number])
    if features.shape[1] == 0:
        raise ValueError("No numeric feature columns found")
    if features.isna().any().any():
        raise ValueError("Feature columns contain missing values")

    return features.to_numpy(dtype=np.float64), labels.to_numpy(dtype=np.int64)


def main():
    parser = argparse.ArgumentParser(description="Train a randomized decision forest and save it")
    parser.add_argument("--csv", type=str, default=None, help="CSV file; omit for a synthetic dataset")
    parser.add_argument("--label-col", type=str, default="label")
    parser.add_argument("--output", type=str, default="forest.bin")
    parser.add_argument("--max-decision-levels", type=int, default=10)
    parser.add_argument("--candidate-features", type=int, default=10)
    parser.add_argument("--candidate-thresholds", type=int, default=10)
    parser.add_argument("--n-trees", type=int, default=10)
    parser.add_argument("--max-threads", type=int, default=1)
    parser.add_argument(
        "--weak-learner",
        type=str,
        default="axis_aligned",
        choices=["axis_aligned", "random_hyperplane", "random_hyperplane_normalized"],
    )
    parser.add_argument("--feature-scaling", action="store_true")
    parser.add_argument("--max-hyperplane-dimensions", type=int, default=None)
    parser.add_argument("--synthetic-samples", type=int, default=2000)
    parser.add_argument("--synthetic-features", type=int, default=8)
    parser.add_argument("--synthetic-classes", type=int, default=3)
    parser.add_argument("--random-state", type=int, default=0)
    parser.add_argument("--verbose", action="store_true")
    parser.add_argument(
        "--check-roundtrip",
        action="store_true",
        help="Reload the saved forest and compare its node count.",
    )

    args = parser.parse_args()
    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    params = TrainingParameters(
        max_decision_levels=args.max_decision_levels,
        number_of_candidate_features=args.candidate_features,
        number_of_candidate_thresholds_per_feature=args.candidate_thresholds,
        number_of_trees=args.n_trees,
        max_threads=args.max_threads,
        weak_learner=args.weak_learner,
        feature_scaling=args.feature_scaling,
        verbose=args.verbose,
        forest_output_path=args.output,
        random_state=args.random_state,
        max_hyperplane_dimensions=args.max_hyperplane_dimensions,
    )

    X, y = load_dataset(args)
    data = DataPointCollection.from_rows(X, y)
    print(f"n={data.count()} d={data.dimensions()} classes={data.count_classes()}")

    trainer = ForestTrainer(params)
    t0 = time.perf_counter()
    forest = trainer.train(data)
    fit_time = time.perf_counter() - t0
    forest.save(params.forest_output_path)

    depths = [tree.max_depth() for tree in forest.trees]
    print(
        f"trees={len(forest)}"
        f" time={fit_time:.3f}s"
        f" split_search_time={trainer.metrics['split_search_time_sec']:.3f}s"
        f" nodes={trainer.metrics['nodes_visited']}"
        f" splits={trainer.metrics['nodes_split']}"
        f" candidates={trainer.metrics['candidates_evaluated']}"
        f" max_depth={max(depths)}"
        f" output={params.forest_output_path}"
    )

    if args.check_roundtrip:
        reloaded = Forest.load(params.forest_output_path)
        before = sum(tree.node_count for tree in forest.trees)
        after = sum(tree.node_count for tree in reloaded.trees)
        print(f"roundtrip trees={len(reloaded)} nodes={after} match={before == after}")


if __name__ == "__main__":
    main()
