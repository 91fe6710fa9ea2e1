import numpy as np
import pytest

from data_structures.histogram import HistogramAggregator, information_gain


def test_add_counts_labels_and_rejects_out_of_range():
    hist = HistogramAggregator(3)
    for label in [0, 2, 2, 1, 2]:
        hist.add(label)

    assert hist.bins.tolist() == [1, 1, 3]
    assert hist.sample_count == 5

    with pytest.raises(ValueError):
        hist.add(3)


def test_entropy_is_zero_when_pure_and_maximal_when_uniform():
    pure = HistogramAggregator(4, np.array([0, 7, 0, 0]))
    uniform = HistogramAggregator(4, np.array([5, 5, 5, 5]))
    skewed = HistogramAggregator(4, np.array([17, 1, 1, 1]))

    assert pure.entropy() == 0.0
    assert np.isclose(uniform.entropy(), 2.0)
    assert 0.0 < skewed.entropy() < uniform.entropy()
    assert HistogramAggregator(4).entropy() == 0.0


def test_merge_and_minus_are_inverse():
    parent = HistogramAggregator.from_labels(np.array([0, 0, 1, 1, 1, 2]), 3)
    left = HistogramAggregator.from_labels(np.array([0, 1, 2]), 3)

    right = parent.minus(left)

    assert right.bins.tolist() == [1, 2, 0]
    assert left.merge(right) == parent
    with pytest.raises(ValueError):
        left.minus(parent)


def test_probabilities_sum_to_one():
    hist = HistogramAggregator(3, np.array([2, 0, 6]))
    probs = hist.probabilities()

    np.testing.assert_allclose(probs, [0.25, 0.0, 0.75])
    assert np.isclose(probs.sum(), 1.0)


def test_information_gain_of_perfect_and_useless_splits():
    parent = HistogramAggregator(2, np.array([4, 4]))
    perfect_left = HistogramAggregator(2, np.array([4, 0]))
    mixed_left = HistogramAggregator(2, np.array([2, 2]))
    empty = HistogramAggregator(2)

    assert np.isclose(information_gain(parent, perfect_left, parent.minus(perfect_left)), 1.0)
    assert np.isclose(information_gain(parent, mixed_left, parent.minus(mixed_left)), 0.0)
    assert information_gain(parent, empty, parent) == 0.0


def test_from_labels_rejects_labels_outside_class_range():
    with pytest.raises(ValueError):
        HistogramAggregator.from_labels(np.array([0, 3]), 3)
