import io

import numpy as np
import pytest

from data_point_collection import DataPointCollection, FeatureStats
from feature_responses import (
    AxisAlignedFeatureResponse,
    FeatureResponseFactory,
    RandomHyperplaneFeatureResponse,
    RandomHyperplaneNormalizedFeatureResponse,
    WeakLearner,
    read_feature_response,
)
from training_parameters import ConfigurationError


def _toy_data(seed=0, n_samples=50, n_features=6, n_classes=3):
    rng = np.random.default_rng(seed)
    X = rng.normal(loc=2.0, scale=3.0, size=(n_samples, n_features))
    y = rng.integers(0, n_classes, size=n_samples)
    return DataPointCollection.from_rows(X, y, n_classes=n_classes)


def test_data_point_collection_shapes_and_stats():
    rng = np.random.default_rng(1)
    X = rng.normal(size=(30, 4))
    y = np.array([0, 1, 2] * 10)
    data = DataPointCollection(X.T, y)

    assert data.dimensions() == 4
    assert data.count() == 30
    assert data.count_classes() == 3

    stats = data.get_feature_stats(2)
    assert np.isclose(stats.mean, X[:, 2].mean())
    assert np.isclose(stats.stdev, X[:, 2].std())
    assert data.get_feature_stats(2) is stats

    with pytest.raises(IndexError):
        data.get_feature_stats(4)


def test_data_point_collection_rejects_inconsistent_inputs():
    X = np.zeros((3, 10))
    with pytest.raises(ConfigurationError):
        DataPointCollection(X, np.zeros(9, dtype=np.int64))
    with pytest.raises(ConfigurationError):
        DataPointCollection(X, np.array([0] * 9 + [2]), n_classes=2)
    with pytest.raises(ConfigurationError):
        DataPointCollection(X, np.array([0] * 9 + [-1]))


def test_data_point_collection_is_isolated_from_caller_arrays():
    rng = np.random.default_rng(6)
    X = rng.normal(size=(20, 3))
    y = np.array([0, 1] * 10)
    data = DataPointCollection.from_rows(X, y)
    expected_X = X.copy()
    expected_mean = X[:, 1].mean()

    X[:, 1] += 100.0
    y[:] = 1

    np.testing.assert_array_equal(data.X, expected_X)
    np.testing.assert_array_equal(data.labels, [0, 1] * 10)
    assert np.isclose(data.get_feature_stats(1).mean, expected_mean)
    assert not data.X.flags.writeable
    assert not data.labels.flags.writeable


def test_axis_aligned_response_reads_one_feature():
    data = _toy_data()
    rows = np.array([3, 7, 11])
    feature = AxisAlignedFeatureResponse(axis=4)

    np.testing.assert_array_equal(feature.response(data.X, rows), data.X[rows, 4])


def test_axis_aligned_create_random_stays_in_range():
    rng = np.random.default_rng(5)
    axes = {AxisAlignedFeatureResponse.create_random(rng, 3).axis for _ in range(200)}

    assert axes == {0, 1, 2}


def test_hyperplane_response_is_dot_product():
    data = _toy_data()
    rows = np.arange(10)
    feature = RandomHyperplaneFeatureResponse(axes=[0, 2, 5], weights=[0.5, -1.0, 0.25])

    expected = data.X[rows][:, [0, 2, 5]] @ np.array([0.5, -1.0, 0.25])
    np.testing.assert_allclose(feature.response(data.X, rows), expected)


def test_hyperplane_respects_dimension_cap():
    rng = np.random.default_rng(2)
    for _ in range(20):
        feature = RandomHyperplaneFeatureResponse.create_random(rng, 10, max_dimensions=3)
        assert feature.axes.size == 3
        assert np.all(np.diff(feature.axes) > 0)
        assert np.all(np.abs(feature.weights) <= 1.0)

    full = RandomHyperplaneFeatureResponse.create_random(rng, 10)
    np.testing.assert_array_equal(full.axes, np.arange(10))


def test_normalized_hyperplane_standardizes_before_projection():
    data = _toy_data()
    stats = data.all_feature_stats()
    rng = np.random.default_rng(9)
    feature = RandomHyperplaneNormalizedFeatureResponse.create_random(rng, data.dimensions(), stats)

    rows = np.arange(data.count())
    means = np.array([s.mean for s in stats])
    stdevs = np.array([s.stdev for s in stats])
    expected = ((data.X - means) / stdevs) @ feature.weights
    np.testing.assert_allclose(feature.response(data.X, rows), expected)
    # Standardized responses of a centered projection average to zero.
    assert abs(feature.response(data.X, rows).mean()) < 1e-9


def test_normalized_hyperplane_requires_feature_stats():
    rng = np.random.default_rng(0)
    with pytest.raises(ValueError):
        RandomHyperplaneNormalizedFeatureResponse.create_random(rng, 4, [])
    with pytest.raises(ValueError):
        FeatureResponseFactory(WeakLearner.RANDOM_HYPERPLANE_NORMALIZED, 4)


def test_normalized_hyperplane_tolerates_constant_features():
    feature = RandomHyperplaneNormalizedFeatureResponse(
        axes=[0, 1],
        weights=[1.0, 1.0],
        means=[1.0, 2.0],
        stdevs=[0.0, 2.0],
    )
    X = np.array([[1.0, 4.0], [1.0, 0.0]])

    np.testing.assert_allclose(feature.response(X, np.array([0, 1])), [1.0, -1.0])


def test_factory_produces_requested_variant():
    stats = [FeatureStats(mean=0.0, stdev=1.0)] * 3
    rng = np.random.default_rng(4)
    expected = {
        WeakLearner.AXIS_ALIGNED: AxisAlignedFeatureResponse,
        WeakLearner.RANDOM_HYPERPLANE: RandomHyperplaneFeatureResponse,
        WeakLearner.RANDOM_HYPERPLANE_NORMALIZED: RandomHyperplaneNormalizedFeatureResponse,
    }

    for learner, cls in expected.items():
        factory = FeatureResponseFactory(learner, 3, stats)
        assert type(factory.create_random(rng)) is cls


def test_feature_responses_roundtrip_through_binary_records():
    stats = [FeatureStats(mean=float(d), stdev=1.0 + d) for d in range(5)]
    rng = np.random.default_rng(12)
    features = [
        FeatureResponseFactory(learner, 5, stats, max_hyperplane_dimensions=3).create_random(rng)
        for learner in WeakLearner
    ]

    for feature in features:
        buf = io.BytesIO()
        feature.serialize(buf)
        buf.seek(0)
        restored = read_feature_response(buf)

        assert type(restored) is type(feature)
        assert restored == feature
        assert buf.read() == b""


def test_hyperplane_variants_are_independent_types():
    plain = RandomHyperplaneFeatureResponse(axes=[0, 1], weights=[0.5, -0.5])
    normalized = RandomHyperplaneNormalizedFeatureResponse(
        axes=[0, 1],
        weights=[0.5, -0.5],
        means=[0.0, 0.0],
        stdevs=[1.0, 1.0],
    )

    assert not issubclass(RandomHyperplaneNormalizedFeatureResponse, RandomHyperplaneFeatureResponse)
    assert not isinstance(normalized, RandomHyperplaneFeatureResponse)
    assert plain != normalized
    assert normalized != plain
    # Unit stats and zero means give the same projection, but different records.
    X = np.array([[1.0, 2.0], [3.0, -1.0]])
    rows = np.array([0, 1])
    np.testing.assert_allclose(plain.response(X, rows), normalized.response(X, rows))

    plain_buf, normalized_buf = io.BytesIO(), io.BytesIO()
    plain.serialize(plain_buf)
    normalized.serialize(normalized_buf)
    assert plain_buf.getvalue()[0] == WeakLearner.RANDOM_HYPERPLANE.tag
    assert normalized_buf.getvalue()[0] == WeakLearner.RANDOM_HYPERPLANE_NORMALIZED.tag
    assert len(normalized_buf.getvalue()) == len(plain_buf.getvalue()) + 2 * 2 * 8
