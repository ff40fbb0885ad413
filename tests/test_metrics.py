import numpy as np
import pytest

from rangetreex import config as rx_config
from rangetreex.core.metrics import Metric, MetricRegistry, available_metrics, get_metric


@pytest.fixture(autouse=True)
def reset_runtime_context():
    rx_config.reset_runtime_context()
    yield
    rx_config.reset_runtime_context()


def test_available_metrics():
    assert available_metrics() == ("chebyshev", "euclidean", "manhattan")


def test_euclidean_pairwise_matches_manual():
    metric = get_metric("euclidean")
    lhs = np.asarray([[0.0, 0.0], [1.0, 1.0]])
    rhs = np.asarray([[1.0, 1.0], [2.0, 1.0], [3.0, 4.0]])

    distances = metric.pairwise(lhs, rhs)
    manual = np.sqrt(np.sum((lhs[:, None, :] - rhs[None, :, :]) ** 2, axis=-1))

    assert distances.shape == (2, 3)
    assert np.allclose(distances, manual)
    assert distances[0, 2] == pytest.approx(5.0)


@pytest.mark.parametrize(
    "name,expected",
    [
        ("euclidean", 5.0),
        ("manhattan", 7.0),
        ("chebyshev", 4.0),
    ],
)
def test_lp_distances(name: str, expected: float):
    metric = get_metric(name)

    assert metric.distance(np.asarray([0.0, 0.0]), np.asarray([3.0, -4.0])) == pytest.approx(expected)


def test_pointwise_and_to_point_agree_with_pairwise():
    rng = np.random.default_rng(5)
    points = rng.normal(size=(7, 4))
    query = rng.normal(size=4)
    metric = get_metric("manhattan")

    to_point = metric.to_point(points, query)
    pairwise = metric.pairwise(points, query)[:, 0]
    pointwise = metric.pointwise(points, np.broadcast_to(query, points.shape))

    assert np.array_equal(to_point, pairwise)
    assert np.array_equal(pointwise, pairwise)


def test_pairwise_handles_empty_blocks():
    metric = get_metric("euclidean")

    distances = metric.pairwise(np.zeros((0, 3)), np.ones((4, 3)))

    assert distances.shape == (0, 4)


def test_pointwise_rejects_shape_mismatch():
    metric = get_metric("euclidean")

    with pytest.raises(ValueError):
        metric.pointwise(np.zeros((2, 3)), np.zeros((3, 3)))


def test_get_metric_defaults_to_runtime_metric(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("RANGETREEX_METRIC", "chebyshev")
    rx_config.reset_runtime_context()

    assert get_metric().name == "chebyshev"


def test_unknown_metric_raises():
    with pytest.raises(KeyError):
        get_metric("cosine")


def test_registry_rejects_duplicates():
    registry = MetricRegistry()
    registry.register(Metric(name="l3", p=3.0))

    with pytest.raises(ValueError):
        registry.register(Metric(name="L3", p=3.0))

    registry.register(Metric(name="L3", p=3.0), overwrite=True)
    assert registry.names() == ("l3",)
    assert registry.get("L3").distance(np.zeros(2), np.asarray([1.0, 1.0])) == pytest.approx(
        2.0 ** (1.0 / 3.0)
    )


@pytest.mark.parametrize("name", ["euclidean", "manhattan"])
def test_norm_accumulates_dimensions_left_to_right(name: str):
    rng = np.random.default_rng(12)
    diffs = rng.normal(size=(40, 23))
    metric = get_metric(name)

    expected = []
    for row in np.abs(diffs):
        acc = 0.0
        for value in row:
            acc += value * value if name == "euclidean" else value
        expected.append(np.sqrt(acc) if name == "euclidean" else acc)

    assert np.array_equal(metric.norm(diffs), np.asarray(expected))
