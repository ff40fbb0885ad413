import numpy as np
import pytest

from rangetreex import config as rx_config
from rangetreex.algo import (
    PRUNE,
    RECURSE,
    REPORT_ALL,
    DualTreeTraversal,
    NaiveTraversal,
    RangeResultBuilder,
    RangeSearchResult,
    RangeSearchRules,
    SearchContext,
    SingleTreeTraversal,
    registered_traversal_strategies,
    select_traversal_strategy,
)
from rangetreex.algo._range_numba import metric_code, range_block_numba
from rangetreex.api import Runtime
from rangetreex.core.metrics import get_metric
from rangetreex.model import build_model
from rangetreex.queries import range_search
from rangetreex.trees import TreeType, build_tree

from tests.utils.datasets import brute_force_pairs, gaussian_dataset

ALL_TREE_TYPES = [tree_type.value for tree_type in TreeType]
RANGES = [(0.0, 0.9), (0.6, 1.4)]


@pytest.fixture(autouse=True)
def reset_runtime_context():
    rx_config.reset_runtime_context()
    yield
    rx_config.reset_runtime_context()


def _assert_same_result(lhs: RangeSearchResult, rhs: RangeSearchResult) -> None:
    assert np.array_equal(lhs.indptr, rhs.indptr)
    assert np.array_equal(lhs.indices, rhs.indices)
    assert np.allclose(lhs.distances, rhs.distances, rtol=0.0, atol=1e-12)


@pytest.mark.parametrize("tree_type", ALL_TREE_TYPES)
def test_strategies_agree_for_every_variant(tree_type: str):
    reference, queries = gaussian_dataset(
        np.random.default_rng(11), tree_points=120, queries=25, dimension=3
    )
    naive = build_model(reference, tree_type=tree_type, leaf_size=6, naive=True)
    single = build_model(reference, tree_type=tree_type, leaf_size=6, single_tree=True)
    dual = build_model(reference, tree_type=tree_type, leaf_size=6)

    for lower, upper in RANGES:
        for query_set in (None, queries):
            expected = range_search(naive, query_set, lower=lower, upper=upper)
            _assert_same_result(range_search(single, query_set, lower=lower, upper=upper), expected)
            _assert_same_result(range_search(dual, query_set, lower=lower, upper=upper), expected)


@pytest.mark.parametrize("metric", ["manhattan", "chebyshev"])
@pytest.mark.parametrize("tree_type", ["kd", "ball", "cover", "vp", "r-star", "oct"])
def test_strategies_agree_under_other_metrics(tree_type: str, metric: str):
    reference, queries = gaussian_dataset(
        np.random.default_rng(21), tree_points=90, queries=15, dimension=4
    )
    ord_value = 1 if metric == "manhattan" else np.inf
    lower, upper = 0.5, 1.6

    expected = brute_force_pairs(queries, reference, lower, upper, ord=ord_value)
    for flags in ({"single_tree": True}, {}):
        model = build_model(reference, tree_type=tree_type, leaf_size=5, metric=metric, **flags)
        result = range_search(model, queries, lower=lower, upper=upper)
        assert result.to_lists()[0] == expected


def test_naive_matches_brute_force_across_query_blocks():
    Runtime(query_block_size=4).activate()
    reference, queries = gaussian_dataset(
        np.random.default_rng(3), tree_points=50, queries=13, dimension=2
    )
    model = build_model(reference, naive=True)

    result = range_search(model, queries, lower=0.2, upper=1.0)

    assert result.to_lists()[0] == brute_force_pairs(queries, reference, 0.2, 1.0)


def test_self_search_excludes_only_the_identity_pair():
    points = np.asarray([[0.0, 0.0], [0.0, 0.0], [3.0, 0.0]])

    for flags in ({"naive": True}, {"single_tree": True}, {}):
        model = build_model(points, leaf_size=1, **flags)
        neighbors, distances = range_search(model, lower=0.0, upper=0.5).to_lists()
        # Coincident points still match each other.
        assert neighbors == [[1], [0], []]
        assert distances == [[0.0], [0.0], []]


def test_numba_kernel_matches_numpy_path():
    reference, queries = gaussian_dataset(
        np.random.default_rng(9), tree_points=80, queries=20, dimension=3
    )
    baseline = range_search(build_model(reference, tree_type="kd", leaf_size=8), queries, upper=1.2)

    Runtime(enable_numba=True).activate()
    for flags in ({"naive": True}, {"single_tree": True}, {}):
        model = build_model(reference, tree_type="kd", leaf_size=8, **flags)
        result = range_search(model, queries, upper=1.2)
        assert np.array_equal(result.indices, baseline.indices)
        assert np.allclose(result.distances, baseline.distances, rtol=1e-12, atol=1e-12)


@pytest.mark.parametrize("metric", ["euclidean", "manhattan"])
def test_numba_kernel_agrees_at_the_upper_bound_in_high_dimension(metric: str):
    reference, queries = gaussian_dataset(
        np.random.default_rng(21), tree_points=60, queries=20, dimension=12
    )
    exact = get_metric(metric).pairwise(queries, reference)
    # An exactly computed pair distance sits on the inclusive upper bound.
    upper = float(np.sort(exact, axis=None)[exact.size // 2])
    baseline = range_search(build_model(reference, naive=True, metric=metric), queries, upper=upper)

    Runtime(enable_numba=True).activate()
    for flags in ({"naive": True}, {"single_tree": True}, {}):
        model = build_model(reference, tree_type="kd", leaf_size=6, metric=metric, **flags)
        result = range_search(model, queries, upper=upper)
        assert np.array_equal(result.indptr, baseline.indptr)
        assert np.array_equal(result.indices, baseline.indices)
        assert np.array_equal(result.distances, baseline.distances)
    assert baseline.num_pairs == int(np.count_nonzero(exact <= upper))


def test_range_block_numba_distances_are_bitwise_equal_to_metric():
    rng = np.random.default_rng(4)
    lhs = rng.normal(size=(15, 17))
    rhs = rng.normal(size=(25, 17))
    ids_l = np.arange(15, dtype=np.int64)
    ids_r = np.arange(25, dtype=np.int64)
    accept = np.ones(25, dtype=np.uint8)

    for name in ("euclidean", "manhattan", "chebyshev"):
        q_out, r_out, d_out = range_block_numba(
            lhs, rhs, ids_l, ids_r, accept, 0.0, 0.0, metric_code(name), False
        )
        expected = get_metric(name).pairwise(lhs, rhs)
        assert np.array_equal(d_out, expected[q_out, r_out])


def test_range_block_numba_reports_accepted_rows_and_skips_self():
    lhs = np.asarray([[0.0, 0.0], [1.0, 0.0]])
    rhs = np.asarray([[0.0, 0.0], [5.0, 0.0]])
    ids = np.asarray([0, 1], dtype=np.int64)

    q_out, r_out, d_out = range_block_numba(
        lhs,
        rhs,
        ids,
        ids,
        np.asarray([0, 1], dtype=np.uint8),
        0.0,
        2.0,
        metric_code("euclidean"),
        True,
    )

    assert q_out.tolist() == [0, 1]
    assert r_out.tolist() == [1, 0]
    assert d_out.tolist() == [5.0, 1.0]
    assert metric_code("cosine") == -1


def test_rules_decisions():
    rules = RangeSearchRules(lower=1.0, upper=2.0)

    assert rules.decide(2.5, 3.0) == PRUNE
    assert rules.decide(0.0, 0.5) == PRUNE
    assert rules.decide(1.2, 1.8) == REPORT_ALL
    assert rules.decide(1.0, 2.0) == RECURSE
    assert rules.decide(0.5, 1.5) == RECURSE
    assert rules.decide(1.5, 2.5) == RECURSE
    assert rules.contains(1.0) and rules.contains(2.0)
    assert not rules.contains(2.0 + 1e-9)


def test_rules_never_commit_on_rounding_noise():
    rules = RangeSearchRules(lower=0.0, upper=1.0)

    # A bound a hair above the upper limit may still hide a qualifying point.
    assert rules.decide(1.0 + 1e-15, 2.0) == RECURSE
    assert rules.decide(0.0, 1.0 + 1e-15) == RECURSE
    assert rules.decide(1.0 + 1e-6, 2.0) == PRUNE


def test_result_builder_orders_rows_and_columns():
    builder = RangeResultBuilder(3)
    builder.add_block(np.asarray([2, 0, 2]), np.asarray([5, 4, 1]), np.asarray([0.5, 0.4, 0.1]))
    builder.add_block(np.asarray([0]), np.asarray([1]), np.asarray([0.9]))

    result = builder.finalize()

    assert result.num_queries == 3
    assert result.num_pairs == 4
    assert len(result) == 3
    assert result.indptr.tolist() == [0, 2, 2, 4]
    assert result.neighbors(0).tolist() == [1, 4]
    assert result.distances_of(0).tolist() == [0.9, 0.4]
    assert result.neighbors(1).tolist() == []
    assert result.triples() == [(0, 1, 0.9), (0, 4, 0.4), (2, 1, 0.1), (2, 5, 0.5)]


def test_result_from_lists_round_trip():
    neighbors = [[3, 1], [], [0]]
    distances = [[0.3, 0.1], [], [0.0]]

    result = RangeSearchResult.from_lists(neighbors, distances)

    assert result.to_lists() == ([[1, 3], [], [0]], [[0.1, 0.3], [], [0.0]])
    with pytest.raises(ValueError):
        RangeSearchResult.from_lists([[1]], [[0.1, 0.2]])


def test_empty_result():
    result = RangeSearchResult.empty(2)

    assert result.to_lists() == ([[], []], [[], []])
    assert result.num_pairs == 0


def _context(strategy: str, tree=None) -> SearchContext:
    points = np.zeros((2, 2))
    return SearchContext(
        strategy=strategy,
        queries=points,
        reference=points,
        tree=tree,
        metric=get_metric("euclidean"),
        rules=RangeSearchRules(lower=0.0, upper=1.0),
        self_search=True,
    )


def test_select_traversal_strategy():
    tree = build_tree(np.arange(4.0).reshape(2, 2), "kd", 1, metric=get_metric("euclidean"))

    assert registered_traversal_strategies() == ("naive", "single_tree", "dual_tree")
    assert isinstance(select_traversal_strategy(_context("naive")), NaiveTraversal)
    assert isinstance(select_traversal_strategy(_context("single_tree", tree)), SingleTreeTraversal)
    assert isinstance(select_traversal_strategy(_context("dual_tree", tree)), DualTreeTraversal)
    with pytest.raises(RuntimeError):
        select_traversal_strategy(_context("dual_tree"))


def test_dual_tree_reuses_reference_tree_for_self_search():
    reference, queries = gaussian_dataset(
        np.random.default_rng(1), tree_points=30, queries=7, dimension=2
    )
    tree = build_tree(reference, "ball", 4, metric=get_metric("euclidean"))
    context = SearchContext(
        strategy="dual_tree",
        queries=reference,
        reference=reference,
        tree=tree,
        metric=get_metric("euclidean"),
        rules=RangeSearchRules(lower=0.0, upper=1.0),
        self_search=True,
    )
    traversal = DualTreeTraversal()

    assert traversal.query_tree(context) is tree
    query_tree = traversal.query_tree(
        SearchContext(
            strategy="dual_tree",
            queries=queries,
            reference=reference,
            tree=tree,
            metric=get_metric("euclidean"),
            rules=RangeSearchRules(lower=0.0, upper=1.0),
            self_search=False,
        )
    )
    assert query_tree.tree_type == "ball"
    assert query_tree.num_points == 7
    assert query_tree.leaf_size == 4
