import numpy as np
import pytest

from rangetreex import config as rx_config
from rangetreex.core.metrics import get_metric
from rangetreex.errors import ConfigurationError
from rangetreex.trees import TreeType, bound_kind, build_tree, registered_tree_types
from rangetreex.trees.cover import cover_radius
from rangetreex.trees.rectangle import MAX_CHILDREN

from tests.utils.datasets import gaussian_points

ALL_TREE_TYPES = [tree_type.value for tree_type in TreeType]
RECTANGLE_TYPES = ["r", "r-star", "x", "hilbert-r", "r-plus", "r-plus-plus"]


@pytest.fixture(autouse=True)
def reset_runtime_context():
    rx_config.reset_runtime_context()
    yield
    rx_config.reset_runtime_context()


def _check_structure(tree, points: np.ndarray) -> None:
    metric = get_metric("euclidean")
    n = points.shape[0]
    assert tree.num_points == n
    assert np.array_equal(np.sort(tree.indices), np.arange(n))
    assert np.array_equal(tree.points, points[tree.indices])
    assert tree.node_range(tree.root) == (0, n)

    for node in range(tree.num_nodes):
        begin, end = tree.node_range(node)
        assert end > begin
        assert tree.bound(node).contains(tree.node_points(node), metric)
        children = tree.children(node)
        if tree.is_leaf(node):
            assert end - begin <= tree.leaf_size
            continue
        assert children.shape[0] >= 2
        cursor = begin
        for child in children:
            child_begin, child_end = tree.node_range(int(child))
            assert child > node
            assert child_begin == cursor
            cursor = child_end
            if tree.bounds.kind != "hollow_ball":
                assert tree.bounds.encloses(node, int(child), metric)
        assert cursor == end

    leaves = tree.leaves()
    covered = np.zeros(n, dtype=int)
    for leaf in leaves:
        begin, end = tree.node_range(int(leaf))
        covered[begin:end] += 1
    assert np.all(covered == 1)


def test_every_variant_is_registered():
    assert sorted(registered_tree_types()) == sorted(ALL_TREE_TYPES)


@pytest.mark.parametrize("tree_type", ALL_TREE_TYPES)
@pytest.mark.parametrize("leaf_size", [1, 4, 20])
def test_tree_structure_invariants(tree_type: str, leaf_size: int):
    points = gaussian_points(np.random.default_rng(3), 150, 3)

    tree = build_tree(points, tree_type, leaf_size, metric=get_metric("euclidean"), seed=5)

    assert tree.tree_type == tree_type
    assert tree.bounds.kind == bound_kind(tree_type)
    _check_structure(tree, points)


@pytest.mark.parametrize("tree_type", ALL_TREE_TYPES)
def test_node_bound_views_bracket_true_distances(tree_type: str):
    metric = get_metric("euclidean")
    rng = np.random.default_rng(14)
    points = gaussian_points(rng, 80, 3)
    query = rng.normal(size=3) * 2.0
    tree = build_tree(points, tree_type, 6, metric=metric, seed=2)
    root = tree.bound(tree.root)

    assert root.kind == bound_kind(tree_type)
    assert root.describe()["kind"] == root.kind
    for node in range(tree.num_nodes):
        view = tree.bound(node)
        block = tree.node_points(node)
        dmin, dmax = view.min_max_to_point(query, metric)
        actual = metric.to_point(block, query)
        assert dmin <= actual.min() + 1e-9
        assert dmax >= actual.max() - 1e-9

        pair_min, pair_max = root.min_max_to(view, metric)
        pairwise = metric.pairwise(tree.points, block)
        assert pair_min <= pairwise.min() + 1e-9
        assert pair_max >= pairwise.max() - 1e-9


@pytest.mark.parametrize("tree_type", ALL_TREE_TYPES)
def test_tree_handles_duplicates_and_single_points(tree_type: str):
    metric = get_metric("euclidean")
    duplicates = np.repeat(np.asarray([[1.0, 2.0]]), 9, axis=0)
    single = np.asarray([[0.5, -0.5, 2.0]])

    dup_tree = build_tree(duplicates, tree_type, 2, metric=metric, seed=0)
    single_tree = build_tree(single, tree_type, 1, metric=metric, seed=0)

    assert np.array_equal(np.sort(dup_tree.indices), np.arange(9))
    assert dup_tree.node_range(dup_tree.root) == (0, 9)
    assert single_tree.num_nodes == 1
    assert single_tree.is_leaf(single_tree.root)


@pytest.mark.parametrize("tree_type", ["rp", "max-rp"])
def test_random_projection_builds_are_reproducible(tree_type: str):
    points = gaussian_points(np.random.default_rng(8), 200, 4)
    metric = get_metric("euclidean")

    first = build_tree(points, tree_type, 5, metric=metric, seed=13)
    second = build_tree(points, tree_type, 5, metric=metric, seed=13)

    assert np.array_equal(first.indices, second.indices)
    assert np.array_equal(first.child_indices, second.child_indices)


def test_single_point_per_leaf_with_leaf_size_one():
    points = gaussian_points(np.random.default_rng(2), 40, 2)

    tree = build_tree(points, "kd", 1, metric=get_metric("euclidean"))

    assert all(tree.node_range(int(leaf))[1] - tree.node_range(int(leaf))[0] == 1 for leaf in tree.leaves())
    assert tree.leaves().shape[0] == 40


def test_octree_children_are_orthants():
    points = np.asarray(
        [[-1.0, -1.0], [1.0, -1.0], [-1.0, 1.0], [1.0, 1.0], [0.9, 0.9]],
        dtype=np.float64,
    )

    tree = build_tree(points, "oct", 1, metric=get_metric("euclidean"))

    assert tree.children(tree.root).shape[0] == 4


def test_vp_tree_uses_annulus_bounds():
    points = gaussian_points(np.random.default_rng(4), 60, 2)

    tree = build_tree(points, "vp", 8, metric=get_metric("euclidean"))

    assert tree.bounds.kind == "hollow_ball"
    assert np.all(tree.bounds.inner <= tree.bounds.outer)


@pytest.mark.parametrize("tree_type", RECTANGLE_TYPES)
def test_rectangle_trees_respect_fanout(tree_type: str):
    points = gaussian_points(np.random.default_rng(6), 300, 2)

    tree = build_tree(points, tree_type, 4, metric=get_metric("euclidean"))

    fanout = np.diff(tree.child_indptr)
    assert fanout.max() >= 2
    if tree_type != "x":
        assert fanout.max() <= MAX_CHILDREN


def test_r_plus_plus_leaves_do_not_overlap():
    points = gaussian_points(np.random.default_rng(9), 200, 2)

    tree = build_tree(points, "r-plus-plus", 4, metric=get_metric("euclidean"))

    leaves = tree.leaves()
    lower = tree.bounds.lower[leaves]
    upper = tree.bounds.upper[leaves]
    for i in range(leaves.shape[0]):
        for j in range(i + 1, leaves.shape[0]):
            overlap = np.minimum(upper[i], upper[j]) - np.maximum(lower[i], lower[j])
            assert not np.all(overlap > 0.0)


def test_cover_radius_is_largest_power_below():
    assert cover_radius(5.0) == 4.0
    assert cover_radius(4.0) == 2.0
    assert cover_radius(0.3) == 0.25
    assert cover_radius(0.0) == 0.0


def test_tree_type_parse():
    assert TreeType.parse("R-STAR") is TreeType.R_STAR
    assert TreeType.parse(TreeType.OCT) is TreeType.OCT
    assert str(TreeType.HILBERT_R) == "hilbert-r"
    with pytest.raises(ConfigurationError):
        TreeType.parse("quad")


def test_build_tree_rejects_bad_leaf_size():
    with pytest.raises(ConfigurationError):
        build_tree(np.zeros((3, 2)), "kd", 0, metric=get_metric("euclidean"))


def test_tree_summary_reports_shape():
    points = gaussian_points(np.random.default_rng(1), 64, 3)

    tree = build_tree(points, "ball", 8, metric=get_metric("euclidean"))
    summary = tree.summary()

    assert summary["tree_type"] == "ball"
    assert summary["num_points"] == 64
    assert summary["num_nodes"] == tree.num_nodes
    assert summary["num_leaves"] == tree.leaves().shape[0]
    assert summary["depth"] >= 2
    assert summary["bound_kind"] == "ball"
