import numpy as np
import pytest

import rangetreex
from rangetreex import RangeSearch, Runtime
from rangetreex import config as rx_config
from rangetreex.errors import ConfigurationError

from tests.utils.datasets import SCENARIO_QUERIES, SCENARIO_REFERENCE, brute_force_pairs


@pytest.fixture(autouse=True)
def reset_runtime_context():
    rx_config.reset_runtime_context()
    yield
    rx_config.reset_runtime_context()


def test_range_search_fit_and_search():
    engine = RangeSearch().fit(SCENARIO_REFERENCE, tree_type="r", leaf_size=2)

    result = engine.search(SCENARIO_QUERIES, lower=0.0, upper=5.0)

    assert engine.model is not None
    assert engine.model.tree_type == "r"
    assert result.to_lists()[0] == brute_force_pairs(SCENARIO_QUERIES, SCENARIO_REFERENCE, 0.0, 5.0)


def test_fit_returns_new_instance():
    engine = RangeSearch()

    fitted = engine.fit(SCENARIO_REFERENCE)

    assert engine.model is None
    assert fitted is not engine
    assert fitted.runtime is engine.runtime


def test_runtime_defaults_drive_fit():
    engine = RangeSearch(runtime=Runtime(tree_type="max-rp", leaf_size=2, seed=9))

    fitted = engine.fit(SCENARIO_REFERENCE)

    assert fitted.model.tree_type == "max-rp"
    assert fitted.model.leaf_size == 2
    assert fitted.model.seed == 9
    assert rx_config.runtime_config().tree_type == "max-rp"


def test_unfitted_engine_raises():
    engine = RangeSearch()

    with pytest.raises(ConfigurationError):
        engine.search(upper=1.0)
    with pytest.raises(ConfigurationError):
        engine.save("unused.json")
    with pytest.raises(ConfigurationError):
        engine.with_strategy(naive=True)


def test_with_strategy_keeps_answers():
    engine = RangeSearch().fit(SCENARIO_REFERENCE, tree_type="x", leaf_size=2)
    baseline = engine.search(upper=3.0).to_lists()

    for variant in (engine.with_strategy(naive=True), engine.with_strategy(single_tree=True)):
        assert variant.search(upper=3.0).to_lists() == baseline


def test_save_and_load(tmp_path):
    engine = RangeSearch().fit(SCENARIO_REFERENCE, tree_type="r-plus", leaf_size=2)
    target = engine.save(tmp_path / "model.json")

    loaded = RangeSearch.load(target, runtime=Runtime(enable_numba=True))

    assert loaded.runtime.enable_numba is True
    assert loaded.model.tree_type == "r-plus"
    assert np.array_equal(
        loaded.search(SCENARIO_QUERIES, upper=4.0).indices,
        engine.search(SCENARIO_QUERIES, upper=4.0).indices,
    )


def test_package_exports():
    for name in rangetreex.__all__:
        assert hasattr(rangetreex, name)
    assert isinstance(rangetreex.__version__, str)
