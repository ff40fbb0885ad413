from __future__ import annotations

from pathlib import Path

import numpy as np
import pytest
from typer.testing import CliRunner

from cli.range_search.app import RangeSearchCLIOptions, app, run_range_search
from rangetreex import config as rx_config
from rangetreex.core.persistence import load_model
from rangetreex.errors import ConfigurationError, InvalidRangeError
from rangetreex.io import read_distances, read_neighbors, save_points

from tests.utils.datasets import SCENARIO_QUERIES, SCENARIO_REFERENCE, brute_force_pairs


@pytest.fixture(autouse=True)
def reset_runtime_context():
    rx_config.reset_runtime_context()
    yield
    rx_config.reset_runtime_context()


@pytest.fixture
def reference_file(tmp_path: Path) -> Path:
    return save_points(SCENARIO_REFERENCE, tmp_path / "reference.csv")


@pytest.fixture
def query_file(tmp_path: Path) -> Path:
    return save_points(SCENARIO_QUERIES, tmp_path / "queries.npy")


def test_cli_self_search_writes_result_files(tmp_path: Path, reference_file: Path) -> None:
    runner = CliRunner()
    neighbors = tmp_path / "neighbors.csv"
    distances = tmp_path / "distances.csv"

    result = runner.invoke(
        app,
        [
            "--reference",
            str(reference_file),
            "--min",
            "0",
            "--max",
            "3",
            "--tree-type",
            "ball",
            "--leaf-size",
            "1",
            "--neighbors-file",
            str(neighbors),
            "--distances-file",
            str(distances),
        ],
    )

    assert result.exit_code == 0, result.output
    assert read_neighbors(neighbors) == [[], [2, 3, 4], [1, 3, 4, 5], [1, 2, 4], [1, 2, 3], [2]]
    rows = read_distances(distances)
    assert np.allclose(rows[1], [1.0, 1.73205, 2.23607], atol=1e-5)
    assert rows[5] == [3.0]


def test_cli_saved_model_answers_queries(tmp_path: Path, reference_file: Path, query_file: Path) -> None:
    runner = CliRunner()
    model_path = tmp_path / "model.json"
    neighbors = tmp_path / "neighbors.csv"

    build = runner.invoke(
        app,
        ["-r", str(reference_file), "-t", "vp", "-l", "2", "-M", str(model_path)],
    )
    assert build.exit_code == 0, build.output
    assert load_model(model_path).tree_type == "vp"

    search = runner.invoke(
        app,
        ["-m", str(model_path), "-q", str(query_file), "-U", "5", "-n", str(neighbors)],
    )

    assert search.exit_code == 0, search.output
    assert read_neighbors(neighbors) == brute_force_pairs(
        SCENARIO_QUERIES, SCENARIO_REFERENCE, 0.0, 5.0
    )


def test_run_range_search_switches_loaded_model_strategy(
    tmp_path: Path, reference_file: Path, query_file: Path
) -> None:
    model_path = tmp_path / "model.json"
    run_range_search(RangeSearchCLIOptions(reference=reference_file, output_model=model_path))

    result = run_range_search(
        RangeSearchCLIOptions(
            input_model=model_path,
            query=query_file,
            naive=True,
            lower=1.0,
            upper=4.0,
            neighbors_file=tmp_path / "n.csv",
        )
    )

    assert result is not None
    assert result.to_lists()[0] == brute_force_pairs(SCENARIO_QUERIES, SCENARIO_REFERENCE, 1.0, 4.0)


@pytest.mark.parametrize(
    "overrides, message",
    [
        ({}, "Exactly one of --reference or --input-model"),
        ({"reference": True, "input_model": True}, "Exactly one of --reference or --input-model"),
        ({"input_model": True}, "--input-model requires --query"),
        ({"reference": True, "naive": True, "single_mode": True}, "mutually exclusive"),
        ({"reference": True, "leaf_size": 0}, "--leaf-size must be >= 1"),
        ({"reference": True, "metric": "cosine"}, "Unknown metric"),
        ({"reference": True, "neighbors_file": True}, "require --max"),
    ],
)
def test_run_range_search_validates_options(
    tmp_path: Path, reference_file: Path, overrides, message: str
) -> None:
    paths = {
        "reference": reference_file,
        "input_model": tmp_path / "model.json",
        "neighbors_file": tmp_path / "neighbors.csv",
    }
    values = {
        key: paths[key] if value is True and key in paths else value
        for key, value in overrides.items()
    }

    with pytest.raises(ConfigurationError, match=message):
        run_range_search(RangeSearchCLIOptions(**values))


def test_cli_surfaces_configuration_errors(reference_file: Path) -> None:
    runner = CliRunner()

    result = runner.invoke(app, ["-r", str(reference_file), "-N", "-S", "-U", "1"])

    assert result.exit_code != 0
    assert isinstance(result.exception, ConfigurationError)


def test_cli_rejects_unknown_tree_type(reference_file: Path) -> None:
    runner = CliRunner()

    result = runner.invoke(app, ["-r", str(reference_file), "-t", "quad", "-U", "1"])

    assert result.exit_code == 2


def test_invalid_range_is_rejected_before_building(tmp_path: Path, reference_file: Path) -> None:
    model_path = tmp_path / "model.json"

    with pytest.raises(InvalidRangeError):
        run_range_search(
            RangeSearchCLIOptions(
                reference=reference_file, lower=2.0, upper=1.0, output_model=model_path
            )
        )

    assert not model_path.exists()


def test_warns_when_no_output_requested(reference_file: Path, caplog) -> None:
    with caplog.at_level("WARNING", logger="rangetreex"):
        result = run_range_search(RangeSearchCLIOptions(reference=reference_file, upper=1.0))

    assert result is not None
    assert "No output requested" in caplog.text


def test_warns_about_build_options_ignored_for_loaded_models(
    tmp_path: Path, reference_file: Path, query_file: Path, caplog
) -> None:
    model_path = tmp_path / "model.json"
    run_range_search(RangeSearchCLIOptions(reference=reference_file, output_model=model_path))

    with caplog.at_level("WARNING", logger="rangetreex"):
        run_range_search(
            RangeSearchCLIOptions(
                input_model=model_path,
                query=query_file,
                leaf_size=4,
                seed=3,
                random_basis=True,
                upper=1.0,
            )
        )

    for flag in ("--leaf-size", "--seed", "--random-basis"):
        assert f"{flag} is ignored when --input-model is given." in caplog.text
    assert "--tree-type is ignored" not in caplog.text


def test_options_from_namespace() -> None:
    class Namespace:
        upper = 2.5
        naive = True
        unrelated = "x"

    options = RangeSearchCLIOptions.from_namespace(Namespace())

    assert options.upper == 2.5
    assert options.naive is True
    assert options.lower == 0.0
