from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

import typer
from typing_extensions import Annotated

from rangetreex.algo.results import RangeSearchResult
from rangetreex.api import RangeSearch
from rangetreex.core.metrics import available_metrics
from rangetreex.errors import ConfigurationError
from rangetreex.io import load_points, write_distances, write_neighbors
from rangetreex.logging import get_logger
from rangetreex.queries.range import validate_range
from rangetreex.trees.registry import TreeType

from cli.runtime import runtime_from_args

LOGGER = get_logger("cli.range_search")


@dataclass
class RangeSearchCLIOptions:
    reference: Path | None = None
    query: Path | None = None
    input_model: Path | None = None
    output_model: Path | None = None
    lower: float = 0.0
    upper: float | None = None
    tree_type: TreeType | None = None
    leaf_size: int | None = None
    naive: bool = False
    single_mode: bool = False
    random_basis: bool = False
    seed: int | None = None
    metric: str | None = None
    neighbors_file: Path | None = None
    distances_file: Path | None = None
    enable_numba: bool | None = None
    diagnostics: bool | None = None
    log_level: str | None = None

    @classmethod
    def from_namespace(cls, namespace: Any) -> "RangeSearchCLIOptions":
        values = {}
        for field in cls.__dataclass_fields__:
            if hasattr(namespace, field):
                values[field] = getattr(namespace, field)
        return cls(**values)


app = typer.Typer(
    add_completion=False,
    pretty_exceptions_enable=False,
    rich_markup_mode="rich",
    context_settings={"help_option_names": ["-h", "--help"]},
    help=(
        "Build range-search models and report every reference point whose distance "
        "to a query lies between --min and --max."
    ),
)

_IO_PANEL = "Inputs & outputs"
_SEARCH_PANEL = "Search range"
_MODEL_PANEL = "Model construction"
_RUNTIME_PANEL = "Runtime controls"


@app.callback(invoke_without_command=True)
def cli(
    ctx: typer.Context,
    reference: Annotated[
        Optional[Path],
        typer.Option(
            "--reference",
            "-r",
            help="Reference points (.npy, .csv or .txt; one point per row).",
            rich_help_panel=_IO_PANEL,
        ),
    ] = None,
    query: Annotated[
        Optional[Path],
        typer.Option(
            "--query",
            "-q",
            help="Query points; omit to search the reference set against itself.",
            rich_help_panel=_IO_PANEL,
        ),
    ] = None,
    input_model: Annotated[
        Optional[Path],
        typer.Option(
            "--input-model",
            "-m",
            help="Previously saved model to search instead of building one.",
            rich_help_panel=_IO_PANEL,
        ),
    ] = None,
    output_model: Annotated[
        Optional[Path],
        typer.Option(
            "--output-model",
            "-M",
            help="Save the model to this path.",
            rich_help_panel=_IO_PANEL,
        ),
    ] = None,
    neighbors_file: Annotated[
        Optional[Path],
        typer.Option(
            "--neighbors-file",
            "-n",
            help="Write one line of neighbor indices per query.",
            rich_help_panel=_IO_PANEL,
        ),
    ] = None,
    distances_file: Annotated[
        Optional[Path],
        typer.Option(
            "--distances-file",
            "-d",
            help="Write one line of neighbor distances per query.",
            rich_help_panel=_IO_PANEL,
        ),
    ] = None,
    lower: Annotated[
        float,
        typer.Option(
            "--min",
            "-L",
            help="Lower bound of the search range (inclusive).",
            rich_help_panel=_SEARCH_PANEL,
        ),
    ] = 0.0,
    upper: Annotated[
        Optional[float],
        typer.Option(
            "--max",
            "-U",
            help="Upper bound of the search range (inclusive); required to search.",
            rich_help_panel=_SEARCH_PANEL,
        ),
    ] = None,
    tree_type: Annotated[
        Optional[TreeType],
        typer.Option(
            "--tree-type",
            "-t",
            case_sensitive=False,
            help="Spatial tree variant (default kd).",
            rich_help_panel=_MODEL_PANEL,
        ),
    ] = None,
    leaf_size: Annotated[
        Optional[int],
        typer.Option(
            "--leaf-size",
            "-l",
            help="Maximum points per leaf (default 20).",
            rich_help_panel=_MODEL_PANEL,
        ),
    ] = None,
    naive: Annotated[
        bool,
        typer.Option(
            "--naive",
            "-N",
            help="Brute-force search without a tree.",
            rich_help_panel=_MODEL_PANEL,
        ),
    ] = False,
    single_mode: Annotated[
        bool,
        typer.Option(
            "--single-mode",
            "-S",
            help="Single-tree traversal instead of dual-tree.",
            rich_help_panel=_MODEL_PANEL,
        ),
    ] = False,
    random_basis: Annotated[
        bool,
        typer.Option(
            "--random-basis",
            "-R",
            help="Rotate points into a random orthogonal basis before indexing.",
            rich_help_panel=_MODEL_PANEL,
        ),
    ] = False,
    seed: Annotated[
        Optional[int],
        typer.Option(
            "--seed",
            "-s",
            help="Seed for random projections and the random basis.",
            rich_help_panel=_MODEL_PANEL,
        ),
    ] = None,
    metric: Annotated[
        Optional[str],
        typer.Option(
            "--metric",
            help="Distance metric (euclidean, manhattan, chebyshev).",
            rich_help_panel=_MODEL_PANEL,
        ),
    ] = None,
    enable_numba: Annotated[
        Optional[bool],
        typer.Option(
            "--enable-numba/--disable-numba",
            help="Force-enable or disable Numba leaf kernels.",
            rich_help_panel=_RUNTIME_PANEL,
        ),
    ] = None,
    diagnostics: Annotated[
        Optional[bool],
        typer.Option(
            "--enable-diagnostics/--disable-diagnostics",
            help="Control resource polling in operation logs.",
            rich_help_panel=_RUNTIME_PANEL,
        ),
    ] = None,
    log_level: Annotated[
        Optional[str],
        typer.Option(
            "--log-level",
            help="Override runtime log level.",
            rich_help_panel=_RUNTIME_PANEL,
        ),
    ] = None,
) -> None:
    options = RangeSearchCLIOptions(
        reference=reference,
        query=query,
        input_model=input_model,
        output_model=output_model,
        lower=lower,
        upper=upper,
        tree_type=tree_type,
        leaf_size=leaf_size,
        naive=naive,
        single_mode=single_mode,
        random_basis=random_basis,
        seed=seed,
        metric=metric,
        neighbors_file=neighbors_file,
        distances_file=distances_file,
        enable_numba=enable_numba,
        diagnostics=diagnostics,
        log_level=log_level,
    )
    if ctx.invoked_subcommand is None:
        run_range_search(options)


def _validate_options(options: RangeSearchCLIOptions) -> None:
    if (options.reference is None) == (options.input_model is None):
        raise ConfigurationError("Exactly one of --reference or --input-model must be given.")
    if options.input_model is not None and options.query is None:
        raise ConfigurationError("--input-model requires --query.")
    if options.naive and options.single_mode:
        raise ConfigurationError("--naive and --single-mode are mutually exclusive.")
    if options.leaf_size is not None and options.leaf_size < 1:
        raise ConfigurationError(f"--leaf-size must be >= 1 (got {options.leaf_size}).")
    if options.metric is not None and options.metric.strip().lower() not in available_metrics():
        raise ConfigurationError(
            f"Unknown metric '{options.metric}'. Expected one of: {', '.join(available_metrics())}."
        )
    wants_results = options.neighbors_file is not None or options.distances_file is not None
    if wants_results and options.upper is None:
        raise ConfigurationError("--neighbors-file and --distances-file require --max.")
    if options.upper is not None:
        validate_range(options.lower, options.upper)


def _warn_ignored_build_options(options: RangeSearchCLIOptions) -> None:
    ignored = []
    if options.tree_type is not None:
        ignored.append("--tree-type")
    if options.leaf_size is not None:
        ignored.append("--leaf-size")
    if options.random_basis:
        ignored.append("--random-basis")
    if options.seed is not None:
        ignored.append("--seed")
    if options.metric is not None:
        ignored.append("--metric")
    for flag in ignored:
        LOGGER.warning("%s is ignored when --input-model is given.", flag)


def _load_engine(options: RangeSearchCLIOptions, runtime: Any) -> RangeSearch:
    if options.input_model is not None:
        _warn_ignored_build_options(options)
        engine = RangeSearch.load(options.input_model, runtime=runtime)
        if options.naive:
            engine = engine.with_strategy(naive=True)
        elif options.single_mode:
            engine = engine.with_strategy(single_tree=True)
        return engine
    reference = load_points(options.reference)
    return RangeSearch(runtime).fit(
        reference,
        tree_type=None if options.tree_type is None else options.tree_type.value,
        leaf_size=options.leaf_size,
        naive=options.naive,
        single_tree=options.single_mode,
        random_basis=options.random_basis,
        metric=options.metric,
        seed=options.seed,
    )


def run_range_search(options: RangeSearchCLIOptions) -> RangeSearchResult | None:
    """Validate ``options``, build or load a model, search and write the outputs.

    Returns the search result, or ``None`` when no ``--max`` was given.
    """

    _validate_options(options)
    runtime = runtime_from_args(options)
    runtime.activate()
    if (
        options.neighbors_file is None
        and options.distances_file is None
        and options.output_model is None
    ):
        LOGGER.warning("No output requested; results will not be saved anywhere.")

    engine = _load_engine(options, runtime)

    result = None
    if options.upper is not None:
        queries = None if options.query is None else load_points(options.query)
        result = engine.search(queries, lower=options.lower, upper=options.upper)
        if options.neighbors_file is not None:
            write_neighbors(result, options.neighbors_file)
        if options.distances_file is not None:
            write_distances(result, options.distances_file)

    if options.output_model is not None:
        engine.save(options.output_model)
    return result


def main() -> None:
    app()


__all__ = ["RangeSearchCLIOptions", "app", "main", "run_range_search"]
