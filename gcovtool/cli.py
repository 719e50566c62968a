"""command line interface for gcovtool"""

import json
from typing import List
from pathlib import Path

import typer

from .analysis import (
    format_graph,
    load_multiple_graphs,
    print_graph_info_json,
    print_graph_info_rich,
    print_graph_stats,
)
from .core import (
    intermediate_text,
    load_graph,
    parse_llvm_gcno,
    read_stem_buffers,
    strip_stem,
)
from .gcov import GcovError
from .output import parse_intermediate


app = typer.Typer(
    help="gcov graph and counter file processing",
    no_args_is_help=True,
    context_settings=dict(help_option_names=["-h", "--help"]),
    pretty_exceptions_short=True,
    pretty_exceptions_show_locals=False,
    add_completion=False,
)

# global state for verbose option
verbose_enabled = False


@app.callback()
def main_callback(
    verbose: bool = typer.Option(
        False, "-v", "--verbose", help="enable verbose output for all operations"
    ),
):
    """global options for gcovtool"""
    global verbose_enabled
    verbose_enabled = verbose


def _load(stem: Path):
    name = strip_stem(stem)
    gcno_buf, gcda_buf = read_stem_buffers(name)
    if verbose_enabled and gcda_buf is None:
        typer.echo(f"no counter file for {name}, reporting zero execution", err=True)
    return name, gcno_buf, gcda_buf


@app.command()
def gcov(
    stems: List[Path] = typer.Argument(
        ..., help="graph files or stems (foo, foo.gcno)"
    ),
    working_dir: Path = typer.Option(
        Path("."), "--working-dir", "-w", help="directory receiving the .gcov files"
    ),
    branch: bool = typer.Option(
        False, "--branch", "-b", help="include branch facts"
    ),
    stdout: bool = typer.Option(
        False, "--stdout", help="print the intermediate text instead of writing files"
    ),
):
    """produce intermediate gcov text for graph/counter pairs"""
    failures = 0
    for stem in stems:
        try:
            if stdout:
                name, gcno_buf, gcda_buf = _load(stem)
                typer.echo(
                    intermediate_text(gcno_buf, gcda_buf, branch, name), nl=False
                )
                continue

            path = parse_llvm_gcno(working_dir, stem, branch)
            typer.echo(f"wrote {path}")
        except (GcovError, OSError) as e:
            failures += 1
            typer.echo(f"error processing {stem}: {e}", err=True)
            if verbose_enabled:
                import traceback

                traceback.print_exc()

    if failures == len(stems):
        raise typer.Exit(1)


@app.command()
def info(
    stem: Path = typer.Argument(..., help="graph file or stem to analyze"),
    json_output: bool = typer.Option(
        False, "--json", help="output information as JSON"
    ),
):
    """display a summary of a graph and its counters"""
    try:
        name, gcno_buf, gcda_buf = _load(stem)
        graph = load_graph(gcno_buf, gcda_buf, name)

        if json_output:
            print_graph_info_json(graph, name)
        else:
            print_graph_info_rich(graph, name)
    except (GcovError, OSError) as e:
        typer.echo(f"error analyzing {stem}: {e}", err=True)
        raise typer.Exit(1)


@app.command()
def stats(
    stems: List[Path] = typer.Argument(..., help="graph files or stems to analyze"),
):
    """display basic statistics for several graphs"""
    graphs = load_multiple_graphs(stems)
    if not graphs:
        typer.echo("no valid graph files loaded", err=True)
        raise typer.Exit(1)

    for name, graph in graphs:
        print_graph_stats(graph, name)
        typer.echo()


@app.command()
def dump(
    stem: Path = typer.Argument(..., help="graph file or stem to dump"),
):
    """print every function with its blocks, arcs and lines"""
    try:
        name, gcno_buf, gcda_buf = _load(stem)
        typer.echo(format_graph(load_graph(gcno_buf, gcda_buf, name)), nl=False)
    except (GcovError, OSError) as e:
        typer.echo(f"error loading {stem}: {e}", err=True)
        raise typer.Exit(1)


@app.command()
def parse(
    file: Path = typer.Argument(..., help="intermediate .gcov file"),
    json_output: bool = typer.Option(
        False, "--json", help="output results as JSON"
    ),
):
    """read intermediate gcov text back into per-file results"""
    try:
        with open(file, "r") as f:
            results = parse_intermediate(f)
    except (GcovError, OSError) as e:
        typer.echo(f"error parsing {file}: {e}", err=True)
        raise typer.Exit(1)

    if json_output:
        typer.echo(json.dumps({name: r.to_dict() for name, r in results}, indent=2))
        return

    for name, result in results:
        executed = sum(1 for count in result.lines.values() if count > 0)
        typer.echo(f"{name}:")
        typer.echo(f"  lines: {executed}/{len(result.lines)} executed")
        typer.echo(f"  functions: {len(result.functions)}")
        if result.branches:
            taken = sum(sum(v) for v in result.branches.values())
            total = sum(len(v) for v in result.branches.values())
            typer.echo(f"  branches: {taken}/{total} taken")


def main():
    """entry point for console script"""
    app()


if __name__ == "__main__":
    main()
