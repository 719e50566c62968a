"""statistics and debug views of a parsed coverage graph"""

import json
from collections import defaultdict
from pathlib import Path
from typing import Any, Dict, List, Tuple

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.tree import Tree

from .core import collect_line_data, load_graph, read_stem_buffers, strip_stem
from .gcov import CoverageGraph

# Constants
DEFAULT_TOP_FILES = 10
DEFAULT_BAR_WIDTH = 20


def load_multiple_graphs(stems: List[Path]) -> List[Tuple[str, CoverageGraph]]:
    """load several graph/counter pairs, reporting the ones that fail"""
    results = []
    for stem in stems:
        try:
            name = strip_stem(stem)
            gcno_buf, gcda_buf = read_stem_buffers(name)
            results.append((name, load_graph(gcno_buf, gcda_buf, name)))
        except Exception as e:
            typer.echo(f"error loading {stem}: {e}", err=True)
    return results


def print_graph_stats(graph: CoverageGraph, name: str = ""):
    """display basic statistics about a graph"""
    if name:
        typer.echo(f"{name}:")

    typer.echo(f"  functions: {len(graph.functions)}")
    typer.echo(f"  blocks: {len(graph.blocks)}")
    typer.echo(f"  arcs: {len(graph.edges)}")
    typer.echo(f"  runs: {graph.run_count}")


def _generate_graph_data(graph: CoverageGraph, name: str) -> Dict[str, Any]:
    """generate a summary of the graph, per source file"""
    executed_functions = sum(
        1 for function in graph.functions if graph.entry_count(function) > 0
    )
    data = {
        "name": name,
        "summary": {
            "version": graph.version,
            "checksum": f"0x{graph.checksum:08x}",
            "has_counters": graph.has_counters,
            "runs": graph.run_count,
            "total_files": len(graph.files),
            "total_functions": len(graph.functions),
            "executed_functions": executed_functions,
            "total_blocks": len(graph.blocks),
            "total_arcs": len(graph.edges),
        },
        "files": [],
    }

    functions_by_file = defaultdict(list)
    for function in graph.functions:
        functions_by_file[graph.file_name(function.file_id)].append(function)

    for filename, line_data in sorted(collect_line_data(graph).items()):
        instrumented = [index for index, ids in line_data.blocks.items() if ids]
        executed = [
            index
            for index in instrumented
            if sum(graph.blocks[i].count for i in line_data.blocks[index]) > 0
        ]
        branch_points = {
            block_id
            for ids in line_data.blocks.values()
            for block_id in ids
            if len(graph.blocks[block_id].out_edges) > 1
        }
        branches = [
            edge for b in branch_points for edge in graph.out_edges(graph.blocks[b])
        ]
        percentage = len(executed) / len(instrumented) * 100 if instrumented else 0

        data["files"].append(
            {
                "name": filename,
                "functions": [
                    {
                        "name": f.name,
                        "line": f.line,
                        "blocks": len(f.blocks),
                        "arcs": len(f.edges),
                        "entry_count": graph.entry_count(f),
                    }
                    for f in functions_by_file.get(filename, [])
                ],
                "last_line": line_data.last_line,
                "instrumented_lines": len(instrumented),
                "executed_lines": len(executed),
                "line_coverage": round(percentage, 1),
                "branches": len(branches),
                "taken_branches": sum(1 for edge in branches if edge.count > 0),
            }
        )

    return data


def print_graph_info_rich(graph: CoverageGraph, name: str):
    """display a summary of a graph using Rich"""
    console = Console()
    data = _generate_graph_data(graph, name)

    title = f"[bold cyan]Coverage Graph Information[/bold cyan]\n[dim]{name}[/dim]"
    console.print(Panel(title, expand=False))
    console.print()

    summary = data["summary"]
    summary_table = Table(
        title="[bold]Summary Statistics[/bold]", show_header=False, box=None
    )
    summary_table.add_column("Metric", style="bold")
    summary_table.add_column("Value", style="cyan")
    summary_table.add_row("Format Version", str(summary["version"]))
    summary_table.add_row("Checksum", summary["checksum"])
    summary_table.add_row(
        "Counter Data", "Yes" if summary["has_counters"] else "No (never executed)"
    )
    summary_table.add_row("Runs", f"{summary['runs']:,}")
    summary_table.add_row("Source Files", f"{summary['total_files']:,}")
    summary_table.add_row(
        "Functions",
        f"{summary['total_functions']:,} ({summary['executed_functions']:,} executed)",
    )
    summary_table.add_row("Basic Blocks", f"{summary['total_blocks']:,}")
    summary_table.add_row("Arcs", f"{summary['total_arcs']:,}")
    console.print(summary_table)
    console.print()

    if data["files"]:
        files_table = Table(title="[bold]Source Files[/bold]")
        files_table.add_column("File", style="cyan", no_wrap=True)
        files_table.add_column("Functions", justify="right", style="yellow")
        files_table.add_column("Lines", justify="right", style="yellow")
        files_table.add_column("Executed", justify="right", style="green")
        files_table.add_column("Branches", justify="right", style="magenta")
        files_table.add_column("Bar", style="blue")

        for entry in data["files"][:DEFAULT_TOP_FILES]:
            bar = "█" * int(entry["line_coverage"] / 100 * DEFAULT_BAR_WIDTH)
            files_table.add_row(
                entry["name"],
                f"{len(entry['functions']):,}",
                f"{entry['instrumented_lines']:,}",
                f"{entry['executed_lines']:,} ({entry['line_coverage']:.1f}%)",
                f"{entry['taken_branches']}/{entry['branches']}",
                f"[blue]{bar}[/blue]",
            )

        console.print(files_table)
        console.print()

        tree = Tree("[bold]Functions[/bold]")
        for entry in data["files"]:
            if not entry["functions"]:
                continue
            branch = tree.add(f"[cyan]{entry['name']}[/cyan]")
            for f in entry["functions"]:
                branch.add(
                    f"{f['name']} @ {f['line']} "
                    f"(blocks={f['blocks']}, arcs={f['arcs']}, entry={f['entry_count']})"
                )
        console.print(tree)


def print_graph_info_json(graph: CoverageGraph, name: str):
    """output the graph summary as JSON"""
    data = _generate_graph_data(graph, name)
    print(json.dumps(data, indent=2))


def format_graph(graph: CoverageGraph) -> str:
    """textual dump of every function with its blocks, arcs and lines"""
    out = []
    for function in graph.functions:
        out.append(
            f"===== {function.name} ({function.identifier}) @ "
            f"{graph.file_name(function.file_id)}:{function.line}"
        )
        for block in graph.function_blocks(function):
            out.append(f"Block : {block.number} Counter : {block.count}")
            if block.in_edges:
                sources = [graph.edges[i] for i in block.in_edges]
                out.append(
                    "\tSource Edges : "
                    + ", ".join(
                        f"{graph.blocks[e.source].number} ({e.count})" for e in sources
                    )
                )
            if block.out_edges:
                out.append(
                    "\tDestination Edges : "
                    + ", ".join(
                        f"{graph.blocks[e.destination].number} ({e.count})"
                        for e in graph.out_edges(block)
                    )
                )
            if block.lines:
                out.append(
                    "\tLines : "
                    + ",".join(
                        str(line)
                        if file_id == function.file_id
                        else f"{graph.file_name(file_id)}:{line}"
                        for file_id, line in block.lines
                    )
                )
    return "\n".join(out) + ("\n" if out else "")
