"""line aggregation over a coverage graph and the engine entry points"""

import io
import os
from collections import defaultdict
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple, Union

from .gcov import CoverageGraph, read_gcda, read_gcno
from .output import CallbackSink, CovResult, EventSink, ResultSink, TextSink

GCNO_SUFFIX = ".gcno"
GCDA_SUFFIX = ".gcda"
OUTPUT_SUFFIX = ".gcov"


@dataclass
class LineData:
    """
    per-file projection of a graph, keyed by zero-based line index
    holds ids only, the graph keeps ownership
    """

    functions: Dict[int, List[int]] = field(default_factory=lambda: defaultdict(list))
    blocks: Dict[int, List[int]] = field(default_factory=lambda: defaultdict(list))
    last_line: int = 0

    def add_function(self, line: int, function_id: int):
        self.functions[line - 1].append(function_id)
        self.last_line = max(self.last_line, line)

    def add_block(self, line: int, block_id: int):
        self.blocks[line - 1].append(block_id)
        self.last_line = max(self.last_line, line)


def collect_line_data(graph: CoverageGraph) -> Dict[str, LineData]:
    """map every source file to the functions and blocks found on its lines"""
    line_data: Dict[str, LineData] = defaultdict(LineData)

    for function in graph.functions:
        # line 0 marks compiler generated functions
        if function.line:
            line_data[graph.file_name(function.file_id)].add_function(
                function.line, function.id
            )

    for block in graph.blocks:
        for file_id, line in block.lines:
            line_data[graph.file_name(file_id)].add_block(line, block.id)

    return dict(line_data)


def emit_coverage(
    graph: CoverageGraph, sink: EventSink, branch_enabled: bool = True
) -> None:
    """
    walk the graph once and report every file, function, line and branch fact
    to the sink, files in sorted name order and lines in ascending order
    """
    line_data = collect_line_data(graph)

    for filename in sorted(line_data):
        data = line_data[filename]
        file_id = graph.find_file(filename).id
        sink.on_file(filename)

        for index in range(data.last_line):
            line = index + 1

            for function_id in data.functions.get(index, ()):
                function = graph.functions[function_id]
                sink.on_function(line, graph.entry_count(function), function.name)

            block_ids = data.blocks.get(index)
            if not block_ids:
                continue

            sink.on_line_count(line, sum(graph.blocks[i].count for i in block_ids))

            if branch_enabled:
                _emit_branches(graph, sink, block_ids, file_id, line)


def _emit_branches(
    graph: CoverageGraph,
    sink: EventSink,
    block_ids: List[int],
    file_id: int,
    line: int,
):
    for block_id in block_ids:
        block = graph.blocks[block_id]
        if block.last_line != (file_id, line) or len(block.out_edges) < 2:
            continue

        edges = graph.out_edges(block)
        executed = sum(edge.count for edge in edges) > 0
        for edge in edges:
            sink.on_branch(line, edge.count > 0, executed)


def load_graph(
    gcno_buf: bytes, gcda_buf: Optional[bytes] = None, stem: str = "<buffer>"
) -> CoverageGraph:
    """parse a graph buffer then merge its counters, if any"""
    graph = read_gcno(gcno_buf, stem=stem + GCNO_SUFFIX)
    read_gcda(graph, gcda_buf, stem=stem + GCDA_SUFFIX)
    return graph


def process_buffers(
    gcno_buf: bytes,
    gcda_buf: Optional[bytes],
    sink: EventSink,
    branch_enabled: bool = False,
    stem: str = "<buffer>",
) -> CoverageGraph:
    """
    parse both buffers, then drive the sink
    parsing errors propagate before the sink sees a single call
    """
    graph = load_graph(gcno_buf, gcda_buf, stem)
    emit_coverage(graph, sink, branch_enabled)
    return graph


def compute(
    stem: str,
    gcno_buf: bytes,
    gcda_buf: Optional[bytes] = None,
    branch_enabled: bool = False,
) -> List[Tuple[str, CovResult]]:
    """collect per-file coverage results for one graph/counter pair"""
    sink = ResultSink()
    process_buffers(gcno_buf, gcda_buf, sink, branch_enabled, stem)
    return sink.results()


def intermediate_text(
    gcno_buf: bytes,
    gcda_buf: Optional[bytes] = None,
    branch_enabled: bool = False,
    stem: str = "<buffer>",
) -> str:
    """render one graph/counter pair as intermediate gcov text"""
    stream = io.StringIO()
    process_buffers(gcno_buf, gcda_buf, TextSink(stream), branch_enabled, stem)
    return stream.getvalue()


def strip_stem(path: Union[str, Path]) -> str:
    """accept `foo`, `foo.gcno` or `foo.gcda` and return `foo`"""
    path = str(path)
    for suffix in (GCNO_SUFFIX, GCDA_SUFFIX):
        if path.endswith(suffix):
            return path[: -len(suffix)]
    return path


def read_stem_buffers(file_stem: Union[str, Path]) -> Tuple[bytes, Optional[bytes]]:
    """read `<stem>.gcno` and `<stem>.gcda`; a missing counter file yields None"""
    stem = strip_stem(file_stem)
    with open(stem + GCNO_SUFFIX, "rb") as f:
        gcno_buf = f.read()
    try:
        with open(stem + GCDA_SUFFIX, "rb") as f:
            gcda_buf = f.read()
    except FileNotFoundError:
        gcda_buf = None
    return gcno_buf, gcda_buf


def output_path(working_dir: Union[str, Path], file_stem: Union[str, Path]) -> Path:
    """where the intermediate text for a stem is written"""
    name = os.path.basename(strip_stem(file_stem))
    return Path(working_dir) / (name + OUTPUT_SUFFIX)


def parse_llvm_gcno(
    working_dir: Union[str, Path],
    file_stem: Union[str, Path],
    branch_enabled: bool = False,
) -> Path:
    """
    process `<stem>.gcno` (+ `.gcda`) and write the intermediate text into
    the working directory; the output file is only created once both files
    parsed successfully
    """
    stem = strip_stem(file_stem)
    gcno_buf, gcda_buf = read_stem_buffers(stem)
    text = intermediate_text(gcno_buf, gcda_buf, branch_enabled, stem)

    path = output_path(working_dir, stem)
    with open(path, "w") as f:
        f.write(text)
    return path


def parse_llvm_gcno_buf(
    gcno_buf: bytes,
    gcda_buf: Optional[bytes],
    context,
    handle_file: Callable,
    handle_function: Callable,
    handle_lcount: Callable,
    handle_branch: Callable,
    branch_enabled: bool = False,
) -> None:
    """drive external handlers with the same facts as the text output"""
    sink = CallbackSink(
        context, handle_file, handle_function, handle_lcount, handle_branch
    )
    process_buffers(gcno_buf, gcda_buf, sink, branch_enabled)
