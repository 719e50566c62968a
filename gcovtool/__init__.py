"""gcovtool - reconstruct line and branch coverage from gcov graph and counter files"""

from .gcov import (
    read_gcno,
    read_gcda,
    write_gcno,
    write_gcda,
    load,
    builder,
    CoverageGraph,
    SourceFile,
    Function,
    Block,
    Edge,
    GcovReader,
    GraphBuilder,
    GcovError,
    BadMagic,
    UnsupportedVersion,
    TruncatedInput,
    MalformedGraph,
    CounterGraphMismatch,
)
from .core import (
    LineData,
    collect_line_data,
    emit_coverage,
    process_buffers,
    compute,
    parse_llvm_gcno,
    parse_llvm_gcno_buf,
)
from .output import (
    EventSink,
    TextSink,
    CallbackSink,
    ResultSink,
    CovResult,
    InvalidRecord,
    parse_intermediate,
)

__all__ = [
    "read_gcno",
    "read_gcda",
    "write_gcno",
    "write_gcda",
    "load",
    "builder",
    "CoverageGraph",
    "SourceFile",
    "Function",
    "Block",
    "Edge",
    "GcovReader",
    "GraphBuilder",
    "GcovError",
    "BadMagic",
    "UnsupportedVersion",
    "TruncatedInput",
    "MalformedGraph",
    "CounterGraphMismatch",
    "LineData",
    "collect_line_data",
    "emit_coverage",
    "process_buffers",
    "compute",
    "parse_llvm_gcno",
    "parse_llvm_gcno_buf",
    "EventSink",
    "TextSink",
    "CallbackSink",
    "ResultSink",
    "CovResult",
    "InvalidRecord",
    "parse_intermediate",
]
