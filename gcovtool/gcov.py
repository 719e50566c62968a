#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
A pure-Python library for parsing and writing gcov graph (.gcno) and counter
(.gcda) files.

The graph file describes every instrumented function of a compilation unit:
its basic blocks, the arcs between them and the source lines each block
covers. The counter file carries the arc execution counters collected at
runtime and is positionally aligned with the graph file. Both files share the
same framing: a magic word, a version word, a stamp checksum and a stream of
tagged, length-prefixed records.

Supported format versions are the ones emitted by LLVM and GCC 4.x
(`*204`, `*704`, `*804`), in either byte order.

References:
 - gcov-io.h from GCC
 - llvm/ProfileData/GCOV.h

Example Usage:
    # Reading a graph and its counters
    try:
        graph = gcov.read_gcno("main.gcno")
        gcov.read_gcda(graph, "main.gcda")
        print(f"Read {len(graph.functions)} functions.")
    except gcov.GcovError as e:
        print(f"Error reading file: {e}")

    # Creating a graph
    builder = gcov.builder()
    builder.set_checksum(0x1234)
    builder.add_function("main", "main.c", line=3)
    builder.add_blocks(3)
    builder.add_arc(0, 1).add_arc(1, 2)
    builder.add_lines(1, [3, 4, 5])
    builder.set_arc_counts([1, 1])
    graph = builder.build()

    # Writing both files
    gcov.write_gcno(graph, "main.gcno")
    gcov.write_gcda(graph, "main.gcda")
"""

import dataclasses
import os
import struct
from pathlib import Path
from typing import BinaryIO, Dict, Iterable, List, Optional, Tuple, Union

# --- Constants ---
GCNO_MAGIC = b"gcno"
GCDA_MAGIC = b"gcda"
SUPPORTED_VERSIONS = (402, 407, 408)
DEFAULT_VERSION = 407

TAG_FUNCTION = 0x01000000
TAG_BLOCKS = 0x01410000
TAG_ARCS = 0x01430000
TAG_LINES = 0x01450000
TAG_COUNTER_ARCS = 0x01A10000
TAG_OBJECT_SUMMARY = 0xA1000000
TAG_PROGRAM_SUMMARY = 0xA3000000

_WORD_SIZE = 4
_COUNTER_SIZE = 8
_LITTLE_ENDIAN = "<"
_BIG_ENDIAN = ">"

# the cfg checksum word is absent from 4.2 function records
_VERSION_WITHOUT_CFG_CHECKSUM = 402

# --- Errors ---


class GcovError(Exception):
    """Base exception for gcov parsing or writing errors."""

    pass


class BadMagic(GcovError):
    """The buffer does not start with the expected file magic."""

    pass


class UnsupportedVersion(GcovError):
    """The version word is unreadable or not a supported format version."""

    pass


class TruncatedInput(GcovError):
    """A read ran past the end of the buffer or of a record body."""

    pass


class MalformedGraph(GcovError):
    """A graph record references an entity that does not exist yet."""

    pass


class CounterGraphMismatch(GcovError):
    """Counter data disagrees with the shape of the parsed graph."""

    pass


# --- Data Model ---


@dataclasses.dataclass
class SourceFile:
    """A source file referenced by functions or block lines."""

    id: int
    name: str


@dataclasses.dataclass
class Edge:
    """A directed arc between two blocks of the same function."""

    id: int
    source: int  # block id
    destination: int  # block id
    flags: int = 0
    count: int = 0


@dataclasses.dataclass
class Block:
    """A basic block, exclusively owned by one function."""

    id: int  # index in CoverageGraph.blocks
    function_id: int
    number: int  # index within the owning function
    flags: int = 0
    lines: List[Tuple[int, int]] = dataclasses.field(default_factory=list)
    out_edges: List[int] = dataclasses.field(default_factory=list)
    in_edges: List[int] = dataclasses.field(default_factory=list)
    count: int = 0

    def add_line(self, file_id: int, line: int) -> None:
        """Associates the block with a (file, line) pair, ignoring repeats."""
        key = (file_id, line)
        if key not in self.lines:
            self.lines.append(key)

    @property
    def last_line(self) -> Optional[Tuple[int, int]]:
        """The (file, line) pair the block terminates on."""
        return self.lines[-1] if self.lines else None


@dataclasses.dataclass
class Function:
    """An instrumented function and the blocks and arcs it owns."""

    id: int  # index in CoverageGraph.functions
    identifier: int
    name: str
    file_id: int
    line: int
    line_checksum: int = 0
    cfg_checksum: Optional[int] = None
    blocks: List[int] = dataclasses.field(default_factory=list)
    edges: List[int] = dataclasses.field(default_factory=list)


@dataclasses.dataclass
class CoverageGraph:
    """Control-flow graph of one compilation unit plus its counters."""

    version: int = DEFAULT_VERSION
    checksum: int = 0
    files: List[SourceFile] = dataclasses.field(default_factory=list)
    functions: List[Function] = dataclasses.field(default_factory=list)
    blocks: List[Block] = dataclasses.field(default_factory=list)
    edges: List[Edge] = dataclasses.field(default_factory=list)
    run_count: int = 0
    has_counters: bool = False
    _file_ids: Dict[str, int] = dataclasses.field(
        default_factory=dict, repr=False, compare=False
    )

    def add_file(self, name: str) -> SourceFile:
        """Returns the source file with this name, creating it if needed."""
        file_id = self._file_ids.get(name)
        if file_id is None:
            file_id = len(self.files)
            self.files.append(SourceFile(file_id, name))
            self._file_ids[name] = file_id
        return self.files[file_id]

    def find_file(self, name: str) -> Optional[SourceFile]:
        """Finds a source file by name."""
        file_id = self._file_ids.get(name)
        return None if file_id is None else self.files[file_id]

    def add_function(
        self,
        name: str,
        filename: str,
        line: int,
        identifier: Optional[int] = None,
        line_checksum: int = 0,
        cfg_checksum: Optional[int] = None,
    ) -> Function:
        """Adds a new function; the identifier defaults to its position."""
        function_id = len(self.functions)
        function = Function(
            id=function_id,
            identifier=function_id if identifier is None else identifier,
            name=name,
            file_id=self.add_file(filename).id,
            line=line,
            line_checksum=line_checksum,
            cfg_checksum=cfg_checksum,
        )
        self.functions.append(function)
        return function

    def add_blocks(self, function: Function, flags: Iterable[int]) -> List[Block]:
        """Appends one block per flags word, numbered after the existing ones."""
        added = []
        for block_flags in flags:
            block = Block(
                id=len(self.blocks),
                function_id=function.id,
                number=len(function.blocks),
                flags=block_flags,
            )
            self.blocks.append(block)
            function.blocks.append(block.id)
            added.append(block)
        return added

    def get_block(self, function: Function, number: int) -> Block:
        """Resolves a per-function block number."""
        if not 0 <= number < len(function.blocks):
            raise MalformedGraph(
                f"Unexpected block number: {number} (in {function.name}, "
                f"{len(function.blocks)} blocks)"
            )
        return self.blocks[function.blocks[number]]

    def add_edge(
        self, function: Function, source: int, destination: int, flags: int = 0
    ) -> Edge:
        """Adds an arc between two blocks of the function, by block number."""
        src = self.get_block(function, source)
        dst = self.get_block(function, destination)
        edge = Edge(id=len(self.edges), source=src.id, destination=dst.id, flags=flags)
        self.edges.append(edge)
        function.edges.append(edge.id)
        src.out_edges.append(edge.id)
        dst.in_edges.append(edge.id)
        return edge

    def add_line(
        self, function: Function, number: int, filename: str, line: int
    ) -> None:
        """Associates a block of the function with a source line."""
        block = self.get_block(function, number)
        block.add_line(self.add_file(filename).id, line)

    def assign_arc_counts(self, function: Function, counts: List[int]) -> None:
        """
        Sets the arc counters of a function, in structural declaration order.
        A block's count is the sum of its outgoing arcs, or of its incoming
        arcs when it has no successor.
        """
        if len(counts) != len(function.edges):
            raise CounterGraphMismatch(
                f"Unexpected number of edges (in {function.name}): "
                f"{len(counts)} counters for {len(function.edges)} arcs"
            )

        for block_id in function.blocks:
            self.blocks[block_id].count = 0

        for edge_id, count in zip(function.edges, counts):
            edge = self.edges[edge_id]
            edge.count = count
            self.blocks[edge.source].count += count
            destination = self.blocks[edge.destination]
            if not destination.out_edges:
                destination.count += count

        self.has_counters = True

    def entry_count(self, function: Function) -> int:
        """Returns the count of the function's first block."""
        if not function.blocks:
            return 0
        return self.blocks[function.blocks[0]].count

    def function_blocks(self, function: Function) -> List[Block]:
        return [self.blocks[i] for i in function.blocks]

    def function_edges(self, function: Function) -> List[Edge]:
        return [self.edges[i] for i in function.edges]

    def out_edges(self, block: Block) -> List[Edge]:
        return [self.edges[i] for i in block.out_edges]

    def file_name(self, file_id: int) -> str:
        return self.files[file_id].name

    def validate(self) -> None:
        """
        Validates the ownership invariants of the graph.
        Raises MalformedGraph on failure.
        """
        for function in self.functions:
            if not 0 <= function.file_id < len(self.files):
                raise MalformedGraph(
                    f"Function {function.name} references invalid file id: {function.file_id}"
                )
            for block_id in function.blocks:
                if self.blocks[block_id].function_id != function.id:
                    raise MalformedGraph(
                        f"Block {block_id} is listed by {function.name} but owned elsewhere"
                    )
            for edge_id in function.edges:
                edge = self.edges[edge_id]
                for block_id in (edge.source, edge.destination):
                    if self.blocks[block_id].function_id != function.id:
                        raise MalformedGraph(
                            f"Arc {edge_id} of {function.name} leaves its function"
                        )

        for block in self.blocks:
            for file_id, _ in block.lines:
                if not 0 <= file_id < len(self.files):
                    raise MalformedGraph(
                        f"Block {block.id} references invalid file id: {file_id}"
                    )


class GraphBuilder:
    """Builder pattern for fluently creating CoverageGraph objects."""

    def __init__(self):
        self._graph = CoverageGraph()
        self._function: Optional[Function] = None

    def _current(self) -> Function:
        if self._function is None:
            raise ValueError("add_function() must be called first.")
        return self._function

    def set_version(self, version: int) -> "GraphBuilder":
        """Sets the gcov format version (402, 407 or 408)."""
        if version not in SUPPORTED_VERSIONS:
            raise ValueError(f"Unsupported gcov version: {version}")
        self._graph.version = version
        return self

    def set_checksum(self, checksum: int) -> "GraphBuilder":
        """Sets the stamp shared by the graph and counter files."""
        self._graph.checksum = checksum
        return self

    def add_function(
        self,
        name: str,
        filename: str,
        line: int,
        identifier: Optional[int] = None,
        line_checksum: int = 0,
    ) -> "GraphBuilder":
        """Adds a function; following calls apply to it."""
        self._function = self._graph.add_function(
            name, filename, line, identifier, line_checksum
        )
        return self

    def add_blocks(self, count: int, flags: int = 0) -> "GraphBuilder":
        """Adds blocks to the current function."""
        self._graph.add_blocks(self._current(), [flags] * count)
        return self

    def add_arc(self, source: int, destination: int, flags: int = 0) -> "GraphBuilder":
        """Adds an arc between two block numbers of the current function."""
        self._graph.add_edge(self._current(), source, destination, flags)
        return self

    def add_lines(
        self, block: int, lines: List[int], filename: Optional[str] = None
    ) -> "GraphBuilder":
        """Associates lines with a block, in the function's file by default."""
        function = self._current()
        if filename is None:
            filename = self._graph.file_name(function.file_id)
        for line in lines:
            self._graph.add_line(function, block, filename, line)
        return self

    def set_arc_counts(self, counts: List[int]) -> "GraphBuilder":
        """Sets the arc counters of the current function."""
        self._graph.assign_arc_counts(self._current(), list(counts))
        return self

    def set_run_count(self, runs: int) -> "GraphBuilder":
        self._graph.run_count = runs
        return self

    def graph(self) -> CoverageGraph:
        """Returns the internal graph object."""
        return self._graph

    def build(self) -> CoverageGraph:
        """Validates and returns the final CoverageGraph object."""
        self._graph.validate()
        return self._graph


# --- Reader Implementation ---


class GcovReader:
    """
    Cursor over an immutable gcov buffer.
    Word reads honour the byte order detected from the file magic.
    """

    def __init__(self, buffer: bytes, stem: str = "<buffer>", endian: str = _LITTLE_ENDIAN):
        self.buffer = bytes(buffer)
        self.stem = stem
        self.endian = endian
        self.pos = 0

    def remaining(self) -> int:
        return len(self.buffer) - self.pos

    def at_end(self) -> bool:
        return self.pos >= len(self.buffer)

    def _take(self, size: int, what: str) -> bytes:
        start = self.pos
        end = start + size
        if end > len(self.buffer):
            raise TruncatedInput(
                f"Not enough data in buffer: cannot read {what} at offset {start} in {self.stem}"
            )
        self.pos = end
        return self.buffer[start:end]

    def read_u32(self) -> int:
        return struct.unpack(self.endian + "I", self._take(_WORD_SIZE, "integer"))[0]

    def read_u64(self) -> int:
        """Reads a 64-bit counter stored as low word then high word."""
        lo = self.read_u32()
        hi = self.read_u32()
        return hi << 32 | lo

    def read_string(self) -> str:
        """Reads a word-count prefixed, NUL padded string."""
        words = self.read_u32()
        raw = self._take(words * _WORD_SIZE, "string")
        return raw.rstrip(b"\0").decode("utf-8", errors="replace")

    def skip_words(self, count: int) -> None:
        self._take(count * _WORD_SIZE, f"{count} words")

    def read_magic(self, magic: bytes) -> None:
        """Checks the file magic and selects the byte order."""
        raw = self._take(_WORD_SIZE, "magic")
        if raw == magic[::-1]:
            self.endian = _LITTLE_ENDIAN
        elif raw == magic:
            self.endian = _BIG_ENDIAN
        else:
            raise BadMagic(
                f"Unexpected file type: {raw!r} in {self.stem} (expected {magic.decode()})"
            )

    def read_version(self) -> int:
        """Decodes a version word such as `*704` into 407."""
        raw = self._take(_WORD_SIZE, "version")
        if self.endian == _BIG_ENDIAN:
            raw = raw[::-1]
        digits = raw[3:0:-1]
        if raw[:1] != b"*" or not digits.isdigit():
            raise UnsupportedVersion(f"Unexpected version: {raw!r} in {self.stem}")
        version = int(digits)
        if version not in SUPPORTED_VERSIONS:
            raise UnsupportedVersion(
                f"Unsupported gcov version: {version} in {self.stem}"
            )
        return version

    def record(self, words: int) -> "GcovReader":
        """Consumes a record body and returns a reader bounded to it."""
        body = self._take(words * _WORD_SIZE, f"record of {words} words")
        return GcovReader(body, self.stem, self.endian)


# --- Parser Implementation ---


class _Parser:
    @staticmethod
    def parse_gcno(buffer: bytes, stem: str = "<gcno>") -> CoverageGraph:
        reader = GcovReader(buffer, stem)
        reader.read_magic(GCNO_MAGIC)
        version = reader.read_version()
        graph = CoverageGraph(version=version, checksum=reader.read_u32())

        function = None
        while not reader.at_end():
            tag = reader.read_u32()
            if tag == 0:
                break
            body = reader.record(reader.read_u32())

            if tag == TAG_FUNCTION:
                function = _Parser._read_function(graph, body)
                continue
            if tag not in (TAG_BLOCKS, TAG_ARCS, TAG_LINES):
                # unknown records are skipped whole
                continue
            if function is None:
                raise MalformedGraph(
                    f"Record 0x{tag:08x} before any function in {stem}"
                )

            if tag == TAG_BLOCKS:
                _Parser._read_blocks(graph, function, body)
            elif tag == TAG_ARCS:
                _Parser._read_arcs(graph, function, body)
            else:
                _Parser._read_lines(graph, function, body)

        return graph

    @staticmethod
    def _read_function(graph: CoverageGraph, body: GcovReader) -> Function:
        identifier = body.read_u32()
        line_checksum = body.read_u32()
        cfg_checksum = None
        if graph.version != _VERSION_WITHOUT_CFG_CHECKSUM:
            cfg_checksum = body.read_u32()
            if cfg_checksum != graph.checksum:
                raise MalformedGraph(
                    f"File checksums do not match: {graph.checksum} != {cfg_checksum} "
                    f"(in function {identifier}) in {body.stem}"
                )

        name = body.read_string()
        filename = body.read_string()
        line = body.read_u32()
        return graph.add_function(
            name, filename, line, identifier, line_checksum, cfg_checksum
        )

    @staticmethod
    def _read_blocks(graph: CoverageGraph, function: Function, body: GcovReader):
        count = body.remaining() // _WORD_SIZE
        graph.add_blocks(function, [body.read_u32() for _ in range(count)])

    @staticmethod
    def _read_arcs(graph: CoverageGraph, function: Function, body: GcovReader):
        if not function.blocks:
            raise MalformedGraph(
                f"Arcs before blocks (in {function.name}) in {body.stem}"
            )
        source = body.read_u32()
        while not body.at_end():
            destination = body.read_u32()
            flags = body.read_u32()
            graph.add_edge(function, source, destination, flags)

    @staticmethod
    def _read_lines(graph: CoverageGraph, function: Function, body: GcovReader):
        number = body.read_u32()
        graph.get_block(function, number)

        filename = graph.file_name(function.file_id)
        while not body.at_end():
            line = body.read_u32()
            if line == 0:
                name = body.read_string()
                if not name:
                    break
                filename = name
                continue
            graph.add_line(function, number, filename, line)

    @staticmethod
    def parse_gcda(graph: CoverageGraph, buffer: bytes, stem: str = "<gcda>") -> None:
        reader = GcovReader(buffer, stem)
        reader.read_magic(GCDA_MAGIC)
        version = reader.read_version()
        if version != graph.version:
            raise CounterGraphMismatch(
                f"GCOV versions do not match: {graph.version} != {version} in {stem}"
            )
        checksum = reader.read_u32()
        if checksum != graph.checksum:
            raise CounterGraphMismatch(
                f"File checksums do not match: {graph.checksum} != {checksum} in {stem}"
            )

        position = 0
        function = None
        counted = False
        while not reader.at_end():
            tag = reader.read_u32()
            if tag == 0:
                break
            body = reader.record(reader.read_u32())

            if tag == TAG_FUNCTION:
                _Parser._check_uncounted(function, counted, stem)
                if position >= len(graph.functions):
                    raise CounterGraphMismatch(
                        f"Unexpected number of functions in {stem}: "
                        f"graph has {len(graph.functions)}"
                    )
                function = graph.functions[position]
                position += 1
                counted = False
                _Parser._check_function(graph, function, body)
            elif tag == TAG_COUNTER_ARCS:
                if function is None:
                    raise MalformedGraph(f"Arc counters before any function in {stem}")
                if counted:
                    raise MalformedGraph(
                        f"Duplicate arc counters (in {function.name}) in {stem}"
                    )
                if body.remaining() % _COUNTER_SIZE:
                    raise TruncatedInput(
                        f"Partial arc counter (in {function.name}) in {stem}"
                    )
                counts = [body.read_u64() for _ in range(body.remaining() // _COUNTER_SIZE)]
                graph.assign_arc_counts(function, counts)
                counted = True
            elif tag == TAG_OBJECT_SUMMARY:
                # checksum and counter number precede the run count
                body.skip_words(2)
                graph.run_count += body.read_u32()

        _Parser._check_uncounted(function, counted, stem)
        if position != len(graph.functions):
            raise CounterGraphMismatch(
                f"Unexpected number of functions in {stem}: "
                f"{position} != {len(graph.functions)}"
            )
        graph.has_counters = True

    @staticmethod
    def _check_uncounted(function: Optional[Function], counted: bool, stem: str):
        if function is not None and function.edges and not counted:
            raise CounterGraphMismatch(
                f"Arc counters not found (in {function.name}) in {stem}"
            )

    @staticmethod
    def _check_function(graph: CoverageGraph, function: Function, body: GcovReader):
        identifier = body.read_u32()
        if identifier != function.identifier:
            raise CounterGraphMismatch(
                f"Function identifiers do not match: {function.identifier} != {identifier} "
                f"(in {function.name}) in {body.stem}"
            )
        line_checksum = body.read_u32()
        if line_checksum != function.line_checksum:
            raise CounterGraphMismatch(
                f"Line checksums do not match: {function.line_checksum} != {line_checksum} "
                f"(in {function.name}) in {body.stem}"
            )
        if graph.version != _VERSION_WITHOUT_CFG_CHECKSUM:
            cfg_checksum = body.read_u32()
            if cfg_checksum != graph.checksum:
                raise CounterGraphMismatch(
                    f"File checksums do not match: {graph.checksum} != {cfg_checksum} "
                    f"(in {function.name}) in {body.stem}"
                )
        if not body.at_end():
            name = body.read_string()
            if name != function.name:
                raise CounterGraphMismatch(
                    f"Function names do not match: {function.name} != {name} in {body.stem}"
                )


# --- Writer Implementation ---


class _Writer:
    def __init__(self, big_endian: bool = False):
        self.endian = _BIG_ENDIAN if big_endian else _LITTLE_ENDIAN
        self.out = bytearray()

    def _words(self, words: Iterable[int]) -> bytes:
        words = list(words)
        return struct.pack(f"{self.endian}{len(words)}I", *words)

    def _string(self, value: str) -> bytes:
        if not value:
            return self._words([0])
        raw = value.encode("utf-8")
        words = len(raw) // _WORD_SIZE + 1
        return self._words([words]) + raw.ljust(words * _WORD_SIZE, b"\0")

    def _counter(self, value: int) -> bytes:
        return self._words([value & 0xFFFFFFFF, value >> 32])

    def _header(self, magic: bytes, graph: CoverageGraph):
        version = b"*" + str(graph.version).encode()[::-1]
        if self.endian == _LITTLE_ENDIAN:
            self.out += magic[::-1] + version
        else:
            self.out += magic + version[::-1]
        self.out += self._words([graph.checksum])

    def _record(self, tag: int, body: bytes):
        self.out += self._words([tag, len(body) // _WORD_SIZE]) + body

    def _function_header(self, graph: CoverageGraph, function: Function) -> bytes:
        body = self._words([function.identifier, function.line_checksum])
        if graph.version != _VERSION_WITHOUT_CFG_CHECKSUM:
            body += self._words([graph.checksum])
        return body

    def write_gcno(self, graph: CoverageGraph) -> bytes:
        self._header(GCNO_MAGIC, graph)

        for function in graph.functions:
            body = self._function_header(graph, function)
            body += self._string(function.name)
            body += self._string(graph.file_name(function.file_id))
            body += self._words([function.line])
            self._record(TAG_FUNCTION, body)

            blocks = graph.function_blocks(function)
            self._record(TAG_BLOCKS, self._words(b.flags for b in blocks))

            # one arcs record per run of same-source arcs keeps declaration order
            edges = graph.function_edges(function)
            start = 0
            while start < len(edges):
                end = start
                while end < len(edges) and edges[end].source == edges[start].source:
                    end += 1
                words = [graph.blocks[edges[start].source].number]
                for edge in edges[start:end]:
                    words += [graph.blocks[edge.destination].number, edge.flags]
                self._record(TAG_ARCS, self._words(words))
                start = end

            for block in blocks:
                if block.lines:
                    self._record(TAG_LINES, self._line_table(graph, block))

        self.out += self._words([0, 0])
        return bytes(self.out)

    def _line_table(self, graph: CoverageGraph, block: Block) -> bytes:
        body = self._words([block.number])
        current = None
        for file_id, line in block.lines:
            if file_id != current:
                body += self._words([0]) + self._string(graph.file_name(file_id))
                current = file_id
            body += self._words([line])
        return body + self._words([0]) + self._string("")

    def write_gcda(self, graph: CoverageGraph) -> bytes:
        self._header(GCDA_MAGIC, graph)

        for function in graph.functions:
            body = self._function_header(graph, function) + self._string(function.name)
            self._record(TAG_FUNCTION, body)
            counters = b"".join(
                self._counter(edge.count) for edge in graph.function_edges(function)
            )
            self._record(TAG_COUNTER_ARCS, counters)

        total = sum(edge.count for edge in graph.edges)
        highest = max((edge.count for edge in graph.edges), default=0)
        summary = self._words([0, len(graph.edges), graph.run_count])
        summary += self._counter(total) + self._counter(highest) + self._counter(highest)
        self._record(TAG_OBJECT_SUMMARY, summary)

        self.out += self._words([0, 0])
        return bytes(self.out)


# --- Public API Functions ---

PathOrBuffer = Union[str, Path, bytes, bytearray]


def _load_buffer(source: PathOrBuffer) -> Tuple[bytes, str]:
    if isinstance(source, (bytes, bytearray)):
        return bytes(source), "<buffer>"
    with open(source, "rb") as f:
        return f.read(), str(source)


def read_gcno(source: PathOrBuffer, stem: Optional[str] = None) -> CoverageGraph:
    """
    Reads and parses a .gcno graph file from a path or a byte buffer.

    Args:
        source: Path to the .gcno file or its contents.
        stem: Name used in error messages; defaults to the path.

    Returns:
        A CoverageGraph with all counters at zero.

    Raises:
        GcovError: If parsing fails.
        FileNotFoundError: If the file path does not exist.
    """
    buffer, name = _load_buffer(source)
    return _Parser.parse_gcno(buffer, stem or name)


def read_gcda(
    graph: CoverageGraph, source: Optional[PathOrBuffer], stem: Optional[str] = None
) -> CoverageGraph:
    """
    Merges a .gcda counter file into a graph read from the matching .gcno.

    A None source or an empty buffer means the program never ran: the graph
    is returned unchanged with all counters at zero.

    Raises:
        GcovError: If parsing fails or the counters do not fit the graph.
    """
    if source is None:
        return graph
    buffer, name = _load_buffer(source)
    if buffer:
        _Parser.parse_gcda(graph, buffer, stem or name)
    return graph


def load(stem: Union[str, Path]) -> CoverageGraph:
    """Reads `<stem>.gcno` and, when it exists, `<stem>.gcda`."""
    stem = str(stem)
    graph = read_gcno(stem + ".gcno")
    gcda_path = stem + ".gcda"
    if os.path.exists(gcda_path):
        read_gcda(graph, gcda_path)
    return graph


def _write(data: bytes, filepath_or_stream: Union[str, Path, BinaryIO]):
    if isinstance(filepath_or_stream, (str, Path)):
        with open(filepath_or_stream, "wb") as f:
            f.write(data)
    else:
        filepath_or_stream.write(data)


def gcno_bytes(graph: CoverageGraph, big_endian: bool = False) -> bytes:
    """Serializes the structure of a graph in .gcno format."""
    graph.validate()
    return _Writer(big_endian).write_gcno(graph)


def gcda_bytes(graph: CoverageGraph, big_endian: bool = False) -> bytes:
    """Serializes the arc counters and run count of a graph in .gcda format."""
    graph.validate()
    return _Writer(big_endian).write_gcda(graph)


def write_gcno(
    graph: CoverageGraph,
    filepath_or_stream: Union[str, Path, BinaryIO],
    big_endian: bool = False,
):
    """Writes the graph structure to a .gcno file or binary stream."""
    _write(gcno_bytes(graph, big_endian), filepath_or_stream)


def write_gcda(
    graph: CoverageGraph,
    filepath_or_stream: Union[str, Path, BinaryIO],
    big_endian: bool = False,
):
    """Writes the graph counters to a .gcda file or binary stream."""
    _write(gcda_bytes(graph, big_endian), filepath_or_stream)


def builder() -> GraphBuilder:
    """Returns a new GraphBuilder instance for creating CoverageGraph objects."""
    return GraphBuilder()
