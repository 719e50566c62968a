"""tests for the gcno/gcda library"""

import struct
import tempfile
from io import BytesIO
from pathlib import Path

import pytest

from gcovtool.gcov import (
    read_gcno, read_gcda, write_gcno, write_gcda, gcno_bytes, gcda_bytes,
    load, builder, GcovReader, CoverageGraph,
    GcovError, BadMagic, UnsupportedVersion, TruncatedInput,
    MalformedGraph, CounterGraphMismatch,
    TAG_FUNCTION, TAG_BLOCKS, TAG_ARCS, TAG_COUNTER_ARCS,
)


def words(*values):
    return struct.pack(f"<{len(values)}I", *values)


def string(value):
    raw = value.encode()
    count = len(raw) // 4 + 1
    return words(count) + raw.ljust(count * 4, b"\0")


def record(tag, body):
    return words(tag, len(body) // 4) + body


GCNO_HEADER = b"oncg*704" + words(0)
GCDA_HEADER = b"adcg*704" + words(0)


def function_record(name="f", filename="f.c", line=1):
    body = words(0, 0, 0) + string(name) + string(filename) + words(line)
    return record(TAG_FUNCTION, body)


def simple_graph(counts=(7, 7), checksum=0x1234, name="foo"):
    """entry, body and exit blocks with the body on lines 3-5"""
    b = builder()
    b.set_checksum(checksum)
    b.add_function(name, "foo.c", line=3)
    b.add_blocks(3)
    b.add_arc(0, 1).add_arc(1, 2)
    b.add_lines(1, [3, 4, 5])
    if counts is not None:
        b.set_arc_counts(list(counts))
    return b.build()


class TestGcovReader:
    """test the binary cursor"""

    def test_read_u32_little_endian(self):
        """test reading a little endian word"""
        reader = GcovReader(words(5, 0x01020304))
        assert reader.read_u32() == 5
        assert reader.read_u32() == 0x01020304
        assert reader.at_end()

    def test_read_u32_big_endian(self):
        """test reading a big endian word"""
        reader = GcovReader(struct.pack(">I", 0x01020304), endian=">")
        assert reader.read_u32() == 0x01020304

    def test_read_u64_low_word_first(self):
        """test that counters are stored low word then high word"""
        reader = GcovReader(words(1, 2))
        assert reader.read_u64() == (2 << 32) | 1

    def test_read_string(self):
        """test reading a NUL padded string"""
        reader = GcovReader(string("foo.c") + words(9))
        assert reader.read_string() == "foo.c"
        assert reader.read_u32() == 9

    def test_read_empty_string(self):
        """test that a zero word count is the empty string"""
        reader = GcovReader(words(0))
        assert reader.read_string() == ""
        assert reader.at_end()

    def test_truncated_word(self):
        """test reading past the end of the buffer"""
        reader = GcovReader(b"\x01\x02")
        with pytest.raises(TruncatedInput):
            reader.read_u32()

    def test_truncated_string(self):
        """test a string longer than the remaining data"""
        reader = GcovReader(words(4) + b"abcd")
        with pytest.raises(TruncatedInput):
            reader.read_string()

    def test_record_is_bounded(self):
        """test that a record sub-reader cannot read past its body"""
        reader = GcovReader(words(1, 2, 3))
        body = reader.record(1)
        assert body.read_u32() == 1
        with pytest.raises(TruncatedInput):
            body.read_u32()
        assert reader.read_u32() == 2

    def test_magic_selects_byte_order(self):
        """test byte order detection from the magic"""
        little = GcovReader(b"oncg")
        little.read_magic(b"gcno")
        assert little.endian == "<"

        big = GcovReader(b"gcno")
        big.read_magic(b"gcno")
        assert big.endian == ">"

    def test_version_decoding(self):
        """test decoding of the supported version words"""
        assert GcovReader(b"*204").read_version() == 402
        assert GcovReader(b"*704").read_version() == 407
        assert GcovReader(b"*804").read_version() == 408

        big = GcovReader(b"408*", endian=">")
        assert big.read_version() == 408


class TestGraphBuilder:
    """test building graphs in memory"""

    def test_build_simple_graph(self):
        """test the structure produced by the builder"""
        graph = simple_graph()

        assert len(graph.functions) == 1
        assert len(graph.blocks) == 3
        assert len(graph.edges) == 2
        assert graph.files[0].name == "foo.c"

        function = graph.functions[0]
        assert function.name == "foo"
        assert function.line == 3
        assert [graph.blocks[i].number for i in function.blocks] == [0, 1, 2]

    def test_block_lines_are_deduplicated(self):
        """test that repeated lines are recorded once"""
        b = builder()
        b.add_function("foo", "foo.c", line=1)
        b.add_blocks(1)
        b.add_lines(0, [3, 3, 4, 3])
        graph = b.build()

        assert graph.blocks[0].lines == [(0, 3), (0, 4)]
        assert graph.blocks[0].last_line == (0, 4)

    def test_lines_in_other_file(self):
        """test associating lines from an included file"""
        b = builder()
        b.add_function("foo", "foo.c", line=1)
        b.add_blocks(1)
        b.add_lines(0, [2]).add_lines(0, [20], filename="foo.h")
        graph = b.build()

        header = graph.find_file("foo.h")
        assert header is not None
        assert graph.blocks[0].lines == [(0, 2), (header.id, 20)]

    def test_edges_are_linked_both_ways(self):
        """test that arcs are registered on both endpoints"""
        graph = simple_graph()
        entry, body, exit_block = graph.blocks

        assert entry.out_edges == [0]
        assert body.in_edges == [0]
        assert body.out_edges == [1]
        assert exit_block.in_edges == [1]
        assert exit_block.out_edges == []

    def test_arc_counts_propagate_to_blocks(self):
        """test that block counts follow the arc counters"""
        graph = simple_graph(counts=(7, 7))

        assert [b.count for b in graph.blocks] == [7, 7, 7]
        assert graph.entry_count(graph.functions[0]) == 7
        assert graph.has_counters

    def test_successor_only_counted_without_outgoing_arcs(self):
        """test that a block with successors is not credited by its predecessors"""
        b = builder()
        b.add_function("diamond", "d.c", line=1)
        b.add_blocks(5)
        b.add_arc(0, 1).add_arc(1, 2).add_arc(1, 3).add_arc(2, 4).add_arc(3, 4)
        b.set_arc_counts([5, 3, 2, 3, 2])
        graph = b.build()

        counts = [block.count for block in graph.blocks]
        assert counts == [5, 5, 3, 2, 5]

    def test_wrong_number_of_counts(self):
        """test assigning the wrong number of arc counters"""
        b = builder()
        b.add_function("foo", "foo.c", line=1)
        b.add_blocks(2).add_arc(0, 1)
        with pytest.raises(CounterGraphMismatch):
            b.set_arc_counts([1, 2])

    def test_arc_to_unknown_block(self):
        """test that arcs must reference existing blocks"""
        b = builder()
        b.add_function("foo", "foo.c", line=1)
        b.add_blocks(2)
        with pytest.raises(MalformedGraph):
            b.add_arc(0, 5)

    def test_requires_function(self):
        """test using the builder before adding a function"""
        with pytest.raises(ValueError):
            builder().add_blocks(1)

    def test_unsupported_version(self):
        """test setting a version the format does not know"""
        with pytest.raises(ValueError):
            builder().set_version(999)

    def test_entry_count_without_blocks(self):
        """test the entry count of a function with no blocks"""
        graph = CoverageGraph()
        function = graph.add_function("empty", "e.c", 1)
        assert graph.entry_count(function) == 0


class TestGcnoFormat:
    """test reading and writing graph files"""

    def test_round_trip_structure(self):
        """test that a written graph reads back with the same structure"""
        original = simple_graph(counts=None)
        graph = read_gcno(gcno_bytes(original))

        assert graph.version == 407
        assert graph.checksum == 0x1234
        assert [f.name for f in graph.files] == ["foo.c"]
        assert graph.functions[0].name == "foo"
        assert graph.functions[0].line == 3
        assert graph.functions[0].cfg_checksum == 0x1234
        assert [b.lines for b in graph.blocks] == [[], [(0, 3), (0, 4), (0, 5)], []]
        assert [(e.source, e.destination) for e in graph.edges] == [(0, 1), (1, 2)]
        assert all(b.count == 0 for b in graph.blocks)
        assert not graph.has_counters

    def test_written_header(self):
        """test the header of a little endian graph file"""
        data = gcno_bytes(simple_graph(counts=None))
        assert data[:8] == b"oncg*704"
        assert struct.unpack("<I", data[8:12])[0] == 0x1234
        assert data[-8:] == words(0, 0)

    def test_big_endian_round_trip(self):
        """test that big endian files are read transparently"""
        original = simple_graph(counts=None)
        data = gcno_bytes(original, big_endian=True)
        assert data[:8] == b"gcno407*"

        graph = read_gcno(data)
        assert graph.checksum == 0x1234
        assert graph.functions[0].name == "foo"
        assert graph.blocks[1].lines == [(0, 3), (0, 4), (0, 5)]

    def test_version_402_has_no_cfg_checksum(self):
        """test the function record layout of format 4.2"""
        b = builder().set_version(402).set_checksum(99)
        b.add_function("foo", "foo.c", line=3)
        b.add_blocks(1).add_lines(0, [3])
        graph = read_gcno(gcno_bytes(b.build()))

        assert graph.version == 402
        assert graph.functions[0].cfg_checksum is None
        assert graph.blocks[0].lines == [(0, 3)]

    def test_filename_switch_in_line_table(self):
        """test that lines after a filename entry belong to that file"""
        b = builder()
        b.add_function("foo", "foo.c", line=1)
        b.add_blocks(1)
        b.add_lines(0, [2]).add_lines(0, [20, 21], filename="foo.h")
        graph = read_gcno(gcno_bytes(b.build()))

        header = graph.find_file("foo.h").id
        assert graph.blocks[0].lines == [(0, 2), (header, 20), (header, 21)]

    def test_arcs_keep_declaration_order(self):
        """test that interleaved arc sources survive a round trip"""
        b = builder()
        b.add_function("foo", "foo.c", line=1)
        b.add_blocks(3)
        b.add_arc(0, 1).add_arc(1, 2).add_arc(0, 2)
        graph = read_gcno(gcno_bytes(b.build()))

        pairs = [(e.source, e.destination) for e in graph.edges]
        assert pairs == [(0, 1), (1, 2), (0, 2)]

    def test_missing_terminator(self):
        """test that a file may end right after its last record"""
        data = gcno_bytes(simple_graph(counts=None))[:-8]
        graph = read_gcno(data)
        assert len(graph.blocks) == 3

    def test_unknown_record_is_skipped(self):
        """test that unknown tags are skipped whole"""
        data = gcno_bytes(simple_graph(counts=None))
        data = data[:12] + record(0x12345678, words(1, 2, 3)) + data[12:]

        graph = read_gcno(data)
        assert len(graph.functions) == 1
        assert len(graph.edges) == 2

    def test_bad_magic(self):
        """test reading a buffer that is not a graph file"""
        with pytest.raises(BadMagic):
            read_gcno(b"junk*704" + words(0))

    def test_counter_file_is_not_a_graph(self):
        """test reading a counter file as a graph file"""
        with pytest.raises(BadMagic):
            read_gcno(GCDA_HEADER)

    def test_unsupported_version(self):
        """test reading an unknown format version"""
        with pytest.raises(UnsupportedVersion):
            read_gcno(b"oncg*904" + words(0))

    def test_unreadable_version(self):
        """test reading a version word that is not digits"""
        with pytest.raises(UnsupportedVersion):
            read_gcno(b"oncg*A04" + words(0))

    def test_truncated_header(self):
        """test a buffer that ends inside the header"""
        with pytest.raises(TruncatedInput):
            read_gcno(b"oncg*7")

    def test_truncated_record(self):
        """test a record whose body runs past the end of the buffer"""
        data = gcno_bytes(simple_graph(counts=None))[:-12]
        with pytest.raises(TruncatedInput):
            read_gcno(data)

    def test_blocks_before_function(self):
        """test a blocks record with no function to own it"""
        data = GCNO_HEADER + record(TAG_BLOCKS, words(0))
        with pytest.raises(MalformedGraph):
            read_gcno(data)

    def test_arcs_before_blocks(self):
        """test an arcs record before the function has blocks"""
        data = GCNO_HEADER + function_record() + record(TAG_ARCS, words(0, 1, 0))
        with pytest.raises(MalformedGraph):
            read_gcno(data)

    def test_arc_to_unknown_block(self):
        """test an arcs record pointing past the last block"""
        data = (
            GCNO_HEADER
            + function_record()
            + record(TAG_BLOCKS, words(0, 0))
            + record(TAG_ARCS, words(0, 7, 0))
        )
        with pytest.raises(MalformedGraph):
            read_gcno(data)

    def test_function_checksum_mismatch(self):
        """test a function whose cfg checksum differs from the file stamp"""
        body = words(0, 0, 1) + string("f") + string("f.c") + words(1)
        data = GCNO_HEADER + record(TAG_FUNCTION, body)
        with pytest.raises(MalformedGraph):
            read_gcno(data)

    def test_errors_share_base_class(self):
        """test that every format error is a GcovError"""
        for error in (BadMagic, UnsupportedVersion, TruncatedInput,
                      MalformedGraph, CounterGraphMismatch):
            assert issubclass(error, GcovError)


class TestGcdaFormat:
    """test reading and writing counter files"""

    def test_round_trip_counters(self):
        """test that counters merge into a freshly read graph"""
        original = simple_graph(counts=(7, 7))
        graph = read_gcno(gcno_bytes(original))
        read_gcda(graph, gcda_bytes(original))

        assert graph.has_counters
        assert [e.count for e in graph.edges] == [7, 7]
        assert [b.count for b in graph.blocks] == [7, 7, 7]

    def test_big_endian_counters(self):
        """test counters written in big endian order"""
        original = simple_graph(counts=(4, 4))
        graph = read_gcno(gcno_bytes(original, big_endian=True))
        read_gcda(graph, gcda_bytes(original, big_endian=True))
        assert graph.entry_count(graph.functions[0]) == 4

    def test_large_counter(self):
        """test a counter that needs the high word"""
        big = (1 << 33) + 5
        original = simple_graph(counts=(big, big))
        graph = read_gcno(gcno_bytes(original))
        read_gcda(graph, gcda_bytes(original))
        assert graph.edges[0].count == big

    def test_run_count(self):
        """test the run count from the object summary"""
        b = builder().set_checksum(1)
        b.add_function("foo", "foo.c", line=1)
        b.add_blocks(2).add_arc(0, 1).set_arc_counts([2]).set_run_count(3)
        original = b.build()

        graph = read_gcno(gcno_bytes(original))
        read_gcda(graph, gcda_bytes(original))
        assert graph.run_count == 3

    def test_missing_counters(self):
        """test that no counter data leaves every count at zero"""
        graph = read_gcno(gcno_bytes(simple_graph(counts=None)))
        read_gcda(graph, None)
        read_gcda(graph, b"")

        assert not graph.has_counters
        assert all(b.count == 0 for b in graph.blocks)

    def test_function_without_arcs(self):
        """test a function with a single block and no arcs"""
        b = builder()
        b.add_function("leaf", "leaf.c", line=1)
        b.add_blocks(1).add_lines(0, [1])
        original = b.build()

        graph = read_gcno(gcno_bytes(original))
        read_gcda(graph, gcda_bytes(original))
        assert graph.has_counters
        assert graph.blocks[0].count == 0

    def test_checksum_mismatch(self):
        """test counters from another build of the same program"""
        graph = read_gcno(gcno_bytes(simple_graph(checksum=1, counts=None)))
        with pytest.raises(CounterGraphMismatch):
            read_gcda(graph, gcda_bytes(simple_graph(checksum=2)))

    def test_version_mismatch(self):
        """test counters written by another compiler version"""
        graph = read_gcno(gcno_bytes(simple_graph(counts=None)))
        other = simple_graph()
        other.version = 408
        with pytest.raises(CounterGraphMismatch):
            read_gcda(graph, gcda_bytes(other))

    def test_wrong_counter_count(self):
        """test a counter record that does not match the arcs"""
        graph = read_gcno(gcno_bytes(simple_graph(counts=None)))

        b = builder().set_checksum(0x1234)
        b.add_function("foo", "foo.c", line=3)
        b.add_blocks(2).add_arc(0, 1).set_arc_counts([1])
        with pytest.raises(CounterGraphMismatch):
            read_gcda(graph, gcda_bytes(b.build()))

    def test_name_mismatch(self):
        """test counters recorded for a differently named function"""
        graph = read_gcno(gcno_bytes(simple_graph(counts=None)))
        with pytest.raises(CounterGraphMismatch):
            read_gcda(graph, gcda_bytes(simple_graph(name="bar")))

    def test_extra_function(self):
        """test counters for more functions than the graph has"""
        graph = read_gcno(gcno_bytes(simple_graph(counts=None)))

        other = simple_graph()
        b_function = other.add_function("extra", "foo.c", 9)
        other.add_blocks(b_function, [0])
        with pytest.raises(CounterGraphMismatch):
            read_gcda(graph, gcda_bytes(other))

    def test_missing_function(self):
        """test counters for fewer functions than the graph has"""
        original = simple_graph(counts=None)
        extra = original.add_function("extra", "foo.c", 9)
        original.add_blocks(extra, [0])
        graph = read_gcno(gcno_bytes(original))

        with pytest.raises(CounterGraphMismatch):
            read_gcda(graph, gcda_bytes(simple_graph()))

    def test_function_without_counter_record(self):
        """test a function with arcs but no counters"""
        graph = read_gcno(gcno_bytes(simple_graph(counts=None, checksum=0)))
        data = GCDA_HEADER + record(TAG_FUNCTION, words(0, 0, 0))
        with pytest.raises(CounterGraphMismatch):
            read_gcda(graph, data)

    def test_counters_before_function(self):
        """test a counter record with no function header"""
        graph = read_gcno(gcno_bytes(simple_graph(counts=None, checksum=0)))
        data = GCDA_HEADER + record(TAG_COUNTER_ARCS, words(1, 0, 1, 0))
        with pytest.raises(MalformedGraph):
            read_gcda(graph, data)

    def test_duplicate_counters(self):
        """test two counter records for one function"""
        graph = read_gcno(gcno_bytes(simple_graph(counts=None, checksum=0)))
        counters = record(TAG_COUNTER_ARCS, words(1, 0, 1, 0))
        data = GCDA_HEADER + record(TAG_FUNCTION, words(0, 0, 0)) + counters + counters
        with pytest.raises(MalformedGraph):
            read_gcda(graph, data)

    def test_partial_counter(self):
        """test a counter record with half a counter"""
        graph = read_gcno(gcno_bytes(simple_graph(counts=None, checksum=0)))
        data = (
            GCDA_HEADER
            + record(TAG_FUNCTION, words(0, 0, 0))
            + record(TAG_COUNTER_ARCS, words(1, 0, 1))
        )
        with pytest.raises(TruncatedInput):
            read_gcda(graph, data)

    def test_graph_file_is_not_counters(self):
        """test reading a graph file as counters"""
        graph = read_gcno(gcno_bytes(simple_graph(counts=None)))
        with pytest.raises(BadMagic):
            read_gcda(graph, gcno_bytes(simple_graph(counts=None)))


class TestGcovFiles:
    """test file based reading and writing"""

    def test_write_and_load(self):
        """test writing both files and loading them by stem"""
        original = simple_graph(counts=(2, 2))

        with tempfile.TemporaryDirectory() as tmp:
            stem = str(Path(tmp) / "foo")
            write_gcno(original, stem + ".gcno")
            write_gcda(original, stem + ".gcda")

            graph = load(stem)
            assert graph.has_counters
            assert graph.entry_count(graph.functions[0]) == 2

    def test_load_without_counters(self):
        """test loading a stem with only a graph file"""
        with tempfile.TemporaryDirectory() as tmp:
            stem = Path(tmp) / "foo"
            write_gcno(simple_graph(counts=None), str(stem) + ".gcno")

            graph = load(stem)
            assert not graph.has_counters

    def test_write_to_stream(self):
        """test writing into a binary stream"""
        stream = BytesIO()
        write_gcno(simple_graph(counts=None), stream)
        assert read_gcno(stream.getvalue()).functions[0].name == "foo"

    def test_read_missing_file(self):
        """test reading a path that does not exist"""
        with pytest.raises(FileNotFoundError):
            read_gcno("/nonexistent/foo.gcno")
