"""event sinks for coverage facts and the intermediate text format"""

from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional, TextIO, Tuple, Union

from .gcov import GcovError

BRANCH_TAKEN = "taken"
BRANCH_NOT_TAKEN = "nottaken"
BRANCH_NOT_EXECUTED = "notexec"


class InvalidRecord(GcovError):
    """a line of intermediate text that does not follow the grammar"""

    pass


def branch_kind(taken: bool, executed: bool) -> str:
    """classify a branch the way the intermediate format spells it"""
    if taken and executed:
        return BRANCH_TAKEN
    if executed:
        return BRANCH_NOT_TAKEN
    return BRANCH_NOT_EXECUTED


class EventSink:
    """
    receiver of coverage facts, called once per fact in emission order
    lines are always 1-based
    """

    def on_file(self, name: str):
        raise NotImplementedError

    def on_function(self, line: int, entry_count: int, name: str):
        raise NotImplementedError

    def on_line_count(self, line: int, count: int):
        raise NotImplementedError

    def on_branch(self, line: int, taken: bool, executed: bool):
        raise NotImplementedError


class TextSink(EventSink):
    """writes each fact as one line of intermediate text"""

    def __init__(self, stream: TextIO):
        self.stream = stream
        self.facts = 0

    def _write(self, text: str):
        self.stream.write(text + "\n")
        self.facts += 1

    def on_file(self, name: str):
        self._write(f"file:{name}")

    def on_function(self, line: int, entry_count: int, name: str):
        self._write(f"function:{line},{entry_count},{name}")

    def on_line_count(self, line: int, count: int):
        self._write(f"lcount:{line},{count}")

    def on_branch(self, line: int, taken: bool, executed: bool):
        self._write(f"branch:{line},{branch_kind(taken, executed)}")


class CallbackSink(EventSink):
    """forwards every fact unchanged to external handlers, with their context"""

    def __init__(
        self,
        context,
        handle_file: Callable,
        handle_function: Callable,
        handle_lcount: Callable,
        handle_branch: Callable,
    ):
        self.context = context
        self.handle_file = handle_file
        self.handle_function = handle_function
        self.handle_lcount = handle_lcount
        self.handle_branch = handle_branch

    def on_file(self, name: str):
        self.handle_file(self.context, name)

    def on_function(self, line: int, entry_count: int, name: str):
        self.handle_function(self.context, line, entry_count, name)

    def on_line_count(self, line: int, count: int):
        self.handle_lcount(self.context, line, count)

    def on_branch(self, line: int, taken: bool, executed: bool):
        self.handle_branch(self.context, line, taken, executed)


@dataclass
class FunctionResult:
    start: int
    executed: bool


@dataclass
class CovResult:
    """coverage of one source file"""

    lines: Dict[int, int] = field(default_factory=dict)
    branches: Dict[int, List[bool]] = field(default_factory=dict)
    functions: Dict[str, FunctionResult] = field(default_factory=dict)

    def add_line(self, line: int, count: int):
        self.lines[line] = self.lines.get(line, 0) + count

    def add_branch(self, line: int, taken: bool):
        self.branches.setdefault(line, []).append(taken)

    def to_dict(self) -> Dict:
        return {
            "lines": {str(k): v for k, v in sorted(self.lines.items())},
            "branches": {str(k): v for k, v in sorted(self.branches.items())},
            "functions": {
                name: {"start": f.start, "executed": f.executed}
                for name, f in self.functions.items()
            },
        }


class ResultSink(EventSink):
    """collects facts into one CovResult per file"""

    def __init__(self):
        self._results: List[Tuple[str, CovResult]] = []
        self._current: Optional[CovResult] = None

    def _result(self) -> CovResult:
        if self._current is None:
            raise GcovError("coverage fact received before any file")
        return self._current

    def on_file(self, name: str):
        self._current = CovResult()
        self._results.append((name, self._current))

    def on_function(self, line: int, entry_count: int, name: str):
        self._result().functions[name] = FunctionResult(line, entry_count > 0)

    def on_line_count(self, line: int, count: int):
        self._result().add_line(line, count)

    def on_branch(self, line: int, taken: bool, executed: bool):
        self._result().add_branch(line, taken and executed)

    def results(self) -> List[Tuple[str, CovResult]]:
        return list(self._results)


def _split(value: str, parts: int, line: str) -> List[str]:
    values = value.split(",", parts - 1)
    if len(values) != parts:
        raise InvalidRecord(f"Invalid record: {line!r}")
    return values


def _to_int(value: str, line: str) -> int:
    try:
        return int(value)
    except ValueError:
        raise InvalidRecord(f"Invalid number {value!r} in record: {line!r}")


def parse_intermediate(
    source: Union[str, Iterable[str]]
) -> List[Tuple[str, CovResult]]:
    """
    read intermediate text back into per-file results
    files without any lcount record are dropped, unknown keys are ignored
    """
    if isinstance(source, str):
        source = source.splitlines()

    results: List[Tuple[str, CovResult]] = []
    cur_file = None
    cur = CovResult()

    for raw in source:
        line = raw.rstrip("\r\n")
        if not line:
            continue
        key, sep, value = line.partition(":")
        if not sep:
            raise InvalidRecord(f"Invalid record: {line!r}")

        if key == "file":
            if cur_file is not None and cur.lines:
                results.append((cur_file, cur))
            cur_file = value
            cur = CovResult()
        elif key == "function":
            start, count, name = _split(value, 3, line)
            cur.functions[name] = FunctionResult(_to_int(start, line), count != "0")
        elif key == "lcount":
            line_no, count = _split(value, 2, line)
            # negative counts from some gcov versions mean "not executed"
            cur.lines[_to_int(line_no, line)] = (
                0 if count.startswith("-") else _to_int(count, line)
            )
        elif key == "branch":
            line_no, kind = _split(value, 2, line)
            cur.add_branch(_to_int(line_no, line), kind == BRANCH_TAKEN)

    if cur_file is not None and cur.lines:
        results.append((cur_file, cur))

    return results
