from __future__ import annotations

import argparse
import logging
import shlex
import sys
from collections import deque
from pathlib import Path
from typing import Callable, Deque, Dict, Iterable, List, Optional, Set

from .byteio import ByteSink, BytesSource, from_text
from .executor import ExecutionState, Executor, StepLimitExceeded
from .translator import BracketMismatch, Program, translate

logger = logging.getLogger(__name__)


class VisualizerSession:
    """Single-step a program while keeping recent snapshots and breakpoints.

    Breakpoints are operation positions: advancing stops as soon as the
    program counter lands on one, before that operation runs.
    """

    def __init__(
        self,
        code: str,
        input_bytes: Iterable[int] = b"",
        *,
        tape_window: int = 10,
        max_steps: Optional[int] = None,
        history_limit: int = 200,
    ) -> None:
        self.code = code
        self.program: Program = translate(code)
        self.input_bytes = bytes(input_bytes)
        self.tape_window = tape_window
        self.max_steps = max_steps
        self.breakpoints: Set[int] = set()
        self.history: Deque[ExecutionState] = deque(maxlen=history_limit)
        self.restart()

    def restart(self) -> None:
        self.sink = ByteSink()
        executor = Executor(BytesSource(self.input_bytes), self.sink)
        self._states = executor.step(self.program, max_steps=self.max_steps, tape_window=self.tape_window)
        self.finished = False
        self.hit_breakpoint: Optional[int] = None
        self.history.clear()
        self.history.append(
            ExecutionState(
                step=0,
                pc=0,
                operation=None,
                pointer=0,
                tape_start=0,
                tape=[0] * min(executor.tape_length, self.tape_window + 1),
                code_length=len(self.program),
            )
        )

    @property
    def state(self) -> ExecutionState:
        return self.history[-1]

    @property
    def operations(self) -> str:
        return self.program.to_code()

    @property
    def output(self) -> bytes:
        return self.sink.getvalue()

    def advance(self, count: Optional[int] = 1) -> List[ExecutionState]:
        """Execute up to ``count`` operations (all of them when None)."""
        self.hit_breakpoint = None
        taken: List[ExecutionState] = []
        while not self.finished and (count is None or len(taken) < count):
            try:
                snapshot = next(self._states)
            except StepLimitExceeded:
                self.finished = True
                raise
            self.history.append(snapshot)
            taken.append(snapshot)
            if snapshot.operation is None:
                self.finished = True
            elif snapshot.pc in self.breakpoints:
                self.hit_breakpoint = snapshot.pc
                break
        return taken

    def set_breakpoint(self, pc: int) -> None:
        if not 0 <= pc < len(self.program):
            raise ValueError(f"No operation at position {pc}")
        self.breakpoints.add(pc)

    def clear_breakpoint(self, pc: int) -> bool:
        if pc not in self.breakpoints:
            return False
        self.breakpoints.discard(pc)
        return True


def render_state(state: ExecutionState, operations: str, output: bytes = b"") -> str:
    if state.operation is None:
        label = "end" if state.step else "start"
    else:
        label = f"{state.operation.symbol} {state.operation.name.lower()}"
    cells = " ".join(
        f"<{value:02x}>" if state.tape_start + offset == state.pointer else f"{value:02x}"
        for offset, value in enumerate(state.tape)
    )
    lines = [
        f"#{state.step} pc {state.pc}/{state.code_length} ({label}) cursor {state.pointer}",
        f"tape @{state.tape_start}: {cells}",
    ]
    lines.extend(_code_lines(operations, state.pc))
    if output:
        lines.append(f"out {output!r}")
    return "\n".join(lines)


def _code_lines(operations: str, pc: int, width: int = 32) -> List[str]:
    # two lines: a slice of the code and a caret under the next operation
    start = max(0, min(pc - width // 2, len(operations) - width))
    visible = operations[start : start + width]
    return [f"code {visible}", "     " + " " * (pc - start) + "^"]


class Debugger:
    """Line-oriented command interpreter driving a VisualizerSession.

    Any unambiguous prefix of a command name is accepted; an empty line
    repeats the previous command.
    """

    def __init__(self, session: VisualizerSession, out=None) -> None:
        self.session = session
        self.out = out if out is not None else sys.stdout
        self.last_line = "step"
        self.commands: Dict[str, Callable[[List[str]], bool]] = {
            "step": self.do_step,
            "continue": self.do_continue,
            "break": self.do_break,
            "delete": self.do_delete,
            "info": self.do_info,
            "tape": self.do_tape,
            "restart": self.do_restart,
            "help": self.do_help,
            "quit": self.do_quit,
        }

    def _say(self, text: str) -> None:
        print(text, file=self.out)

    def _show(self) -> None:
        self._say(render_state(self.session.state, self.session.operations, self.session.output))

    def execute(self, line: str) -> bool:
        """Run one command line; returns False when the session should end."""
        try:
            words = shlex.split(line) or shlex.split(self.last_line)
        except ValueError as exc:
            self._say(f"error: {exc}")
            return True
        matches = [name for name in self.commands if name.startswith(words[0].lower())]
        if len(matches) != 1:
            self._say(f"unknown or ambiguous command: {words[0]!r} (try 'help')")
            return True
        self.last_line = line or self.last_line
        try:
            return self.commands[matches[0]](words[1:])
        except ValueError as exc:
            self._say(f"error: {exc}")
        except StepLimitExceeded as exc:
            self._say(f"stopped: {exc}")
        return True

    def do_step(self, args: List[str]) -> bool:
        self._report(self.session.advance(int(args[0]) if args else 1))
        return True

    def do_continue(self, args: List[str]) -> bool:
        self._report(self.session.advance(int(args[0]) if args else None))
        return True

    def _report(self, states: List[ExecutionState]) -> None:
        if not states:
            self._say("program has finished; 'restart' to run again")
            return
        self._show()
        if self.session.hit_breakpoint is not None:
            self._say(f"breakpoint at pc {self.session.hit_breakpoint}")

    def do_break(self, args: List[str]) -> bool:
        if not args:
            raise ValueError("break needs an operation position")
        pc = int(args[0])
        self.session.set_breakpoint(pc)
        self._say(f"breakpoint set at pc {pc}")
        return True

    def do_delete(self, args: List[str]) -> bool:
        if not args:
            self.session.breakpoints.clear()
            self._say("all breakpoints deleted")
        elif self.session.clear_breakpoint(int(args[0])):
            self._say(f"breakpoint at pc {args[0]} deleted")
        else:
            self._say(f"no breakpoint at pc {args[0]}")
        return True

    def do_info(self, args: List[str]) -> bool:
        self._show()
        points = sorted(self.session.breakpoints)
        self._say("breakpoints: " + (", ".join(map(str, points)) if points else "none"))
        return True

    def do_tape(self, args: List[str]) -> bool:
        state = self.session.state
        start = int(args[0]) if args else state.tape_start
        count = int(args[1]) if len(args) > 1 else len(state.tape)
        visible = range(state.tape_start, state.tape_start + len(state.tape))
        cells = []
        for index in range(start, start + count):
            cells.append(f"{index}:{state.tape[index - state.tape_start]}" if index in visible else f"{index}:?")
        self._say(" ".join(cells))
        return True

    def do_restart(self, args: List[str]) -> bool:
        self.session.restart()
        self._show()
        return True

    def do_help(self, args: List[str]) -> bool:
        self._say(
            "step [N]        run N operations (default 1)\n"
            "continue [N]    run until a breakpoint, the end, or N operations\n"
            "break PC        stop before the operation at PC\n"
            "delete [PC]     remove one breakpoint, or all of them\n"
            "info            show the current state and breakpoints\n"
            "tape [START [N]] dump cells in the visible window\n"
            "restart         start over with the same input\n"
            "quit            leave"
        )
        return True

    def do_quit(self, args: List[str]) -> bool:
        return False

    def repl(self, read: Callable[[str], str] = input) -> None:
        self._show()
        while True:
            try:
                line = read("(tapebf) ")
            except EOFError:
                self._say("")
                return
            if not self.execute(line.strip()):
                return


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Step through a tape-language program")
    parser.add_argument("source", help="Path to the program file")
    parser.add_argument("--input", default="", help="Text fed to ',' operations")
    parser.add_argument("--max-steps", type=int, default=5_000_000, help="Operation budget (default: 5,000,000)")
    parser.add_argument("--tape-window", type=int, default=10, help="Cells shown on each side of the cursor")
    parser.add_argument("--history-limit", type=int, default=200, help="Snapshots kept for inspection")
    args = parser.parse_args(argv)

    try:
        code = Path(args.source).read_text(encoding="utf-8")
        session = VisualizerSession(
            code,
            from_text(args.input),
            tape_window=args.tape_window,
            max_steps=args.max_steps,
            history_limit=args.history_limit,
        )
    except OSError as exc:
        print(f"cannot read {args.source}: {exc}", file=sys.stderr)
        return 1
    except (BracketMismatch, ValueError) as exc:
        print(f"cannot load program: {exc}", file=sys.stderr)
        return 2

    logger.debug("loaded %d operations from %s", len(session.program), args.source)
    Debugger(session).repl()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
