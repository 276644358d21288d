from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterator, List, Mapping, Optional

from .byteio import ByteReader, ByteWriter
from .translator import Operation, Program

logger = logging.getLogger(__name__)

TAPE_LENGTH = 30000
CELL_MODULUS = 256


class StepLimitExceeded(RuntimeError):
    """Raised when execution exceeds the configured step budget."""


class OutputError(RuntimeError):
    """Raised when the output collaborator cannot accept a byte."""


class JumpTableError(RuntimeError):
    """Raised when a bracket operation has no jump-table entry.

    A Program produced by translate() always carries a complete table, so this
    indicates a hand-built or corrupted Program rather than a user error.
    """


@dataclass(frozen=True)
class ExecutionState:
    step: int
    pc: int
    operation: Optional[Operation]
    pointer: int
    tape_start: int
    tape: List[int]
    code_length: int

    @property
    def command(self) -> Optional[str]:
        return self.operation.symbol if self.operation is not None else None


@dataclass
class Executor:
    reader: ByteReader
    writer: ByteWriter
    tape_length: int = TAPE_LENGTH

    tape: bytearray = field(init=False, repr=False)
    pointer: int = field(init=False, repr=False)

    def __post_init__(self) -> None:
        if self.tape_length <= 0:
            raise ValueError("tape_length must be positive")
        self.reset()

    def reset(self) -> None:
        self.tape = bytearray(self.tape_length)
        self.pointer = 0

    def run(self, program: Program, max_steps: Optional[int] = None) -> int:
        """Execute program to completion and return the number of steps taken."""
        steps = 0
        for state in self.step(program, max_steps=max_steps, tape_window=0):
            steps = state.step
        return steps

    def step(
        self,
        program: Program,
        max_steps: Optional[int] = None,
        tape_window: int = 10,
    ) -> Iterator[ExecutionState]:
        self.reset()
        operations = program.operations
        jumps = program.jumps
        code_length = len(operations)
        pc = 0
        steps = 0

        while pc < code_length:
            if max_steps is not None and steps >= max_steps:
                raise StepLimitExceeded("Program exceeded allowed step count")

            operation = operations[pc]
            pc = self._execute_operation(operation, pc, jumps)
            steps += 1
            yield self._snapshot(pc, operation, steps, code_length, tape_window)

        logger.debug("program finished after %d steps", steps)
        yield self._snapshot(pc, None, steps, code_length, tape_window)

    def _execute_operation(
        self,
        operation: Operation,
        pc: int,
        jumps: Mapping[int, int],
    ) -> int:
        if operation is Operation.MOVE_RIGHT:
            self.pointer = (self.pointer + 1) % self.tape_length
        elif operation is Operation.MOVE_LEFT:
            self.pointer = (self.pointer - 1) % self.tape_length
        elif operation is Operation.INCREMENT:
            self.tape[self.pointer] = (self.tape[self.pointer] + 1) % CELL_MODULUS
        elif operation is Operation.DECREMENT:
            self.tape[self.pointer] = (self.tape[self.pointer] - 1) % CELL_MODULUS
        elif operation is Operation.OUTPUT:
            self._write(self.tape[self.pointer])
        elif operation is Operation.INPUT:
            value = self._read()
            if value is not None:
                self.tape[self.pointer] = value
        elif operation is Operation.LOOP_OPEN:
            if self.tape[self.pointer] == 0:
                pc = self._jump_target(jumps, pc)
        elif operation is Operation.LOOP_CLOSE:
            if self.tape[self.pointer] != 0:
                pc = self._jump_target(jumps, pc)
        return pc + 1

    def _read(self) -> Optional[int]:
        # EOF and read failures both leave the current cell untouched
        try:
            value = self.reader.read_byte()
        except OSError as exc:
            logger.warning("input failed, cell %d left unchanged: %s", self.pointer, exc)
            return None
        if value is None:
            logger.debug("input exhausted, cell %d left unchanged", self.pointer)
        return value

    def _write(self, value: int) -> None:
        try:
            self.writer.write_byte(value)
        except (OSError, ValueError) as exc:
            raise OutputError(f"Unable to write byte {value}: {exc}") from exc

    @staticmethod
    def _jump_target(jumps: Mapping[int, int], pc: int) -> int:
        try:
            return jumps[pc]
        except KeyError as exc:
            raise JumpTableError(f"No jump-table entry for bracket at operation {pc}") from exc

    def _snapshot(
        self,
        pc: int,
        operation: Optional[Operation],
        step: int,
        code_length: int,
        tape_window: int,
    ) -> ExecutionState:
        start = max(0, self.pointer - tape_window)
        end = min(self.tape_length, self.pointer + tape_window + 1)
        return ExecutionState(
            step=step,
            pc=pc,
            operation=operation,
            pointer=self.pointer,
            tape_start=start,
            tape=list(self.tape[start:end]),
            code_length=code_length,
        )


def execute(
    program: Program,
    reader: ByteReader,
    writer: ByteWriter,
    tape_length: int = TAPE_LENGTH,
) -> int:
    return Executor(reader, writer, tape_length=tape_length).run(program)


__all__ = [
    "CELL_MODULUS",
    "ExecutionState",
    "Executor",
    "JumpTableError",
    "OutputError",
    "StepLimitExceeded",
    "TAPE_LENGTH",
    "execute",
]
