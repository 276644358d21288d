from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Dict, List, Mapping, Tuple

logger = logging.getLogger(__name__)


class BracketMismatch(ValueError):
    """Raised when a program has an unmatched '[' or ']'."""

    def __init__(self, symbol: str, position: int) -> None:
        kind = "close" if symbol == "]" else "open"
        super().__init__(f"Unmatched {kind} bracket '{symbol}' at operation {position}")
        self.symbol = symbol
        self.position = position


class Operation(Enum):
    MOVE_RIGHT = ">"
    MOVE_LEFT = "<"
    INCREMENT = "+"
    DECREMENT = "-"
    OUTPUT = "."
    INPUT = ","
    LOOP_OPEN = "["
    LOOP_CLOSE = "]"

    @property
    def symbol(self) -> str:
        return self.value


_SYMBOLS: Dict[str, Operation] = {op.value: op for op in Operation}


@dataclass(frozen=True)
class Program:
    operations: Tuple[Operation, ...]
    jumps: Mapping[int, int]

    def __len__(self) -> int:
        return len(self.operations)

    def __hash__(self) -> int:
        return hash((self.operations, tuple(sorted(self.jumps.items()))))

    def to_code(self) -> str:
        return "".join(op.symbol for op in self.operations)


def tokenize(source: str) -> List[Operation]:
    # anything outside the eight symbols is a comment
    return [_SYMBOLS[ch] for ch in source if ch in _SYMBOLS]


def build_jump_table(operations: List[Operation]) -> Dict[int, int]:
    jumps: Dict[int, int] = {}
    stack: List[int] = []
    for index, op in enumerate(operations):
        if op is Operation.LOOP_OPEN:
            stack.append(index)
        elif op is Operation.LOOP_CLOSE:
            if not stack:
                raise BracketMismatch("]", index)
            start = stack.pop()
            jumps[start] = index
            jumps[index] = start
    if stack:
        raise BracketMismatch("[", stack.pop())
    return jumps


def translate(source: str) -> Program:
    """Translate program text into a Program.

    Raises BracketMismatch if the loop markers are not balanced; no partial
    Program is ever returned.
    """
    operations = tokenize(source)
    jumps = build_jump_table(operations)
    logger.debug(
        "translated %d characters into %d operations (%d loops)",
        len(source),
        len(operations),
        len(jumps) // 2,
    )
    return Program(operations=tuple(operations), jumps=MappingProxyType(jumps))


__all__ = [
    "BracketMismatch",
    "Operation",
    "Program",
    "build_jump_table",
    "tokenize",
    "translate",
]
