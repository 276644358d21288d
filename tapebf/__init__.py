from .byteio import ByteSink, BytesSource, StreamReader, StreamWriter
from .executor import (
    ExecutionState,
    Executor,
    JumpTableError,
    OutputError,
    StepLimitExceeded,
    TAPE_LENGTH,
    execute,
)
from .translator import BracketMismatch, Operation, Program, translate
from .visualizer import VisualizerSession

__all__ = [
    "BracketMismatch",
    "ByteSink",
    "BytesSource",
    "ExecutionState",
    "Executor",
    "JumpTableError",
    "Operation",
    "OutputError",
    "Program",
    "StepLimitExceeded",
    "StreamReader",
    "StreamWriter",
    "TAPE_LENGTH",
    "VisualizerSession",
    "execute",
    "translate",
]
