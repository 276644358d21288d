import io
import unittest
from types import MappingProxyType

from tapebf import (
    ByteSink,
    BytesSource,
    Executor,
    JumpTableError,
    Operation,
    OutputError,
    Program,
    StepLimitExceeded,
    StreamReader,
    StreamWriter,
    TAPE_LENGTH,
    execute,
    translate,
)


def run_source(source: str, data: bytes = b"") -> tuple[Executor, bytes]:
    sink = ByteSink()
    executor = Executor(BytesSource(data), sink)
    executor.run(translate(source))
    return executor, sink.getvalue()


class FailingWriter:
    def write_byte(self, value: int) -> None:
        raise OSError("sink closed")


class FailingReader:
    def read_byte(self):
        raise OSError("device unavailable")


class EndToEndTests(unittest.TestCase):
    def test_copies_input_byte(self) -> None:
        _, output = run_source(",.", b"A")
        self.assertEqual(output, bytes([65]))

    def test_increment_and_output(self) -> None:
        _, output = run_source("+.")
        self.assertEqual(output, b"\x01")

    def test_single_pass_loop_terminates(self) -> None:
        executor, output = run_source("+[-]")
        self.assertEqual(output, b"")
        self.assertEqual(executor.tape[0], 0)

    def test_clear_loop_after_eight(self) -> None:
        sink = ByteSink()
        executor = Executor(BytesSource(), sink)
        steps = executor.run(translate("++++++++[-]"))
        self.assertEqual(executor.tape[0], 0)
        # 8 increments, 1 open, 8 x (decrement + close)
        self.assertEqual(steps, 8 + 1 + 16)

    def test_hello_world(self) -> None:
        source = (
            "++++++++[>++++[>++>+++>+++>+<<<<-]>+>+>->>+[<]<-]>>."
            ">---.+++++++..+++.>>.<-.<.+++.------.--------.>>+.>++."
        )
        _, output = run_source(source)
        self.assertEqual(output, b"Hello World!\n")

    def test_skips_loop_on_zero_cell(self) -> None:
        _, output = run_source("[.+.]+.")
        self.assertEqual(output, b"\x01")

    def test_nested_multiplication(self) -> None:
        executor, _ = run_source("+++[>++++[>+<-]<-]")
        self.assertEqual(executor.tape[2], 12)
        self.assertEqual(executor.pointer, 0)

    def test_comments_are_ignored(self) -> None:
        _, output = run_source("increment + then print .")
        self.assertEqual(output, b"\x01")

    def test_execute_helper(self) -> None:
        sink = ByteSink()
        steps = execute(translate("++."), BytesSource(), sink)
        self.assertEqual(steps, 3)
        self.assertEqual(sink.getvalue(), b"\x02")


class WraparoundTests(unittest.TestCase):
    def test_tape_has_default_length(self) -> None:
        executor = Executor(BytesSource(), ByteSink())
        self.assertEqual(len(executor.tape), TAPE_LENGTH)
        self.assertEqual(TAPE_LENGTH, 30000)

    def test_cursor_wraps_left_from_zero(self) -> None:
        executor, _ = run_source("<")
        self.assertEqual(executor.pointer, TAPE_LENGTH - 1)

    def test_cursor_wraps_right_from_last(self) -> None:
        executor, _ = run_source("<>")
        self.assertEqual(executor.pointer, 0)

    def test_cursor_wraps_on_small_tape(self) -> None:
        sink = ByteSink()
        executor = Executor(BytesSource(), sink, tape_length=3)
        executor.run(translate(">>>+<+."))
        self.assertEqual(executor.pointer, 2)
        self.assertEqual(list(executor.tape), [1, 0, 1])
        self.assertEqual(sink.getvalue(), b"\x01")

    def test_cell_wraps_down_from_zero(self) -> None:
        _, output = run_source("-.")
        self.assertEqual(output, b"\xff")

    def test_cell_wraps_up_from_max(self) -> None:
        executor, output = run_source("-+.")
        self.assertEqual(output, b"\x00")
        self.assertEqual(executor.tape[0], 0)

    def test_input_255_then_increment(self) -> None:
        _, output = run_source(",+.", b"\xff")
        self.assertEqual(output, b"\x00")

    def test_rejects_non_positive_tape(self) -> None:
        with self.assertRaises(ValueError):
            Executor(BytesSource(), ByteSink(), tape_length=0)


class InputPolicyTests(unittest.TestCase):
    def test_eof_leaves_cell_unchanged(self) -> None:
        _, output = run_source("+++++,.")
        self.assertEqual(output, b"\x05")

    def test_eof_after_consuming_input(self) -> None:
        _, output = run_source(",.,.", b"Z")
        self.assertEqual(output, b"ZZ")

    def test_read_failure_leaves_cell_unchanged(self) -> None:
        sink = ByteSink()
        executor = Executor(FailingReader(), sink)
        with self.assertLogs("tapebf.executor", level="WARNING"):
            executor.run(translate("++,."))
        self.assertEqual(sink.getvalue(), b"\x02")


class FatalConditionTests(unittest.TestCase):
    def test_output_failure_aborts(self) -> None:
        executor = Executor(BytesSource(), FailingWriter())
        with self.assertRaises(OutputError) as ctx:
            executor.run(translate("+.+"))
        self.assertIsInstance(ctx.exception.__cause__, OSError)
        # the trailing increment never ran
        self.assertEqual(executor.tape[0], 1)

    def test_closed_stream_is_fatal(self) -> None:
        stream = io.BytesIO()
        stream.close()
        executor = Executor(BytesSource(), StreamWriter(stream))
        with self.assertRaises(OutputError):
            executor.run(translate("."))

    def test_missing_jump_entry_is_an_invariant_violation(self) -> None:
        broken = Program(
            operations=(Operation.LOOP_OPEN, Operation.LOOP_CLOSE),
            jumps=MappingProxyType({}),
        )
        executor = Executor(BytesSource(), ByteSink())
        with self.assertRaises(JumpTableError):
            executor.run(broken)

    def test_step_budget_is_opt_in(self) -> None:
        executor = Executor(BytesSource(), ByteSink())
        with self.assertRaises(StepLimitExceeded):
            executor.run(translate("+[]"), max_steps=10)


class SteppingTests(unittest.TestCase):
    def test_one_snapshot_per_operation_plus_final(self) -> None:
        executor = Executor(BytesSource(), ByteSink())
        program = translate("+ + + .")
        states = list(executor.step(program, tape_window=2))
        self.assertEqual(len(states), len(program) + 1)
        self.assertEqual("".join(s.command for s in states[:-1]), program.to_code())
        self.assertIsNone(states[-1].operation)
        self.assertEqual(states[-1].pc, len(program))
        self.assertEqual(states[-1].tape[0], 3)

    def test_loop_jumps_past_matching_close(self) -> None:
        executor = Executor(BytesSource(), ByteSink())
        states = list(executor.step(translate("[-]+")))
        self.assertEqual(states[0].operation, Operation.LOOP_OPEN)
        self.assertEqual(states[0].pc, 3)
        self.assertEqual(states[1].operation, Operation.INCREMENT)

    def test_loop_close_resumes_after_open(self) -> None:
        executor = Executor(BytesSource(), ByteSink())
        states = list(executor.step(translate("++[-]")))
        close_states = [s for s in states if s.operation is Operation.LOOP_CLOSE]
        self.assertEqual(close_states[0].pc, 3)
        self.assertEqual(close_states[-1].pc, 5)

    def test_each_run_starts_fresh(self) -> None:
        sink = ByteSink()
        executor = Executor(BytesSource(), sink)
        program = translate(">+.")
        executor.run(program)
        executor.run(program)
        self.assertEqual(sink.getvalue(), b"\x01\x01")


class StreamAdapterTests(unittest.TestCase):
    def test_stream_round_trip(self) -> None:
        source = io.BytesIO(b"hi")
        target = io.BytesIO()
        executor = Executor(StreamReader(source), StreamWriter(target))
        executor.run(translate(",.,.,."))
        self.assertEqual(target.getvalue(), b"hii")

    def test_bytes_source_remaining(self) -> None:
        reader = BytesSource(b"ab")
        self.assertEqual(reader.read_byte(), 97)
        self.assertEqual(reader.remaining, 1)
        reader.read_byte()
        self.assertIsNone(reader.read_byte())
        self.assertEqual(reader.remaining, 0)

    def test_sink_rejects_out_of_range(self) -> None:
        with self.assertRaises(ValueError):
            ByteSink().write_byte(256)


if __name__ == "__main__":
    unittest.main()
