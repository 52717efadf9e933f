"""Result and error type tests."""

from __future__ import annotations

import pickle

import pytest

from cli_spawn.runtime.types import (
    ABORT_SIGNAL_NAME,
    AbortedError,
    ProcessError,
    SpawnResult,
    SpawnResultWithOutput,
    SpawnResultWithStderr,
    SpawnResultWithStdout,
    make_result,
)


class TestMakeResult:
    """make_result picks the variant from the accumulated streams."""

    def test_both_streams(self):
        result = make_result(0, None, stdout="out", stderr="err")
        assert result == SpawnResultWithOutput(code=0, signal=None, stdout="out", stderr="err")

    def test_stdout_only(self):
        result = make_result(0, None, stdout="out")
        assert type(result) is SpawnResultWithStdout
        assert result.to_dict() == {"code": 0, "signal": None, "stdout": "out"}

    def test_stderr_only(self):
        result = make_result(0, None, stderr="err")
        assert type(result) is SpawnResultWithStderr
        assert result.to_dict() == {"code": 0, "signal": None, "stderr": "err"}

    def test_no_streams(self):
        result = make_result(None, "SIGKILL")
        assert type(result) is SpawnResult
        assert result.to_dict() == {"code": None, "signal": "SIGKILL"}

    def test_empty_string_is_still_present(self):
        """An empty accumulator is a field, not an absent one."""
        result = make_result(0, None, stdout="", stderr="")
        assert type(result) is SpawnResultWithOutput

    def test_frozen(self):
        result = make_result(0, None)
        with pytest.raises(AttributeError):
            result.code = 1  # type: ignore


class TestOk:
    @pytest.mark.parametrize(
        ("code", "signal", "expected"),
        [
            (0, None, True),
            (1, None, False),
            (None, "SIGTERM", False),
            (0, "SIGTERM", False),
        ],
    )
    def test_ok(self, code, signal, expected):
        assert make_result(code, signal).ok is expected


class TestErrors:
    def test_process_error_exposes_cause(self):
        cause = make_result(2, None, stdout="", stderr="boom")
        error = ProcessError("Process exited with code: 2", cause)

        assert str(error) == "Process exited with code: 2"
        assert error.message == "Process exited with code: 2"
        assert error.cause is cause
        assert error.code == 2
        assert error.signal is None

    def test_aborted_error(self):
        error = AbortedError(make_result(None, ABORT_SIGNAL_NAME))

        assert isinstance(error, ProcessError)
        assert str(error) == "Operation was aborted"
        assert error.code is None
        assert error.signal == "SIGABRT"

    def test_repr(self):
        error = ProcessError("failed", make_result(1, None))
        assert "failed" in repr(error)
        assert "code=1" in repr(error)

    def test_process_error_pickles(self):
        error = ProcessError("Process exited with code: 2", make_result(2, None, stderr="boom"))

        restored = pickle.loads(pickle.dumps(error))

        assert type(restored) is ProcessError
        assert restored.message == error.message
        assert restored.cause == error.cause
        assert str(restored) == "Process exited with code: 2"

    def test_aborted_error_pickles(self):
        error = AbortedError(make_result(None, ABORT_SIGNAL_NAME, stdout="partial"))

        restored = pickle.loads(pickle.dumps(error))

        assert type(restored) is AbortedError
        assert restored.cause == error.cause
        assert str(restored) == "Operation was aborted"
