"""Tests for the command runner."""
from __future__ import annotations

import subprocess
from unittest.mock import Mock, patch

import pytest

from deskpulse.commands import process_name


class TestRun:
    @patch("subprocess.run")
    def test_returns_stdout(self, mock_run, runner):
        mock_run.return_value = Mock(returncode=0, stdout="hello\n", stderr="")

        assert runner.run(["echo", "hello"]) == "hello\n"
        mock_run.assert_called_once_with(
            ["echo", "hello"], check=False, text=True, capture_output=True
        )

    @patch("subprocess.run", side_effect=FileNotFoundError)
    def test_missing_binary_is_empty(self, mock_run, runner):
        assert runner.run(["networksetup", "-listnetworkserviceorder"]) is None

    @patch("subprocess.run", side_effect=PermissionError)
    def test_unstartable_binary_is_empty(self, mock_run, runner):
        assert runner.run(["/etc/passwd"]) is None

    @patch("subprocess.run")
    def test_failure_without_output_is_empty(self, mock_run, runner):
        mock_run.return_value = Mock(returncode=1, stdout="", stderr="netstat: no such interface")

        assert runner.run(["netstat", "-bI", "en9"]) is None

    @patch("subprocess.run")
    def test_failure_with_output_keeps_output(self, mock_run, runner):
        mock_run.return_value = Mock(returncode=1, stdout="partial\n", stderr="warning")

        assert runner.run(["ifconfig"]) == "partial\n"

    @patch("subprocess.run")
    def test_explicit_stderr(self, mock_run, runner):
        mock_run.return_value = Mock(returncode=0, stdout="ok", stderr=None)

        runner.run(["ioreg"], stderr=subprocess.DEVNULL)

        mock_run.assert_called_once_with(
            ["ioreg"],
            check=False,
            text=True,
            stdout=subprocess.PIPE,
            stderr=subprocess.DEVNULL,
        )

    @patch("subprocess.run")
    def test_run_async_returns_future(self, mock_run, runner):
        mock_run.return_value = Mock(returncode=0, stdout="async", stderr="")

        assert runner.run_async(["true"]).result() == "async"


class TestDispatch:
    def test_result_is_delivered_on_run_queue(self, runner, run_queue):
        results = []

        assert runner.dispatch("networkRefresh", lambda: 42, results.append) is True
        assert results == []

        run_queue.run_pending()
        assert results == [42]
        assert not runner.in_flight("networkRefresh")

    def test_arguments_are_passed(self, runner, run_queue):
        results = []
        runner.dispatch("k", lambda a, b: a + b, results.append, 2, 3)
        run_queue.run_pending()
        assert results == [5]

    def test_overlapping_dispatch_is_coalesced(
        self, deferred_runner, deferred_executor, run_queue
    ):
        runner, executor = deferred_runner, deferred_executor
        calls = []
        results = []

        def work():
            calls.append("work")
            return len(calls)

        assert runner.dispatch("networkRefresh", work, results.append) is True
        assert runner.dispatch("networkRefresh", work, results.append) is False
        assert runner.in_flight("networkRefresh")

        executor.complete_all()
        run_queue.run_pending()

        assert calls == ["work"]
        assert results == [1]
        assert runner.dispatch("networkRefresh", work, results.append) is True

    def test_different_keys_do_not_coalesce(self, deferred_runner, deferred_executor):
        runner, executor = deferred_runner, deferred_executor

        assert runner.dispatch("powerRefresh", lambda: 1, Mock()) is True
        assert runner.dispatch("memoryRefresh", lambda: 2, Mock()) is True
        assert len(executor.pending) == 2

    def test_failed_work_releases_key(self, runner, run_queue, caplog):
        on_done = Mock()

        def broken():
            raise RuntimeError("subprocess exploded")

        runner.dispatch("powerRefresh", broken, on_done)
        run_queue.run_pending()

        on_done.assert_not_called()
        assert not runner.in_flight("powerRefresh")
        assert "powerRefresh query failed" in caplog.text

    def test_rejected_submit_does_not_block_key(self, runner, executor, run_queue):
        with patch.object(
            executor, "submit", side_effect=RuntimeError("cannot schedule new futures after shutdown")
        ):
            with pytest.raises(RuntimeError):
                runner.dispatch("memoryRefresh", lambda: 1, Mock())

        assert not runner.in_flight("memoryRefresh")
        results = []
        assert runner.dispatch("memoryRefresh", lambda: 7, results.append) is True
        run_queue.run_pending()
        assert results == [7]

    def test_cancelled_work_releases_key(
        self, deferred_runner, deferred_executor, run_queue
    ):
        runner, executor = deferred_runner, deferred_executor
        on_done = Mock()

        runner.dispatch("powerRefresh", lambda: 1, on_done)
        future = executor.pending[0][0]
        future.cancel()
        run_queue.run_pending()

        on_done.assert_not_called()
        assert not runner.in_flight("powerRefresh")


class TestProcessName:
    @pytest.mark.parametrize(
        "stdout, expected",
        [("/usr/sbin/mDNSResponder\n", "/usr/sbin/mDNSResponder"), ("", None)],
    )
    def test_process_name(self, runner, stdout, expected):
        with patch.object(runner, "run", return_value=stdout) as mock_run:
            assert process_name(runner, 123) == expected
        mock_run.assert_called_once_with(["ps", "-p", "123", "-o", "comm="])
