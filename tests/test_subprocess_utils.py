from __future__ import annotations

import io
import sys

import pytest

from boutique_kit.subprocess_utils import CommandError, command_exists, run_command


class _FakeTty(io.StringIO):
    def isatty(self) -> bool:  # type: ignore[override]
        return True


_BRAILLE_FRAMES = {"⠋", "⠙", "⠹", "⠸", "⠼", "⠴", "⠦", "⠧", "⠇", "⠏"}


def _contains_braille_spinner(text: str) -> bool:
    return any(ch in text for ch in _BRAILLE_FRAMES)


def test_stream_output_shows_progress_when_idle(monkeypatch: pytest.MonkeyPatch) -> None:
    """
    stream_output=True 인 경우에도, 일정 시간 출력이 없으면 진행표시(⠙ 등)가 렌더링되어야 한다.
    """
    fake_err = _FakeTty()
    fake_out = io.StringIO()
    monkeypatch.setattr(sys, "stderr", fake_err)
    monkeypatch.setattr(sys, "stdout", fake_out)

    cmd = [sys.executable, "-c", "import time; time.sleep(0.2); print('done')"]

    result = run_command(
        cmd,
        stream_output=True,
        timeout=5,
        spinner_message="Test stream progress",
        show_progress=True,
        progress_style="braille",
        progress_idle_seconds=0.05,
        progress_interval=0.02,
    )

    assert result.returncode == 0
    assert "done" in result.stdout
    assert "done" in fake_out.getvalue()
    assert _contains_braille_spinner(fake_err.getvalue()), fake_err.getvalue()


def test_capture_mode_shows_progress_when_idle(monkeypatch: pytest.MonkeyPatch) -> None:
    fake_err = _FakeTty()
    monkeypatch.setattr(sys, "stderr", fake_err)

    cmd = [sys.executable, "-c", "import time; time.sleep(0.2)"]

    result = run_command(
        cmd,
        timeout=5,
        spinner_message="Test capture progress",
        show_progress=True,
        progress_idle_seconds=0.05,
        progress_interval=0.02,
    )

    assert result.returncode == 0
    assert _contains_braille_spinner(fake_err.getvalue()), fake_err.getvalue()


def test_progress_env_settings_apply_when_args_omitted(monkeypatch: pytest.MonkeyPatch) -> None:
    fake_err = _FakeTty()
    monkeypatch.setattr(sys, "stderr", fake_err)
    monkeypatch.setenv("CLI_PROGRESS_STYLE", "ascii")
    monkeypatch.setenv("CLI_PROGRESS_IDLE_SECONDS", "0.05")
    monkeypatch.setenv("CLI_PROGRESS_INTERVAL_SECONDS", "0.02")

    run_command([sys.executable, "-c", "import time; time.sleep(0.2)"], timeout=5)

    assert not _contains_braille_spinner(fake_err.getvalue())
    assert any(ch in fake_err.getvalue() for ch in "|/-\\"), fake_err.getvalue()

    fake_err.seek(0)
    fake_err.truncate()
    monkeypatch.setenv("CLI_SHOW_PROGRESS", "0")

    run_command([sys.executable, "-c", "import time; time.sleep(0.2)"], timeout=5)

    assert fake_err.getvalue() == ""


def test_capture_mode_passes_stdin() -> None:
    cmd = [sys.executable, "-c", "import sys; print(sys.stdin.read().upper())"]

    result = run_command(cmd, input_text="kind: Namespace", show_progress=False)

    assert result.stdout.strip() == "KIND: NAMESPACE"


def test_failure_raises_command_error_with_exit_code() -> None:
    cmd = [sys.executable, "-c", "import sys; sys.stderr.write('NOT_FOUND: project'); sys.exit(3)"]

    with pytest.raises(CommandError) as excinfo:
        run_command(cmd, show_progress=False)

    err = excinfo.value
    assert isinstance(err, RuntimeError)
    assert err.returncode == 3
    assert "NOT_FOUND" in err.stderr
    assert "exit=3" in str(err)


def test_stream_failure_raises_command_error(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(sys, "stdout", io.StringIO())
    cmd = [sys.executable, "-c", "import sys; print('oops'); sys.exit(2)"]

    with pytest.raises(CommandError) as excinfo:
        run_command(cmd, stream_output=True, show_progress=False, timeout=5)

    assert excinfo.value.returncode == 2
    assert "oops" in excinfo.value.stdout


def test_missing_executable_raises_command_error() -> None:
    with pytest.raises(CommandError) as excinfo:
        run_command(["definitely-not-a-real-binary-xyz"], show_progress=False)

    assert excinfo.value.returncode is None


def test_timeout_raises_command_error() -> None:
    cmd = [sys.executable, "-c", "import time; time.sleep(5)"]

    with pytest.raises(CommandError) as excinfo:
        run_command(cmd, timeout=0.3, show_progress=False)

    assert excinfo.value.returncode is None


def test_command_exists() -> None:
    assert command_exists("definitely-not-a-real-binary-xyz") is False
