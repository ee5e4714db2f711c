from __future__ import annotations

import os
import queue
import shutil
import subprocess
import sys
import threading
import time
from dataclasses import dataclass
from textwrap import shorten
from typing import Mapping, Sequence

from .logging_utils import get_logger


logger = get_logger(__name__)


# 진행 표시 기본값. 호출 인자 > CLI_* 환경변수 > 이 값 순으로 적용된다.
DEFAULT_SHOW_PROGRESS = True
DEFAULT_PROGRESS_IDLE_SECONDS = 2.0
DEFAULT_PROGRESS_STYLE = "braille"  # braille | ascii
DEFAULT_PROGRESS_INTERVAL = 0.12


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    try:
        return float(raw) if raw else default
    except ValueError:
        return default


def _progress_settings(
    show: bool | None,
    idle: float | None,
    style: str | None,
    interval: float | None,
) -> tuple[bool, float, str, float]:
    if show is None:
        raw = os.getenv("CLI_SHOW_PROGRESS")
        show = DEFAULT_SHOW_PROGRESS if raw is None else raw.strip().lower() in {"1", "true", "yes", "y", "on"}
    if idle is None:
        idle = _env_float("CLI_PROGRESS_IDLE_SECONDS", DEFAULT_PROGRESS_IDLE_SECONDS)
    if style is None:
        style = os.getenv("CLI_PROGRESS_STYLE") or DEFAULT_PROGRESS_STYLE
    if interval is None:
        interval = _env_float("CLI_PROGRESS_INTERVAL_SECONDS", DEFAULT_PROGRESS_INTERVAL)
    return bool(show), float(idle), str(style), float(interval)


_BRAILLE_FRAMES = ["⠋", "⠙", "⠹", "⠸", "⠼", "⠴", "⠦", "⠧", "⠇", "⠏"]
_ASCII_FRAMES = ["|", "/", "-", "\\"]


def _select_frames(style: str) -> list[str]:
    s = (style or "").strip().lower()
    if s == "ascii":
        return _ASCII_FRAMES
    return _BRAILLE_FRAMES


def _format_elapsed(seconds: float) -> str:
    if seconds < 60:
        return f"{seconds:0.1f}s"
    minutes = int(seconds // 60)
    sec = int(seconds % 60)
    return f"{minutes}m{sec:02d}s"


def _default_progress_message(cmd: Sequence[str]) -> str:
    return shorten(" ".join(cmd), width=72, placeholder="…")


class _ProgressLine:
    """
    단일 라인 진행 표시(스피너 + 메시지 + 경과시간).
    stderr에만 출력하여 stdout 로그와 섞임을 최소화한다.
    """

    def __init__(self, message: str, *, stream=None, style: str = "braille") -> None:  # noqa: ANN001
        self._message = message
        self._stream = stream if stream is not None else sys.stderr
        self._frames = _select_frames(style)
        self._last_len = 0

    def render(self, frame_idx: int, *, elapsed_seconds: float) -> None:
        frame = self._frames[frame_idx % len(self._frames)]
        elapsed = _format_elapsed(elapsed_seconds)
        text = f"{frame} {self._message}  {elapsed}"
        self._last_len = max(self._last_len, len(text))
        self._stream.write("\r" + text)
        self._stream.flush()

    def clear(self) -> None:
        if self._last_len <= 0:
            return
        self._stream.write("\r" + (" " * self._last_len) + "\r")
        self._stream.flush()


class _IdleProgressIndicator:
    """
    '무출력(idle)' 구간에서만 진행표시를 렌더하는 스피너.
    kubectl apply / helm install 처럼 한동안 조용한 명령에서 멈춘 것처럼 보이지 않게 한다.
    """

    def __init__(
        self,
        *,
        message: str,
        stream=None,  # noqa: ANN001
        style: str = "braille",
        interval: float = 0.12,
        idle_seconds: float = 2.0,
    ) -> None:
        self._line = _ProgressLine(message, stream=stream, style=style)
        self._interval = max(float(interval), 0.02)
        self._idle_seconds = max(float(idle_seconds), 0.0)
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self._start_time = 0.0
        self._last_activity_getter = None  # type: ignore[assignment]
        self._shown = False

    def start(self, *, start_time: float, last_activity_getter) -> None:  # noqa: ANN001
        if self._thread is not None:
            return
        self._start_time = start_time
        self._last_activity_getter = last_activity_getter

        def _run() -> None:
            idx = 0
            while not self._stop.is_set():
                now = time.monotonic()
                idle = now - float(self._last_activity_getter())

                if idle < self._idle_seconds:
                    if self._shown:
                        self._line.clear()
                        self._shown = False
                    time.sleep(min(self._interval, max(self._idle_seconds - idle, 0.02)))
                    continue

                self._line.render(idx, elapsed_seconds=now - self._start_time)
                self._shown = True
                idx += 1
                time.sleep(self._interval)

        self._thread = threading.Thread(target=_run, daemon=True)
        self._thread.start()

    def clear(self) -> None:
        if self._shown:
            self._line.clear()
            self._shown = False

    def stop(self) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=1.0)
        self.clear()


@dataclass(frozen=True)
class RunResult:
    returncode: int
    stdout: str
    stderr: str


class CommandError(RuntimeError):
    """
    외부 명령 실행 실패.

    returncode 가 None 이면 명령을 찾지 못했거나 timeout 으로 중단된 경우이다.
    """

    def __init__(
        self,
        message: str,
        *,
        cmd: Sequence[str],
        returncode: int | None = None,
        stdout: str = "",
        stderr: str = "",
    ) -> None:
        super().__init__(message)
        self.cmd = list(cmd)
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr


def command_exists(name: str) -> bool:
    """PATH 에서 실행 파일을 찾을 수 있는지 확인한다."""
    return shutil.which(name) is not None


def _not_found_error(cmd: Sequence[str]) -> CommandError:
    return CommandError(
        f"필요한 명령을 찾을 수 없습니다: {cmd[0]} "
        "(gcloud/kubectl/helm/git 이 설치되어 있는지 확인하세요)",
        cmd=cmd,
    )


def _timeout_error(cmd: Sequence[str], timeout: float | None) -> CommandError:
    return CommandError(
        f"명령 실행이 {timeout}초 안에 끝나지 않았습니다: {' '.join(cmd)}",
        cmd=cmd,
    )


def run_command(
    cmd: Sequence[str],
    *,
    cwd: str | None = None,
    env: Mapping[str, str] | None = None,
    input_text: str | None = None,
    timeout: float | None = 900.0,
    stream_output: bool = False,
    spinner_message: str | None = None,
    show_progress: bool | None = None,
    progress_idle_seconds: float | None = None,
    progress_style: str | None = None,
    progress_interval: float | None = None,
) -> RunResult:
    """
    subprocess 실행 공통 유틸.

    - stream_output=False: stdout/stderr 캡처, 실패 시 요약을 CommandError 에 포함
    - stream_output=True : stdout/stderr 를 실시간으로 터미널에 흘린다(진행 상황 확인 용이)
    - input_text: stdin 으로 전달할 문자열 (capture 모드 전용, `kubectl apply -f -` 등)
    """
    logger.info("명령 실행: %s", " ".join(cmd))

    effective_show, effective_idle, effective_style, effective_interval = _progress_settings(
        show_progress, progress_idle_seconds, progress_style, progress_interval
    )

    progress_message = spinner_message or _default_progress_message(cmd)
    isatty = getattr(sys.stderr, "isatty", None)
    can_render_progress = effective_show and isatty is not None and isatty()

    if stream_output and input_text is None:
        return _run_streaming(
            cmd,
            cwd=cwd,
            env=env,
            timeout=timeout,
            indicator=(
                _IdleProgressIndicator(
                    message=progress_message,
                    stream=sys.stderr,
                    style=effective_style,
                    interval=effective_interval,
                    idle_seconds=effective_idle,
                )
                if can_render_progress
                else None
            ),
        )

    # capture 모드 (조용히 돌리고 실패 시 요약)
    indicator: _IdleProgressIndicator | None = None
    started = time.monotonic()

    if can_render_progress:
        indicator = _IdleProgressIndicator(
            message=progress_message,
            stream=sys.stderr,
            style=effective_style,
            interval=effective_interval,
            idle_seconds=effective_idle,
        )
        indicator.start(start_time=started, last_activity_getter=lambda: started)

    try:
        result = subprocess.run(  # noqa: S603
            list(cmd),
            check=True,
            capture_output=True,
            text=True,
            input=input_text,
            timeout=timeout,
            cwd=cwd,
            env=dict(env) if env is not None else None,
        )
        if result.stdout:
            logger.debug("명령 stdout: %s", shorten(result.stdout.strip(), width=2000))
        if result.stderr:
            logger.debug("명령 stderr: %s", shorten(result.stderr.strip(), width=2000))
        return RunResult(returncode=result.returncode, stdout=result.stdout or "", stderr=result.stderr or "")
    except FileNotFoundError as e:
        raise _not_found_error(cmd) from e
    except subprocess.TimeoutExpired as e:
        raise _timeout_error(cmd, timeout) from e
    except subprocess.CalledProcessError as e:
        stdout = (e.stdout or "").strip()
        stderr = (e.stderr or "").strip()
        detail = ""
        if stderr:
            detail = "\nstderr:\n" + shorten(stderr, width=2000)
        elif stdout:
            detail = "\nstdout:\n" + shorten(stdout, width=2000)
        raise CommandError(
            f"명령 실행 실패: {' '.join(cmd)} (exit={e.returncode}){detail}",
            cmd=cmd,
            returncode=e.returncode,
            stdout=stdout,
            stderr=stderr,
        ) from e
    finally:
        if indicator is not None:
            indicator.stop()


def _run_streaming(
    cmd: Sequence[str],
    *,
    cwd: str | None,
    env: Mapping[str, str] | None,
    timeout: float | None,
    indicator: _IdleProgressIndicator | None,
) -> RunResult:
    # gcloud/helm 은 stderr로도 진행 로그를 자주 내보내므로 STDOUT으로 합친다.
    try:
        proc = subprocess.Popen(  # noqa: S603
            list(cmd),
            cwd=cwd,
            env=dict(env) if env is not None else None,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            bufsize=1,
        )
    except FileNotFoundError as e:
        raise _not_found_error(cmd) from e

    out_lines: list[str] = []
    started = time.monotonic()
    deadline = None if timeout is None else started + float(timeout)

    last_activity_lock = threading.Lock()
    last_activity = started

    def _get_last_activity() -> float:
        with last_activity_lock:
            return last_activity

    def _touch_activity() -> None:
        nonlocal last_activity
        with last_activity_lock:
            last_activity = time.monotonic()

    if indicator is not None:
        indicator.start(start_time=started, last_activity_getter=_get_last_activity)

    q: queue.Queue[str | None] = queue.Queue()

    def _reader() -> None:
        try:
            assert proc.stdout is not None
            for line in proc.stdout:
                q.put(line)
        finally:
            q.put(None)

    reader_thread = threading.Thread(target=_reader, daemon=True)
    reader_thread.start()

    try:
        while True:
            now = time.monotonic()
            if deadline is not None and now >= deadline:
                proc.kill()
                raise _timeout_error(cmd, timeout)

            remaining = None if deadline is None else max(deadline - now, 0.0)
            get_timeout = 0.1 if remaining is None else min(0.1, remaining)

            try:
                item = q.get(timeout=get_timeout)
            except queue.Empty:
                if proc.poll() is not None:
                    # reader 종료까지 잠깐 더 기다림
                    try:
                        item = q.get(timeout=0.2)
                    except queue.Empty:
                        break
                else:
                    continue

            if item is None:
                break

            if indicator is not None:
                indicator.clear()

            out_lines.append(item)
            sys.stdout.write(item)
            sys.stdout.flush()
            _touch_activity()

        reader_thread.join(timeout=1.0)

        wait_timeout = None
        if deadline is not None:
            wait_timeout = max(deadline - time.monotonic(), 0.0)
        returncode = proc.wait(timeout=wait_timeout)
    except subprocess.TimeoutExpired as e:
        proc.kill()
        raise _timeout_error(cmd, timeout) from e
    finally:
        if proc.stdout is not None:
            proc.stdout.close()
        if indicator is not None:
            indicator.stop()

    combined = "".join(out_lines)
    if returncode != 0:
        detail = "\nstdout/stderr:\n" + shorten(combined.strip(), width=2000) if combined.strip() else ""
        raise CommandError(
            f"명령 실행 실패: {' '.join(cmd)} (exit={returncode}){detail}",
            cmd=cmd,
            returncode=returncode,
            stdout=combined,
        )

    return RunResult(returncode=returncode, stdout=combined, stderr="")
