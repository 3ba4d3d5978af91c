from __future__ import annotations

import queue
import subprocess
import sys
import threading
import time
from dataclasses import dataclass
from textwrap import shorten
from typing import Mapping, Sequence

from .logging_utils import get_logger


logger = get_logger(__name__)


@dataclass(frozen=True)
class RunResult:
    returncode: int
    stdout: str
    stderr: str

    @property
    def output(self) -> str:
        """stdout + stderr. gcloud 는 결과 메시지(URL 등)를 stderr 로 내보내는 경우가 많다."""
        return self.stdout + self.stderr


def _summary(text: str) -> str:
    return shorten(text.strip(), width=2000)


def run_command(
    cmd: Sequence[str],
    *,
    cwd: str | None = None,
    env: Mapping[str, str] | None = None,
    timeout: float | None = 900.0,
    stream_output: bool = False,
) -> RunResult:
    """
    subprocess 실행 공통 유틸.

    - stream_output=False: stdout/stderr 캡처, 실패 시 stderr 요약을 예외 메시지에 포함
    - stream_output=True : stdout/stderr 를 합쳐 CI 로그로 실시간 출력한다
    """
    logger.info("명령 실행: %s", " ".join(cmd))

    if stream_output:
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
            raise RuntimeError(
                f"필요한 명령을 찾을 수 없습니다: {cmd[0]} (gcloud 가 설치되어 있는지 확인하세요)"
            ) from e

        out_lines: list[str] = []
        deadline = None if timeout is None else time.monotonic() + float(timeout)
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
                if deadline is not None and time.monotonic() >= deadline:
                    proc.kill()
                    raise RuntimeError(
                        f"명령 실행이 {timeout}초 안에 끝나지 않았습니다: {' '.join(cmd)}"
                    )
                try:
                    item = q.get(timeout=0.1)
                except queue.Empty:
                    continue
                if item is None:
                    break
                out_lines.append(item)
                sys.stdout.write(item)
                sys.stdout.flush()

            wait_timeout = None
            if deadline is not None:
                wait_timeout = max(deadline - time.monotonic(), 0.0)
            returncode = proc.wait(timeout=wait_timeout)
        except subprocess.TimeoutExpired as e:
            proc.kill()
            raise RuntimeError(
                f"명령 실행이 {timeout}초 안에 끝나지 않았습니다: {' '.join(cmd)}"
            ) from e
        finally:
            reader_thread.join(timeout=1.0)
            if proc.stdout is not None:
                proc.stdout.close()

        combined = "".join(out_lines)
        if returncode != 0:
            detail = "\nstdout/stderr:\n" + _summary(combined) if combined.strip() else ""
            raise RuntimeError(
                f"명령 실행 실패: {' '.join(cmd)} (exit={returncode}){detail}"
            )
        return RunResult(returncode=returncode, stdout=combined, stderr="")

    try:
        result = subprocess.run(  # noqa: S603
            list(cmd),
            check=True,
            capture_output=True,
            text=True,
            timeout=timeout,
            cwd=cwd,
            env=dict(env) if env is not None else None,
        )
    except FileNotFoundError as e:
        raise RuntimeError(
            f"필요한 명령을 찾을 수 없습니다: {cmd[0]} (gcloud 가 설치되어 있는지 확인하세요)"
        ) from e
    except subprocess.TimeoutExpired as e:
        raise RuntimeError(
            f"명령 실행이 {timeout}초 안에 끝나지 않았습니다: {' '.join(cmd)}"
        ) from e
    except subprocess.CalledProcessError as e:
        stdout = (e.stdout or "").strip()
        stderr = (e.stderr or "").strip()
        detail = ""
        if stderr:
            detail = "\nstderr:\n" + _summary(stderr)
        elif stdout:
            detail = "\nstdout:\n" + _summary(stdout)
        raise RuntimeError(
            f"명령 실행 실패: {' '.join(cmd)} (exit={e.returncode}){detail}"
        ) from e

    if result.stdout:
        logger.debug("명령 stdout: %s", _summary(result.stdout))
    if result.stderr:
        logger.debug("명령 stderr: %s", _summary(result.stderr))
    return RunResult(
        returncode=result.returncode,
        stdout=result.stdout or "",
        stderr=result.stderr or "",
    )
