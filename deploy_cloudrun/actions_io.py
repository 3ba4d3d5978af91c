"""
actions_io
----------

GitHub Actions 러너와의 입출력 규약(output, PATH, 실패 보고)을 다루는 모듈.
"""

from __future__ import annotations

import os
import sys
import uuid
from typing import NoReturn

from .logging_utils import get_logger


logger = get_logger(__name__)


def is_github_actions() -> bool:
    return os.getenv("GITHUB_ACTIONS") == "true"


def _append_to_file(path: str, text: str) -> None:
    with open(path, "a", encoding="utf-8") as f:
        f.write(text)


def set_output(name: str, value: str) -> None:
    """
    step output 을 설정한다.
    GITHUB_OUTPUT 이 없으면 구형 `::set-output` 커맨드로 대체한다.
    """
    output_file = os.getenv("GITHUB_OUTPUT")
    if not output_file:
        print(f"::set-output name={name}::{value}")
        return

    if "\n" in value:
        delimiter = f"ghadelimiter_{uuid.uuid4()}"
        _append_to_file(output_file, f"{name}<<{delimiter}\n{value}\n{delimiter}\n")
    else:
        _append_to_file(output_file, f"{name}={value}\n")
    logger.debug("output 설정: %s=%s", name, value)


def add_path(directory: str) -> None:
    """현재 프로세스와 이후 step 의 PATH 앞에 directory 를 추가한다."""
    os.environ["PATH"] = directory + os.pathsep + os.environ.get("PATH", "")
    path_file = os.getenv("GITHUB_PATH")
    if path_file:
        _append_to_file(path_file, directory + "\n")


def set_failed(message: str) -> NoReturn:
    """실패를 러너에 보고하고 exit 1 로 종료한다."""
    encoded = message.replace("%", "%25").replace("\r", "%0D").replace("\n", "%0A")
    print(f"::error::{encoded}", file=sys.stdout, flush=True)
    sys.exit(1)
