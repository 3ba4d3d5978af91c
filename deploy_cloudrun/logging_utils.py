from __future__ import annotations

import logging
import os
import sys


_ANNOTATION_COMMANDS = {
    logging.WARNING: "warning",
    logging.ERROR: "error",
    logging.CRITICAL: "error",
}


class GithubActionsFormatter(logging.Formatter):
    """
    GitHub Actions 러너에서는 WARNING 이상 로그를 워크플로 커맨드(::warning::)로 출력하여
    Job 요약 화면에 annotation 으로 보이게 한다.
    """

    def format(self, record: logging.LogRecord) -> str:
        text = super().format(record)
        command = _ANNOTATION_COMMANDS.get(record.levelno)
        if command is None:
            return text
        # 워크플로 커맨드는 한 줄이어야 하므로 개행을 인코딩한다.
        message = text.replace("%", "%25").replace("\r", "%0D").replace("\n", "%0A")
        return f"::{command}::{message}"


def setup_logging(verbosity: int = 0, *, github_actions: bool = False) -> None:
    level = logging.INFO
    if verbosity >= 1 or os.getenv("RUNNER_DEBUG") == "1":
        level = logging.DEBUG

    handler = logging.StreamHandler(sys.stdout)
    if github_actions:
        handler.setFormatter(GithubActionsFormatter("%(message)s"))
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s | %(levelname)s | %(name)s | %(message)s")
        )

    logging.basicConfig(level=level, handlers=[handler], force=True)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
