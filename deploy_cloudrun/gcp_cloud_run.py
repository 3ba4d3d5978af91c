"""
gcp_cloud_run
-------------

gcloud run 명령 실행과 결과 해석(서비스 URL, 서비스/리비전 조회)을 담당하는 모듈.
"""

from __future__ import annotations

import json
import re
from typing import Any, Dict, List, Optional

import yaml

from .commands import GcloudCommand
from .gcloud_sdk import get_tool_command
from .logging_utils import get_logger
from .subprocess_utils import RunResult, run_command


logger = get_logger(__name__)


# 호스트는 *.run.app 으로 고정하고, 문장 끝 마침표는 경로에 포함하지 않는다.
_URL_PATTERN = re.compile(r"https://[a-z0-9][a-z0-9\-.]*\.run\.app\b(?:/[\w\-./?%&=]*[\w\-/?%&=])?")


def execute(command: GcloudCommand, *, timeout: Optional[float] = None) -> RunResult:
    """
    빌드된 gcloud 명령을 실행한다. 실패하면 stderr 를 담은 RuntimeError.
    command.stream_output 이면(소스 빌드) 출력을 CI 로그로 실시간 흘린다.
    """
    return run_command(
        [get_tool_command(), *command.args],
        timeout=timeout,
        stream_output=command.stream_output,
    )


def extract_url(output: str) -> Optional[str]:
    """
    gcloud 출력에서 Cloud Run URL 을 찾는다.
    태그 URL 이 함께 출력되면 두 번째 매치(태그 URL)를 사용한다.
    """
    matches = _URL_PATTERN.findall(output or "")
    if not matches:
        return None
    return matches[1] if len(matches) > 1 else matches[0]


def describe_service(service: str, region: str) -> Dict[str, Any]:
    cmd = [
        get_tool_command(),
        "run",
        "services",
        "describe",
        service,
        "--format",
        "yaml",
        "--platform",
        "managed",
        "--region",
        region,
    ]
    result = run_command(cmd)
    desc = yaml.safe_load(result.stdout) or {}
    if not isinstance(desc, dict):
        raise RuntimeError(f"서비스 정보를 해석할 수 없습니다: {service}")
    return desc


def list_revisions(service: str, region: str) -> List[Dict[str, Any]]:
    cmd = [
        get_tool_command(),
        "run",
        "revisions",
        "list",
        "--service",
        service,
        "--platform",
        "managed",
        "--region",
        region,
        "--format",
        "json",
    ]
    result = run_command(cmd)
    return json.loads(result.stdout or "[]")
