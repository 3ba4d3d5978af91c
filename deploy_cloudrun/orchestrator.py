from __future__ import annotations

from dataclasses import dataclass
from typing import List, Mapping, Optional

from .config import ActionInputs, validate_inputs
from .commands import GcloudCommand, build_command
from .logging_utils import get_logger
from . import (
    actions_io,
    gcloud_sdk,
    gcp_cloud_run,
)


logger = get_logger(__name__)


@dataclass
class DeployResult:
    command: GcloudCommand
    url: Optional[str]
    output: str


def _select_project(inputs: ActionInputs) -> None:
    if inputs.project_id:
        gcloud_sdk.set_project(inputs.project_id)
    elif inputs.credentials:
        gcloud_sdk.set_project_with_key(inputs.credentials)

    if not gcloud_sdk.is_project_id_set():
        raise RuntimeError(
            "프로젝트가 설정되지 않았습니다. project_id 또는 credentials 를 확인하세요."
        )


def run(inputs: ActionInputs, env: Optional[Mapping[str, str]] = None) -> DeployResult:
    """
    input 검증 → gcloud 명령 생성 → SDK 준비/인증/프로젝트 설정 → 실행 → URL output 설정.

    어느 단계든 실패하면 예외를 그대로 올린다 (CLI 에서 단일 실패로 보고).
    """
    validate_inputs(inputs)
    command = build_command(inputs, env)
    for warning in command.warnings:
        logger.warning(warning)

    gcloud_sdk.ensure_installed(inputs.gcloud_version or None)

    if inputs.credentials:
        gcloud_sdk.authenticate(inputs.credentials)
    if not gcloud_sdk.is_authenticated():
        raise RuntimeError(
            "Cloud SDK 인증에 실패했습니다. credentials 를 지정하거나 사전에 인증된 환경에서 실행하세요."
        )

    _select_project(inputs)

    if command.install_beta:
        gcloud_sdk.install_component("beta")

    logger.info("실행: %s", command.display(gcloud_sdk.get_tool_command()))
    result = gcp_cloud_run.execute(command)

    url = gcp_cloud_run.extract_url(result.output)
    if url:
        actions_io.set_output("url", url)
        logger.info("서비스 URL: %s", url)
    else:
        logger.warning("gcloud 출력에서 서비스 URL 을 찾을 수 없습니다.")

    return DeployResult(command=command, url=url, output=result.output)


def plan(inputs: ActionInputs, env: Optional[Mapping[str, str]] = None) -> str:
    """
    실제 gcloud 호출 없이, 현재 input 으로 실행될 명령과 요약을 리턴한다.
    """
    validate_inputs(inputs)
    command = build_command(inputs, env)

    if inputs.updates_traffic:
        mode = "update-traffic"
    elif inputs.metadata:
        mode = "replace"
    else:
        mode = "deploy"

    lines: List[str] = []
    lines.append("# Deploy plan")
    lines.append(f"- project: {inputs.project_id or '(from credentials)'}")
    lines.append(f"- region: {inputs.region}")
    lines.append(f"- service: {inputs.service or '(not set)'}")
    lines.append(f"- mode: {mode}")
    lines.append(f"- beta component: {'required' if command.install_beta else 'not required'}")
    lines.append("")

    lines.append("## Command")
    lines.append(command.display())

    if command.warnings:
        lines.append("")
        lines.append("## Warnings")
        for w in command.warnings:
            lines.append(f"- {w}")

    return "\n".join(lines)
