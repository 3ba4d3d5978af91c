"""
commands
--------

ActionInputs 를 gcloud 인자 목록으로 변환하는 모듈.

어떤 gcloud 명령(deploy / services replace / services update-traffic)을 쓸지,
어떤 플래그를 붙일지, beta 컴포넌트가 필요한지를 여기서 결정한다.
실제 실행은 하지 않는다.
"""

from __future__ import annotations

import os
import shlex
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional

from .config import ActionInputs
from .logging_utils import get_logger


logger = get_logger(__name__)


# 값에 쉼표가 있을 때 사용할 gcloud 대체 구분자 후보 (`gcloud topic escaping`)
_ALT_DELIMITERS = ["@", "|", ";", "#", "~", "%"]


@dataclass
class GcloudCommand:
    args: List[str]
    install_beta: bool = False
    stream_output: bool = False
    warnings: List[str] = field(default_factory=list)

    def display(self, tool: str = "gcloud") -> str:
        return " ".join([tool, *(shlex.quote(a) for a in self.args)])


def _split_entries(value: str) -> List[str]:
    entries: List[str] = []
    buf: List[str] = []
    escaped = False
    for ch in value:
        if escaped:
            # `\,` 만 이스케이프로 취급하고 나머지는 원문 유지
            if ch != ",":
                buf.append("\\")
            buf.append(ch)
            escaped = False
        elif ch == "\\":
            escaped = True
        elif ch in {",", "\n"}:
            entries.append("".join(buf))
            buf = []
        else:
            buf.append(ch)
    if escaped:
        buf.append("\\")
    entries.append("".join(buf))
    return entries


def parse_kv_string(value: str, *, input_name: str = "input") -> Dict[str, str]:
    """
    "KEY1=VALUE1,KEY2=VALUE2" (또는 줄바꿈 구분) 문자열을 dict 로 파싱한다.

    - 값 안의 쉼표는 `\\,` 로 이스케이프한다.
    - 빈 줄과 `#` 으로 시작하는 줄은 무시한다.
    - 같은 키가 반복되면 마지막 값이 이긴다.
    """
    result: Dict[str, str] = {}
    for raw in _split_entries(value or ""):
        entry = raw.strip()
        if not entry or entry.startswith("#"):
            continue
        if "=" not in entry:
            raise ValueError(
                f"{input_name} 은(는) \"KEY1=VALUE1,KEY2=VALUE2\" 형식이어야 합니다. 받은 값: {entry!r}"
            )
        key, val = entry.split("=", 1)
        key = key.strip()
        if not key:
            raise ValueError(f"{input_name} 에 키가 비어 있는 항목이 있습니다: {entry!r}")
        result[key] = val.strip()
    return result


def join_kv(pairs: Mapping[str, str]) -> str:
    """
    dict 를 gcloud 리스트 플래그 값으로 직렬화한다.
    값에 쉼표가 있으면 `^@^K=V@K2=V2` 형태의 대체 구분자 문법을 사용한다.
    """
    items = [f"{k}={v}" for k, v in pairs.items()]
    if not any("," in item for item in items):
        return ",".join(items)

    for delim in _ALT_DELIMITERS:
        if not any(delim in item for item in items):
            return f"^{delim}^" + delim.join(items)
    raise ValueError("값에 사용할 수 있는 gcloud 구분자가 남아 있지 않습니다.")


def parse_flags(flags: str) -> List[str]:
    """
    `flags` input 을 셸 규칙(따옴표 포함)으로 인자 목록으로 분리한다.
    """
    try:
        return shlex.split(flags or "")
    except ValueError as e:
        raise ValueError(f"flags 를 해석할 수 없습니다 ({e}): {flags!r}") from e


def default_labels(env: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
    source = os.environ if env is None else env
    labels = {"managed-by": "github-actions"}
    sha = (source.get("GITHUB_SHA") or "").strip()
    if sha:
        labels["commit-sha"] = sha
    return labels


def _ignored_with_metadata(inputs: ActionInputs) -> List[str]:
    candidates = [
        ("image", inputs.image),
        ("service", inputs.service),
        ("env_vars", inputs.env_vars),
        ("secrets", inputs.secrets),
        ("labels", inputs.labels),
        ("no_traffic", inputs.no_traffic),
        ("tag", inputs.tag),
        ("suffix", inputs.suffix),
    ]
    return [name for name, value in candidates if value]


def _traffic_command(inputs: ActionInputs) -> GcloudCommand:
    cmd = GcloudCommand(args=["run", "services", "update-traffic", inputs.service])
    if inputs.revision_traffic:
        cmd.args += ["--to-revisions", inputs.revision_traffic]
    if inputs.tag_traffic:
        cmd.args += ["--to-tags", inputs.tag_traffic]
        cmd.install_beta = True
    return cmd


def _replace_command(inputs: ActionInputs) -> GcloudCommand:
    cmd = GcloudCommand(args=["run", "services", "replace", inputs.metadata], install_beta=True)
    ignored = _ignored_with_metadata(inputs)
    if ignored:
        cmd.warnings.append(
            "metadata YAML 이 지정되어 다음 input 은 무시됩니다: " + ", ".join(ignored)
        )
    return cmd


def _deploy_command(inputs: ActionInputs, env: Optional[Mapping[str, str]]) -> GcloudCommand:
    cmd = GcloudCommand(args=["run", "deploy"])
    if inputs.service:
        cmd.args.append(inputs.service)
    cmd.args.append("--quiet")

    if inputs.image:
        cmd.args += ["--image", inputs.image]
        if inputs.source:
            cmd.warnings.append("image 와 source 가 모두 설정되어 source 는 무시됩니다.")
    elif inputs.source:
        cmd.args += ["--source", inputs.source]
        cmd.install_beta = True
        # 소스 빌드 로그를 실시간으로 보여준다
        cmd.stream_output = True

    if inputs.env_vars:
        env_vars = parse_kv_string(inputs.env_vars, input_name="env_vars")
        if env_vars:
            flag = "--set-env-vars" if inputs.env_vars_update_strategy == "overwrite" else "--update-env-vars"
            cmd.args += [flag, join_kv(env_vars)]

    if inputs.secrets:
        secrets = parse_kv_string(inputs.secrets, input_name="secrets")
        if secrets:
            cmd.args += ["--update-secrets", join_kv(secrets)]

    labels: Dict[str, str] = {} if inputs.skip_default_labels else default_labels(env)
    labels.update(parse_kv_string(inputs.labels, input_name="labels"))
    if labels:
        cmd.args += ["--update-labels", join_kv(labels)]

    if inputs.tag:
        cmd.args += ["--tag", inputs.tag]
        cmd.install_beta = True
    if inputs.suffix:
        cmd.args += ["--revision-suffix", inputs.suffix]
    if inputs.no_traffic:
        cmd.args.append("--no-traffic")
    if inputs.timeout:
        cmd.args += ["--timeout", inputs.timeout]
    return cmd


def build_command(inputs: ActionInputs, env: Optional[Mapping[str, str]] = None) -> GcloudCommand:
    """
    input 조합에 맞는 gcloud 명령을 만든다.

    우선순위: 트래픽 변경 > metadata YAML replace > 일반 deploy.
    validate_inputs 를 통과한 input 을 전제로 한다.
    """
    if inputs.updates_traffic:
        cmd = _traffic_command(inputs)
    elif inputs.metadata:
        cmd = _replace_command(inputs)
    else:
        cmd = _deploy_command(inputs, env)

    cmd.args += ["--platform", "managed", "--region", inputs.region]
    cmd.args += parse_flags(inputs.flags)

    if cmd.install_beta:
        cmd.args.insert(0, "beta")

    logger.debug("생성된 gcloud 인자: %s", cmd.args)
    return cmd
