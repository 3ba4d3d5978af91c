from __future__ import annotations

import os
from dataclasses import dataclass
from typing import List, Mapping, Optional

from dotenv import load_dotenv


ENV_FILES_DEFAULT_ORDER = [".env", ".env.action"]

DEFAULT_REGION = "us-central1"

ENV_VARS_UPDATE_STRATEGIES = ("merge", "overwrite")

# GitHub Actions 가 boolean input 으로 인정하는 값 (YAML 1.2 core schema)
_TRUE_VALUES = {"true", "True", "TRUE"}
_FALSE_VALUES = {"false", "False", "FALSE"}


def load_env_files(base_dir: str = ".",
                   files: Optional[List[str]] = None) -> None:
    """
    로컬 실행용: 주어진 디렉토리에서 .env 계열 파일을 순서대로 로드한다.
    후순위 파일이 같은 키를 덮어쓴다.
    """
    order = files or ENV_FILES_DEFAULT_ORDER
    for name in order:
        path = os.path.join(base_dir, name)
        if os.path.exists(path):
            load_dotenv(path, override=True)


def input_env_name(name: str) -> str:
    """action input 이름을 러너가 넘겨주는 환경변수 이름으로 변환한다."""
    return "INPUT_" + name.replace(" ", "_").upper()


def get_input(name: str, env: Optional[Mapping[str, str]] = None) -> str:
    source = os.environ if env is None else env
    return (source.get(input_env_name(name)) or "").strip()


def get_bool_input(name: str,
                   env: Optional[Mapping[str, str]] = None,
                   default: bool = False) -> bool:
    raw = get_input(name, env)
    if not raw:
        return default
    if raw in _TRUE_VALUES:
        return True
    if raw in _FALSE_VALUES:
        return False
    raise ValueError(
        f"input '{name}' 은(는) boolean 이어야 합니다 (true | True | TRUE | false | False | FALSE): {raw!r}"
    )


@dataclass
class ActionInputs:
    # 배포 대상
    service: str = ""
    image: str = ""
    source: str = ""
    metadata: str = ""
    region: str = DEFAULT_REGION

    # 인증/프로젝트
    project_id: str = ""
    credentials: str = ""

    # 리비전 설정
    env_vars: str = ""
    env_vars_update_strategy: str = "merge"
    secrets: str = ""
    labels: str = ""
    skip_default_labels: bool = False
    suffix: str = ""
    tag: str = ""
    no_traffic: bool = False
    timeout: str = ""

    # 트래픽 분배
    revision_traffic: str = ""
    tag_traffic: str = ""

    # 기타
    flags: str = ""
    gcloud_version: str = ""

    @property
    def updates_traffic(self) -> bool:
        return bool(self.revision_traffic or self.tag_traffic)

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "ActionInputs":
        """
        러너가 INPUT_* 환경변수로 넘겨준 action input 을 읽는다.
        project_id 가 비어 있으면 GCLOUD_PROJECT 를 사용한다.
        """
        source = os.environ if env is None else env

        def get(name: str) -> str:
            return get_input(name, source)

        return cls(
            service=get("service"),
            image=get("image"),
            source=get("source"),
            metadata=get("metadata"),
            region=get("region") or DEFAULT_REGION,
            project_id=get("project_id") or (source.get("GCLOUD_PROJECT") or "").strip(),
            credentials=get("credentials"),
            env_vars=get("env_vars"),
            env_vars_update_strategy=(get("env_vars_update_strategy") or "merge").lower(),
            secrets=get("secrets"),
            labels=get("labels"),
            skip_default_labels=get_bool_input("skip_default_labels", source),
            suffix=get("suffix"),
            tag=get("tag"),
            no_traffic=get_bool_input("no_traffic", source),
            timeout=get("timeout"),
            revision_traffic=get("revision_traffic"),
            tag_traffic=get("tag_traffic"),
            flags=get("flags"),
            gcloud_version=get("gcloud_version"),
        )


def validate_inputs(inputs: ActionInputs) -> None:
    """
    서로 충돌하는 input 조합을 거부한다. 실패 시 ValueError.
    """
    if inputs.revision_traffic and inputs.tag_traffic:
        raise ValueError(
            "revision_traffic 와 tag_traffic 이 모두 설정되었습니다. 둘 중 하나만 사용하세요."
        )

    if inputs.updates_traffic and not inputs.service:
        raise ValueError(
            "revision_traffic/tag_traffic 을 사용하려면 service 이름이 필요합니다."
        )

    if not inputs.credentials and not inputs.project_id:
        raise ValueError(
            "프로젝트를 결정할 수 없습니다. credentials 또는 project_id 중 하나는 설정해야 합니다."
        )

    if inputs.env_vars_update_strategy not in ENV_VARS_UPDATE_STRATEGIES:
        raise ValueError(
            f"알 수 없는 env_vars_update_strategy 값입니다: {inputs.env_vars_update_strategy!r} "
            f"({' | '.join(ENV_VARS_UPDATE_STRATEGIES)} 중 하나)"
        )
