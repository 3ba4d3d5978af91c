"""
gcloud_sdk
----------

Cloud SDK(gcloud) 설치/캐시, 서비스 계정 인증, 프로젝트 설정을 담당하는 모듈.

러너에 gcloud 가 없으면 rapid 채널 tarball 을 내려받아 툴 캐시에 풀고 PATH 에 추가한다.
"""

from __future__ import annotations

import base64
import binascii
import json
import os
import platform
import shutil
import sys
import tarfile
import tempfile
from typing import Any, Dict, Optional

import requests

from .actions_io import add_path
from .logging_utils import get_logger
from .subprocess_utils import run_command


logger = get_logger(__name__)


COMPONENTS_URL = "https://dl.google.com/dl/cloudsdk/channels/rapid/components-2.json"
DOWNLOAD_URL_TEMPLATE = (
    "https://dl.google.com/dl/cloudsdk/channels/rapid/downloads/"
    "google-cloud-sdk-{version}-{os}-{arch}.tar.gz"
)


def get_tool_command() -> str:
    return "gcloud.cmd" if sys.platform == "win32" else "gcloud"


def _tool_cache_root() -> str:
    root = os.getenv("RUNNER_TOOL_CACHE")
    if root:
        return root
    return os.path.join(os.path.expanduser("~"), ".cache", "deploy-cloudrun")


def _platform_tokens() -> tuple[str, str]:
    if sys.platform.startswith("linux"):
        os_name = "linux"
    elif sys.platform == "darwin":
        os_name = "darwin"
    else:
        raise RuntimeError(
            f"이 플랫폼에서는 Cloud SDK 자동 설치를 지원하지 않습니다: {sys.platform} "
            "(google-github-actions/setup-gcloud 등으로 미리 설치하세요)"
        )

    machine = platform.machine().lower()
    if machine in {"x86_64", "amd64"}:
        arch = "x86_64"
    elif machine in {"arm64", "aarch64"}:
        arch = "arm"
    else:
        arch = "x86"
    return os_name, arch


def _version_key(version: str) -> tuple[int, ...]:
    parts = []
    for p in version.split("."):
        parts.append(int(p) if p.isdigit() else -1)
    return tuple(parts)


def _sdk_dir(version: str) -> str:
    _, arch = _platform_tokens()
    return os.path.join(_tool_cache_root(), "gcloud", version, arch)


def is_installed() -> bool:
    return shutil.which(get_tool_command()) is not None


def get_latest_version() -> str:
    logger.info("최신 Cloud SDK 버전 조회: %s", COMPONENTS_URL)
    resp = requests.get(COMPONENTS_URL, timeout=30)
    resp.raise_for_status()
    version = resp.json().get("version")
    if not version:
        raise RuntimeError("Cloud SDK 최신 버전 정보를 찾을 수 없습니다.")
    return str(version)


def find_cached(version: Optional[str] = None) -> Optional[str]:
    """
    툴 캐시에서 gcloud bin 디렉토리를 찾는다.
    version 이 없으면 캐시된 것 중 가장 높은 버전을 사용한다.
    """
    base = os.path.join(_tool_cache_root(), "gcloud")
    if version:
        candidates = [version]
    elif os.path.isdir(base):
        candidates = sorted(os.listdir(base), key=_version_key, reverse=True)
    else:
        return None

    for v in candidates:
        bin_dir = os.path.join(_sdk_dir(v), "google-cloud-sdk", "bin")
        if os.path.isfile(os.path.join(bin_dir, get_tool_command())):
            return bin_dir
    return None


def install_sdk(version: str) -> str:
    """
    지정 버전의 Cloud SDK 를 내려받아 툴 캐시에 풀고 bin 디렉토리를 PATH 에 추가한다.
    """
    os_name, arch = _platform_tokens()
    url = DOWNLOAD_URL_TEMPLATE.format(version=version, os=os_name, arch=arch)
    dest = _sdk_dir(version)
    os.makedirs(dest, exist_ok=True)

    logger.info("Cloud SDK 설치: version=%s url=%s", version, url)
    with tempfile.TemporaryFile(suffix=".tar.gz") as archive:
        with requests.get(url, stream=True, timeout=300) as resp:
            resp.raise_for_status()
            for chunk in resp.iter_content(chunk_size=1 << 20):
                archive.write(chunk)
        archive.seek(0)
        with tarfile.open(fileobj=archive, mode="r:gz") as tar:
            if hasattr(tarfile, "data_filter"):
                tar.extractall(dest, filter="data")
            else:
                tar.extractall(dest)  # noqa: S202

    bin_dir = os.path.join(dest, "google-cloud-sdk", "bin")
    add_path(bin_dir)
    logger.info("Cloud SDK 설치 완료: %s", bin_dir)
    return bin_dir


def ensure_installed(version: Optional[str] = None) -> None:
    """
    gcloud 가 PATH 에 있으면 그대로 사용하고, 없으면 툴 캐시 → 신규 설치 순으로 준비한다.
    """
    if is_installed():
        logger.info("설치된 gcloud 를 사용합니다: %s", shutil.which(get_tool_command()))
        return

    cached = find_cached(version)
    if cached:
        logger.info("캐시된 Cloud SDK 를 사용합니다: %s", cached)
        add_path(cached)
        return

    install_sdk(version or get_latest_version())


def parse_service_account_key(credentials: str) -> Dict[str, Any]:
    """
    서비스 계정 키를 파싱한다. JSON 원문 또는 base64 인코딩된 JSON 을 허용한다.
    """
    raw = (credentials or "").strip()
    if not raw.startswith("{"):
        try:
            raw = base64.b64decode(raw, validate=False).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError) as e:
            raise ValueError("credentials 를 base64 로 디코딩할 수 없습니다.") from e

    try:
        key = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ValueError("credentials 가 올바른 서비스 계정 키(JSON)가 아닙니다.") from e

    if not isinstance(key, dict):
        raise ValueError("credentials 가 올바른 서비스 계정 키(JSON)가 아닙니다.")
    return key


def authenticate(credentials: str) -> None:
    """
    서비스 계정 키로 gcloud 를 인증한다.
    키 파일은 인증 직후 삭제한다 (gcloud 가 자체 설정 디렉토리에 자격증명을 보관).
    """
    key = parse_service_account_key(credentials)
    account = key.get("client_email", "")
    logger.info("서비스 계정으로 gcloud 인증: %s", account or "(client_email 없음)")

    fd, key_path = tempfile.mkstemp(suffix=".json", dir=os.getenv("RUNNER_TEMP") or None)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(key, f)
        cmd = [get_tool_command(), "auth", "activate-service-account"]
        if account:
            cmd.append(account)
        cmd += ["--key-file", key_path, "--quiet"]
        run_command(cmd)
    finally:
        os.remove(key_path)


def is_authenticated() -> bool:
    result = run_command(
        [get_tool_command(), "auth", "list", "--filter=status:ACTIVE", "--format=json"]
    )
    try:
        accounts = json.loads(result.stdout or "[]")
    except json.JSONDecodeError:
        logger.warning("gcloud auth list 출력을 해석할 수 없습니다.")
        return False
    return bool(accounts)


def set_project(project_id: str) -> None:
    logger.info("gcloud 프로젝트 설정: %s", project_id)
    run_command([get_tool_command(), "config", "set", "project", project_id, "--quiet"])


def set_project_with_key(credentials: str) -> str:
    """서비스 계정 키의 project_id 로 프로젝트를 설정하고 그 값을 반환한다."""
    key = parse_service_account_key(credentials)
    project_id = key.get("project_id")
    if not project_id:
        raise ValueError("credentials 에 project_id 가 없습니다. project_id input 을 지정하세요.")
    set_project(project_id)
    return project_id


def is_project_id_set() -> bool:
    result = run_command([get_tool_command(), "config", "get-value", "project", "--quiet"])
    return bool(result.stdout.strip())


def install_component(component: str) -> None:
    logger.info("gcloud 컴포넌트 설치: %s", component)
    run_command([get_tool_command(), "components", "install", component, "--quiet"])
