"""
verify
------

배포 후 Cloud Run 서비스 상태가 기대값과 일치하는지 점검하는 모듈.

`gcloud run services describe` 결과(서비스 디스크립터)를 읽어
env / 파라미터 / annotation / label / 리비전 / 태그 / 트래픽을 비교하고,
서비스 URL 에 ID 토큰으로 요청을 보내 응답을 확인한다.
실제 리소스 변경은 하지 않는다.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

import google.auth.transport.requests
import requests
from google.oauth2 import id_token

from .config import DEFAULT_REGION
from .logging_utils import get_logger
from . import gcp_cloud_run


logger = get_logger(__name__)


def _get(data: Any, path: str, default: Any = None) -> Any:
    cur = data
    for part in path.split("."):
        if isinstance(cur, list):
            if not part.isdigit() or int(part) >= len(cur):
                return default
            cur = cur[int(part)]
        elif isinstance(cur, dict):
            if part not in cur:
                return default
            cur = cur[part]
        else:
            return default
    return cur


@dataclass
class ExpectedState:
    service: str = ""
    region: str = DEFAULT_REGION
    env: Dict[str, str] = field(default_factory=dict)
    params: Dict[str, Any] = field(default_factory=dict)
    annotations: Dict[str, Any] = field(default_factory=dict)
    labels: Dict[str, Any] = field(default_factory=dict)
    count: Optional[int] = None
    revision: str = ""
    tag: str = ""
    traffic: Optional[int] = None
    url: str = ""
    expect_body: str = ""


def check_env_vars(service: Dict[str, Any], expected: Mapping[str, str]) -> List[str]:
    # secret 참조(valueFrom)는 비교 대상에서 제외
    actual_list = _get(service, "spec.template.spec.containers.0.env") or []
    actual = {e.get("name"): e.get("value") for e in actual_list if "valueFrom" not in e}

    issues: List[str] = []
    if len(actual) != len(expected):
        issues.append(f"env: 개수 불일치 (expected={len(expected)}, actual={len(actual)})")
    for name, value in expected.items():
        if name not in actual:
            issues.append(f"env: 없음 ({name})")
        elif actual[name] != value:
            issues.append(f"env: 값 불일치 ({name}: expected={value!r}, actual={actual[name]!r})")
    return issues


def check_params(service: Dict[str, Any], expected: Mapping[str, Any]) -> List[str]:
    spec = _get(service, "spec.template.spec") or {}
    limits = _get(spec, "containers.0.resources.limits") or {}

    issues: List[str] = []
    for key in ("containerConcurrency", "timeoutSeconds"):
        if key not in expected:
            continue
        try:
            want = int(expected[key])
        except (TypeError, ValueError):
            issues.append(f"params: {key} 기대값이 정수가 아닙니다 ({expected[key]!r})")
            continue
        if spec.get(key) != want:
            issues.append(f"params: {key} 불일치 (expected={expected[key]}, actual={spec.get(key)})")
    for key in ("cpu", "memory"):
        if key in expected and limits.get(key) != str(expected[key]):
            issues.append(f"params: {key} 불일치 (expected={expected[key]}, actual={limits.get(key)})")
    return issues


def check_mapping(actual: Optional[Mapping[str, Any]],
                  expected: Mapping[str, Any],
                  what: str) -> List[str]:
    """expected 의 모든 항목이 actual 에 같은 값으로 존재하는지 확인한다."""
    actual = actual or {}
    issues: List[str] = []
    for key, value in expected.items():
        if key not in actual:
            issues.append(f"{what}: 없음 ({key})")
        elif str(actual[key]) != str(value):
            issues.append(f"{what}: 값 불일치 ({key}: expected={value!r}, actual={actual[key]!r})")
    return issues


def check_revision_count(revisions: List[Dict[str, Any]], count: int) -> List[str]:
    if len(revisions) != count:
        return [f"revisions: 개수 불일치 (expected={count}, actual={len(revisions)})"]
    return []


def check_revision_name(service: Dict[str, Any], revision: str) -> List[str]:
    actual = _get(service, "spec.template.metadata.name")
    if actual != revision:
        return [f"revision: 이름 불일치 (expected={revision}, actual={actual})"]
    return []


def _find_tagged(service: Dict[str, Any], tag: str) -> Optional[Dict[str, Any]]:
    for target in _get(service, "spec.traffic") or []:
        if target.get("tag") == tag:
            return target
    return None


def check_tag(service: Dict[str, Any], tag: str) -> List[str]:
    if _find_tagged(service, tag) is None:
        return [f"traffic: 태그 없음 ({tag})"]
    return []


def check_traffic(service: Dict[str, Any], tag: str, percent: int) -> List[str]:
    tagged = _find_tagged(service, tag)
    if tagged is None:
        return [f"traffic: 태그 없음 ({tag})"]

    revision = tagged.get("revisionName")
    actual = 0
    for target in _get(service, "spec.traffic") or []:
        if target.get("revisionName") == revision and "percent" in target:
            actual = int(target["percent"])
            break
    if actual != percent:
        return [f"traffic: 비율 불일치 ({tag}/{revision}: expected={percent}, actual={actual})"]
    return []


def check_url(url: str, expect_body: str = "", *, timeout: float = 30.0) -> List[str]:
    """
    ID 토큰(ADC 필요)으로 서비스 URL 을 호출하여 200 응답과 본문을 확인한다.
    """
    auth_request = google.auth.transport.requests.Request()
    token = id_token.fetch_id_token(auth_request, url)
    resp = requests.get(url, headers={"Authorization": f"Bearer {token}"}, timeout=timeout)

    issues: List[str] = []
    if resp.status_code != 200:
        issues.append(f"url: 응답 코드 {resp.status_code} ({url})")
    elif expect_body and expect_body not in resp.text:
        issues.append(f"url: 응답 본문에 {expect_body!r} 가 없습니다 ({url})")
    return issues


def verify_all(expected: ExpectedState) -> tuple[str, bool]:
    """
    설정된 기대값에 대해서만 점검을 수행한다.

    Returns:
        summary: 사람이 읽기 좋은 텍스트 요약
        has_failures: 하나 이상의 점검이 실패했는지 여부
    """
    logger.info("배포 상태 점검: service=%s region=%s", expected.service, expected.region)

    lines: List[str] = []
    failures: List[str] = []
    passed: List[str] = []

    lines.append("# Deploy verification")
    lines.append(f"- service: {expected.service or '(not set)'}")
    lines.append(f"- region: {expected.region}")
    lines.append("")

    def record(name: str, issues: List[str]) -> None:
        if issues:
            failures.extend(issues)
        else:
            passed.append(name)

    if expected.url:
        try:
            record("url", check_url(expected.url, expected.expect_body))
        except Exception as e:  # noqa: BLE001
            failures.append(f"url: 요청 중 예외 발생: {e}")

    service: Optional[Dict[str, Any]] = None
    if expected.service:
        try:
            service = gcp_cloud_run.describe_service(expected.service, expected.region)
        except Exception as e:  # noqa: BLE001
            failures.append(f"service: 조회 실패: {e}")

    if service is not None:
        template_metadata = _get(service, "spec.template.metadata") or {}
        if expected.env:
            record("env", check_env_vars(service, expected.env))
        if expected.params:
            record("params", check_params(service, expected.params))
        if expected.annotations:
            record("annotations", check_mapping(template_metadata.get("annotations"), expected.annotations, "annotations"))
        if expected.labels:
            record("labels", check_mapping(template_metadata.get("labels"), expected.labels, "labels"))
        if expected.revision:
            record("revision", check_revision_name(service, expected.revision))
        if expected.tag:
            record("tag", check_tag(service, expected.tag))
            if expected.traffic is not None:
                record("traffic", check_traffic(service, expected.tag, expected.traffic))

    if expected.count is not None and expected.service:
        try:
            revisions = gcp_cloud_run.list_revisions(expected.service, expected.region)
            record("revision count", check_revision_count(revisions, expected.count))
        except Exception as e:  # noqa: BLE001
            failures.append(f"revisions: 조회 실패: {e}")

    lines.append("## Passed checks")
    if passed:
        for name in passed:
            lines.append(f"- {name}")
    else:
        lines.append("- (none)")

    lines.append("")
    lines.append("## Failures")
    if failures:
        for f in failures:
            lines.append(f"- {f}")
    else:
        lines.append("- (none)")

    summary = "\n".join(lines)
    return summary, bool(failures)
