from __future__ import annotations

from typing import List

import pytest

from deploy_cloudrun import gcp_cloud_run
from deploy_cloudrun.commands import GcloudCommand
from deploy_cloudrun.subprocess_utils import RunResult


SERVICE_YAML = """\
apiVersion: serving.knative.dev/v1
kind: Service
metadata:
  name: hello
spec:
  template:
    metadata:
      name: hello-00002-abc
    spec:
      containers:
      - image: gcr.io/cloudrun/hello
"""


def test_extract_url_single_match() -> None:
    output = "Service URL: https://hello-abcdefghij-uc.a.run.app\n"
    assert gcp_cloud_run.extract_url(output) == "https://hello-abcdefghij-uc.a.run.app"


def test_extract_url_prefers_tagged_url() -> None:
    output = (
        "Service URL: https://hello-abcdefghij-uc.a.run.app\n"
        "The revision can be reached directly at https://blue---hello-abcdefghij-uc.a.run.app\n"
    )
    assert gcp_cloud_run.extract_url(output) == "https://blue---hello-abcdefghij-uc.a.run.app"


def test_extract_url_none() -> None:
    assert gcp_cloud_run.extract_url("Done.") is None
    assert gcp_cloud_run.extract_url("") is None


def test_execute_prefixes_tool_command(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: List[List[str]] = []

    def fake_run(cmd, **kwargs) -> RunResult:  # noqa: ANN001
        calls.append(list(cmd))
        return RunResult(returncode=0, stdout="", stderr="")

    monkeypatch.setattr(gcp_cloud_run, "run_command", fake_run)
    monkeypatch.setattr(gcp_cloud_run, "get_tool_command", lambda: "gcloud")

    gcp_cloud_run.execute(GcloudCommand(args=["run", "deploy", "hello", "--quiet"]))

    assert calls == [["gcloud", "run", "deploy", "hello", "--quiet"]]


def test_describe_service_parses_yaml(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: List[List[str]] = []

    def fake_run(cmd, **kwargs) -> RunResult:  # noqa: ANN001
        calls.append(list(cmd))
        return RunResult(returncode=0, stdout=SERVICE_YAML, stderr="")

    monkeypatch.setattr(gcp_cloud_run, "run_command", fake_run)

    desc = gcp_cloud_run.describe_service("hello", "us-central1")

    assert desc["spec"]["template"]["metadata"]["name"] == "hello-00002-abc"
    assert calls[0][1:5] == ["run", "services", "describe", "hello"]
    assert "--region" in calls[0]


def test_list_revisions_parses_json(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        gcp_cloud_run,
        "run_command",
        lambda cmd, **kwargs: RunResult(returncode=0, stdout='[{"metadata": {"name": "r1"}}]', stderr=""),
    )

    assert gcp_cloud_run.list_revisions("hello", "us-central1") == [{"metadata": {"name": "r1"}}]


def test_execute_streams_when_command_requests_it(monkeypatch: pytest.MonkeyPatch) -> None:
    seen = {}

    def fake_run(cmd, **kwargs) -> RunResult:  # noqa: ANN001
        seen.update(kwargs)
        return RunResult(returncode=0, stdout="Service URL: https://hello-abc-uc.a.run.app\n", stderr="")

    monkeypatch.setattr(gcp_cloud_run, "run_command", fake_run)

    result = gcp_cloud_run.execute(GcloudCommand(args=["beta", "run", "deploy"], stream_output=True))

    assert seen["stream_output"] is True
    assert gcp_cloud_run.extract_url(result.output) == "https://hello-abc-uc.a.run.app"


def test_extract_url_drops_trailing_period() -> None:
    output = "Deployed to https://hello-abcdefghij-uc.a.run.app.\n"
    assert gcp_cloud_run.extract_url(output) == "https://hello-abcdefghij-uc.a.run.app"

    output = "See https://hello-abcdefghij-uc.a.run.app/healthz."
    assert gcp_cloud_run.extract_url(output) == "https://hello-abcdefghij-uc.a.run.app/healthz"


def test_extract_url_ignores_non_cloud_run_hosts() -> None:
    output = "Docs: https://myproject.appspot.com/path and https://example.app/x\n"
    assert gcp_cloud_run.extract_url(output) is None
