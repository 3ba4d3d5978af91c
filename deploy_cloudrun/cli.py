from __future__ import annotations

import json
import sys

import click

from .config import ActionInputs, DEFAULT_REGION, load_env_files
from .commands import parse_kv_string
from .logging_utils import setup_logging, get_logger
from .orchestrator import plan as plan_deploy, run
from .verify import ExpectedState, verify_all
from . import actions_io


logger = get_logger(__name__)


@click.group()
@click.option(
    "-C",
    "--chdir",
    "chdir",
    type=click.Path(file_okay=False, dir_okay=True, exists=True),
    default=".",
    help="작업 디렉토리 (기본: 현재 디렉토리). 이 위치의 .env/.env.action 을 로드합니다.",
)
@click.option(
    "-v",
    "--verbose",
    count=True,
    help="로그 레벨을 DEBUG로 올립니다.",
)
@click.pass_context
def main(ctx: click.Context, chdir: str, verbose: int) -> None:
    """Cloud Run 배포용 GitHub Action CLI"""
    setup_logging(verbose, github_actions=actions_io.is_github_actions())
    ctx.ensure_object(dict)
    ctx.obj["chdir"] = chdir
    ctx.obj["verbose"] = verbose


def _load_inputs_from_ctx(ctx: click.Context) -> ActionInputs:
    load_env_files(ctx.obj["chdir"])
    inputs = ActionInputs.from_env()
    logger.debug("Inputs loaded: service=%s region=%s", inputs.service, inputs.region)
    return inputs


@main.command()
@click.pass_context
def deploy(ctx: click.Context) -> None:
    """INPUT_* 환경변수로 받은 action input 으로 Cloud Run 에 배포"""
    try:
        inputs = _load_inputs_from_ctx(ctx)
        result = run(inputs)
    except Exception as e:  # noqa: BLE001
        logger.exception("배포 중 오류 발생")
        actions_io.set_failed(f"배포 실패: {e}")

    if result.url:
        click.echo(f"url={result.url}")


@main.command()
@click.pass_context
def plan(ctx: click.Context) -> None:
    """gcloud 를 호출하지 않고 실행될 명령만 출력"""
    try:
        inputs = _load_inputs_from_ctx(ctx)
        report = plan_deploy(inputs)
    except Exception as e:  # noqa: BLE001
        click.echo(f"[ERROR] 설정 오류: {e}", err=True)
        sys.exit(1)

    click.echo(report)


def _json_option(value: str, name: str) -> dict:
    if not value:
        return {}
    try:
        parsed = json.loads(value)
    except json.JSONDecodeError as e:
        raise click.BadParameter(f"JSON 객체여야 합니다: {e}", param_hint=name) from e
    if not isinstance(parsed, dict):
        raise click.BadParameter("JSON 객체여야 합니다.", param_hint=name)
    return parsed


@main.command()
@click.option("--service", envvar="SERVICE", default="", help="점검할 서비스 이름")
@click.option("--region", envvar="REGION", default=DEFAULT_REGION, show_default=True)
@click.option("--env", "env_vars", envvar="ENV", default="", help="기대 env (KEY=VALUE,...)")
@click.option("--params", envvar="PARAMS", default="", help="기대 파라미터 JSON (cpu, memory, containerConcurrency, timeoutSeconds)")
@click.option("--annotations", envvar="ANNOTATIONS", default="", help="기대 annotation JSON")
@click.option("--labels", envvar="LABELS", default="", help="기대 label JSON")
@click.option("--count", envvar="COUNT", type=int, default=None, help="기대 리비전 개수")
@click.option("--revision", envvar="REVISION", default="", help="기대 리비전 이름")
@click.option("--tag", envvar="TAG", default="", help="기대 트래픽 태그")
@click.option("--traffic", envvar="TRAFFIC", type=int, default=None, help="태그된 리비전의 기대 트래픽 비율")
@click.option("--url", envvar="URL", default="", help="요청을 보내 확인할 서비스 URL")
@click.option("--expect-body", envvar="EXPECT_BODY", default="", help="응답 본문에 포함되어야 하는 문자열")
def verify(
    service: str,
    region: str,
    env_vars: str,
    params: str,
    annotations: str,
    labels: str,
    count: int | None,
    revision: str,
    tag: str,
    traffic: int | None,
    url: str,
    expect_body: str,
) -> None:
    """
    배포된 서비스가 기대 상태와 일치하는지 점검한다.
    (리소스 생성/변경은 하지 않는다)
    """
    try:
        expected = ExpectedState(
            service=service,
            region=region,
            env=parse_kv_string(env_vars, input_name="ENV"),
            params=_json_option(params, "PARAMS"),
            annotations=_json_option(annotations, "ANNOTATIONS"),
            labels=_json_option(labels, "LABELS"),
            count=count,
            revision=revision,
            tag=tag,
            traffic=traffic,
            url=url,
            expect_body=expect_body,
        )
    except ValueError as e:
        raise click.BadParameter(str(e)) from e

    report, has_failures = verify_all(expected)
    click.echo(report)

    if has_failures:
        sys.exit(1)
