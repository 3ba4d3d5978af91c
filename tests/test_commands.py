import pytest

from deploy_cloudrun.commands import build_command, join_kv, parse_flags, parse_kv_string
from deploy_cloudrun.config import ActionInputs


NO_SHA: dict[str, str] = {}


def test_deploy_image_builds_expected_flags() -> None:
    inputs = ActionInputs(service="hello", image="gcr.io/cloudrun/hello", project_id="p")

    cmd = build_command(inputs, NO_SHA)

    assert cmd.args == [
        "run",
        "deploy",
        "hello",
        "--quiet",
        "--image",
        "gcr.io/cloudrun/hello",
        "--update-labels",
        "managed-by=github-actions",
        "--platform",
        "managed",
        "--region",
        "us-central1",
    ]
    assert not cmd.install_beta
    assert not cmd.warnings


def test_deploy_optional_flags() -> None:
    inputs = ActionInputs(
        service="hello",
        image="img",
        env_vars="A=1\nB=2",
        secrets="DB_PASS=db-pass:latest",
        suffix="v2",
        no_traffic=True,
        timeout="300",
        skip_default_labels=True,
    )

    args = build_command(inputs, NO_SHA).args

    assert args[args.index("--update-env-vars") + 1] == "A=1,B=2"
    assert args[args.index("--update-secrets") + 1] == "DB_PASS=db-pass:latest"
    assert args[args.index("--revision-suffix") + 1] == "v2"
    assert args[args.index("--timeout") + 1] == "300"
    assert "--no-traffic" in args
    assert "--update-labels" not in args


def test_overwrite_strategy_uses_set_env_vars() -> None:
    inputs = ActionInputs(service="hello", image="img", env_vars="A=1", env_vars_update_strategy="overwrite")

    args = build_command(inputs, NO_SHA).args

    assert "--set-env-vars" in args
    assert "--update-env-vars" not in args


def test_default_labels_include_commit_sha_and_user_labels_win() -> None:
    inputs = ActionInputs(service="hello", image="img", labels="team=web,managed-by=me")

    args = build_command(inputs, {"GITHUB_SHA": "abc123"}).args

    assert args[args.index("--update-labels") + 1] == "managed-by=me,commit-sha=abc123,team=web"


@pytest.mark.parametrize(
    "overrides, flag",
    [
        ({"source": "."}, "--source"),
        ({"image": "img", "tag": "test"}, "--tag"),
    ],
)
def test_beta_gated_deploy_features(overrides: dict, flag: str) -> None:
    cmd = build_command(ActionInputs(service="hello", **overrides), NO_SHA)

    assert cmd.install_beta
    assert cmd.args[0] == "beta"
    assert cmd.args[1:3] == ["run", "deploy"]
    assert flag in cmd.args


def test_image_wins_over_source_with_warning() -> None:
    cmd = build_command(ActionInputs(service="hello", image="img", source="."), NO_SHA)

    assert "--source" not in cmd.args
    assert not cmd.install_beta
    assert cmd.warnings


def test_metadata_uses_services_replace_and_warns_about_ignored_inputs() -> None:
    inputs = ActionInputs(metadata="service.yaml", image="img", env_vars="A=1")

    cmd = build_command(inputs, NO_SHA)

    assert cmd.args[:5] == ["beta", "run", "services", "replace", "service.yaml"]
    assert "--image" not in cmd.args
    assert len(cmd.warnings) == 1
    assert "image" in cmd.warnings[0]
    assert "env_vars" in cmd.warnings[0]


def test_revision_traffic_uses_update_traffic_without_beta() -> None:
    inputs = ActionInputs(service="hello", revision_traffic="hello-00001=50,hello-00002=50")

    cmd = build_command(inputs, NO_SHA)

    assert cmd.args[:6] == [
        "run",
        "services",
        "update-traffic",
        "hello",
        "--to-revisions",
        "hello-00001=50,hello-00002=50",
    ]
    assert not cmd.install_beta


def test_tag_traffic_gates_beta() -> None:
    cmd = build_command(ActionInputs(service="hello", tag_traffic="test=100"), NO_SHA)

    assert cmd.args[:7] == ["beta", "run", "services", "update-traffic", "hello", "--to-tags", "test=100"]


def test_traffic_takes_precedence_over_metadata() -> None:
    cmd = build_command(ActionInputs(service="hello", metadata="service.yaml", revision_traffic="LATEST=100"), NO_SHA)

    assert "replace" not in cmd.args
    assert "update-traffic" in cmd.args


def test_flags_are_appended_after_region() -> None:
    inputs = ActionInputs(
        service="hello",
        image="img",
        region="asia-northeast3",
        skip_default_labels=True,
        flags='--cpu=2 --memory 1Gi --set-cloudsql-instances "proj:region:db"',
    )

    args = build_command(inputs, NO_SHA).args

    assert args[args.index("--region") + 1] == "asia-northeast3"
    assert args[args.index("--region") + 2:] == [
        "--cpu=2",
        "--memory",
        "1Gi",
        "--set-cloudsql-instances",
        "proj:region:db",
    ]


def test_display_quotes_arguments() -> None:
    cmd = build_command(ActionInputs(service="hello", image="img", env_vars="GREETING=hello world", skip_default_labels=True), NO_SHA)

    assert "'GREETING=hello world'" in cmd.display()
    assert cmd.display().startswith("gcloud run deploy hello")


def test_parse_kv_string_handles_newlines_comments_and_escapes() -> None:
    value = "A=1\n# comment\n\nB=x\\,y, C = z=w "

    assert parse_kv_string(value) == {"A": "1", "B": "x,y", "C": "z=w"}


def test_parse_kv_string_rejects_entries_without_equals() -> None:
    with pytest.raises(ValueError) as excinfo:
        parse_kv_string("A=1,BROKEN", input_name="env_vars")

    assert "env_vars" in str(excinfo.value)
    assert "BROKEN" in str(excinfo.value)


def test_join_kv_switches_delimiter_when_values_contain_commas() -> None:
    assert join_kv({"A": "1", "B": "2"}) == "A=1,B=2"
    assert join_kv({"A": "x,y", "B": "2"}) == "^@^A=x,y@B=2"
    assert join_kv({"A": "x,y@z"}) == "^|^A=x,y@z"


def test_parse_flags_rejects_unbalanced_quotes() -> None:
    with pytest.raises(ValueError):
        parse_flags('--set-env-vars "A=1')


def test_source_deploy_streams_build_output() -> None:
    assert build_command(ActionInputs(service="hello", source="."), NO_SHA).stream_output
    assert not build_command(ActionInputs(service="hello", image="img"), NO_SHA).stream_output
