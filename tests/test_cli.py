from __future__ import annotations

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from data_migrator import cli
from data_migrator.errors import BatchWriteError, NotFoundError, StageError, WriteError
from data_migrator.models import ResolvedResources, RunResult, RunState

runner = CliRunner()

_ARGS = [
    "--lambda", "upload",
    "--bucket", "PostsBucket",
    "--table", "PostsTable",
    "--postUrl", "https://example.com/p1.json",
    "--postName", "p1.json",
]


@pytest.fixture(autouse=True)
def _isolated(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    for name in ("MIGRATE_DATA_MANIFEST", "MIGRATE_DATA_LOG_LEVEL", "MIGRATE_DATA_LOG_FORMAT"):
        monkeypatch.delenv(name, raising=False)


def test_missing_required_option_exits_2() -> None:
    res = runner.invoke(cli.app, _ARGS[:-2])
    assert res.exit_code == 2
    assert "postName" in res.output


def test_missing_manifest_is_a_config_error() -> None:
    res = runner.invoke(cli.app, _ARGS)
    assert res.exit_code == 2
    assert "Service manifest not found" in res.output


def test_invalid_url_is_a_config_error() -> None:
    args = list(_ARGS)
    args[args.index("https://example.com/p1.json")] = "not-a-url"
    res = runner.invoke(cli.app, args)
    assert res.exit_code == 2
    assert "source_url" in res.output


def test_success_prints_summary(monkeypatch, manifest, tmp_path: Path) -> None:
    (tmp_path / "service.json").write_text(json.dumps(manifest), encoding="utf-8")
    seen = {}

    def _fake_run(options, *, settings):
        seen["options"] = options
        seen["manifest_path"] = settings.manifest_path
        return RunResult(
            state=RunState.DONE,
            transitions=[RunState.IDLE, RunState.DONE],
            resources=ResolvedResources(function_name="posts-dev-upload", bucket_name="posts-raw", table_name="posts"),
            documents_staged=1,
            items_written=1,
        )

    monkeypatch.setattr(cli, "run_pipeline", _fake_run)
    res = runner.invoke(cli.app, _ARGS)

    assert res.exit_code == 0, res.output
    assert "Migration complete." in res.output
    assert "Items written to posts: 1" in res.output
    assert seen["options"].function_ref == "upload"
    assert seen["manifest_path"] == Path("service.json")


def test_short_flags_are_accepted(monkeypatch) -> None:
    seen = {}

    def _fake_run(options, *, settings):
        seen["options"] = options
        raise StageError("fetch", NotFoundError("s3://posts-raw/p1.json does not exist", bucket="posts-raw", key="p1.json"))

    monkeypatch.setattr(cli, "run_pipeline", _fake_run)
    res = runner.invoke(
        cli.app,
        ["-l", "upload", "-b", "PostsBucket", "-t", "PostsTable", "-u", "https://example.com/p1.json", "-n", "p1.json"],
    )

    assert res.exit_code == 1
    assert seen["options"].object_name == "p1.json"
    assert "Stage 'fetch' failed" in res.output
    assert "No items were written." in res.output


def test_write_failure_lists_every_failed_item(monkeypatch) -> None:
    errors = [
        WriteError("Write to posts failed: boom", table="posts", item={"id": "p1"}),
        WriteError("Write to posts failed: bang", table="posts", item={"id": "p2"}),
    ]

    def _fake_run(options, *, settings):
        raise StageError("write", BatchWriteError(errors, table="posts", attempted=3))

    monkeypatch.setattr(cli, "run_pipeline", _fake_run)
    res = runner.invoke(cli.app, _ARGS)

    assert res.exit_code == 1
    assert "2 of 3 item write(s) failed" in res.output
    assert "boom" in res.output and "bang" in res.output
    assert "Some items may already be written" in res.output
