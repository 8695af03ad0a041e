"""Integration tests for the rip CLI."""

from __future__ import annotations

from pathlib import Path

import pytest
from click.testing import CliRunner

from rip.cli import cli


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def graveyard(tmp_path: Path) -> Path:
    return tmp_path / "graveyard"


@pytest.fixture
def work(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """A working directory that is also the process cwd."""
    d = tmp_path / "work"
    d.mkdir()
    monkeypatch.chdir(d)
    return d


@pytest.fixture
def env(tmp_path: Path, graveyard: Path) -> dict[str, str]:
    return {"HOME": str(tmp_path), "USER": "alice", "GRAVEYARD": str(graveyard), "RIP_CONFIG": ""}


def _grave(graveyard: Path, path: Path) -> Path:
    return graveyard / str(path).lstrip("/")


class TestBury:
    def test_buries_targets(self, runner: CliRunner, work: Path, graveyard: Path, env: dict) -> None:
        (work / "a.txt").write_text("a")
        (work / "b").mkdir()

        result = runner.invoke(cli, ["a.txt", "b"], env=env)

        assert result.exit_code == 0, result.output
        assert not (work / "a.txt").exists()
        assert _grave(graveyard, work / "a.txt").read_text() == "a"
        assert _grave(graveyard, work / "b").is_dir()
        assert len((graveyard / ".record").read_text().splitlines()) == 2

    def test_missing_target_reported(self, runner: CliRunner, work: Path, env: dict) -> None:
        (work / "a.txt").write_text("a")
        result = runner.invoke(cli, ["nope", "a.txt"], env=env)
        assert result.exit_code == 1
        assert "ERROR: Cannot remove nope: no such file or directory" in result.output
        assert not (work / "a.txt").exists()

    def test_graveyard_flag_overrides_env(
        self, runner: CliRunner, work: Path, tmp_path: Path, env: dict
    ) -> None:
        (work / "a.txt").write_text("a")
        other = tmp_path / "other"
        result = runner.invoke(cli, ["--graveyard", str(other), "a.txt"], env=env)
        assert result.exit_code == 0, result.output
        assert _grave(other, work / "a.txt").exists()

    def test_graveyard_from_config_file(
        self, runner: CliRunner, work: Path, tmp_path: Path, env: dict
    ) -> None:
        (work / "a.txt").write_text("a")
        cfg = tmp_path / "rip.yaml"
        cfg.write_text(f"graveyard: {tmp_path / 'cfg-gy'}\n")
        env = {**env, "GRAVEYARD": ""}
        result = runner.invoke(cli, ["--config", str(cfg), "a.txt"], env=env)
        assert result.exit_code == 0, result.output
        assert _grave(tmp_path / "cfg-gy", work / "a.txt").exists()

    def test_bad_config_is_an_error(self, runner: CliRunner, work: Path, tmp_path: Path, env: dict) -> None:
        cfg = tmp_path / "rip.yaml"
        cfg.write_text("keep_history: maybe\n")
        result = runner.invoke(cli, ["--config", str(cfg), "x"], env=env)
        assert result.exit_code == 1
        assert "keep_history" in result.output

    def test_already_buried_prompt(self, runner: CliRunner, work: Path, graveyard: Path, env: dict) -> None:
        (work / "a.txt").write_text("a")
        runner.invoke(cli, ["a.txt"], env=env)
        grave = _grave(graveyard, work / "a.txt")

        result = runner.invoke(cli, [str(grave)], env=env, input="y\n")

        assert "already in the graveyard" in result.output
        assert not grave.exists()

    def test_no_arguments_prints_usage(self, runner: CliRunner, work: Path, env: dict) -> None:
        result = runner.invoke(cli, [], env=env)
        assert result.exit_code == 0
        assert "Usage:" in result.output
        assert "rip -h for help" in result.output


class TestInspect:
    def test_declined(self, runner: CliRunner, work: Path, env: dict) -> None:
        (work / "a.txt").write_text("hello\nworld\n")
        result = runner.invoke(cli, ["-i", "a.txt"], env=env, input="n\n")
        assert result.exit_code == 0
        assert "a.txt: file, 12 bytes" in result.output
        assert "> hello" in result.output
        assert "Send a.txt to the graveyard?" in result.output
        assert (work / "a.txt").exists()

    def test_accepted(self, runner: CliRunner, work: Path, graveyard: Path, env: dict) -> None:
        (work / "d").mkdir()
        (work / "d" / "inner").write_text("x")
        result = runner.invoke(cli, ["--inspect", "d"], env=env, input="y\n")
        assert result.exit_code == 0, result.output
        assert "d: directory" in result.output
        assert not (work / "d").exists()
        assert _grave(graveyard, work / "d" / "inner").exists()


class TestUnbury:
    def test_last_burial(self, runner: CliRunner, work: Path, env: dict) -> None:
        (work / "a.txt").write_text("a")
        (work / "b.txt").write_text("b")
        runner.invoke(cli, ["a.txt"], env=env)
        runner.invoke(cli, ["b.txt"], env=env)

        result = runner.invoke(cli, ["-u"], env=env)

        assert result.exit_code == 0, result.output
        assert "Returned" in result.output
        assert (work / "b.txt").read_text() == "b"
        assert not (work / "a.txt").exists()

    def test_resurrect_alias(self, runner: CliRunner, work: Path, env: dict) -> None:
        (work / "a.txt").write_text("a")
        runner.invoke(cli, ["a.txt"], env=env)
        result = runner.invoke(cli, ["--resurrect"], env=env)
        assert result.exit_code == 0, result.output
        assert (work / "a.txt").exists()

    def test_nothing_to_resurrect(self, runner: CliRunner, work: Path, env: dict) -> None:
        result = runner.invoke(cli, ["-u"], env=env)
        assert result.exit_code == 0
        assert "But nobody came" in result.output

    def test_other_user_sees_nothing(self, runner: CliRunner, work: Path, env: dict) -> None:
        (work / "a.txt").write_text("a")
        runner.invoke(cli, ["a.txt"], env=env)
        result = runner.invoke(cli, ["-u"], env={**env, "USER": "bob"})
        assert "But nobody came" in result.output
        assert not (work / "a.txt").exists()

    def test_named_grave(self, runner: CliRunner, work: Path, graveyard: Path, env: dict) -> None:
        (work / "a.txt").write_text("a")
        (work / "b.txt").write_text("b")
        runner.invoke(cli, ["a.txt", "b.txt"], env=env)

        grave = _grave(graveyard, work / "a.txt")
        result = runner.invoke(cli, ["--unbury", str(grave)], env=env)

        assert result.exit_code == 0, result.output
        assert (work / "a.txt").exists()
        assert not (work / "b.txt").exists()

    def test_seance_restore(self, runner: CliRunner, work: Path, env: dict) -> None:
        (work / "a.txt").write_text("a")
        (work / "b.txt").write_text("b")
        runner.invoke(cli, ["a.txt", "b.txt"], env=env)

        result = runner.invoke(cli, ["-su"], env=env)

        assert result.exit_code == 0, result.output
        assert (work / "a.txt").exists()
        assert (work / "b.txt").exists()

    def test_corrupt_journal(self, runner: CliRunner, work: Path, graveyard: Path, env: dict) -> None:
        graveyard.mkdir()
        (graveyard / ".record").write_text("garbage\n")
        result = runner.invoke(cli, ["-u"], env=env)
        assert result.exit_code == 1
        assert "malformed journal line" in result.output


class TestSeance:
    def test_lists_graves_under_cwd(self, runner: CliRunner, work: Path, graveyard: Path, env: dict) -> None:
        (work / "sub").mkdir()
        (work / "a.txt").write_text("a")
        (work / "sub" / "b.txt").write_text("b")
        runner.invoke(cli, ["a.txt", "sub/b.txt"], env=env)

        result = runner.invoke(cli, ["--seance"], env=env)
        assert result.output.splitlines() == [
            str(_grave(graveyard, work / "a.txt")),
            str(_grave(graveyard, work / "sub" / "b.txt")),
        ]

        shallow = runner.invoke(cli, ["-s", "--max-depth", "1"], env=env)
        assert shallow.output.splitlines() == [str(_grave(graveyard, work / "a.txt"))]

    def test_depth_limits_restore(self, runner: CliRunner, work: Path, env: dict) -> None:
        (work / "sub").mkdir()
        (work / "a.txt").write_text("a")
        (work / "sub" / "b.txt").write_text("b")
        runner.invoke(cli, ["a.txt", "sub/b.txt"], env=env)

        result = runner.invoke(cli, ["-su", "--max-depth", "1"], env=env)

        assert result.exit_code == 0, result.output
        assert (work / "a.txt").exists()
        assert not (work / "sub" / "b.txt").exists()


class TestDecompose:
    def test_confirmed(self, runner: CliRunner, work: Path, graveyard: Path, env: dict) -> None:
        (work / "a.txt").write_text("a")
        runner.invoke(cli, ["a.txt"], env=env)
        result = runner.invoke(cli, ["-d"], env=env, input="y\n")
        assert result.exit_code == 0
        assert "Really unlink the entire graveyard?" in result.output
        assert not graveyard.exists()

    def test_declined(self, runner: CliRunner, work: Path, graveyard: Path, env: dict) -> None:
        (work / "a.txt").write_text("a")
        runner.invoke(cli, ["a.txt"], env=env)
        runner.invoke(cli, ["--decompose"], env=env, input="n\n")
        assert graveyard.exists()
