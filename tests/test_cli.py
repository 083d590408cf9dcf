"""Tests for the command-line interface.

Runs commands through click's CliRunner against a temporary database.
"""

from collections.abc import Generator
from pathlib import Path
from unittest.mock import patch

import pytest
from click.testing import CliRunner, Result

from phrasespam.cli import SPAM_EXIT_CODE, cli
from phrasespam.core.errors import StorageUnavailableError
from phrasespam.core.logging import configure_logging


@pytest.fixture(autouse=True)
def restore_logging() -> Generator[None, None, None]:
    """Point logging back at the real stderr after CliRunner swapped it."""
    yield
    configure_logging(log_level="WARNING", json_output=False)


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def cli_db(data_dir: Path) -> Path:
    return data_dir / "cli.db"


def _invoke(
    runner: CliRunner, config_file: Path, db: Path, *args: str, input: str | None = None
) -> Result:
    return runner.invoke(
        cli, ["--config", str(config_file), "--db", str(db), *args], input=input
    )


def _train(runner: CliRunner, config_file: Path, db: Path) -> None:
    for _ in range(5):
        spam = _invoke(runner, config_file, db, "learn", "--spam", input="cheap pills")
        good = _invoke(runner, config_file, db, "learn", "--good", input="team meeting")
        assert spam.exit_code == 0, spam.output
        assert good.exit_code == 0, good.output


class TestInitDb:
    """Tests for the init-db command."""

    def test_creates_database(self, runner: CliRunner, config_file: Path, cli_db: Path) -> None:
        """Test that init-db creates the file and prints empty stats."""
        result = _invoke(runner, config_file, cli_db, "init-db")

        assert result.exit_code == 0, result.output
        assert cli_db.exists()
        assert "Database ready" in result.output
        assert "Phrases:   0" in result.output


class TestLearnAndScore:
    """Tests for learn and score commands."""

    def test_learn_requires_exactly_one_label(
        self, runner: CliRunner, config_file: Path, cli_db: Path
    ) -> None:
        """Test that --spam and --good are mutually exclusive and required."""
        neither = _invoke(runner, config_file, cli_db, "learn", input="hello")
        both = _invoke(runner, config_file, cli_db, "learn", "--spam", "--good", input="hello")

        assert neither.exit_code == 2
        assert both.exit_code == 2
        assert "exactly one of --spam or --good" in neither.output

    def test_learn_from_stdin(self, runner: CliRunner, config_file: Path, cli_db: Path) -> None:
        """Test learning a message piped on stdin."""
        result = _invoke(runner, config_file, cli_db, "learn", "--spam", input="buy now")

        assert result.exit_code == 0, result.output
        assert "Learned as spam: 3 phrases" in result.output

    def test_learn_from_file(
        self, runner: CliRunner, config_file: Path, cli_db: Path, tmp_path: Path
    ) -> None:
        """Test learning a message read from a file."""
        message = tmp_path / "message.txt"
        message.write_text("see you at lunch", encoding="utf-8")

        result = _invoke(runner, config_file, cli_db, "learn", "--good", str(message))

        assert result.exit_code == 0, result.output
        assert "Learned as good" in result.output

    def test_score_without_data_fails(
        self, runner: CliRunner, config_file: Path, cli_db: Path
    ) -> None:
        """Test that scoring an untrained database reports insufficient data."""
        result = _invoke(runner, config_file, cli_db, "score", input="hello")

        assert result.exit_code == 1
        assert "Not enough data" in result.output

    def test_score_prints_probability(
        self, runner: CliRunner, config_file: Path, cli_db: Path
    ) -> None:
        """Test that score prints the probability and exits 0 without a threshold."""
        _train(runner, config_file, cli_db)

        result = _invoke(runner, config_file, cli_db, "score", input="unrelated words")

        assert result.exit_code == 0, result.output
        assert "0.500000" in result.output

    def test_score_threshold_exit_code(
        self, runner: CliRunner, config_file: Path, cli_db: Path
    ) -> None:
        """Test that reaching the threshold exits with the spam status."""
        _train(runner, config_file, cli_db)

        args = ("score", "--threshold", "0.9")
        spam = _invoke(runner, config_file, cli_db, *args, input="cheap pills")
        good = _invoke(runner, config_file, cli_db, *args, input="team meeting")

        assert spam.exit_code == SPAM_EXIT_CODE
        assert good.exit_code == 0

    def test_storage_unavailable_is_reported(
        self, runner: CliRunner, config_file: Path, cli_db: Path
    ) -> None:
        """Test that exhausted retries give a clear message and exit 1."""
        with patch(
            "phrasespam.classifier.bayes.SpamClassifier.learn",
            side_effect=StorageUnavailableError("database stayed locked", attempts=3),
        ):
            result = _invoke(runner, config_file, cli_db, "learn", "--spam", input="x")

        assert result.exit_code == 1
        assert "Database unavailable" in result.output


class TestInspection:
    """Tests for stats, phrases and dump commands."""

    def test_stats(self, runner: CliRunner, config_file: Path, cli_db: Path) -> None:
        """Test message and phrase counts."""
        _train(runner, config_file, cli_db)

        result = _invoke(runner, config_file, cli_db, "stats")

        assert result.exit_code == 0, result.output
        assert "Phrases:   6" in result.output
        assert "10 (5 spam, 5 good)" in result.output

    def test_phrases_table(self, runner: CliRunner, config_file: Path, cli_db: Path) -> None:
        """Test the per-phrase table."""
        _train(runner, config_file, cli_db)

        result = _invoke(runner, config_file, cli_db, "phrases", input="cheap hello")

        assert result.exit_code == 0, result.output
        assert "cheap" in result.output
        assert "0.9900" in result.output
        assert "Phrases (3)" in result.output

    def test_dump_to_stdout(self, runner: CliRunner, config_file: Path, cli_db: Path) -> None:
        """Test that dump writes the report to stdout."""
        _train(runner, config_file, cli_db)

        result = _invoke(runner, config_file, cli_db, "dump")

        assert result.exit_code == 0, result.output
        assert result.output.startswith("Phrase")
        assert "Phrases: 6" in result.output
        assert "Spammiest (p=0.9900, 5 occurrences)" in result.output

    def test_dump_to_file(
        self, runner: CliRunner, config_file: Path, cli_db: Path, tmp_path: Path
    ) -> None:
        """Test that --output writes the report to a file."""
        _train(runner, config_file, cli_db)
        output = tmp_path / "dump.txt"

        result = _invoke(runner, config_file, cli_db, "dump", "--output", str(output))

        assert result.exit_code == 0, result.output
        assert "Cleanest (p=0.0100, 5 occurrences)" in output.read_text(encoding="utf-8")


class TestValidateConfig:
    """Tests for the validate-config command."""

    def test_valid(self, runner: CliRunner, config_file: Path) -> None:
        """Test validating a good file."""
        result = runner.invoke(cli, ["--config", str(config_file), "validate-config"])

        assert result.exit_code == 0
        assert "Configuration valid" in result.output

    def test_invalid(self, runner: CliRunner, temp_config_dir: Path) -> None:
        """Test validating a broken file."""
        path = temp_config_dir / "bad.yaml"
        path.write_text("extraction:\n  max_phrase_length: 0\n")

        result = runner.invoke(cli, ["--config", str(path), "validate-config"])

        assert result.exit_code == 1
        assert "Validation error" in result.output

    def test_bad_config_blocks_commands(
        self, runner: CliRunner, temp_config_dir: Path, cli_db: Path
    ) -> None:
        """Test that other commands refuse an invalid config."""
        path = temp_config_dir / "bad.yaml"
        path.write_text("retry:\n  max_attempts: 0\n")

        result = _invoke(runner, path, cli_db, "stats")

        assert result.exit_code == 1
        assert "Config error" in result.output
