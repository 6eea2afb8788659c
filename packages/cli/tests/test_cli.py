"""Tests for the CLI entry point."""

import logging
import re
from pathlib import Path

import pytest
from click.testing import CliRunner

from codeql_report_cli.cli import LOGGER_NAME, configure_logging, main
from codeql_report_core.errors import FetchError
from codeql_report_core.gh.code_scanning import AlertClient
from codeql_report_core.models import Alert

HEADER = (
    "Org,Repo,Alert ID,Severity,Short Description,Full Description,"
    "File Path,Start Line,Start Column,End Line,End Column"
)


class StubClient:
    def __init__(self, failing=()):
        self.failing = set(failing)

    def get_alert(self, owner, repo, number):
        if number in self.failing:
            raise FetchError(owner, repo, number, "404 Not Found")
        return Alert(
            owner=owner,
            repo=repo,
            id=number,
            severity="high",
            short_description="SQL injection",
            full_description="User input flows into a SQL query.",
            file_path="src/main.go",
            start_line=10,
            start_column=1,
            end_line=12,
            end_column=5,
        )


@pytest.fixture(autouse=True)
def _reset_logger():
    yield
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


def _patch_common(mocker, client=None):
    """Patch the GitHub client for most tests."""
    return mocker.patch.object(AlertClient, "from_config", return_value=client or StubClient())


def _output_lines(path):
    return Path(path).read_text(encoding="utf-8").splitlines()


class TestCLIValidation:
    def test_missing_token(self, mocker, monkeypatch, tmp_path):
        """The environment is never consulted: --token is required."""
        monkeypatch.setenv("GITHUB_TOKEN", "env-token")
        from_config = _patch_common(mocker)
        runner = CliRunner()
        with runner.isolated_filesystem(temp_dir=tmp_path):
            Path("input.csv").write_text("Repository,Alert Number\nocto/hello-world,3\n")

            result = runner.invoke(main, ["--input", "input.csv"])

            assert result.exit_code != 0
            assert "required flag(s) not provided: token" in result.output
            assert not Path("codeql-report.csv").exists()
        from_config.assert_not_called()

    def test_all_missing_flags_listed(self, mocker, monkeypatch, tmp_path):
        monkeypatch.delenv("GITHUB_TOKEN", raising=False)
        _patch_common(mocker)
        runner = CliRunner()
        with runner.isolated_filesystem(temp_dir=tmp_path):
            result = runner.invoke(main, [])

        assert result.exit_code != 0
        assert "token, input" in result.output

    def test_missing_input(self, mocker, tmp_path):
        from_config = _patch_common(mocker)
        runner = CliRunner()
        with runner.isolated_filesystem(temp_dir=tmp_path):
            result = runner.invoke(main, ["--token", "tok"])

        assert result.exit_code != 0
        assert "input" in result.output
        from_config.assert_not_called()

    def test_invalid_config_file_is_usage_error(self, mocker, tmp_path):
        _patch_common(mocker)
        runner = CliRunner()
        with runner.isolated_filesystem(temp_dir=tmp_path):
            Path("input.csv").write_text("Repository,Alert Number\n")
            Path("bad.yml").write_text("severity_field: priority\n")

            result = runner.invoke(main, ["--token", "tok", "--input", "input.csv", "--config", "bad.yml"])

        assert result.exit_code == 2
        assert "severity_field" in result.output

    def test_unparsable_config_file_is_usage_error(self, mocker, tmp_path):
        _patch_common(mocker)
        runner = CliRunner()
        with runner.isolated_filesystem(temp_dir=tmp_path):
            Path("input.csv").write_text("Repository,Alert Number\n")
            Path("bad.yml").write_text("output: [unclosed\n")

            result = runner.invoke(main, ["--token", "tok", "--input", "input.csv", "--config", "bad.yml"])

        assert result.exit_code == 2
        assert "not valid YAML" in result.output


class TestCLIRunReport:
    def test_writes_report(self, mocker, tmp_path):
        _patch_common(mocker)
        runner = CliRunner()
        with runner.isolated_filesystem(temp_dir=tmp_path):
            Path("input.csv").write_text("Repository,Alert Number\nocto/hello-world,3\n")

            result = runner.invoke(main, ["--token", "tok", "--input", "input.csv"])

            assert result.exit_code == 0, result.output
            lines = _output_lines("codeql-report.csv")
            assert lines[0] == HEADER
            assert lines[1] == (
                "octo,hello-world,3,high,SQL injection,User input flows into a SQL query.,src/main.go,10,1,12,5"
            )

    def test_token_flag_reaches_client(self, mocker, tmp_path):
        from_config = mocker.patch.object(AlertClient, "from_config", return_value=StubClient())
        runner = CliRunner()
        with runner.isolated_filesystem(temp_dir=tmp_path):
            Path("input.csv").write_text("Repository,Alert Number\n")
            runner.invoke(main, ["--token", "secret", "--input", "input.csv"])

        assert from_config.call_args.args[1] == "secret"

    def test_custom_output_path(self, mocker, tmp_path):
        _patch_common(mocker)
        runner = CliRunner()
        with runner.isolated_filesystem(temp_dir=tmp_path):
            Path("input.csv").write_text("Repository,Alert Number\nocto/a,1\n")

            result = runner.invoke(main, ["--token", "tok", "--input", "input.csv", "--output", "out.csv"])

            assert result.exit_code == 0, result.output
            assert len(_output_lines("out.csv")) == 2
            assert not Path("codeql-report.csv").exists()

    def test_bad_row_still_exits_zero_with_header_only(self, mocker, tmp_path):
        _patch_common(mocker)
        runner = CliRunner()
        with runner.isolated_filesystem(temp_dir=tmp_path):
            Path("input.csv").write_text("Repository,Alert Number\nbad-format,5\n")

            result = runner.invoke(main, ["--token", "tok", "--input", "input.csv"])

            assert result.exit_code == 0, result.output
            assert _output_lines("codeql-report.csv") == [HEADER]
            assert "1 of 1 record(s) could not be processed" in result.output

    def test_fetch_failures_skipped(self, mocker, tmp_path):
        _patch_common(mocker, client=StubClient(failing={2}))
        runner = CliRunner()
        with runner.isolated_filesystem(temp_dir=tmp_path):
            Path("input.csv").write_text("Repository,Alert Number\nocto/a,1\nocto/b,2\nocto/c,3\n")

            result = runner.invoke(main, ["--token", "tok", "--input", "input.csv"])

            assert result.exit_code == 0, result.output
            lines = _output_lines("codeql-report.csv")
            assert [line.split(",")[1] for line in lines[1:]] == ["a", "c"]

    def test_missing_input_file_exits_one(self, mocker, tmp_path):
        _patch_common(mocker)
        runner = CliRunner()
        with runner.isolated_filesystem(temp_dir=tmp_path):
            result = runner.invoke(main, ["--token", "tok", "--input", "missing.csv"])

            assert result.exit_code == 1
            assert "Error generating report" in result.output
            assert not Path("codeql-report.csv").exists()

    def test_malformed_input_file_exits_one(self, mocker, tmp_path):
        _patch_common(mocker)
        runner = CliRunner()
        with runner.isolated_filesystem(temp_dir=tmp_path):
            Path("input.csv").write_text("Repository,Alert Number\nocto/a,1,extra\n")

            result = runner.invoke(main, ["--token", "tok", "--input", "input.csv"])

            assert result.exit_code == 1
            assert "row length" in result.output

    def test_non_utf8_input_exits_one_with_message(self, mocker, tmp_path):
        _patch_common(mocker)
        runner = CliRunner()
        with runner.isolated_filesystem(temp_dir=tmp_path):
            Path("input.csv").write_bytes(b"Repository,Alert Number\nocto/\xff\xfe,1\n")

            result = runner.invoke(main, ["--token", "tok", "--input", "input.csv"])

            assert result.exit_code == 1
            assert not isinstance(result.exception, UnicodeDecodeError)
            assert "Error generating report" in result.output
            assert "UTF-8" in result.output
            assert not Path("codeql-report.csv").exists()

    def test_verbose_prints_progress_and_confirmation(self, mocker, tmp_path):
        _patch_common(mocker)
        runner = CliRunner()
        with runner.isolated_filesystem(temp_dir=tmp_path):
            Path("input.csv").write_text("Repository,Alert Number\nocto/a,1\nocto/b,2\n")

            result = runner.invoke(main, ["--token", "tok", "--input", "input.csv", "--verbose"])

        assert result.exit_code == 0, result.output
        assert "Processing record 2/2" in result.output
        assert "Report successfully generated at codeql-report.csv" in result.output

    def test_quiet_run_has_no_confirmation(self, mocker, tmp_path):
        _patch_common(mocker)
        runner = CliRunner()
        with runner.isolated_filesystem(temp_dir=tmp_path):
            Path("input.csv").write_text("Repository,Alert Number\nocto/a,1\n")
            log_path = Path("logs") / "run.log"

            result = runner.invoke(main, ["--token", "tok", "--input", "input.csv", "--log", str(log_path)])

            assert result.exit_code == 0, result.output
            assert "Processing record" not in result.output
            assert "Report successfully generated" not in result.output

    def test_log_file_created_and_appended(self, mocker, tmp_path):
        _patch_common(mocker)
        runner = CliRunner()
        with runner.isolated_filesystem(temp_dir=tmp_path):
            Path("input.csv").write_text("Repository,Alert Number\nbad-format,5\n")
            log_path = Path("logs") / "run.log"

            runner.invoke(main, ["--token", "tok", "--input", "input.csv", "--log", str(log_path)])
            runner.invoke(main, ["--token", "tok", "--input", "input.csv", "--log", str(log_path)])

            content = log_path.read_text()

        assert content.count("Starting gh-codeql-report") == 2
        assert "Failed to process 1 alerts" in content


class TestConfigureLogging:
    def test_replaces_previous_handlers(self, tmp_path):
        configure_logging(str(tmp_path / "a.log"), verbose=False)
        logger = configure_logging(str(tmp_path / "b.log"), verbose=True)

        assert len(logger.handlers) == 1
        assert logger.level == logging.DEBUG
        assert logger.propagate is False

    def test_log_records_carry_time_and_source_location(self, tmp_path):
        log_path = tmp_path / "run.log"
        logger = configure_logging(str(log_path), verbose=False)

        logger.info("Starting gh-codeql-report")
        logger.handlers[0].flush()

        line = log_path.read_text().splitlines()[0]
        timestamp = r"\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2},\d{3}"
        assert re.match(timestamp + r" test_cli\.py:\d+: Starting gh-codeql-report$", line)
