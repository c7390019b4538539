"""Unit tests for CLI commands."""

import io
import json
from unittest.mock import Mock

import httpx
import pytest
from rich.console import Console
from typer.testing import CliRunner

from capture_mcp.cli import main as cli_main
from capture_mcp.cli.commands import call as call_command
from capture_mcp.cli.commands import serve as serve_command
from capture_mcp.cli.context import CommandContext
from capture_mcp.cli.main import app
from capture_mcp.exceptions import ConfigurationError
from tests.utils.upstream_stub import SPENDING_HOST


pytestmark = pytest.mark.fast

runner = CliRunner()


@pytest.fixture
def console_buffer() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def cli_context(monkeypatch, capture_config, gateway, registry, console_buffer) -> CommandContext:
    """Route the CLI at the stubbed gateway and keep logging out of captured output."""
    context = CommandContext(
        config=capture_config,
        console=Console(file=console_buffer, width=200),
        gateway=gateway,
        registry=registry,
        run_id="testrun",
    )
    monkeypatch.setattr(CommandContext, "create", classmethod(lambda cls, config=None, run_id=None: context))
    monkeypatch.setattr(cli_main, "configure_logging_from_config", lambda level_override=None: None)
    return context


class TestMainCallback:
    def test_verbose_sets_debug(self, cli_context, monkeypatch):
        configure = Mock()
        monkeypatch.setattr(cli_main, "configure_logging_from_config", configure)

        runner.invoke(app, ["--verbose", "tools"])

        configure.assert_called_once_with(level_override="DEBUG")

    def test_context_failure_exits_2(self, monkeypatch):
        def broken_create(cls, config=None, run_id=None):
            raise ConfigurationError("bad config")

        monkeypatch.setattr(cli_main, "configure_logging_from_config", lambda level_override=None: None)
        monkeypatch.setattr(CommandContext, "create", classmethod(broken_create))

        result = runner.invoke(app, ["tools"])

        assert result.exit_code == 2
        assert "bad config" in result.output


class TestToolsCommand:
    def test_lists_all_tools(self, cli_context, console_buffer, no_api_keys):
        result = runner.invoke(app, ["tools"])

        output = console_buffer.getvalue()
        assert result.exit_code == 0
        assert "search_sam_entities" in output
        assert "get_tango_spending_summary" in output
        assert "SAM_GOV_API_KEY" in output
        assert "4 of 15 tools enabled" in output

    def test_enabled_only(self, cli_context, console_buffer, no_api_keys):
        runner.invoke(app, ["tools", "--enabled-only"])

        output = console_buffer.getvalue()
        assert "get_usaspending_awards" in output
        assert "search_sam_entities" not in output


class TestCallCommand:
    def test_success_prints_json(self, cli_context, upstream):
        upstream.add(
            "GET",
            SPENDING_HOST,
            "/agency/075/awards/",
            json={"award_count": 3, "results": [{"generated_unique_award_id": "A1"}]},
        )

        result = runner.invoke(app, ["call", "get_usaspending_awards", "--args", '{"agency_code": "075"}'])

        assert result.exit_code == 0
        payload = json.loads(result.stdout)
        assert payload["total_awards"] == 3
        assert payload["awards_summary"][0]["id"] == "A1"

    def test_error_result_exits_1(self, cli_context):
        result = runner.invoke(app, ["call", "get_usaspending_awards"])

        assert result.exit_code == 1
        assert json.loads(result.stdout)["error"] == "Agency code is required"

    def test_invalid_json_args(self, cli_context, upstream):
        result = runner.invoke(app, ["call", "get_usaspending_awards", "--args", "{not json"])

        assert result.exit_code == 1
        assert "not valid JSON" in result.output
        assert upstream.requests == []

    def test_args_must_be_object(self):
        with pytest.raises(call_command.CLIError, match="JSON object"):
            call_command.parse_tool_args("[1, 2]")

    def test_retries_network_failures(self, cli_context, upstream):
        attempts = []

        def flaky(request: httpx.Request) -> httpx.Response:
            attempts.append(request)
            if len(attempts) == 1:
                raise httpx.ConnectError("connection refused", request=request)
            return httpx.Response(200, json={"agency_name": "HHS"})

        upstream.add("GET", SPENDING_HOST, "/agency/075/budgetary_resources/", handler=flaky)

        result = runner.invoke(
            app,
            [
                "call",
                "get_usaspending_budgetary_resources",
                "-a",
                '{"agency_code": "075"}',
                "--retries",
                "2",
                "--retry-wait",
                "0",
            ],
        )

        assert result.exit_code == 0
        assert len(attempts) == 2
        assert json.loads(result.stdout)["agency_name"] == "HHS"

    def test_retries_exhausted_returns_last_result(self, cli_context, upstream):
        def down(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectTimeout("timed out", request=request)

        upstream.add("GET", SPENDING_HOST, "/agency/075/budgetary_resources/", handler=down)

        result = runner.invoke(
            app,
            ["call", "get_usaspending_budgetary_resources", "-a", '{"agency_code": "075"}', "-r", "1", "--retry-wait", "0"],
        )

        assert result.exit_code == 1
        assert len(upstream.requests) == 2
        payload = json.loads(result.stdout)
        assert "Network error" in payload["error"]
        assert payload["details"]["failure_kind"] == "network"
        assert payload["details"]["retryable"] is True

    def test_upstream_rejection_is_not_retried(self, cli_context, upstream):
        result = runner.invoke(
            app,
            ["call", "get_usaspending_budgetary_resources", "-a", '{"agency_code": "075"}', "-r", "3", "--retry-wait", "0"],
        )

        assert result.exit_code == 1
        assert len(upstream.requests) == 1

    def test_is_network_failure_reads_the_failure_kind(self):
        assert call_command.is_network_failure({"error": "unreachable", "details": {"failure_kind": "network"}})
        assert not call_command.is_network_failure(
            {"error": "API Error 503: \"x\"", "details": {"failure_kind": "http_status", "retryable": True}}
        )
        # message text alone is not enough
        assert not call_command.is_network_failure({"error": "Network error: No response received from API"})
        assert not call_command.is_network_failure({"results": []})


class TestServeCommand:
    def test_passes_registry_and_transport(self, cli_context, monkeypatch):
        run_server = Mock()
        monkeypatch.setattr(serve_command, "run_server", run_server)

        result = runner.invoke(app, ["serve", "--transport", "http", "--port", "9100"])

        assert result.exit_code == 0
        run_server.assert_called_once_with("http", host="127.0.0.1", port=9100, registry=cli_context.registry)
