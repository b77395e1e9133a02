"""Unit tests for the command-line entry point."""

import argparse
import json
import logging
from unittest.mock import MagicMock, patch

import httpx
import pytest

from livebox_cli.__main__ import (
    ENV_BASE_URL,
    ENV_PASSWORD,
    EXIT_AUTH_ERROR,
    EXIT_ERROR,
    EXIT_NOT_FOUND,
    EXIT_QUERY_ERROR,
    EXIT_SUCCESS,
    EXIT_UNCOMMITTED,
    build_parser,
    build_rule,
    main,
    parse_parameter,
    run,
)
from livebox_cli.models import Protocol
from tests.fake_livebox import BASE_URL, CONTEXT_ID, WAN_STATUS, FakeLivebox


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv(ENV_BASE_URL, raising=False)
    monkeypatch.delenv(ENV_PASSWORD, raising=False)


def parse(*argv: str) -> argparse.Namespace:
    return build_parser().parse_args(["--password", "secret", *argv])


class TestParser:
    """Tests for argument parsing."""

    def test_defaults(self) -> None:
        """Test global option defaults."""
        args = parse("exec", "-s", "NMC", "-m", "getWANStatus")
        assert args.base_url == "http://livebox.home"
        assert args.username == "admin"
        assert args.insecure is False
        assert args.query is None
        assert args.raw is False
        assert args.parameters == []

    def test_password_required(self) -> None:
        """Test that the password is mandatory without the environment variable."""
        with pytest.raises(SystemExit):
            build_parser().parse_args(["exec", "-s", "NMC", "-m", "getWANStatus"])

    def test_environment_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test base URL and password read from the environment."""
        monkeypatch.setenv(ENV_BASE_URL, "https://192.168.1.1")
        monkeypatch.setenv(ENV_PASSWORD, "from-env")

        args = build_parser().parse_args(["nat", "list"])

        assert args.base_url == "https://192.168.1.1"
        assert args.password == "from-env"

    def test_exec_parameters(self) -> None:
        """Test repeated key=value call parameters."""
        args = parse("exec", "-s", "NeMo.Intf.lan", "-m", "getMIBs", "-P", "mibs=dhcp", "-P", "x=")
        assert args.parameters == [("mibs", "dhcp"), ("x", "")]

    def test_nat_actions(self) -> None:
        """Test the NAT subcommands."""
        assert parse("nat", "list").action == "list"
        assert parse("nat", "enable", "ssh").rule_id == "ssh"
        assert parse("nat", "disable", "ssh").action == "disable"
        assert parse("firewall", "remove", "ssh").action == "remove"

    def test_unknown_protocol(self) -> None:
        """Test that only TCP, UDP and ALL are accepted."""
        with pytest.raises(SystemExit):
            parse("nat", "add", "--id", "x", "--external-port", "1", "--internal-port", "1",
                  "--destination-ip", "192.168.1.2", "--protocol", "ICMP")


class TestParseParameter:
    """Tests for parse_parameter."""

    def test_value_with_equals(self) -> None:
        """Test that only the first = separates key and value."""
        assert parse_parameter("expr=a=b") == ("expr", "a=b")

    @pytest.mark.parametrize("value", ["novalue", "=value"])
    def test_invalid(self, value: str) -> None:
        """Test malformed parameters."""
        with pytest.raises(argparse.ArgumentTypeError):
            parse_parameter(value)


class TestBuildRule:
    """Tests for build_rule."""

    def test_build_rule(self) -> None:
        """Test building add parameters from arguments."""
        args = parse(
            "nat", "add", "--id", "dns", "--external-port", "53", "--internal-port", "53",
            "--destination-ip", "192.168.1.2", "--protocol", "UDP", "--disabled",
        )
        rule = build_rule(args)

        assert rule.id == "dns"
        assert rule.protocol == Protocol.UDP
        assert rule.enable is False
        assert rule.origin == "webui"
        assert rule.source_interface == "data"

    def test_origin_and_interface(self) -> None:
        """Test overriding origin and source interface."""
        args = parse(
            "nat", "add", "--id", "dns", "--external-port", "53", "--internal-port", "53",
            "--destination-ip", "192.168.1.2", "--origin", "script", "--source-interface", "veip0",
        )
        rule = build_rule(args)

        assert rule.origin == "script"
        assert rule.source_interface == "veip0"


class TestExec:
    """Tests for the exec command."""

    def test_exec_sends_context_and_prints_data(
        self,
        fake_device: FakeLivebox,
        transport: httpx.MockTransport,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        """Test that exec returns the device data unmodified."""
        exit_code = run(parse("exec", "--service", "NMC", "--method", "getWANStatus"), transport)

        assert exit_code == EXIT_SUCCESS
        assert fake_device.calls[1] == ("NMC", "getWANStatus")
        assert fake_device.requests[1].headers["x-context"] == CONTEXT_ID
        output = json.loads(capsys.readouterr().out)
        assert output["data"] == WAN_STATUS

    def test_exec_query(
        self, transport: httpx.MockTransport, capsys: pytest.CaptureFixture[str]
    ) -> None:
        """Test that a query prints the selected node as JSON."""
        exit_code = run(
            parse("--query", "$.data.IPAddress", "exec", "-s", "NMC", "-m", "getWANStatus"),
            transport,
        )

        assert exit_code == EXIT_SUCCESS
        assert capsys.readouterr().out == '"55.27.2.115"\n'

    def test_exec_query_raw(
        self, transport: httpx.MockTransport, capsys: pytest.CaptureFixture[str]
    ) -> None:
        """Test that raw mode prints the bare string."""
        exit_code = run(
            parse("-q", "$.data.IPAddress", "--raw", "exec", "-s", "NMC", "-m", "getWANStatus"),
            transport,
        )

        assert exit_code == EXIT_SUCCESS
        assert capsys.readouterr().out == "55.27.2.115\n"

    def test_query_no_match(
        self,
        fake_device: FakeLivebox,
        transport: httpx.MockTransport,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        """Test that a query matching nothing fails after logging out."""
        exit_code = run(
            parse("-q", "$.data.Nothing", "exec", "-s", "NMC", "-m", "getWANStatus"), transport
        )

        assert exit_code == EXIT_QUERY_ERROR
        assert capsys.readouterr().out == ""
        assert fake_device.methods()[-1] == "releaseContext"

    def test_exec_failure_still_logs_out(
        self, fake_device: FakeLivebox, transport: httpx.MockTransport
    ) -> None:
        """Test that logout runs after a failed call."""
        fake_device.failures["getWANStatus"] = 500

        exit_code = run(parse("exec", "-s", "NMC", "-m", "getWANStatus"), transport)

        assert exit_code == EXIT_ERROR
        assert fake_device.methods()[-1] == "releaseContext"

    def test_logout_401_is_success(
        self,
        fake_device: FakeLivebox,
        transport: httpx.MockTransport,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        """Test that an expired context at logout does not fail the command."""
        fake_device.failures["releaseContext"] = 401

        exit_code = run(parse("exec", "-s", "NMC", "-m", "getWANStatus"), transport)

        assert exit_code == EXIT_SUCCESS
        assert json.loads(capsys.readouterr().out)["status"] is True


class TestLoginFailures:
    """Tests for failures before any command runs."""

    def test_auth_error(
        self,
        fake_device: FakeLivebox,
        transport: httpx.MockTransport,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        """Test that a rejected login skips the command and the logout."""
        fake_device.login_status = 401

        with caplog.at_level(logging.ERROR):
            exit_code = run(parse("exec", "-s", "NMC", "-m", "getWANStatus"), transport)

        assert exit_code == EXIT_AUTH_ERROR
        assert fake_device.methods() == ["createContext"]
        assert "Authentication failed: 401" in caplog.text

    def test_unreachable_device(self) -> None:
        """Test that a network failure at login exits with an error."""

        def unreachable(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        exit_code = run(
            parse("exec", "-s", "NMC", "-m", "getWANStatus"), httpx.MockTransport(unreachable)
        )

        assert exit_code == EXIT_ERROR

    @pytest.mark.parametrize(
        "base_url", ["livebox.home", "http://[::1", "http://", "https:///ws"]
    )
    def test_invalid_base_url(
        self, fake_device: FakeLivebox, transport: httpx.MockTransport, base_url: str
    ) -> None:
        """Test that an invalid base URL exits with an error before any request."""
        exit_code = run(
            parse("--base-url", base_url, "exec", "-s", "NMC", "-m", "getWANStatus"),
            transport,
        )

        assert exit_code == EXIT_ERROR
        assert fake_device.requests == []


class TestNatCommands:
    """Tests for the nat command."""

    def test_list(
        self, transport: httpx.MockTransport, capsys: pytest.CaptureFixture[str]
    ) -> None:
        """Test that rules are printed with device key names."""
        exit_code = run(parse("nat", "list"), transport)

        assert exit_code == EXIT_SUCCESS
        rules = json.loads(capsys.readouterr().out)
        assert sorted(rule["Id"] for rule in rules) == ["ssh", "web"]
        assert {"Id", "Protocol", "ExternalPort", "Enable"} <= rules[0].keys()

    def test_list_query(
        self, transport: httpx.MockTransport, capsys: pytest.CaptureFixture[str]
    ) -> None:
        """Test filtering the listing."""
        exit_code = run(parse("-q", "$[?(@.Id == 'ssh')].ExternalPort", "-r", "nat", "list"), transport)

        assert exit_code == EXIT_SUCCESS
        assert capsys.readouterr().out == "2222\n"

    def test_add_commits_by_default(
        self,
        fake_device: FakeLivebox,
        transport: httpx.MockTransport,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        """Test that nat add commits the new rule."""
        exit_code = run(
            parse(
                "nat", "add", "--id", "rdp", "--external-port", "3389", "--internal-port", "3389",
                "--destination-ip", "192.168.1.40", "--description", "remote desktop",
            ),
            transport,
        )

        assert exit_code == EXIT_SUCCESS
        assert fake_device.methods() == [
            "createContext",
            "setPortForwarding",
            "commit",
            "releaseContext",
        ]
        assert fake_device.rule("rdp")["Description"] == "remote desktop"
        assert json.loads(capsys.readouterr().out) == {"status": "webui_rdp"}

    def test_add_no_commit(
        self, fake_device: FakeLivebox, transport: httpx.MockTransport
    ) -> None:
        """Test that --no-commit skips the commit call."""
        exit_code = run(
            parse(
                "nat", "add", "--id", "rdp", "--external-port", "3389", "--internal-port", "3389",
                "--destination-ip", "192.168.1.40", "--no-commit",
            ),
            transport,
        )

        assert exit_code == EXIT_SUCCESS
        assert "commit" not in fake_device.methods()

    def test_add_invalid_arguments(
        self, fake_device: FakeLivebox, transport: httpx.MockTransport
    ) -> None:
        """Test that invalid rule arguments fail before logging in."""
        exit_code = run(
            parse(
                "nat", "add", "--id", "rdp", "--external-port", "99999", "--internal-port", "3389",
                "--destination-ip", "192.168.1.40",
            ),
            transport,
        )

        assert exit_code == EXIT_ERROR
        assert fake_device.requests == []

    def test_add_commit_failure(
        self, fake_device: FakeLivebox, transport: httpx.MockTransport
    ) -> None:
        """Test that a failed commit after add is reported as uncommitted."""
        fake_device.failures["commit"] = 500

        exit_code = run(
            parse(
                "nat", "add", "--id", "rdp", "--external-port", "3389", "--internal-port", "3389",
                "--destination-ip", "192.168.1.40",
            ),
            transport,
        )

        assert exit_code == EXIT_UNCOMMITTED
        assert fake_device.methods()[-1] == "releaseContext"

    def test_enable(
        self,
        fake_device: FakeLivebox,
        transport: httpx.MockTransport,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        """Test enabling a rule."""
        exit_code = run(parse("nat", "enable", "ssh"), transport)

        assert exit_code == EXIT_SUCCESS
        assert fake_device.rule("ssh")["Enable"] is True
        assert json.loads(capsys.readouterr().out) == {"status": "webui_ssh"}

    def test_disable(self, fake_device: FakeLivebox, transport: httpx.MockTransport) -> None:
        """Test disabling a rule."""
        assert run(parse("nat", "disable", "web"), transport) == EXIT_SUCCESS
        assert fake_device.rule("web")["Enable"] is False

    def test_remove(self, fake_device: FakeLivebox, transport: httpx.MockTransport) -> None:
        """Test removing a rule."""
        assert run(parse("nat", "remove", "web"), transport) == EXIT_SUCCESS
        assert [rule["Id"] for rule in fake_device.rules.values()] == ["ssh"]

    @pytest.mark.parametrize("argv", [("nat", "list"), ("nat", "enable", "ssh")])
    def test_listing_errors_exit_with_error(
        self,
        fake_device: FakeLivebox,
        transport: httpx.MockTransport,
        capsys: pytest.CaptureFixture[str],
        argv: tuple[str, ...],
    ) -> None:
        """Test that errors reported by the device are not shown as an empty listing."""
        fake_device._firewall = lambda method, parameters: {  # type: ignore[method-assign]
            "status": None,
            "errors": [{"error": 13, "description": "Permission denied"}],
        }

        exit_code = run(parse(*argv), transport)

        assert exit_code == EXIT_ERROR
        assert capsys.readouterr().out == ""

    @pytest.mark.parametrize("action", ["enable", "disable", "remove"])
    def test_unknown_rule(
        self,
        fake_device: FakeLivebox,
        transport: httpx.MockTransport,
        caplog: pytest.LogCaptureFixture,
        action: str,
    ) -> None:
        """Test that an unknown id exits with not-found and still logs out."""
        with caplog.at_level(logging.ERROR):
            exit_code = run(parse("nat", action, "missing"), transport)

        assert exit_code == EXIT_NOT_FOUND
        assert "No rule with id missing" in caplog.text
        assert fake_device.methods() == ["createContext", "getPortForwarding", "releaseContext"]

    def test_commit_failure(
        self,
        fake_device: FakeLivebox,
        transport: httpx.MockTransport,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        """Test that a failed commit exits with the uncommitted code."""
        fake_device.failures["commit"] = 500

        with caplog.at_level(logging.ERROR):
            exit_code = run(parse("nat", "disable", "web"), transport)

        assert exit_code == EXIT_UNCOMMITTED
        assert "could not be committed" in caplog.text


class TestMain:
    """Tests for main."""

    def test_main_runs_command(self) -> None:
        """Test that main parses arguments and delegates to run."""
        with (
            patch("livebox_cli.__main__.setup_logging") as mock_logging,
            patch("livebox_cli.__main__.run", return_value=EXIT_SUCCESS) as mock_run,
        ):
            exit_code = main(["-p", "secret", "-v", "nat", "list"])

        assert exit_code == EXIT_SUCCESS
        mock_logging.assert_called_once_with(verbose=True)
        args = mock_run.call_args[0][0]
        assert args.action == "list"
        assert args.base_url == BASE_URL

    def test_version(self, capsys: pytest.CaptureFixture[str]) -> None:
        """Test the --version flag."""
        with pytest.raises(SystemExit) as exc_info:
            main(["--version"])

        assert exc_info.value.code == 0
        assert "livebox-cli 0.1.0" in capsys.readouterr().out

    def test_default_transport(self) -> None:
        """Test that run defaults to the real transport when none is given."""
        with patch("livebox_cli.__main__.Session.from_config") as mock_login:
            mock_login.return_value = MagicMock()
            mock_login.return_value.__enter__.return_value = mock_login.return_value
            with patch("livebox_cli.__main__.execute_command", return_value={"ok": True}):
                exit_code = run(parse("nat", "list"))

        assert exit_code == EXIT_SUCCESS
        assert mock_login.call_args.kwargs["transport"] is None
