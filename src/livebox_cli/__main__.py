"""Command-line entry point for livebox-cli.

Usage:
    livebox-cli [options] exec --service NMC --method getWANStatus
    livebox-cli [options] nat list
    livebox-cli [options] nat add --id ssh --external-port 2222 --internal-port 22 \\
        --destination-ip 192.168.1.10
    livebox-cli [options] nat {enable,disable,remove} RULE_ID

The result is printed as JSON on standard output. Logs go to standard error.
"""

import argparse
import logging
import os
import sys
from typing import Any

import httpx
from pydantic import ValidationError

from livebox_cli import __version__
from livebox_cli.client import RpcClient
from livebox_cli.errors import (
    AuthError,
    QueryError,
    RpcError,
    RuleNotFoundError,
    UncommittedChangeError,
)
from livebox_cli.models import (
    DEFAULT_BASE_URL,
    DEFAULT_USERNAME,
    ClientConfig,
    Protocol,
    SetPortForwardingParams,
)
from livebox_cli.nat import NatRuleRepository
from livebox_cli.output import render_output
from livebox_cli.session import Session

logger = logging.getLogger(__name__)

# Exit codes
EXIT_SUCCESS = 0
EXIT_ERROR = 1  # configuration, transport or RPC failure
EXIT_AUTH_ERROR = 2
EXIT_NOT_FOUND = 3
EXIT_QUERY_ERROR = 4
EXIT_UNCOMMITTED = 5

ENV_BASE_URL = "LIVEBOX_API_BASEURL"
ENV_PASSWORD = "LIVEBOX_PASSWORD"


def setup_logging(verbose: bool = False) -> None:
    """Configure logging for the application.

    Args:
        verbose: If True, use DEBUG level (logs every request and response).
            Otherwise, use WARNING.
    """
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def parse_parameter(value: str) -> tuple[str, str]:
    """Parse a ``key=value`` call parameter."""
    key, sep, val = value.partition("=")
    if not sep or not key:
        raise argparse.ArgumentTypeError(f"expected key=value, got {value!r}")
    return key, val


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser.

    Environment defaults are read when the parser is built.
    """
    parser = argparse.ArgumentParser(
        description="Livebox sysbus command-line client",
        prog="livebox-cli",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--base-url",
        default=os.environ.get(ENV_BASE_URL, DEFAULT_BASE_URL),
        help=f"Livebox base url (env {ENV_BASE_URL}, default: {DEFAULT_BASE_URL})",
    )
    parser.add_argument(
        "-u",
        "--username",
        default=DEFAULT_USERNAME,
        help=f"Livebox administration username (default: {DEFAULT_USERNAME})",
    )
    password_from_env = os.environ.get(ENV_PASSWORD)
    parser.add_argument(
        "-p",
        "--password",
        default=password_from_env,
        required=password_from_env is None,
        help=f"Livebox administration password (env {ENV_PASSWORD})",
    )
    parser.add_argument(
        "-k",
        "--insecure",
        action="store_true",
        help="Do not verify the TLS certificate of the Livebox",
    )
    parser.add_argument(
        "-q",
        "--query",
        default=None,
        help="JSONPath expression to filter output (ex: `$.data.IPAddress`)",
    )
    parser.add_argument(
        "-r",
        "--raw",
        action="store_true",
        help="Output raw strings, not JSON text",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose (debug) logging, including request and response bodies",
    )

    commands = parser.add_subparsers(dest="command", required=True)

    exec_parser = commands.add_parser("exec", help="Invoke a sysbus method")
    exec_parser.add_argument("-s", "--service", required=True, help="Service name (ex: `NMC`)")
    exec_parser.add_argument(
        "-m", "--method", required=True, help="Method name (ex: `getWANStatus`)"
    )
    exec_parser.add_argument(
        "-P",
        "--parameter",
        dest="parameters",
        type=parse_parameter,
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Call parameter (repeatable)",
    )

    nat_parser = commands.add_parser(
        "nat", aliases=["firewall"], help="Manage firewall NAT (port forwarding) rules"
    )
    actions = nat_parser.add_subparsers(dest="action", required=True)

    actions.add_parser("list", help="List rules")

    add_parser = actions.add_parser("add", help="Add a rule")
    add_parser.add_argument("--id", dest="rule_id", required=True, help="Rule id")
    add_parser.add_argument("--external-port", required=True, help="External port or range")
    add_parser.add_argument("--internal-port", required=True, help="Internal port or range")
    add_parser.add_argument(
        "--destination-ip", required=True, help="Internal host receiving the traffic"
    )
    add_parser.add_argument(
        "--protocol",
        choices=[p.name for p in Protocol],
        default=Protocol.TCP.name,
        help="Protocol (default: TCP)",
    )
    add_parser.add_argument("--description", default="", help="Rule description")
    add_parser.add_argument("--destination-mac", default="", help="Internal host MAC address")
    add_parser.add_argument("--origin", default=None, help="Rule origin (default: webui)")
    add_parser.add_argument(
        "--source-interface", default=None, help="Source interface (default: data)"
    )
    add_parser.add_argument(
        "--disabled", action="store_true", help="Create the rule disabled"
    )
    add_parser.add_argument(
        "--no-commit", action="store_true", help="Do not commit after adding the rule"
    )

    for action in ("enable", "disable", "remove"):
        action_parser = actions.add_parser(action, help=f"{action.capitalize()} a rule")
        action_parser.add_argument("rule_id", help="Rule id")

    return parser


def build_rule(args: argparse.Namespace) -> SetPortForwardingParams:
    """Build the parameters of ``nat add`` from command-line arguments.

    Raises:
        ValidationError: If an argument is invalid
    """
    fields: dict[str, Any] = {
        "id": args.rule_id,
        "description": args.description,
        "protocol": Protocol[args.protocol],
        "external_port": args.external_port,
        "internal_port": args.internal_port,
        "destination_ip_address": args.destination_ip,
        "destination_mac_address": args.destination_mac,
        "enable": not args.disabled,
    }
    if args.origin is not None:
        fields["origin"] = args.origin
    if args.source_interface is not None:
        fields["source_interface"] = args.source_interface
    return SetPortForwardingParams(**fields)


def execute_command(
    args: argparse.Namespace,
    client: RpcClient,
    rule: SetPortForwardingParams | None = None,
) -> Any:
    """Run the requested command and return its JSON result.

    Args:
        args: Parsed command-line arguments
        client: RPC client bound to a live session
        rule: Parameters of the rule to add, for ``nat add`` (built from
            ``args`` when not given)

    Returns:
        Decoded JSON value to print
    """
    if args.command == "exec":
        return client.invoke(args.service, args.method, dict(args.parameters)).to_json_value()

    rules = NatRuleRepository(client)
    if args.action == "list":
        return [view.to_json_value() for view in rules.list()]
    if args.action == "add":
        if rule is None:
            rule = build_rule(args)
        if args.no_commit:
            return rules.add(rule).to_json_value()
        mutation = rules.add_and_commit(rule)
    else:
        operation = {
            "enable": rules.enable,
            "disable": rules.disable,
            "remove": rules.remove,
        }[args.action]
        mutation = operation(args.rule_id)

    if mutation.response is None:
        return None
    return mutation.response.to_json_value()


def run(args: argparse.Namespace, transport: httpx.BaseTransport | None = None) -> int:
    """Log in, run one command, log out and print the result.

    Args:
        args: Parsed command-line arguments
        transport: Optional httpx transport (for testing)

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    try:
        config = ClientConfig(
            base_url=args.base_url,
            username=args.username,
            password=args.password,
            insecure=args.insecure,
        )
        rule = build_rule(args) if getattr(args, "action", None) == "add" else None
    except ValidationError as e:
        logger.error("Invalid arguments: %s", e)
        return EXIT_ERROR

    try:
        session = Session.from_config(config, transport=transport)
    except AuthError as e:
        logger.error("%s", e)
        return EXIT_AUTH_ERROR
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        logger.error("Cannot reach %s: %s", config.base_url, e)
        return EXIT_ERROR

    try:
        with session:
            result = execute_command(args, RpcClient(session), rule=rule)
    except RuleNotFoundError as e:
        logger.error("%s", e)
        return EXIT_NOT_FOUND
    except UncommittedChangeError as e:
        logger.error("%s: %s", e, e.__cause__)
        return EXIT_UNCOMMITTED
    except RpcError as e:
        logger.error("%s", e)
        return EXIT_ERROR

    try:
        output = render_output(result, query=args.query, raw=args.raw)
    except QueryError as e:
        logger.error("%s", e)
        return EXIT_QUERY_ERROR

    print(output)
    return EXIT_SUCCESS


def main(argv: list[str] | None = None) -> int:
    """Main entry point for livebox-cli.

    Args:
        argv: Command-line arguments (default: sys.argv[1:])

    Returns:
        Exit code.
    """
    args = build_parser().parse_args(argv)
    setup_logging(verbose=args.verbose)
    return run(args)


if __name__ == "__main__":
    sys.exit(main())
