"""Command-line client for the Livebox sysbus JSON API."""

from livebox_cli.client import RpcClient
from livebox_cli.errors import (
    AuthError,
    LiveboxError,
    QueryError,
    QueryNoMatchError,
    RpcError,
    RuleNotFoundError,
    UncommittedChangeError,
)
from livebox_cli.nat import MutationResult, MutationStage, NatRuleRepository
from livebox_cli.session import Session

__version__ = "0.1.0"

__all__ = [
    "AuthError",
    "LiveboxError",
    "MutationResult",
    "MutationStage",
    "NatRuleRepository",
    "QueryError",
    "QueryNoMatchError",
    "RpcClient",
    "RpcError",
    "RuleNotFoundError",
    "Session",
    "UncommittedChangeError",
    "__version__",
]
