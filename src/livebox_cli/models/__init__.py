"""Pydantic models for the Livebox sysbus API.

This module provides the request/response envelopes, the NAT rule shapes and
the client configuration.
"""

from livebox_cli.models.config import DEFAULT_BASE_URL, DEFAULT_USERNAME, ClientConfig
from livebox_cli.models.nat import (
    DeletePortForwardingParams,
    NatRuleView,
    Protocol,
    RuleStatus,
    SetPortForwardingParams,
)
from livebox_cli.models.sysbus import (
    LoginContext,
    LoginParameters,
    LoginResponse,
    LogoutParameters,
    LogoutResponse,
    SysbusRequest,
    SysbusResponse,
)

__all__ = [
    # config
    "DEFAULT_BASE_URL",
    "DEFAULT_USERNAME",
    "ClientConfig",
    # nat
    "DeletePortForwardingParams",
    "NatRuleView",
    "Protocol",
    "RuleStatus",
    "SetPortForwardingParams",
    # sysbus
    "LoginContext",
    "LoginParameters",
    "LoginResponse",
    "LogoutParameters",
    "LogoutResponse",
    "SysbusRequest",
    "SysbusResponse",
]
