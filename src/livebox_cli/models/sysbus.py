"""Sysbus request and response envelopes.

Every call to the device is a POST of ``{"service", "method", "parameters"}``
to the single ``/ws`` endpoint, answered by ``{"status", "data"}``.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

SAH_SERVICE = "sah.Device.Information"


class SysbusRequest(BaseModel):
    """Request envelope for one sysbus call.

    Specialized calls build ``parameters`` from a dedicated model so each
    service/method pair carries its own parameter shape; generic calls pass
    a flat mapping.
    """

    service: str = Field(description="Sysbus service name (e.g. NMC)")
    method: str = Field(description="Method name within the service")
    parameters: dict[str, Any] = Field(default_factory=dict, description="Call parameters")

    @classmethod
    def build(
        cls, service: str, method: str, parameters: BaseModel | None = None
    ) -> "SysbusRequest":
        """Build a request whose parameters are serialized from a model.

        Args:
            service: Sysbus service name
            method: Method name
            parameters: Parameter model, dumped with its wire aliases

        Returns:
            The request envelope
        """
        if parameters is None:
            return cls(service=service, method=method)
        dumped = parameters.model_dump(mode="json", by_alias=True)
        return cls(service=service, method=method, parameters=dumped)

    def to_wire(self) -> dict[str, Any]:
        """Return the JSON-ready body of this request."""
        return self.model_dump(mode="json")


class SysbusResponse(BaseModel):
    """Response envelope of a sysbus call.

    ``status`` is 0/1 for context calls, a boolean for most data calls and the
    rule mapping for ``Firewall.getPortForwarding``. ``data`` may be absent,
    which is not the same as ``null``. Unknown keys such as ``errors`` are
    kept.
    """

    model_config = ConfigDict(extra="allow")

    status: Any = None
    data: Any = None

    @property
    def has_data(self) -> bool:
        """True if the device sent a ``data`` key, even with a null value."""
        return "data" in self.model_fields_set

    @property
    def errors(self) -> list[Any]:
        """Errors reported by the device in the envelope, if any."""
        extra = self.model_extra or {}
        errors = extra.get("errors")
        return errors if isinstance(errors, list) else []

    def to_json_value(self) -> dict[str, Any]:
        """Return the envelope as plain JSON data, omitting keys the device did not send."""
        value: dict[str, Any] = {}
        if "status" in self.model_fields_set:
            value["status"] = self.status
        if self.has_data:
            value["data"] = self.data
        value.update(self.model_extra or {})
        return value


class LoginParameters(BaseModel):
    """Parameters of ``createContext``. The device expects camelCase here."""

    model_config = ConfigDict(populate_by_name=True)

    application_name: str = Field(alias="applicationName")
    username: str
    password: str = Field(repr=False)


class LogoutParameters(BaseModel):
    """Parameters of ``releaseContext``. The device expects snake_case here."""

    application_name: str


class LoginContext(BaseModel):
    """``data`` payload of a successful login."""

    model_config = ConfigDict(populate_by_name=True)

    context_id: str = Field(alias="contextID", min_length=1)
    username: str | None = None
    groups: str | None = None


class LoginResponse(BaseModel):
    """Response envelope of ``createContext``."""

    status: int | None = None
    data: LoginContext


class LogoutResponse(BaseModel):
    """Response envelope of ``releaseContext``."""

    status: int | None = None
