"""Authenticated session with the Livebox sysbus endpoint.

A session is opened by one ``createContext`` call. The device answers with a
context id that must accompany every later call in the ``x-context`` header,
together with the cookies set at login. The session ends with a
``releaseContext`` call, which is best-effort: the device may already have
expired the context.

Example:
    with Session.login("http://livebox.home", "admin", "secret") as session:
        response = session.post(SysbusRequest(service="NMC", method="getWANStatus"))
        # logout happens automatically on exit
"""

import json
import logging
from typing import Self

import httpx
from pydantic import ValidationError

from livebox_cli.errors import AuthError, RpcError
from livebox_cli.models.config import ClientConfig
from livebox_cli.models.sysbus import (
    SAH_SERVICE,
    LoginParameters,
    LoginResponse,
    LogoutParameters,
    LogoutResponse,
    SysbusRequest,
)

logger = logging.getLogger(__name__)

APPLICATION_NAME = "livebox-cli"

APPLICATION_SAH_WS_CALL = "application/x-sah-ws-4-call+json"
X_SAH_LOGIN = "X-Sah-Login"
X_SAH_LOGOUT = "X-Sah-Logout"
X_CONTEXT = "x-context"

# Fixed per-request timeout in seconds
REQUEST_TIMEOUT = 30.0


class Session:
    """Context manager owning the authenticated HTTP client.

    Attributes:
        endpoint: URL of the sysbus endpoint (``<base_url>/ws``)
        context_id: Context token issued by the device at login
    """

    def __init__(self, endpoint: str, context_id: str, http_client: httpx.Client) -> None:
        """Wrap an already authenticated HTTP client.

        Use :meth:`login` rather than calling this directly.

        Args:
            endpoint: URL of the sysbus endpoint
            context_id: Context token issued at login
            http_client: Client carrying the login cookies and context headers
        """
        self.endpoint = endpoint
        self.context_id = context_id
        self._http = http_client
        self._released = False

    @classmethod
    def login(
        cls,
        base_url: str,
        username: str,
        password: str,
        insecure: bool = False,
        transport: httpx.BaseTransport | None = None,
    ) -> Self:
        """Authenticate against the device and open a session.

        Args:
            base_url: Livebox base URL (e.g. http://livebox.home)
            username: Administration username
            password: Administration password
            insecure: If True, skip TLS certificate verification
            transport: Optional httpx transport (for testing)

        Returns:
            A live session

        Raises:
            AuthError: If the device rejects the login or its answer cannot be parsed
            httpx.HTTPError: If the device cannot be reached
        """
        endpoint = f"{base_url.rstrip('/')}/ws"
        request = SysbusRequest.build(
            SAH_SERVICE,
            "createContext",
            LoginParameters(
                application_name=APPLICATION_NAME,
                username=username,
                password=password,
            ),
        )

        logger.info("Logging in to %s as %s", endpoint, username)
        with httpx.Client(
            verify=not insecure,
            transport=transport,
            timeout=REQUEST_TIMEOUT,
        ) as login_client:
            response = login_client.post(
                endpoint,
                content=json.dumps(request.to_wire()),
                headers={
                    "Content-Type": APPLICATION_SAH_WS_CALL,
                    "Authorization": X_SAH_LOGIN,
                },
            )
            logger.debug("<<< %s (login)", response.status_code)

            if not response.is_success:
                raise AuthError(
                    f"Authentication failed: {response.status_code}",
                    status_code=response.status_code,
                    body=response.text,
                )

            try:
                context_id = LoginResponse.model_validate_json(response.text).data.context_id
            except ValidationError as e:
                raise AuthError(
                    f"Unparsable login response: {e.error_count()} validation error(s)",
                    status_code=response.status_code,
                    body=response.text,
                ) from e

            cookies = httpx.Cookies(login_client.cookies)

        http_client = httpx.Client(
            cookies=cookies,
            headers={
                "Accept": APPLICATION_SAH_WS_CALL,
                X_CONTEXT: context_id,
            },
            verify=not insecure,
            transport=transport,
            timeout=REQUEST_TIMEOUT,
        )
        logger.info("Session opened")
        return cls(endpoint, context_id, http_client)

    @classmethod
    def from_config(
        cls, config: ClientConfig, transport: httpx.BaseTransport | None = None
    ) -> Self:
        """Open a session from a :class:`ClientConfig`."""
        return cls.login(
            config.base_url,
            config.username,
            config.password,
            insecure=config.insecure,
            transport=transport,
        )

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        """Release the context whether or not the block raised."""
        self.logout()

    @property
    def active(self) -> bool:
        """True until :meth:`logout` has run."""
        return not self._released

    def post(
        self, request: SysbusRequest, headers: dict[str, str] | None = None
    ) -> httpx.Response:
        """Send one request envelope and return the raw HTTP response.

        Request and response bodies are logged at DEBUG level.

        Args:
            request: Request envelope
            headers: Extra headers for this request only

        Returns:
            The HTTP response, whatever its status

        Raises:
            RpcError: If the session has been released
            httpx.HTTPError: On transport failure
        """
        if self._released:
            raise RpcError("Cannot call the device after logout")

        body = request.to_wire()
        logger.debug(">>> POST %s\n%s", self.endpoint, json.dumps(body, indent=2))

        response = self._http.post(
            self.endpoint,
            content=json.dumps(body),
            headers={"Content-Type": APPLICATION_SAH_WS_CALL, **(headers or {})},
        )
        logger.debug("<<< %s\n%s", response.status_code, response.text)
        return response

    def logout(self) -> None:
        """Release the device context. Never raises.

        HTTP 401 means the device already dropped the context (e.g. timeout)
        and is expected. Any other failure is logged as a warning.
        """
        if self._released:
            logger.warning("logout() called on a released session")
            return

        try:
            self._release_context()
        finally:
            self._http.close()
            self._released = True

    def _release_context(self) -> None:
        request = SysbusRequest.build(
            SAH_SERVICE,
            "releaseContext",
            LogoutParameters(application_name=APPLICATION_NAME),
        )
        try:
            response = self.post(
                request, headers={"Authorization": f"{X_SAH_LOGOUT} {self.context_id}"}
            )
        except httpx.HTTPError as e:
            logger.warning("Logout error: %s", e)
            return

        if response.status_code == 401:
            logger.debug("Context already released by the device")
            return

        if not response.is_success:
            logger.warning("Logout error: %s\n%s", response.status_code, response.text)
            return

        try:
            status = LogoutResponse.model_validate_json(response.text).status
        except ValidationError:
            logger.warning("Logout error: unparsable response\n%s", response.text)
            return

        if status != 1:
            logger.warning("Logout error: %s", response.text)
            return

        logger.info("Session closed")
