"""Generic sysbus RPC client.

Each call is a single POST on the session endpoint. There is no retry and no
batching: any HTTP or decoding failure aborts the call with RpcError.
"""

import logging

import httpx
from pydantic import ValidationError

from livebox_cli.errors import RpcError
from livebox_cli.models.sysbus import SysbusRequest, SysbusResponse
from livebox_cli.session import Session

logger = logging.getLogger(__name__)


class RpcClient:
    """Invoke sysbus methods through a live session.

    Example:
        client = RpcClient(session)
        response = client.invoke("NMC", "getWANStatus")
        print(response.data["IPAddress"])
    """

    def __init__(self, session: Session) -> None:
        self.session = session

    def invoke(
        self, service: str, method: str, parameters: dict[str, str] | None = None
    ) -> SysbusResponse:
        """Call ``service.method`` with flat string parameters.

        Args:
            service: Sysbus service name (e.g. NMC)
            method: Method name (e.g. getWANStatus)
            parameters: Optional call parameters

        Returns:
            The decoded response envelope, unfiltered

        Raises:
            RpcError: If the call fails or the response is not a JSON object
        """
        request = SysbusRequest(service=service, method=method, parameters=parameters or {})
        return self.send(request)

    def send(self, request: SysbusRequest) -> SysbusResponse:
        """Send a prepared request envelope.

        Args:
            request: Request envelope

        Returns:
            The decoded response envelope

        Raises:
            RpcError: If the call fails or the response is not a JSON object
        """
        call = f"{request.service}.{request.method}"
        try:
            response = self.session.post(request)
        except httpx.HTTPError as e:
            raise RpcError(f"Execution of {call} failed: {e}") from e

        if not response.is_success:
            raise RpcError(
                f"Execution of {call} failed: {response.status_code}",
                status_code=response.status_code,
                body=response.text,
            )

        try:
            result = SysbusResponse.model_validate_json(response.text)
        except ValidationError as e:
            raise RpcError(
                f"Unparsable response to {call}",
                status_code=response.status_code,
                body=response.text,
            ) from e

        if result.errors:
            logger.warning("%s reported errors: %s", call, result.errors)

        return result
