"""Exceptions raised by the Livebox client.

Every error the client raises derives from LiveboxError so the command-line
front end can report it and pick an exit code without knowing about httpx or
pydantic. Errors that come from an HTTP exchange keep the status code and the
raw response body for diagnostics.
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from livebox_cli.nat import MutationResult


class LiveboxError(Exception):
    """Base class for all livebox-cli errors."""

    pass


class _HttpExchangeError(LiveboxError):
    """Error attached to a single HTTP request/response exchange.

    Attributes:
        status_code: HTTP status code, or None if no response was received
        body: Raw response body, or None if no response was received
    """

    def __init__(
        self, message: str, status_code: int | None = None, body: str | None = None
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body

    def __str__(self) -> str:
        message = super().__str__()
        if self.body:
            return f"{message}\nResponse body: {self.body}"
        return message


class AuthError(_HttpExchangeError):
    """Login was rejected by the device or its response could not be parsed."""

    pass


class RpcError(_HttpExchangeError):
    """A sysbus call failed at the HTTP level or returned an unparsable body."""

    pass


class RuleNotFoundError(LiveboxError):
    """No NAT rule with the requested id exists on the device."""

    def __init__(self, rule_id: str) -> None:
        super().__init__(f"No rule with id {rule_id}")
        self.rule_id = rule_id


class UncommittedChangeError(LiveboxError):
    """A rule mutation was submitted but the following commit failed.

    The device may hold the change as pending. ``mutation`` carries the stage
    reached and the response of the submitted mutation.
    """

    def __init__(self, mutation: "MutationResult") -> None:
        super().__init__(
            f"Rule {mutation.rule_id} was changed but the change could not be committed"
        )
        self.mutation = mutation


class QueryError(LiveboxError):
    """Output query expression is invalid."""

    pass


class QueryNoMatchError(QueryError):
    """Output query did not select exactly one node.

    Attributes:
        query: The query expression
        count: Number of nodes the query selected
    """

    def __init__(self, query: str, count: int) -> None:
        if count == 0:
            message = f"Query {query!r} matched nothing"
        else:
            message = f"Query {query!r} is ambiguous: {count} matches, expected exactly one"
        super().__init__(message)
        self.query = query
        self.count = count
