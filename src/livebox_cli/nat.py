"""Port forwarding (NAT) rule management.

The firewall service has no patch call: ``setPortForwarding`` replaces the
whole rule. Enabling or disabling a rule therefore re-reads the current rule
from a fresh listing, flips one field and sends the full parameter set back.
Changes made through ``setPortForwarding`` or ``deletePortForwarding`` are
only persisted by a following ``commit``.

No version check is made between the listing and the update. Two clients
changing the same rule concurrently race, and the last commit wins.
"""

import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any

from pydantic import ValidationError

from livebox_cli.client import RpcClient
from livebox_cli.errors import RpcError, RuleNotFoundError, UncommittedChangeError
from livebox_cli.models.nat import (
    DeletePortForwardingParams,
    NatRuleView,
    SetPortForwardingParams,
)
from livebox_cli.models.sysbus import SysbusRequest, SysbusResponse

logger = logging.getLogger(__name__)

FIREWALL_SERVICE = "Firewall"


class MutationStage(Enum):
    """Stages of a rule mutation, in order."""

    RESOLVING = "resolving"  # listing rules and looking up the id
    MUTATING = "mutating"  # sending the changed parameters
    COMMITTING = "committing"  # persisting the change
    DONE = "done"


@dataclass
class MutationResult:
    """Outcome of an id-keyed rule mutation.

    Attributes:
        rule_id: Id of the mutated rule
        stage: Last stage reached (DONE on full success)
        response: Device response to the mutation call
        commit_response: Device response to the commit call, if it succeeded
    """

    rule_id: str
    stage: MutationStage = MutationStage.RESOLVING
    response: SysbusResponse | None = None
    commit_response: SysbusResponse | None = None

    @property
    def committed(self) -> bool:
        return self.stage == MutationStage.DONE


class NatRuleRepository:
    """Read and change port forwarding rules on the device.

    Example:
        rules = NatRuleRepository(RpcClient(session))
        for rule in rules.list():
            print(rule.id, rule.enable)
        rules.disable("ssh")
    """

    def __init__(self, client: RpcClient) -> None:
        self.client = client

    def _call(self, method: str, parameters: Any = None) -> SysbusResponse:
        return self.client.send(SysbusRequest.build(FIREWALL_SERVICE, method, parameters))

    def list(self) -> list[NatRuleView]:
        """List the rules defined on the device.

        The device answers with a mapping from an opaque key to each rule.
        The order of the result is the order the device used.

        Returns:
            One view per rule

        Raises:
            RpcError: If the call fails, the device reports errors or the
                listing has an unexpected shape
        """
        response = self._call("getPortForwarding")

        # Rules are keyed under "status"; some firmwares use "data"
        payload = response.status if isinstance(response.status, dict) else response.data
        if not isinstance(payload, dict) and response.errors:
            raise RpcError(
                f"Listing rules failed: {response.errors}",
                body=json.dumps(response.to_json_value()),
            )
        if payload is None:
            return []
        if not isinstance(payload, dict):
            raise RpcError(f"Unexpected rule listing: {response.to_json_value()}")

        try:
            return [NatRuleView.model_validate(rule) for rule in payload.values()]
        except ValidationError as e:
            raise RpcError(f"Unexpected rule in listing: {e}") from e

    def find(self, rule_id: str) -> NatRuleView:
        """Return the current state of one rule.

        Only an exact id match counts.

        Raises:
            RuleNotFoundError: If no rule has this id
        """
        for rule in self.list():
            if rule.id == rule_id:
                return rule
        raise RuleNotFoundError(rule_id)

    def add(self, rule: SetPortForwardingParams) -> SysbusResponse:
        """Create a rule. Does not commit; call :meth:`commit` to persist."""
        logger.info("Adding rule %s", rule.id)
        return self._call("setPortForwarding", rule)

    def commit(self) -> SysbusResponse:
        """Persist pending firewall changes."""
        logger.info("Committing firewall changes")
        return self._call("commit")

    def add_and_commit(self, rule: SetPortForwardingParams) -> MutationResult:
        """Create a rule and commit it.

        Raises:
            RpcError: If the rule could not be added
            UncommittedChangeError: If the rule was added but commit failed
        """
        logger.info("Adding rule %s", rule.id)
        return self._mutate_and_commit(rule.id, "setPortForwarding", rule)

    def enable(self, rule_id: str) -> MutationResult:
        """Enable a rule, leaving its other fields unchanged."""
        return self._update(rule_id, {"enable": True})

    def disable(self, rule_id: str) -> MutationResult:
        """Disable a rule, leaving its other fields unchanged."""
        return self._update(rule_id, {"enable": False})

    def remove(self, rule_id: str) -> MutationResult:
        """Delete a rule and commit the deletion.

        Args:
            rule_id: Id of the rule to delete

        Returns:
            The mutation outcome, in stage DONE

        Raises:
            RuleNotFoundError: If no rule has this id (nothing is sent)
            RpcError: If listing or deletion fails
            UncommittedChangeError: If the deletion was sent but commit failed
        """
        rule = self.find(rule_id)
        logger.info("Removing rule %s", rule_id)
        return self._mutate_and_commit(
            rule_id, "deletePortForwarding", DeletePortForwardingParams.from_view(rule)
        )

    def _update(self, rule_id: str, changes: dict[str, Any]) -> MutationResult:
        """Apply a change to the full current parameters of a rule.

        Args:
            rule_id: Id of the rule to change
            changes: Field values to replace in the current parameters

        Returns:
            The mutation outcome, in stage DONE

        Raises:
            RuleNotFoundError: If no rule has this id (nothing is sent)
            RpcError: If listing or update fails
            UncommittedChangeError: If the update was sent but commit failed
        """
        rule = self.find(rule_id)
        parameters = SetPortForwardingParams.from_view(rule).model_copy(update=changes)
        logger.info("Updating rule %s (enable=%s)", rule_id, parameters.enable)
        return self._mutate_and_commit(rule_id, "setPortForwarding", parameters)

    def _mutate_and_commit(
        self, rule_id: str, method: str, parameters: Any
    ) -> MutationResult:
        result = MutationResult(rule_id=rule_id, stage=MutationStage.MUTATING)
        result.response = self._call(method, parameters)

        result.stage = MutationStage.COMMITTING
        try:
            result.commit_response = self.commit()
        except RpcError as e:
            logger.error("Rule %s changed but not committed: %s", rule_id, e)
            raise UncommittedChangeError(result) from e

        result.stage = MutationStage.DONE
        return result
