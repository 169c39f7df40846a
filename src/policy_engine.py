"""Deterministic authorization gating for dispatched actions."""
from __future__ import annotations

from typing import Optional, Tuple

from auth_state import AuthorizationState
from logging_utils import logger
from metrics import AgentMetrics
from models import Intent, Platform, RepositoryAction

Decision = Tuple[str, Optional[str]]

ALLOWED = "ALLOWED"
NEEDS_AUTHORIZATION = "NEEDS_AUTHORIZATION"

# Public GitHub data, readable without a credential.
PUBLIC_ACTIONS: frozenset[str] = frozenset(
    {
        RepositoryAction.LIST_USER_REPOSITORIES.value,
        RepositoryAction.GET_USER_PROFILE.value,
    }
)


def requires_authorization(intent: Intent) -> bool:
    """Only repository automation is gated, and only outside the public actions."""
    if intent.platform != Platform.REPOSITORY_AUTOMATION:
        return False
    return intent.action not in PUBLIC_ACTIONS


def evaluate_request(
    intent: Intent,
    identity: str,
    state: AuthorizationState,
    metrics: AgentMetrics | None = None,
) -> Decision:
    """
    Decide whether an intent may run for an identity.

    Returns: (ALLOWED | NEEDS_AUTHORIZATION, reason)
    """
    if not requires_authorization(intent):
        decision, reason = ALLOWED, None
    elif state.has_credential(identity):
        decision, reason = ALLOWED, None
    else:
        decision, reason = NEEDS_AUTHORIZATION, f"No GitHub credential for '{identity}'"

    logger.info(
        "Authorization evaluation result",
        extra={
            "extra": {
                "correlation_id": metrics.correlation_id if metrics else None,
                "decision": decision,
                "reason": reason,
                "platform": intent.platform.value,
                "action": intent.action,
                "identity": identity,
            }
        },
    )

    if metrics and decision == NEEDS_AUTHORIZATION:
        metrics.authorization_required = True

    return decision, reason
