"""State-gated start policy for a resolved domain."""

from __future__ import annotations

import logging
from enum import Enum

from wolgate.exceptions import DomainStateError, StartDomainError
from wolgate.services.backend import BackendSession, DomainState
from wolgate.services.resolver import Domain

logger = logging.getLogger(__name__)


class DispatchOutcome(str, Enum):
    STARTED = "started"
    NOT_STARTABLE = "not_startable"
    START_FAILED = "start_failed"
    STATE_UNAVAILABLE = "state_unavailable"
    DRY_RUN = "dry_run"
    NO_MATCH = "no_match"


STARTABLE_STATES: frozenset[DomainState] = frozenset({
    DomainState.SHUTOFF,
    DomainState.SHUTDOWN,
    DomainState.CRASHED,
})


async def dispatch(
    session: BackendSession, domain: Domain, dry_run: bool = False
) -> DispatchOutcome:
    """Start domain if its current state allows it.

    The start request is fire-and-forget: backend acceptance counts as
    success, a refusal is logged and never retried here.
    """
    try:
        state = await session.get_domain_state(domain.ref)
    except DomainStateError as e:
        logger.error("Failed to get state for VM %s: %s", domain.name, e.message)
        return DispatchOutcome.STATE_UNAVAILABLE

    if state not in STARTABLE_STATES:
        logger.info(
            "VM %s is not in a startable state (current: %s). No action taken.",
            domain.name, state.value,
        )
        return DispatchOutcome.NOT_STARTABLE

    if dry_run:
        logger.info("[DEV] Start of VM %s (state: %s) not executed", domain.name, state.value)
        return DispatchOutcome.DRY_RUN

    logger.info("Attempting to start VM via libvirt: %s %s", domain.name, domain.ref.uuid)
    try:
        await session.start_domain(domain.ref)
    except StartDomainError as e:
        logger.error("Failed to start VM %s: %s", domain.name, e.message)
        return DispatchOutcome.START_FAILED

    logger.info("Successfully commanded VM %s to start (was %s)", domain.name, state.value)
    return DispatchOutcome.STARTED
