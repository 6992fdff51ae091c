"""Environment gate — verify runtime preconditions before any measurement.

Pure check: the environment mapping and the executable resolver are injected
so the gate never touches the real process state in tests.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from domain.models import GateReport, MissingPrecondition, PreconditionKind

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping, Sequence

    from domain.models import Precondition

logger = logging.getLogger("capture_probe.environment_gate")


def check(
    preconditions: Sequence[Precondition],
    env: Mapping[str, str],
    which: Callable[[str], str | None],
) -> GateReport:
    """Check *preconditions* in order and stop at the first failure.

    Args:
        preconditions: Ordered preconditions, as produced by the catalog.
        env: Environment variables of the session the suite will run in.
        which: Resolver returning the path of an executable, or None.

    Returns:
        A ``GateReport``; ``failure`` names the first missing precondition.
    """
    warnings = tuple(session_warnings(env))
    for warning in warnings:
        logger.warning(warning)

    for precondition in preconditions:
        missing = _check_one(precondition, env, which)
        if missing is not None:
            logger.error("Precondition failed: %s", missing.message)
            return GateReport(passed=False, failure=missing, warnings=warnings)
        logger.debug("Precondition ok: %s", precondition.name)

    return GateReport(passed=True, warnings=warnings)


def _check_one(
    precondition: Precondition,
    env: Mapping[str, str],
    which: Callable[[str], str | None],
) -> MissingPrecondition | None:
    if precondition.kind is PreconditionKind.TOOL:
        if which(precondition.name) is None:
            return MissingPrecondition(
                precondition=precondition,
                message=f"{precondition.name} not installed. {precondition.hint}",
            )
        return None

    value = env.get(precondition.name, "")
    if not value.strip():
        return MissingPrecondition(
            precondition=precondition,
            message=f"{precondition.name} not set. {precondition.hint}",
        )
    return None


def session_warnings(env: Mapping[str, str]) -> list[str]:
    """Advisory findings that do not block the suite."""
    warnings: list[str] = []
    session_type = env.get("XDG_SESSION_TYPE", "")
    if session_type != "wayland":
        warnings.append(
            f"XDG_SESSION_TYPE is not 'wayland' (got: {session_type or 'unknown'})"
        )
    return warnings
