"""Confirmation hooks implementing ConfirmationPort.

Attended runs pause before scenarios that need the operator (the portal
consent dialog); headless runs use ``auto_confirm``.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable

    from domain.models import ScenarioDefinition

logger = logging.getLogger("capture_probe.adapters")


def auto_confirm(scenario: ScenarioDefinition) -> bool:
    """Headless confirmation: always proceed."""
    logger.debug("Auto-confirmed %s", scenario.name)
    return True


class PromptConfirmation:
    """Ask the operator before launching a scenario.

    ``prompt`` shows a label and returns the typed line, or None on EOF.
    An empty line or ``y``/``yes`` confirms; anything else declines.
    """

    def __init__(
        self,
        prompt: Callable[[str], str | None],
        notify: Callable[[str], None] | None = None,
    ) -> None:
        self._prompt = prompt
        self._notify = notify

    def __call__(self, scenario: ScenarioDefinition) -> bool:
        if self._notify is not None and scenario.confirmation_prompt:
            self._notify(scenario.confirmation_prompt)
        answer = self._prompt(f"Press Enter to start {scenario.name} (n to skip)")
        if answer is None:
            logger.info("No answer for %s, treating as declined", scenario.name)
            return False
        return answer.strip().lower() in ("", "y", "yes")
