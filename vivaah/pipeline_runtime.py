from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List

logger = logging.getLogger("vivaah.runtime")


@dataclass
class PipelineStep:
    """Step descriptor for the async pipeline runner."""
    name: str
    fn: Callable[[Any], Awaitable[None]]


class PipelineRunner:
    """Sequential async step runner; a step may stop the run by setting context.halted."""

    def __init__(self, steps: List[PipelineStep]) -> None:
        self._steps = steps

    async def run(self, context: Any) -> None:
        """Purpose: Execute steps in order until one halts the context.
        Inputs/Outputs: Input is a mutable context object; no return value.
        Side Effects / State: Step functions mutate the context and write to its stream.
        Dependencies: PipelineStep.fn, context.halted.
        Failure Modes: Exceptions in step functions propagate to the caller.
        If Removed: The orchestrator cannot sequence moderation, routing, and response.
        Testing Notes: A halted context skips every remaining step.
        """
        for step in self._steps:
            if getattr(context, "halted", False):
                logger.debug("Skipping step %s (halted)", step.name)
                continue
            await step.fn(context)
