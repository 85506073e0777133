from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Generic, List, Optional, TypeVar

logger = logging.getLogger("course_assistant.pipeline")

ContextT = TypeVar("ContextT")


@dataclass
class PipelineStep(Generic[ContextT]):
    """Named step for the reply pipeline."""
    name: str
    fn: Callable[[ContextT], None]
    skip_if: Optional[Callable[[ContextT], bool]] = None
    always_run: bool = False


class StepRunner(Generic[ContextT]):
    """Runs steps in order; a step is skipped when its skip_if guard returns True."""

    def __init__(self, steps: List[PipelineStep[ContextT]]) -> None:
        self._steps = list(steps)

    @property
    def step_names(self) -> List[str]:
        return [step.name for step in self._steps]

    def run(self, context: ContextT) -> None:
        """Purpose: Execute steps in order with optional skip/always-run rules.
        Inputs/Outputs: Input is a mutable context object; no return value.
        Side Effects / State: Invokes step functions that may mutate context.
        Dependencies: Depends on PipelineStep.fn and PipelineStep.skip_if semantics.
        Failure Modes: Exceptions in step functions propagate to the caller.
        If Removed: The reply pipeline cannot run.
        Testing Notes: Verify skip_if and always_run logic with simple steps.
        """
        # Iterate steps and honor always_run/skip_if guards.
        for step in self._steps:
            if not step.always_run and step.skip_if and step.skip_if(context):
                logger.debug("step=%s status=skipped", step.name)
                continue
            step.fn(context)
