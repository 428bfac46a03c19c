from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from .context import Context
from .hook import Hook
from .step import Step

logger = logging.getLogger(__name__)

DRY = "dry"
RUN = "run"
REVERT = "revert"


class Action:
    """An ordered, fixed sequence of steps executed as one reversible unit.

    - run/dry: execute the steps strictly in order. The first step error aborts
      the action and is re-raised unchanged; later steps never execute.
    - revert: undo the steps that completed, in reverse order, stopping at the
      first revert failure. Steps after the failing one (earlier in pipeline
      order) stay un-reverted; callers that need best-effort cleanup can walk
      ``completed`` themselves.

    An action is single-use: one ``run`` or ``dry`` per instance, optionally
    followed by one ``revert``.

    Subclasses wire step inputs in :meth:`prepare` and check step results in
    :meth:`verify`. They may override :meth:`execute` to change how the sequence
    is walked, as long as every step goes through :meth:`invoke`.
    """

    def __init__(self, steps: Sequence[Step], hook: Optional[Hook] = None) -> None:
        self.steps: List[Step] = list(steps)
        self.hook = hook or Hook()
        self.completed: List[Step] = []
        self._executed = False
        self._reverted = False

    @property
    def name(self) -> str:
        return type(self).__name__

    def dry(self, ctx: Context) -> None:
        """Validate every step without side effects."""
        self._start(ctx, DRY)

    def run(self, ctx: Context) -> None:
        """Execute every step."""
        self._start(ctx, RUN)

    def revert(self, ctx: Context) -> None:
        """Revert the completed steps in reverse order."""
        if self._reverted:
            raise RuntimeError(f"{self.name} has already been reverted")
        self._reverted = True

        for step in reversed(self.completed):
            ctx.check()
            logger.info(f"{self.name}: reverting {step.name}")
            self._call_hook("on_step_start", step, REVERT)
            try:
                step.revert(ctx)
            except Exception as e:
                self._fail(step, REVERT, e)
                raise
            self._call_hook("on_step_end", step, REVERT)

    def execute(self, ctx: Context, verb: str) -> None:
        for step in self.steps:
            self.invoke(ctx, step, verb)

    def prepare(self, step: Step, verb: str) -> None:
        """Set ``step`` inputs from upstream results before it is called."""
        return None

    def verify(self, step: Step, verb: str) -> None:
        """Check ``step`` results after it completed; raise to abort."""
        return None

    def invoke(self, ctx: Context, step: Step, verb: str) -> None:
        ctx.check()
        self.prepare(step, verb)
        logger.debug(f"{self.name}: {verb} {step.name}")
        self._call_hook("on_step_start", step, verb)
        try:
            getattr(step, verb)(ctx)
        except Exception as e:
            self._fail(step, verb, e)
            raise
        self.completed.append(step)
        self._call_hook("on_step_end", step, verb)
        logger.debug(f"{self.name}: {verb} {step.name} done")

        try:
            self.verify(step, verb)
        except Exception as e:
            self._fail(step, verb, e)
            raise

    def notify(self, level: str, message: str) -> None:
        """Emit a progress message to the log and the hook."""
        logger.info(message)
        self._call_hook("on_message", level, message)

    def _start(self, ctx: Context, verb: str) -> None:
        if self._executed:
            raise RuntimeError(f"{self.name} has already been executed")
        self._executed = True

        self._call_hook("on_action_start", self, verb)
        try:
            self.execute(ctx, verb)
        except Exception as e:
            self._call_hook("on_action_end", self, verb, e)
            raise
        self._call_hook("on_action_end", self, verb, None)

    def _fail(self, step: Step, verb: str, error: Exception) -> None:
        if getattr(error, "step", None) is None:
            try:
                error.step = step.name  # type: ignore[attr-defined]
            except AttributeError:
                pass
        logger.error(f"{self.name}: {verb} {step.name} failed: {error}")
        self._call_hook("on_error", step, verb, error)

    def _call_hook(self, method: str, *args) -> None:
        try:
            getattr(self.hook, method)(*args)
        except Exception as e:  # noqa: BLE001
            logger.debug(f"hook {method} raised: {e}")
