from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from .context import Context


class Step(ABC):
    """A reversible unit of work against one external collaborator.

    Every step exposes three verbs:

    - dry: validate without observable side effects. It still fills in as much
      of ``result`` as downstream dry calls need; fields it cannot know stay at
      their zero value.
    - run: perform the side effect and fill in ``result``.
    - revert: compensate for a prior ``run``. Steps that cannot be undone raise
      :class:`~cherry.errors.IrreversibleOperationError`.

    Steps never swallow errors. Inputs are plain attributes, wired by the owning
    action from upstream steps' ``result`` before each call.
    """

    def __init__(self, id: Optional[str] = None) -> None:
        self.id = id or type(self).__name__

    @property
    def name(self) -> str:
        return self.id

    @abstractmethod
    def dry(self, ctx: Context) -> None:
        """Validate the step without side effects."""

    @abstractmethod
    def run(self, ctx: Context) -> None:
        """Execute the step."""

    def revert(self, ctx: Context) -> None:
        """Undo a prior run. The default has nothing to undo."""
        return None

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.id}>"


class QueryStep(Step):
    """A step that only reads state.

    Reading is free of side effects, so ``dry`` performs the same read as ``run``
    and both populate ``result``.
    """

    def dry(self, ctx: Context) -> None:
        self.run(ctx)
