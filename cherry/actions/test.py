from __future__ import annotations

import logging
from typing import Optional

from ..action import RUN, Action
from ..config import Spec
from ..context import Context
from ..hook import Hook
from ..languages.go import Go, GoListPackages, GoTestCover
from ..step import Step

logger = logging.getLogger(__name__)


class Test(Action):
    """Run the unit tests of every package and write one coverage report.

    Config:
    - spec.test.cover_mode: coverage mode handed to ``go test``
    - spec.test.report_path: report directory, replaced on every run
    """

    def __init__(
        self,
        workdir: str,
        spec: Spec,
        hook: Optional[Hook] = None,
        go: Optional[Go] = None,
    ) -> None:
        self.spec = spec
        go = go or Go(workdir)
        self.list_packages = GoListPackages(go)
        self.test_cover = GoTestCover(go, cover_mode=spec.test.cover_mode, report_path=spec.test.report_path)
        super().__init__([self.list_packages, self.test_cover], hook)

    def prepare(self, step: Step, verb: str) -> None:
        if step is self.test_cover:
            step.packages = list(self.list_packages.result.packages)
            if verb == RUN:
                self.notify("output", f"➡️  Testing {len(step.packages)} packages ...")

    def run(self, ctx: Context) -> None:
        super().run(ctx)
        for output in self.test_cover.result.outputs:
            self.notify("output", f"✅ {output}")
        self.notify("info", f"🍒 Coverage report: {self.test_cover.result.report_file}")
