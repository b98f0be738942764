"""
Action Pipeline - Runs per-package actions in emission order.

Key behaviors:
- Packages are processed strictly one at a time, in the order given
- Each package runs the primary action, then any eligible post-actions
- Async actions are awaited to completion before the next action starts
- continue_on_error decides whether a failing package aborts the run
  or is recorded while processing moves on
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Iterable, List, Optional, Sequence, Tuple, Union

from .actions import Action, ConditionableAction
from .errors import ActionError, PartialFailureError, PipelineAbortedError
from .observability.logging import get_logger, with_package_context


logger = get_logger(__name__)


class PackageStatus(str, Enum):
    """Outcome of one package."""
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"  # primary action condition was false


class PipelineStatus(str, Enum):
    """Overall outcome of a run."""
    SUCCESS = "success"
    PARTIAL = "partial"  # failures recorded, every package processed
    ABORTED = "aborted"  # a fatal failure stopped the run


@dataclass(frozen=True)
class PipelinePolicy:
    continue_on_error: bool = False


@dataclass
class PackageOutcome:
    """
    Result of running the pipeline for a single package.
    """
    package_name: str
    path: Path
    status: PackageStatus
    error: Optional[ActionError] = None
    actions_run: List[str] = field(default_factory=list)
    duration_ms: float = 0

    @property
    def is_success(self) -> bool:
        return self.status != PackageStatus.FAILED


@dataclass
class PipelineResult:
    """
    Aggregate result of a pipeline run.
    """
    pipeline_name: str
    status: PipelineStatus
    outcomes: List[PackageOutcome] = field(default_factory=list)
    aborted_at: Optional[str] = None
    duration_ms: float = 0

    @property
    def is_success(self) -> bool:
        return self.status == PipelineStatus.SUCCESS

    @property
    def succeeded(self) -> List[str]:
        return [o.package_name for o in self.outcomes if o.status == PackageStatus.SUCCEEDED]

    @property
    def failed(self) -> List[str]:
        return [o.package_name for o in self.outcomes if o.status == PackageStatus.FAILED]

    @property
    def skipped(self) -> List[str]:
        return [o.package_name for o in self.outcomes if o.status == PackageStatus.SKIPPED]

    @property
    def errors(self) -> List[ActionError]:
        return [o.error for o in self.outcomes if o.error is not None]

    def raise_for_status(self) -> None:
        """Raise PipelineAbortedError or PartialFailureError unless the run succeeded."""
        if self.status == PipelineStatus.ABORTED:
            raise PipelineAbortedError(
                f"{self.pipeline_name} aborted after workspace package '{self.aborted_at}'",
                self,
            )
        if self.status == PipelineStatus.PARTIAL:
            raise PartialFailureError(
                f"{self.pipeline_name} failed for {len(self.failed)} workspace "
                f"package(s): {', '.join(self.failed)}",
                self,
            )


# (descriptor, package path)
PackageItem = Tuple[Any, Union[str, Path]]


class ActionPipeline:
    """
    Sequential per-package action runner.

    Usage:
        pipeline = ActionPipeline(
            primary=SyncAction(uninstall_package),
            post_actions=[ConditionableAction.of_sync(cleanup)],
            policy=PipelinePolicy(continue_on_error=True),
            name="uninstall",
        )
        result = pipeline.run(context.emit(scope))
    """

    def __init__(
        self,
        primary: Union[Action, ConditionableAction],
        post_actions: Sequence[ConditionableAction] = (),
        policy: Optional[PipelinePolicy] = None,
        name: str = "pipeline",
    ):
        """
        Initialize pipeline.

        Args:
            primary: Command-specific action run for every package
            post_actions: Actions run after the primary action, in order
            policy: Failure policy (stop on first error by default)
            name: Name used in logs and error messages
        """
        if not isinstance(primary, ConditionableAction):
            primary = ConditionableAction(primary)
        self.primary = primary
        self.post_actions: Tuple[ConditionableAction, ...] = tuple(post_actions)
        self.policy = policy or PipelinePolicy()
        self.name = name

        # Callbacks for progress reporting
        self._on_package_start: Optional[Callable[[str, Path], None]] = None
        self._on_package_complete: Optional[Callable[[PackageOutcome], None]] = None

    def on_package_start(self, callback: Callable[[str, Path], None]) -> None:
        """Register callback for package start (package_name, path)."""
        self._on_package_start = callback

    def on_package_complete(self, callback: Callable[[PackageOutcome], None]) -> None:
        """Register callback for package completion."""
        self._on_package_complete = callback

    def run(self, packages: Iterable[PackageItem]) -> PipelineResult:
        """
        Run the pipeline to completion.

        Drives its own event loop; from inside a running loop use arun().
        """
        return asyncio.run(self.arun(packages))

    async def arun(self, packages: Iterable[PackageItem]) -> PipelineResult:
        """
        Run the pipeline for ``packages`` in the given order.

        Args:
            packages: (descriptor, path) pairs in dependency order

        Returns:
            PipelineResult with one outcome per processed package
        """
        start_time = time.perf_counter()
        outcomes: List[PackageOutcome] = []
        aborted_at: Optional[str] = None

        for descriptor, path in packages:
            path = Path(path)
            name = descriptor.name

            if self._on_package_start:
                self._on_package_start(name, path)

            outcome = await self._process(descriptor, path)
            outcomes.append(outcome)

            if self._on_package_complete:
                self._on_package_complete(outcome)

            if outcome.status == PackageStatus.FAILED:
                if not self.policy.continue_on_error:
                    logger.error(f"{self.name} aborted: {outcome.error}")
                    aborted_at = name
                    break
                logger.warning(f"{outcome.error} (continuing)")

        if aborted_at is not None:
            status = PipelineStatus.ABORTED
        elif any(o.status == PackageStatus.FAILED for o in outcomes):
            status = PipelineStatus.PARTIAL
        else:
            status = PipelineStatus.SUCCESS

        return PipelineResult(
            pipeline_name=self.name,
            status=status,
            outcomes=outcomes,
            aborted_at=aborted_at,
            duration_ms=(time.perf_counter() - start_time) * 1000,
        )

    async def _process(self, descriptor: Any, path: Path) -> PackageOutcome:
        """Run the primary action and post-actions for one package."""
        start_time = time.perf_counter()
        name = descriptor.name
        outcome = PackageOutcome(package_name=name, path=path, status=PackageStatus.SUCCEEDED)

        try:
            if not self.primary.should_run(descriptor, path):
                logger.debug(f"Skipping {self.name} for workspace package '{name}'")
                outcome.status = PackageStatus.SKIPPED
                return outcome

            logger.info(
                f"Running {self.name} for workspace package '{name}'",
                extra=with_package_context(package=name, command=self.name),
            )
            await self.primary.invoke(descriptor, path)
            outcome.actions_run.append(self.primary.label)
        except Exception as e:
            outcome.status = PackageStatus.FAILED
            outcome.error = self._action_error(name, self.primary.label, e)

        # A fatal failure stops here; post-actions still run when the policy continues
        if outcome.error is None or self.policy.continue_on_error:
            await self._run_post_actions(descriptor, path, outcome)

        outcome.duration_ms = (time.perf_counter() - start_time) * 1000
        return outcome

    async def _run_post_actions(self, descriptor: Any, path: Path, outcome: PackageOutcome) -> None:
        name = descriptor.name
        for post_action in self.post_actions:
            try:
                if not post_action.should_run(descriptor, path):
                    logger.debug(f"Condition false, skipping {post_action.label} for '{name}'")
                    continue

                logger.info(
                    f"Running post-{self.name} action {post_action.label} for workspace package '{name}'",
                    extra=with_package_context(package=name, command=self.name),
                )
                await post_action.invoke(descriptor, path)
                outcome.actions_run.append(post_action.label)
            except Exception as e:
                error = self._action_error(name, post_action.label, e)
                if outcome.error is None:
                    outcome.status = PackageStatus.FAILED
                    outcome.error = error
                else:
                    logger.warning(str(error))
                # Remaining post-actions are not attempted
                break

    def _action_error(self, package_name: str, label: str, cause: Exception) -> ActionError:
        return ActionError(
            package_name=package_name,
            message=f"Error running {label} for workspace package '{package_name}': {cause}",
            cause=cause,
            continue_on_error=self.policy.continue_on_error,
        )


__all__ = [
    "ActionPipeline",
    "PackageOutcome",
    "PackageStatus",
    "PipelinePolicy",
    "PipelineResult",
    "PipelineStatus",
]
