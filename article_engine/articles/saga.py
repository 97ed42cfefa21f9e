"""
Bookkeeping for multi-step writes that commit step by step.

A ``Saga`` is created with the full list of steps an operation plans to run.
Each step commits on its own. If a step fails before anything was written
the original error propagates; once a write has committed, a failing step
raises ``PartialFailureError`` naming what completed and what must be retried.
"""

from typing import Awaitable, Callable, List, Optional, Sequence, TypeVar, Union

import structlog

from ..errors import PartialFailureError

logger = structlog.get_logger()

T = TypeVar("T")


class Saga:
    def __init__(self, operation: str, planned_steps: Sequence[str] = (), entity_id: Optional[str] = None):
        self.operation = operation
        self.entity_id = entity_id
        self.planned: List[str] = []
        self.completed: List[str] = []
        self.committed = False
        self.plan(*planned_steps)

    def plan(self, *names: str) -> None:
        """Append steps to the end of the plan."""
        for name in names:
            if name in self.planned:
                raise ValueError(f"Step '{name}' is already planned in {self.operation}")
            self.planned.append(name)

    def skip(self, name: str) -> None:
        """Drop a pending step that turned out to have nothing to do."""
        if name in self.pending:
            self.planned.remove(name)

    @property
    def pending(self) -> List[str]:
        return [name for name in self.planned if name not in self.completed]

    async def step(
        self,
        name: str,
        action: Callable[[], Awaitable[T]],
        writes: Union[bool, Callable[[T], bool]] = True,
    ) -> T:
        """Run one planned step and record it as completed.

        ``writes`` says whether the step committed anything: a flag, or a
        predicate over the step's result for steps that may turn out to be
        no-ops. A failure while nothing has been committed re-raises the
        original error.
        """
        if name not in self.pending:
            raise ValueError(f"Step '{name}' is not pending in {self.operation}")

        try:
            result = await action()
        except Exception as exc:
            if not self.committed:
                raise
            retry_steps = [name] + [pending for pending in self.pending if pending != name]
            logger.warning(
                "saga_step_failed",
                operation=self.operation,
                entity_id=self.entity_id,
                completed_steps=self.completed,
                failed_step=name,
                retry_steps=retry_steps,
                error=str(exc),
            )
            raise PartialFailureError(
                operation=self.operation,
                entity_id=self.entity_id or "",
                completed_steps=self.completed,
                failed_step=name,
                retry_steps=retry_steps,
                cause=exc,
            ) from exc

        self.completed.append(name)
        self.committed = self.committed or (writes(result) if callable(writes) else writes)
        return result
