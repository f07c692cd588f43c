"""
Pipeline stage abstraction.

A stage is an ordered list of tasks, each an external call with its own timeout. Running a stage
never raises for a task failure: every task yields a :class:`StageOutcome` in task order, whatever
order the calls actually finished in.
"""

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Any

from minutes.logs import get_logger

logger = get_logger("pipe/stage")


@dataclass(frozen=True)
class StageTask:
  """One external call within a stage."""

  name: str
  run: Callable[[], Awaitable[Any]]
  timeout: float


@dataclass(frozen=True)
class StageOutcome:
  """Result of one task: a value, or the reason it produced none."""

  name: str
  value: Any = None
  error: str | None = None

  @property
  def ok(self) -> bool:
    return self.error is None


async def run_task(task: StageTask) -> StageOutcome:
  """Run a single task under its timeout, capturing any failure in the outcome."""
  try:
    value = await asyncio.wait_for(task.run(), timeout=task.timeout)
  except TimeoutError:
    error = f"timed out after {task.timeout:.1f}s"
  except Exception as e:
    error = str(e) or type(e).__name__
  else:
    return StageOutcome(name=task.name, value=value)

  logger.warning("Stage task failed", task=task.name, error=error)
  return StageOutcome(name=task.name, error=error)


async def run_stage(tasks: Sequence[StageTask], max_in_flight: int = 1) -> list[StageOutcome]:
  """
  Run every task with at most ``max_in_flight`` calls outstanding.

  With the default of one, tasks run strictly one after another in list order.
  """
  if max_in_flight < 1:
    raise ValueError("max_in_flight must be at least 1")

  if max_in_flight == 1:
    return [await run_task(task) for task in tasks]

  semaphore = asyncio.Semaphore(max_in_flight)

  async def bounded(task: StageTask) -> StageOutcome:
    async with semaphore:
      return await run_task(task)

  return list(await asyncio.gather(*(bounded(task) for task in tasks)))
