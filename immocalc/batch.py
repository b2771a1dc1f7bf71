"""
Batch evaluation of many scenarios.

Analyzers are pure, so a portfolio scan is a parallel map with no shared
state. Engine errors are collected per scenario so one bad deal does not stop
the rest; any other exception propagates.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Iterable, List, Optional

from immocalc.config import get_settings
from immocalc.errors import ComputationDegenerate, InvalidInput

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BatchOutcome:
    """Result of one scenario in a batch; exactly one of result/error is set."""

    index: int
    result: Any = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _evaluate(fn: Callable[[Any], Any], index: int, scenario: Any) -> BatchOutcome:
    try:
        return BatchOutcome(index=index, result=fn(scenario))
    except (InvalidInput, ComputationDegenerate) as exc:
        return BatchOutcome(index=index, error=exc)


def evaluate_many(
    fn: Callable[[Any], Any],
    scenarios: Iterable[Any],
    max_workers: Optional[int] = None,
) -> List[BatchOutcome]:
    """
    Apply an analyzer to every scenario in parallel.

    Args:
        fn: Analyzer taking one scenario (e.g. multi.analyze)
        scenarios: Scenario records or mappings
        max_workers: Thread count (default from settings, else executor default)

    Returns:
        One BatchOutcome per scenario, in input order
    """
    scenarios = list(scenarios)
    if max_workers is None:
        max_workers = get_settings().batch_max_workers

    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        futures = [
            executor.submit(_evaluate, fn, index, scenario)
            for index, scenario in enumerate(scenarios)
        ]
        outcomes = [future.result() for future in futures]

    failed = sum(1 for outcome in outcomes if not outcome.ok)
    logger.debug(f"Evaluated {len(outcomes)} scenarios, {failed} rejected")
    return outcomes
