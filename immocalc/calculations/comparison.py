"""
Scenario Comparison

Ranks alternative versions of a deal (other prices, budgets or financing)
on a single criterion, best first. Scenarios run through evaluate_many, so a
scenario the engine rejects is listed apart instead of stopping the rest.
"""

import logging
from functools import partial
from typing import Any, Callable, Dict, Iterable, Mapping, Optional

from pydantic.alias_generators import to_snake

from immocalc.batch import evaluate_many
from immocalc.calculations.flip import analyze_flip
from immocalc.calculations.multi import analyze
from immocalc.config import EngineSettings, get_settings
from immocalc.errors import InvalidInput
from immocalc.models import RankedScenario, RejectedScenario, ScenarioComparison

logger = logging.getLogger(__name__)

# Criterion -> report detail it ranks on
FLIP_CRITERIA = {
    "profit": "profit",
    "roi": "profit_percentage",
    "annualized_roi": "annualized_roi",
}
MULTI_CRITERIA = {
    "cashflow_per_unit": "cashflow_per_unit",
    "cap_rate": "cap_rate",
    "cash_on_cash": "cash_on_cash",
    "net_operating_income": "net_operating_income",
}


def _criterion(criterion: Any, allowed: Dict[str, str]) -> str:
    """Accept snake_case or camelCase (annualizedRoi) criterion names."""
    key = to_snake(criterion.strip()) if isinstance(criterion, str) else None
    if key not in allowed:
        raise InvalidInput(
            f"criterion must be one of {', '.join(allowed)}, got {criterion!r}",
            field="criterion",
        )
    return key


def _scenario_name(scenario: Any, index: int) -> str:
    if isinstance(scenario, Mapping):
        name = scenario.get("name")
    else:
        name = getattr(scenario, "name", None)
    return str(name) if name else f"Scenario {index + 1}"


def _compare(
    analyzer: Callable[..., Any],
    allowed: Dict[str, str],
    scenarios: Iterable[Any],
    criterion: Any,
    settings: Optional[EngineSettings],
    max_workers: Optional[int],
) -> ScenarioComparison:
    key = _criterion(criterion, allowed)
    scenarios = list(scenarios or [])
    if not scenarios:
        raise InvalidInput("At least one scenario is required", field="scenarios")
    settings = settings or get_settings()

    outcomes = evaluate_many(partial(analyzer, settings=settings), scenarios, max_workers)

    ranked = []
    rejected = []
    for outcome in outcomes:
        name = _scenario_name(scenarios[outcome.index], outcome.index)
        if not outcome.ok:
            rejected.append(
                RejectedScenario(
                    index=outcome.index,
                    name=name,
                    error=str(outcome.error),
                    field=getattr(outcome.error, "field", None),
                )
            )
            continue
        report = outcome.result
        ranked.append(
            RankedScenario(
                index=outcome.index,
                name=name,
                metric=getattr(report.details, allowed[key]),
                is_viable=report.summary.is_viable,
                verdict=report.summary.verdict,
                report=report,
            )
        )

    if not ranked:
        # Nothing to rank; surface the first scenario's error
        raise outcomes[0].error

    # Stable sort: ties keep input order
    ranked.sort(key=lambda scenario: scenario.metric, reverse=True)

    logger.debug(
        f"Compared {len(scenarios)} scenarios on {key}: "
        f"best is {ranked[0].name!r}, {len(rejected)} rejected"
    )

    return ScenarioComparison(
        criterion=key,
        scenario_count=len(scenarios),
        best=ranked[0],
        ranking=ranked,
        rejected=rejected,
    )


def compare_flip_scenarios(
    scenarios: Iterable[Any],
    criterion: str = "profit",
    settings: Optional[EngineSettings] = None,
    max_workers: Optional[int] = None,
) -> ScenarioComparison:
    """
    Rank flip scenarios on profit, roi or annualized_roi.

    Args:
        scenarios: FlipScenario records or mappings; an optional `name`
            labels each one (default "Scenario N")
        criterion: Ranking metric
        max_workers: Thread count passed to evaluate_many

    Returns:
        ScenarioComparison with the best scenario, the full ranking and any
        rejected scenarios

    Raises:
        InvalidInput: If the list is empty, the criterion is unknown, or
            every scenario is invalid
    """
    return _compare(analyze_flip, FLIP_CRITERIA, scenarios, criterion, settings, max_workers)


def compare_multi_scenarios(
    scenarios: Iterable[Any],
    criterion: str = "cashflow_per_unit",
    settings: Optional[EngineSettings] = None,
    max_workers: Optional[int] = None,
) -> ScenarioComparison:
    """
    Rank multi-unit scenarios on cashflow_per_unit, cap_rate, cash_on_cash
    or net_operating_income.
    """
    return _compare(analyze, MULTI_CRITERIA, scenarios, criterion, settings, max_workers)
