"""QA failure-rate trend over a series of sprints."""

from typing import Iterable, Sequence, Tuple

from services.responses import QaTrendResponse, SprintMetrics, SprintQaData
from services.stats import average

# Changes within +/- this many percentage points count as STABLE
TREND_THRESHOLD = 5.0

UP = "UP"
DOWN = "DOWN"
STABLE = "STABLE"


def determine_trend(change: float) -> str:
    if change > TREND_THRESHOLD:
        return UP
    if change < -TREND_THRESHOLD:
        return DOWN
    return STABLE


def analyze(points: Sequence[Tuple[str, float]]) -> QaTrendResponse:
    """Trend for ``(sprint_id, qa_failure_rate)`` pairs ordered oldest to newest."""
    series = [SprintQaData(sprint_id=str(sprint_id), qa_failure_rate=rate)
              for sprint_id, rate in points]

    if not series:
        return QaTrendResponse(
            trend_direction=STABLE,
            change_percentage=0.0,
            average_failure_rate=0.0,
            latest_failure_rate=0.0,
            sprint_qa_data=[],
        )

    rates = [point.qa_failure_rate for point in series]
    change = rates[-1] - rates[0]

    return QaTrendResponse(
        trend_direction=determine_trend(change),
        change_percentage=change,
        average_failure_rate=average(rates),
        latest_failure_rate=rates[-1],
        sprint_qa_data=series,
    )


def analyze_metrics(history: Iterable[SprintMetrics]) -> QaTrendResponse:
    return analyze([(m.sprint_id, m.qa_failure_rate) for m in history])
