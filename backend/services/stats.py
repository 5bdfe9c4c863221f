"""Small numeric helpers used by the aggregations."""

from typing import Iterable


def median(values: Iterable[float]) -> float:
    """Median of the values; 0 for an empty input. The input is not modified."""
    sorted_values = sorted(values)
    count = len(sorted_values)
    if count == 0:
        return 0

    mid = count // 2
    if count % 2 == 0:
        return (sorted_values[mid - 1] + sorted_values[mid]) / 2
    return sorted_values[mid]


def average(values: Iterable[float]) -> float:
    values = list(values)
    return sum(values) / len(values) if values else 0


def percentage(numerator: float, denominator: float) -> float:
    """100 * numerator / denominator, or 0 when the denominator is 0."""
    if denominator == 0:
        return 0
    return numerator * 100.0 / denominator
