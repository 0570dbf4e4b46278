"""Dashboard aggregation for stored measurements."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, List

from app.schemas import ComplianceStatus, Measurement


@dataclass
class DashboardSummary:
    """KPIs and a chronological temperature/humidity series."""

    row_count: int = 0
    temperature_avg: float = 0.0
    humidity_avg: float = 0.0
    compliant_count: int = 0
    non_compliant_count: int = 0
    series: List[tuple[date, float, float]] = field(default_factory=list)


class Aggregator:
    """Pure aggregation component that can be unit tested in isolation."""

    def aggregate(self, measurements: Iterable[Measurement]) -> DashboardSummary:
        summary = DashboardSummary()
        temperature_total = 0.0
        humidity_total = 0.0

        for measurement in sorted(measurements, key=lambda item: item.date):
            summary.row_count += 1
            temperature_total += measurement.temperature
            humidity_total += measurement.humidity

            if measurement.status == ComplianceStatus.compliant:
                summary.compliant_count += 1
            else:
                summary.non_compliant_count += 1

            summary.series.append(
                (measurement.date.date(), measurement.temperature, measurement.humidity)
            )

        if summary.row_count:
            summary.temperature_avg = temperature_total / summary.row_count
            summary.humidity_avg = humidity_total / summary.row_count

        return summary
