"""Presentation helpers for journey listings: filtering, sorting, stats, CSV."""

import csv
import io

from pathwise.models.journey import Journey, JourneySort, JourneyStats, StatusFilter

CSV_HEADERS = [
    "Visitor ID",
    "Email",
    "First Source",
    "Touchpoints",
    "Revenue",
    "First Seen",
    "Last Seen",
]


def present(
    journeys: list[Journey],
    status: StatusFilter | str = StatusFilter.ALL,
    sort: JourneySort | str = JourneySort.NONE,
) -> list[Journey]:
    """Filter journeys by funnel status and order them for display.

    Args:
        journeys: Journeys in candidate order.
        status: Funnel status filter.
        sort: Display order. NONE keeps candidate order.

    Returns:
        A new list; the input is not modified.
    """
    listed = [j for j in journeys if j.matches(status)]

    sort = JourneySort(sort)
    if sort == JourneySort.REVENUE:
        listed.sort(key=lambda j: j.total_revenue, reverse=True)
    elif sort == JourneySort.TOUCHPOINTS:
        listed.sort(key=lambda j: j.events_count, reverse=True)

    return listed


def summarize(journeys: list[Journey]) -> JourneyStats:
    """Compute aggregate figures over a set of journeys.

    Args:
        journeys: Journeys to aggregate (normally the unfiltered result).

    Returns:
        JourneyStats.
    """
    total = len(journeys)
    if total == 0:
        return JourneyStats()

    leads = sum(1 for j in journeys if j.lead is not None)
    customers = sum(1 for j in journeys if j.payments)
    touchpoints = sum(j.events_count for j in journeys)

    return JourneyStats(
        total_visitors=total,
        total_leads=leads,
        total_customers=customers,
        total_revenue=sum(j.total_revenue for j in journeys),
        avg_touchpoints=round(touchpoints / total, 1),
        conversion_rate=leads / total * 100,
    )


def export_csv(journeys: list[Journey]) -> str:
    """Render journeys as CSV, one row per visitor.

    Args:
        journeys: Journeys to export.

    Returns:
        CSV text including the header row.
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADERS)

    for journey in journeys:
        writer.writerow(
            [
                journey.visitor_id,
                journey.lead.email if journey.lead else "",
                journey.first_source.utm_source or "direct",
                journey.events_count,
                journey.total_revenue,
                journey.first_seen.isoformat() if journey.first_seen else "",
                journey.last_seen.isoformat() if journey.last_seen else "",
            ]
        )

    return buffer.getvalue()
