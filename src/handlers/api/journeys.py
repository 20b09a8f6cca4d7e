"""Journeys API handler for the attribution reporting UI."""

from datetime import datetime, timezone
from typing import Any

import structlog
from pydantic import ValidationError as PydanticValidationError

from pathwise.models.journey import JourneyQuery
from pathwise.services.journey_report import export_csv, present, summarize
from pathwise.services.journey_service import JourneyService
from pathwise.utils.exceptions import NotFoundError, ValidationError
from pathwise.utils.responses import csv_file, error, not_found, success, validation_error

logger = structlog.get_logger()

SEARCH_PARAMS = ("period", "status", "sort")
EXPORT_RESOURCE = "/projects/{project_id}/journeys/export"


def handler(event: dict[str, Any], context: Any) -> dict:
    """Handle journey reporting requests.

    Routes:
        GET /projects/{project_id}/journeys                      - List journeys
        GET /projects/{project_id}/journeys/export               - CSV export
        GET /projects/{project_id}/journeys/{visitor_id}         - One visitor

    Query parameters for the list and export routes:
        q: Email fragment (contains "@"), visitor ID, or empty for recent.
        period: 7d | 30d | 90d (default 30d).
        status: all | visitors | leads | customers (default all).
        sort: revenue | touchpoints | none (default none).
    """
    try:
        http_method = event.get("httpMethod", "").upper()
        path_params = event.get("pathParameters", {}) or {}
        query_params = event.get("queryStringParameters", {}) or {}
        resource = event.get("resource", "")
        project_id = path_params.get("project_id")
        visitor_id = path_params.get("visitor_id")

        if http_method != "GET":
            return error("Method not allowed", 405)
        if not project_id:
            return error("project_id is required", 400)

        service = JourneyService()

        if resource == EXPORT_RESOURCE:
            return export_journeys(service, project_id, query_params)
        if visitor_id:
            return get_journey(service, project_id, visitor_id)
        return list_journeys(service, project_id, query_params)

    except ValidationError as e:
        return validation_error(e.errors)
    except NotFoundError as e:
        return not_found(e.resource_type, e.resource_id)
    except ValueError as e:
        return error(str(e), 400)
    except Exception as e:
        logger.exception("Journeys handler error", error=str(e))
        return error("Internal server error", 500)


def parse_query(query_params: dict) -> JourneyQuery:
    """Build a JourneyQuery from API query parameters.

    Raises:
        ValidationError: If period, status or sort is not a known value.
    """
    options = {name: query_params[name] for name in SEARCH_PARAMS if query_params.get(name)}
    try:
        return JourneyQuery.from_search(query_params.get("q"), **options)
    except PydanticValidationError as e:
        raise ValidationError.from_pydantic(e) from e


def list_journeys(service: JourneyService, project_id: str, query_params: dict) -> dict:
    """List journeys with stats over the unfiltered result."""
    query = parse_query(query_params)
    journeys = service.build_journeys(project_id, query)
    listed = present(journeys, status=query.status, sort=query.sort)

    logger.info(
        "Journeys listed",
        project_id=project_id,
        criterion=query.criterion,
        found=len(journeys),
        listed=len(listed),
    )

    return success({
        "journeys": [j.model_dump(mode="json") for j in listed],
        "stats": summarize(journeys).model_dump(mode="json"),
    })


def get_journey(service: JourneyService, project_id: str, visitor_id: str) -> dict:
    """Get a single visitor's journey."""
    journey = service.build_journey(project_id, visitor_id)
    if journey is None:
        raise NotFoundError("Journey", visitor_id)

    return success(journey.model_dump(mode="json"))


def export_journeys(service: JourneyService, project_id: str, query_params: dict) -> dict:
    """Export the listed journeys as a CSV download."""
    query = parse_query(query_params)
    journeys = present(
        service.build_journeys(project_id, query),
        status=query.status,
        sort=query.sort,
    )

    today = datetime.now(timezone.utc).strftime("%Y-%m-%d")
    return csv_file(export_csv(journeys), f"journeys-{today}.csv")
