"""Downloadable JSON documents: registry export, test results, history entries."""

from datetime import datetime, timezone

from api_harness.models import ApiDefinition, HistoryEntry, ResolvedRequest, TestResult


def _iso(value: datetime | None = None) -> str:
    return (value or datetime.now(timezone.utc)).isoformat()


def export_registry(apis: list[ApiDefinition], now: datetime | None = None) -> dict:
    """Summary of every API, without credentials or endpoints."""
    exported = []
    for api in apis:
        item = {
            "name": api.name,
            "base_url": api.base_url,
            "auth_type": api.auth_type,
            "is_active": api.is_active,
            "created_at": _iso(api.created_at),
        }
        if api.observations is not None:
            item["observations"] = api.observations
        if api.documentation is not None:
            item["documentation"] = api.documentation
        exported.append(item)
    return {"export_date": _iso(now), "apis": exported}


def export_test_result(
    api_name: str,
    request: ResolvedRequest,
    result: TestResult,
    now: datetime | None = None,
) -> dict:
    return {
        "api": api_name,
        "test_date": _iso(now),
        "request": {
            "url": result.url,
            "method": result.method,
            "headers": dict(request.headers),
        },
        "response": {
            "status": result.status,
            "body": result.body_text,
            "response_time": result.response_time_ms,
            "success": result.success,
        },
    }


def export_history_entry(api_name: str, entry: HistoryEntry) -> dict:
    """Flat record of one history entry, including the cURL equivalent."""
    analysis = entry.ai_analysis
    return {
        "api": api_name,
        "test_date": _iso(entry.recorded_at),
        "url": entry.request.url,
        "method": entry.request.method,
        "status": entry.result.status,
        "success": entry.result.success,
        "response_time": entry.result.response_time_ms,
        "headers": dict(entry.request.headers),
        "body": entry.request.body,
        "response": entry.result.body_text,
        "error": entry.result.error,
        "ai_analysis": analysis.analysis if analysis else None,
        "ai_suggestions": analysis.suggestions if analysis else None,
        "curl_command": entry.result.curl_equivalent,
    }
