"""JSON API import document parser.

Expected shape::

    {
      "name": "Example API",
      "description": "optional",
      "base_url": "https://api.example.com/v1",
      "endpoints": [
        {"name": "List users", "path": "/users", "method": "GET",
         "headers": {"Accept": "application/json"}}
      ]
    }

There is no partial recovery: the first structural problem aborts the
whole import.
"""

import json
import logging

from pydantic import ValidationError

from api_harness.errors import InvalidJson, InvalidShape, MissingRequiredField
from api_harness.parser.base import ImportedApi, ImportedEndpoint

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("name", "base_url")


def parse_json_import(text: str) -> ImportedApi:
    """Parse and validate a JSON import document."""
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise InvalidJson(f"invalid JSON (line {e.lineno}, column {e.colno})", text[:80]) from e

    if not isinstance(data, dict):
        raise InvalidShape("import document must be a JSON object", type(data).__name__)

    for field in REQUIRED_FIELDS:
        value = data.get(field)
        if not isinstance(value, str) or not value.strip():
            raise MissingRequiredField(field)

    raw_endpoints = data.get("endpoints")
    if raw_endpoints is None:
        raw_endpoints = []
    if not isinstance(raw_endpoints, list):
        raise InvalidShape('"endpoints" must be an array', type(raw_endpoints).__name__)

    endpoints = [_parse_endpoint(i, entry) for i, entry in enumerate(raw_endpoints)]

    description = data.get("description") or ""
    if not isinstance(description, str):
        raise InvalidShape('"description" must be a string', type(description).__name__)

    logger.debug("Parsed JSON import %r with %d endpoints", data["name"], len(endpoints))
    return ImportedApi(
        name=data["name"],
        description=description,
        base_url=data["base_url"],
        endpoints=endpoints,
    )


def _parse_endpoint(index: int, entry) -> ImportedEndpoint:
    if not isinstance(entry, dict):
        raise InvalidShape(f"endpoints[{index}] must be an object", type(entry).__name__)

    entry = dict(entry)
    if entry.get("headers") is None:
        entry["headers"] = {}

    try:
        return ImportedEndpoint.model_validate(entry)
    except ValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(part) for part in first["loc"])
        raise InvalidShape(f"endpoints[{index}].{location}: {first['msg']}") from e
