"""Auto-detect the format of an import document."""

import json


def detect_format(text: str) -> str:
    """Detect whether text is a cURL command or a JSON import document.

    Returns: 'curl', 'json', or 'unknown'.
    """
    stripped = text.strip()

    if stripped.split(None, 1)[:1] == ["curl"]:
        return "curl"

    try:
        data = json.loads(stripped)
        if isinstance(data, dict):
            return "json"
    except (json.JSONDecodeError, ValueError):
        pass

    if stripped.startswith("{"):
        # Broken JSON still goes to the JSON importer so the error names the problem
        return "json"

    return "unknown"
