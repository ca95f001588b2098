"""End-to-end flows against a local HTTP server, with the LLM mocked."""

import json
from unittest.mock import MagicMock, patch

from click.testing import CliRunner

from api_harness.cli import main
from api_harness.executor import TestExecutor
from api_harness.exporters import export_history_entry
from api_harness.harness import ApiTestHarness
from api_harness.history import JsonlHistoryRecorder
from api_harness.models import RequestOverride
from api_harness.parser.curl import parse_curl
from api_harness.parser.json_import import parse_json_import
from api_harness.registry import Registry

MOCK_ANALYSIS = """```json
{"analysis": "The endpoint returned 404; the path is probably wrong.", "suggestions": ["Check the endpoint path"], "severity": "medium"}
```"""


def _import_document(base_url: str) -> str:
    return json.dumps(
        {
            "name": "Fleet",
            "description": "Fleet management",
            "base_url": base_url,
            "endpoints": [
                {"name": "Create vehicle", "path": "/vehicles", "method": "post", "body": {"plate": "ABC1D23"}},
                {"name": "Missing", "path": "/status/404"},
            ],
        }
    )


def test_import_run_and_read_history(tmp_path, http_server, session):
    registry_path = tmp_path / "registry.yaml"
    registry = Registry.load(registry_path)
    registry.apply_import(parse_json_import(_import_document(http_server)))
    registry.save(registry_path)

    registry = Registry.load(registry_path)
    api = registry.get("Fleet")
    api.auth_type = "basic"
    api.credential = "ana:pw"
    recorder = JsonlHistoryRecorder(tmp_path / "history")
    harness = ApiTestHarness(executor=TestExecutor(session=session), recorder=recorder, timeout_ms=2000)

    created = harness.run(api, registry.endpoint(api, "Create vehicle"))
    echoed = json.loads(created.body_text)
    assert created.status == 200
    assert echoed["method"] == "POST"
    assert echoed["path"] == "/vehicles"
    assert echoed["headers"]["Authorization"] == "Basic YW5hOnB3"
    assert json.loads(echoed["body"]) == {"plate": "ABC1D23"}

    overridden = harness.run(
        api,
        registry.endpoint(api, "Create vehicle"),
        RequestOverride(custom_method="put", custom_body='{"plate": "XYZ"}', custom_headers={"X-Run": "2"}),
    )
    echoed = json.loads(overridden.body_text)
    assert echoed["method"] == "PUT"
    assert echoed["body"] == '{"plate": "XYZ"}'
    assert echoed["headers"]["X-Run"] == "2"

    entries = JsonlHistoryRecorder(tmp_path / "history").entries_by_api(api.id)
    assert [e.request.method for e in entries] == ["PUT", "POST"]
    doc = export_history_entry(api.name, entries[0])
    assert doc["curl_command"].startswith(f'curl -X PUT "{http_server}/vehicles"')
    assert parse_curl(doc["curl_command"]).body == '{"plate": "XYZ"}'


@patch("api_harness.analysis.LlmClient")
def test_cli_import_then_test_with_analysis(MockLlm, tmp_path, http_server):
    mock_client = MagicMock()
    mock_client.call.return_value = MOCK_ANALYSIS
    MockLlm.return_value = mock_client

    source = tmp_path / "fleet.json"
    source.write_text(_import_document(http_server))
    registry_path = tmp_path / "registry.yaml"
    history = tmp_path / "history"
    runner = CliRunner()

    imported = runner.invoke(main, ["import", str(source), "--registry", str(registry_path)])
    assert imported.exit_code == 0, imported.output

    tested = runner.invoke(
        main,
        ["test", "Fleet", "--registry", str(registry_path), "--endpoint", "Missing", "--history", str(history), "--analyze"],
    )
    assert tested.exit_code == 0, tested.output
    assert "-> 404" in tested.output
    assert "AI analysis (medium)" in tested.output
    mock_client.call.assert_called_once()

    shown = runner.invoke(main, ["history", "Fleet", "--registry", str(registry_path), "--history", str(history), "--json"])
    docs = json.loads(shown.output)
    assert docs[0]["status"] == 404
    assert docs[0]["ai_suggestions"] == ["Check the endpoint path"]
