"""CLI entry point for api-harness."""

import json
from pathlib import Path

import click

from api_harness.analysis import FailureAnalyzer
from api_harness.config import DEFAULT_TIMEOUT_MS
from api_harness.errors import ApiHarnessError
from api_harness.executor import TestExecutor
from api_harness.exporters import export_history_entry, export_registry, export_test_result
from api_harness.harness import ApiTestHarness
from api_harness.history import JsonlHistoryRecorder
from api_harness.logging_setup import setup_logging
from api_harness.models import RequestOverride
from api_harness.parser.base import RequestSpec
from api_harness.parser.curl import parse_curl, to_curl
from api_harness.parser.detect import detect_format
from api_harness.parser.json_import import parse_json_import
from api_harness.registry import Registry

REGISTRY_OPTION = click.option(
    "--registry",
    "registry_path",
    required=True,
    type=click.Path(dir_okay=False, path_type=Path),
    help="Registry YAML file.",
)


def _fail(error: ApiHarnessError):
    raise click.ClickException(str(error)) from error


def _parse_header_options(values: tuple[str, ...]) -> dict[str, str]:
    headers = {}
    for raw in values:
        name, sep, value = raw.partition(":")
        if not sep or not name.strip():
            raise click.BadParameter(f"expected 'Name: value', got {raw!r}", param_hint="-H")
        headers[name.strip()] = value.strip()
    return headers


def _write_json(data: dict, output: Path | None) -> None:
    text = json.dumps(data, indent=2, ensure_ascii=False)
    if output is None:
        click.echo(text)
    else:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(text + "\n", encoding="utf-8")
        click.echo(f"Saved to {output}")


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
def main(verbose: bool):
    """API Harness: register external HTTP APIs, import cURL or JSON, run tests."""
    setup_logging("DEBUG" if verbose else None)


@main.command("parse-curl")
@click.argument("source", type=click.File("r", encoding="utf-8"))
def parse_curl_cmd(source):
    """Parse a cURL command (file or '-') and print it as JSON."""
    try:
        spec = parse_curl(source.read())
    except ApiHarnessError as e:
        _fail(e)
    click.echo(spec.model_dump_json(indent=2))


@main.command("to-curl")
@click.argument("source", type=click.File("r", encoding="utf-8"))
def to_curl_cmd(source):
    """Print the cURL command for a request JSON document (as printed by parse-curl)."""
    try:
        spec = RequestSpec.model_validate_json(source.read())
    except ValueError as e:
        raise click.ClickException(f"invalid request document: {e}") from e
    click.echo(to_curl(spec))


@main.command("import")
@click.argument("source", type=click.File("r", encoding="utf-8"))
@REGISTRY_OPTION
@click.option("--format", "fmt", default="auto", type=click.Choice(["auto", "curl", "json"]), help="Input format.")
@click.option("--name", default=None, help="API name for cURL imports (defaults to the host).")
def import_cmd(source, registry_path: Path, fmt: str, name: str | None):
    """Import an API from a cURL command or a JSON document into the registry."""
    text = source.read()
    if fmt == "auto":
        fmt = detect_format(text)
        if fmt == "unknown":
            raise click.ClickException("cannot tell whether the input is a cURL command or JSON; use --format")

    try:
        registry = Registry.load(registry_path)
        if fmt == "curl":
            api = registry.apply_curl(parse_curl(text), name=name)
        else:
            api = registry.apply_import(parse_json_import(text))
    except ApiHarnessError as e:
        _fail(e)

    registry.save(registry_path)
    click.echo(f"Imported {api.name!r} ({len(api.endpoints)} endpoints) into {registry_path}")


@main.command("list")
@REGISTRY_OPTION
def list_cmd(registry_path: Path):
    """List the APIs in the registry."""
    try:
        registry = Registry.load(registry_path)
    except ApiHarnessError as e:
        _fail(e)
    if not registry.apis:
        click.echo("No APIs registered.")
        return
    for api in registry.apis:
        state = "active" if api.is_active else "inactive"
        click.echo(f"{api.name}  {api.base_url}  auth={api.auth_type}  {state}  endpoints={len(api.endpoints)}")
        for ep in api.endpoints:
            click.echo(f"    {ep.method:<6} {ep.path}  ({ep.name})")


@main.command("export")
@REGISTRY_OPTION
@click.option("-o", "--output", default=None, type=click.Path(path_type=Path), help="Write the export to a file.")
def export_cmd(registry_path: Path, output: Path | None):
    """Export the registry summary as JSON."""
    try:
        registry = Registry.load(registry_path)
    except ApiHarnessError as e:
        _fail(e)
    _write_json(export_registry(registry.apis), output)


@main.command("test")
@click.argument("api_key")
@REGISTRY_OPTION
@click.option("--endpoint", "endpoint_key", default=None, help="Endpoint name or id.")
@click.option("--url", "custom_url", default=None, help="Custom URL; replaces base URL and endpoint path.")
@click.option("--method", "custom_method", default=None, help="Custom HTTP method.")
@click.option("-H", "--header", "headers", multiple=True, help="Extra header 'Name: value' (repeatable).")
@click.option("--body", "custom_body", default=None, help="Request body.")
@click.option("--timeout", "timeout_ms", default=DEFAULT_TIMEOUT_MS, type=int, show_default=True, help="Timeout in ms.")
@click.option("--history", "history_dir", default=None, type=click.Path(file_okay=False, path_type=Path), help="Record the run in this history directory.")
@click.option("--analyze", is_flag=True, help="Ask an LLM to explain a failed test.")
@click.option("--model", default=None, help="LLM model to use for --analyze.")
@click.option("-o", "--output", default=None, type=click.Path(path_type=Path), help="Write the TestResult JSON document to a file.")
def test_cmd(
    api_key: str,
    registry_path: Path,
    endpoint_key: str | None,
    custom_url: str | None,
    custom_method: str | None,
    headers: tuple[str, ...],
    custom_body: str | None,
    timeout_ms: int,
    history_dir: Path | None,
    analyze: bool,
    model: str | None,
    output: Path | None,
):
    """Run one test against a registered API."""
    override = RequestOverride(
        custom_url=custom_url,
        custom_method=custom_method,
        custom_headers=_parse_header_options(headers),
        custom_body=custom_body,
    )

    try:
        registry = Registry.load(registry_path)
        api = registry.get(api_key)
        endpoint = registry.endpoint(api, endpoint_key) if endpoint_key else None
    except ApiHarnessError as e:
        _fail(e)

    analyzer = FailureAnalyzer(model=model) if analyze or api.ai_analysis_enabled else None
    recorder = JsonlHistoryRecorder(history_dir) if history_dir else None
    executor = TestExecutor()
    harness = ApiTestHarness(
        executor=executor,
        recorder=recorder,
        analyzer=analyzer,
        timeout_ms=timeout_ms,
        analyze_all=analyze,
    )

    try:
        result = harness.run(api, endpoint, override)
    except ApiHarnessError as e:
        _fail(e)
    finally:
        executor.close()

    click.echo(f"{result.method} {result.url} -> {result.status} ({result.response_time_ms:.0f} ms)")
    click.echo(f"success: {result.success}")
    if result.error:
        click.echo(f"error: {result.error}")
    click.echo(f"curl: {result.curl_equivalent}")
    if result.body_text:
        click.echo("")
        click.echo(result.body_text)
    if harness.last_analysis is not None:
        click.echo("")
        click.echo(f"AI analysis ({harness.last_analysis.severity}): {harness.last_analysis.analysis}")
        for suggestion in harness.last_analysis.suggestions:
            click.echo(f"  - {suggestion}")

    if output is not None:
        _write_json(export_test_result(api.name, harness.last_request, result), output)


@main.command("history")
@click.argument("api_key")
@REGISTRY_OPTION
@click.option("--history", "history_dir", required=True, type=click.Path(file_okay=False, path_type=Path), help="History directory.")
@click.option("--limit", default=20, show_default=True, help="Show at most this many entries.")
@click.option("--json", "as_json", is_flag=True, help="Print entries as JSON documents.")
def history_cmd(api_key: str, registry_path: Path, history_dir: Path, limit: int, as_json: bool):
    """Show recorded test runs for an API, newest first."""
    try:
        api = Registry.load(registry_path).get(api_key)
    except ApiHarnessError as e:
        _fail(e)

    entries = JsonlHistoryRecorder(history_dir).entries_by_api(api.id)[:limit]
    if as_json:
        click.echo(json.dumps([export_history_entry(api.name, e) for e in entries], indent=2, ensure_ascii=False))
        return
    if not entries:
        click.echo(f"No test history for {api.name!r}.")
        return
    for entry in entries:
        r = entry.result
        mark = "ok " if r.success else "ERR"
        line = f"{entry.recorded_at:%Y-%m-%d %H:%M:%S}  {mark} {r.status:>3}  {r.method:<6} {r.url}  {r.response_time_ms:.0f} ms"
        if r.error:
            line += f"  ({r.error})"
        click.echo(line)
