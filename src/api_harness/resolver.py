"""Request resolution.

Turns a stored API, an optional endpoint and the caller's overrides into
one concrete request. Later sources win:

    URL      custom_url > base_url + endpoint.path > base_url
    method   custom_method > endpoint.method > GET
    headers  api defaults < endpoint headers < auth < custom_headers
    body     custom_body > endpoint.body_template > none

Resolution is pure: it reads the definitions and never modifies them.
"""

import base64
import json
import logging
from urllib.parse import urlencode

from api_harness.errors import NoUrlResolvable
from api_harness.logging_setup import redact_headers
from api_harness.models import (
    ApiDefinition,
    EndpointDefinition,
    KeyValue,
    RequestOverride,
    ResolvedRequest,
)

logger = logging.getLogger(__name__)


def resolve(
    api: ApiDefinition,
    endpoint: EndpointDefinition | None = None,
    override: RequestOverride | None = None,
) -> ResolvedRequest:
    """Resolve one concrete request.

    Raises NoUrlResolvable when there is no custom URL, no endpoint and the
    API has an empty base URL.
    """
    override = override or RequestOverride()
    use_custom_url = bool(override.custom_url)

    url = _resolve_url(api, endpoint, override)
    method = _resolve_method(endpoint, override)

    headers: dict[str, str] = {}
    _apply(headers, api.default_headers)
    if endpoint is not None and not use_custom_url:
        _apply(headers, endpoint.headers)
    headers.update(auth_headers(api))
    headers.update(override.custom_headers)

    body = _resolve_body(endpoint, override)

    logger.debug(
        "Resolved %s %s headers=%s body=%s",
        method, url, redact_headers(headers, (api.api_key_header,)), body is not None,
    )
    return ResolvedRequest(url=url, method=method, headers=headers, body=body)


def join_url(base_url: str, path: str) -> str:
    """Join base URL and endpoint path with exactly one slash between them."""
    if not path.startswith("/"):
        path = "/" + path
    return base_url.rstrip("/") + path


def auth_headers(api: ApiDefinition) -> dict[str, str]:
    """The authentication header for an API, if any.

    An empty credential means no authentication. oauth2 is recognised but
    injects nothing: there is no token flow.
    """
    credential = api.credential
    if not credential:
        return {}
    if api.auth_type == "api_key":
        return {api.api_key_header or "Authorization": credential}
    if api.auth_type == "bearer":
        return {"Authorization": f"Bearer {credential}"}
    if api.auth_type == "basic":
        encoded = base64.b64encode(credential.encode("utf-8")).decode("ascii")
        return {"Authorization": f"Basic {encoded}"}
    if api.auth_type == "oauth2":
        logger.warning("API %r uses oauth2; no credential is injected", api.name)
    return {}


def _resolve_url(api: ApiDefinition, endpoint: EndpointDefinition | None, override: RequestOverride) -> str:
    if override.custom_url:
        return override.custom_url

    if endpoint is not None:
        url = join_url(api.base_url, endpoint.path)
        params = [*api.default_query_params, *endpoint.query_params]
    elif api.base_url:
        url = api.base_url
        params = list(api.default_query_params)
    else:
        raise NoUrlResolvable(
            f"API {api.name!r} has no base URL and neither an endpoint nor a custom URL was given"
        )
    return _with_query(url, params)


def _with_query(url: str, params: list[KeyValue]) -> str:
    if not params:
        return url
    merged: dict[str, str] = {}
    for param in params:
        merged[param.name] = param.value
    separator = "&" if "?" in url else "?"
    return url + separator + urlencode(merged)


def _resolve_method(endpoint: EndpointDefinition | None, override: RequestOverride) -> str:
    if override.custom_method:
        return override.custom_method.upper()
    if endpoint is not None:
        return endpoint.method
    return "GET"


def _resolve_body(endpoint: EndpointDefinition | None, override: RequestOverride) -> str | None:
    if override.custom_body:
        return override.custom_body
    if endpoint is None:
        return None
    template = endpoint.body_template
    if template is None or template == {} or template == [] or template == "":
        return None
    if isinstance(template, str):
        return template
    return json.dumps(template)


def _apply(headers: dict[str, str], entries: list[KeyValue]) -> None:
    for entry in entries:
        headers[entry.name] = entry.value
