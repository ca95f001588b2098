"""File backed API registry.

Stores ``ApiDefinition`` records (with their endpoints) in a YAML document::

    apis:
      - name: Example
        base_url: https://api.example.com
        auth_type: bearer
        credential: secret-token
        endpoints:
          - name: List users
            path: /users

JSON is valid YAML, so a JSON registry file loads as well.
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from urllib.parse import parse_qsl, urlsplit

import yaml
from pydantic import ValidationError

from api_harness.errors import InvalidShape, RegistryError
from api_harness.models import ApiDefinition, EndpointDefinition, KeyValue
from api_harness.parser.base import ImportedApi, RequestSpec

logger = logging.getLogger(__name__)


class Registry:
    """An ordered collection of API definitions."""

    def __init__(self, apis: list[ApiDefinition] | None = None):
        self.apis: list[ApiDefinition] = list(apis or [])

    @classmethod
    def load(cls, path: Path) -> "Registry":
        path = Path(path)
        if not path.exists():
            return cls()
        try:
            doc = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as e:
            raise RegistryError(f"cannot read registry {path}: {e}") from e
        if not isinstance(doc, dict) or not isinstance(doc.get("apis", []), list):
            raise RegistryError(f"registry {path} must be a mapping with an 'apis' list")

        try:
            apis = [ApiDefinition.model_validate(item) for item in doc.get("apis") or []]
        except ValidationError as e:
            raise RegistryError(f"invalid API definition in {path}: {e}") from e
        for api in apis:
            _link_endpoints(api)
        logger.debug("Loaded %d APIs from %s", len(apis), path)
        return cls(apis)

    def save(self, path: Path) -> None:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        doc = {"apis": [api.model_dump(mode="json", exclude_none=True) for api in self.apis]}
        path.write_text(yaml.safe_dump(doc, sort_keys=False, allow_unicode=True), encoding="utf-8")

    def get(self, key: str) -> ApiDefinition:
        """Find an API by id, then by name."""
        for api in self.apis:
            if api.id == key:
                return api
        for api in self.apis:
            if api.name == key:
                return api
        raise RegistryError(f"API not found: {key}")

    def endpoint(self, api: ApiDefinition, key: str) -> EndpointDefinition:
        """Find an endpoint of ``api`` by id, then by name."""
        for ep in api.endpoints:
            if ep.id == key:
                return ep
        for ep in api.endpoints:
            if ep.name == key:
                return ep
        raise RegistryError(f"endpoint not found in {api.name!r}: {key}")

    def add(self, api: ApiDefinition) -> ApiDefinition:
        """Add an API, replacing one with the same name (its id is kept)."""
        _link_endpoints(api)
        for i, existing in enumerate(self.apis):
            if existing.name == api.name:
                api = api.model_copy(
                    update={
                        "id": existing.id,
                        "created_at": existing.created_at,
                        "updated_at": datetime.now(timezone.utc),
                    }
                )
                _link_endpoints(api)
                self.apis[i] = api
                logger.info("Replaced API %r", api.name)
                return api
        self.apis.append(api)
        logger.info("Added API %r", api.name)
        return api

    def remove(self, key: str) -> ApiDefinition:
        """Remove an API together with its endpoints."""
        api = self.get(key)
        self.apis = [a for a in self.apis if a.id != api.id]
        return api

    def apply_import(self, imported: ImportedApi) -> ApiDefinition:
        """Turn a JSON import into a stored API. Nothing is stored on error."""
        try:
            endpoints = [_endpoint_from_import(ep) for ep in imported.endpoints]
        except ValidationError as e:
            raise _invalid_endpoint(e) from e

        api = ApiDefinition(
            name=imported.name,
            description=imported.description,
            base_url=imported.base_url,
            endpoints=endpoints,
        )
        return self.add(api)

    def apply_curl(self, spec: RequestSpec, name: str | None = None) -> ApiDefinition:
        """Store a parsed cURL command as an API with a single endpoint."""
        parts = urlsplit(spec.url)
        if not parts.scheme or not parts.netloc:
            raise InvalidShape("cURL URL must be absolute", spec.url)

        base_url = f"{parts.scheme}://{parts.netloc}"
        path = parts.path or "/"
        try:
            endpoint = EndpointDefinition(
                name=f"{spec.method} {path}",
                path=path,
                method=spec.method,
                headers=list(spec.headers),
                query_params=[KeyValue(name=k, value=v) for k, v in parse_qsl(parts.query, keep_blank_values=True)],
                body_template=_body_template(spec.body),
            )
        except ValidationError as e:
            raise _invalid_endpoint(e, spec.method) from e
        api = ApiDefinition(name=name or parts.netloc, base_url=base_url, endpoints=[endpoint])
        return self.add(api)


def _invalid_endpoint(error: ValidationError, fragment: str | None = None) -> InvalidShape:
    first = error.errors()[0]
    return InvalidShape(f"invalid endpoint: {'.'.join(map(str, first['loc']))}: {first['msg']}", fragment)


def _link_endpoints(api: ApiDefinition) -> None:
    for ep in api.endpoints:
        ep.api_id = api.id


def _endpoint_from_import(ep) -> EndpointDefinition:
    extra = ep.model_extra or {}
    return EndpointDefinition(
        name=ep.name or f"{ep.method.upper()} {ep.path}",
        description=ep.description,
        path=ep.path,
        method=ep.method,
        headers=[KeyValue(name=k, value=v) for k, v in ep.headers.items()],
        body_template=extra.get("body", extra.get("body_template")),
    )


def _body_template(body: str | None):
    """Keep JSON bodies as structured values and anything else as text."""
    if body is None:
        return {}
    try:
        value = json.loads(body)
    except json.JSONDecodeError:
        return body
    return value if isinstance(value, (dict, list)) else body
