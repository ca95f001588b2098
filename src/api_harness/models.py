"""Registry data models.

An ``ApiDefinition`` owns its ``EndpointDefinition`` list. Both are read-only
snapshots while a test is resolved and executed; ``RequestOverride`` carries
the per-run values, ``ResolvedRequest`` and ``TestResult`` are produced once
and never mutated.
"""

import uuid
from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, JsonValue, field_validator

from api_harness.config import DEFAULT_API_KEY_HEADER

AuthType = Literal["none", "api_key", "bearer", "basic", "oauth2"]
HttpMethod = Literal["GET", "POST", "PUT", "PATCH", "DELETE"]
Severity = Literal["low", "medium", "high"]


def _new_id() -> str:
    return uuid.uuid4().hex


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class KeyValue(BaseModel):
    """One header or query parameter. Names may repeat; the last one wins."""

    name: str
    value: str = ""


def _none_to_list(value):
    return [] if value is None else value


class McpTool(BaseModel):
    name: str
    description: str = ""
    input_schema: dict = Field(default_factory=dict, alias="inputSchema")
    output_schema: dict | None = Field(default=None, alias="outputSchema")

    model_config = ConfigDict(populate_by_name=True)


class McpResource(BaseModel):
    name: str
    description: str = ""
    uri: str
    mime_type: str = Field(default="application/json", alias="mimeType")

    model_config = ConfigDict(populate_by_name=True)


class McpConfig(BaseModel):
    """MCP server metadata attached to an API. Stored, never interpreted."""

    server_name: str
    server_description: str = ""
    server_version: str = "1.0.0"
    capabilities: list[str] = []
    tools: list[McpTool] = []
    resources: list[McpResource] = []
    custom_config: dict = {}


class EndpointDefinition(BaseModel):
    """A named HTTP operation scoped to one ApiDefinition."""

    id: str = Field(default_factory=_new_id)
    api_id: str | None = None
    name: str
    description: str = ""
    path: str  # relative, leading slash optional
    method: HttpMethod = "GET"
    headers: list[KeyValue] = []
    query_params: list[KeyValue] = []
    body_template: JsonValue = Field(default_factory=dict)
    is_active: bool = True

    @field_validator("name", "path")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be empty")
        return v

    @field_validator("method", mode="before")
    @classmethod
    def _upper_method(cls, v):
        return v.upper() if isinstance(v, str) else v

    @field_validator("headers", "query_params", mode="before")
    @classmethod
    def _default_lists(cls, v):
        return _none_to_list(v)

    @field_validator("body_template", mode="before")
    @classmethod
    def _default_body(cls, v):
        return {} if v is None else v

    def __eq__(self, other) -> bool:
        if not isinstance(other, EndpointDefinition):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)


class ApiDefinition(BaseModel):
    """Stored description of one external HTTP API."""

    id: str = Field(default_factory=_new_id)
    name: str
    description: str = ""
    base_url: str
    auth_type: AuthType = "none"
    credential: str = ""  # meaning depends on auth_type
    api_key_header: str = DEFAULT_API_KEY_HEADER
    default_headers: list[KeyValue] = []
    default_query_params: list[KeyValue] = []
    is_active: bool = True
    is_mcp_server: bool = False
    mcp_config: McpConfig | None = None
    observations: str | None = None
    documentation: str | None = None
    ai_analysis_enabled: bool = False
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)
    endpoints: list[EndpointDefinition] = []

    @field_validator("default_headers", "default_query_params", "endpoints", mode="before")
    @classmethod
    def _default_lists(cls, v):
        return _none_to_list(v)

    @field_validator("credential", mode="before")
    @classmethod
    def _default_credential(cls, v):
        return "" if v is None else v

    def __eq__(self, other) -> bool:
        if not isinstance(other, ApiDefinition):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)


class RequestOverride(BaseModel):
    """Caller supplied values for one test run. Never persisted."""

    custom_url: str | None = None
    custom_method: str | None = None
    custom_headers: dict[str, str] = {}
    custom_body: str | None = None

    @field_validator("custom_headers", mode="before")
    @classmethod
    def _default_headers(cls, v):
        return {} if v is None else v


class ResolvedRequest(BaseModel):
    url: str
    method: str
    headers: dict[str, str] = {}
    body: str | None = None

    model_config = ConfigDict(frozen=True)


class TestResult(BaseModel):
    """Outcome of one execution. ``success`` means an HTTP response arrived."""

    __test__ = False

    success: bool
    url: str
    method: str
    headers: dict[str, str] = {}  # response headers
    status: int = 0
    body_text: str = ""
    response_time_ms: float = 0.0
    error: str | None = None
    curl_equivalent: str | None = None

    model_config = ConfigDict(frozen=True)


class AiAnalysis(BaseModel):
    analysis: str
    suggestions: list[str] = []
    severity: Severity = "medium"


class HistoryEntry(BaseModel):
    """One recorded test run: what was sent and what came back."""

    id: str = Field(default_factory=_new_id)
    api_id: str
    endpoint_id: str | None = None
    request: ResolvedRequest
    result: TestResult
    recorded_at: datetime = Field(default_factory=_utcnow)
    ai_analysis: AiAnalysis | None = None
