"""Models produced by the text importers.

The cURL and JSON parsers convert their input into these shapes; the
registry turns them into ``ApiDefinition``/``EndpointDefinition`` records.
"""

from pydantic import BaseModel, ConfigDict

from api_harness.models import KeyValue


class RequestSpec(BaseModel):
    """A single request as written in a cURL command."""

    url: str
    method: str = "GET"
    headers: list[KeyValue] = []  # first-seen order, duplicates kept
    body: str | None = None

    def header_map(self) -> dict[str, str]:
        """Headers as a dict; a later duplicate overwrites the earlier value."""
        result: dict[str, str] = {}
        for header in self.headers:
            result[header.name] = header.value
        return result


class ImportedEndpoint(BaseModel):
    """An endpoint entry from a JSON import document.

    Unknown keys are kept so nothing in the document is lost on the way in.
    """

    name: str = ""
    path: str = ""
    method: str = "GET"
    description: str = ""
    headers: dict[str, str] = {}

    model_config = ConfigDict(extra="allow")


class ImportedApi(BaseModel):
    name: str
    description: str = ""
    base_url: str
    endpoints: list[ImportedEndpoint] = []
