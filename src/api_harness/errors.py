"""Error taxonomy for the API registry and test harness.

Parse and resolution problems are raised as these exceptions before any
network I/O happens. Transport problems never leave the executor: they are
folded into ``TestResult.error`` instead.
"""


class ApiHarnessError(Exception):
    """Base class for every error raised by api_harness."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ParseError(ApiHarnessError):
    """Malformed cURL or JSON input. Carries the offending fragment when known."""

    def __init__(self, message: str, fragment: str | None = None):
        super().__init__(message)
        self.fragment = fragment

    def __str__(self) -> str:
        if self.fragment:
            return f"{self.message}: {self.fragment!r}"
        return self.message


class InvalidCommand(ParseError):
    """The text is not a cURL command."""


class UrlNotFound(ParseError):
    """The cURL command has no double-quoted URL."""


class InvalidJson(ParseError):
    """The import document is not valid JSON."""


class ImportShapeError(ParseError):
    """The JSON import document has the wrong structure. Aborts the whole import."""


class MissingRequiredField(ImportShapeError):
    def __init__(self, field: str):
        super().__init__(f"missing required field: {field}")
        self.field = field


class InvalidShape(ImportShapeError):
    pass


class NoUrlResolvable(ApiHarnessError):
    """No custom URL, no endpoint and an empty base URL."""


class TransportError(ApiHarnessError):
    """Network level failure. Only ever seen inside the executor."""


class RegistryError(ApiHarnessError):
    """Unknown API/endpoint or unreadable registry file."""


class AnalysisError(ApiHarnessError):
    """The LLM returned something that is not a usable analysis."""
