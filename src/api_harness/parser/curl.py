"""cURL command translator.

Parses the common subset of a cURL command line into a RequestSpec and
writes a RequestSpec (or a resolved request) back out as cURL.

Supported: ``-X/--request``, ``-H/--header``, ``-d/--data/--data-raw/
--data-binary`` and a double-quoted URL. The URL must be quoted; shell
line continuations and variable expansion are not interpreted. Every other
flag is ignored.
"""

import logging
import re

from api_harness.errors import InvalidCommand, UrlNotFound
from api_harness.models import KeyValue, ResolvedRequest
from api_harness.parser.base import RequestSpec

logger = logging.getLogger(__name__)

# A double-quoted string (backslash escapes allowed), a single- or
# backtick-quoted string (literal), or a bare word.
TOKEN_RE = re.compile(r'"(?:[^"\\]|\\.)*"|\'[^\']*\'|`[^`]*`|\S+')

METHOD_FLAGS = ("-X", "--request")
HEADER_FLAGS = ("-H", "--header")
DATA_FLAGS = ("-d", "--data", "--data-raw", "--data-binary")
# Flags whose argument must not be mistaken for the URL.
OTHER_VALUE_FLAGS = (
    "-u", "--user", "-A", "--user-agent", "-e", "--referer", "-b", "--cookie",
    "-o", "--output", "-F", "--form", "-x", "--proxy", "-m", "--max-time",
    "--connect-timeout", "--cert", "--key", "--cacert",
)


def _is_quoted(token: str, quotes: str = "\"'`") -> bool:
    return len(token) >= 2 and token[0] in quotes and token[-1] == token[0]


def _unquote(token: str) -> str:
    if not _is_quoted(token):
        return token
    inner = token[1:-1]
    if token[0] == '"':
        return re.sub(r'\\(["\\])', r"\1", inner)
    return inner


def _normalize(text: str) -> list[str]:
    """Split into tokens; whitespace runs outside quotes collapse away."""
    return TOKEN_RE.findall(text.strip())


def _parse_header(raw: str) -> KeyValue | None:
    name, sep, value = raw.partition(":")
    if not sep or not name.strip():
        return None
    return KeyValue(name=name.strip(), value=value.strip())


def parse_curl(text: str) -> RequestSpec:
    """Parse a cURL command into a RequestSpec.

    Raises InvalidCommand if the text does not start with ``curl`` and
    UrlNotFound if there is no double-quoted URL.
    """
    tokens = _normalize(text)
    if not tokens or tokens[0] != "curl":
        raise InvalidCommand('command must start with "curl"', " ".join(tokens[:3]) or text)

    url: str | None = None
    method = "GET"
    headers: list[KeyValue] = []
    body: str | None = None

    i = 1
    while i < len(tokens):
        token = tokens[i]
        arg = tokens[i + 1] if i + 1 < len(tokens) else None

        if token in METHOD_FLAGS and arg is not None:
            method = _unquote(arg).upper()
            i += 2
        elif token in HEADER_FLAGS and arg is not None:
            header = _parse_header(_unquote(arg)) if _is_quoted(arg) else None
            if header is not None:
                headers.append(header)
            else:
                logger.debug("Ignoring malformed header argument %r", arg)
            i += 2
        elif token in DATA_FLAGS and arg is not None:
            if body is None and _is_quoted(arg):
                body = _unquote(arg)
            i += 2
        elif token in OTHER_VALUE_FLAGS:
            i += 2
        else:
            if url is None and _is_quoted(token, '"'):
                url = _unquote(token)
            i += 1

    if not url:
        raise UrlNotFound("URL not found in cURL command (the URL must be double-quoted)")

    logger.debug("Parsed cURL: %s %s (%d headers, body=%s)", method, url, len(headers), body is not None)
    return RequestSpec(url=url, method=method, headers=headers, body=body)


def _double_quote(value: str) -> str:
    return '"' + value.replace("\\", "\\\\").replace('"', '\\"') + '"'


def _quote_body(body: str) -> str:
    if "'" not in body:
        return f"'{body}'"
    return _double_quote(body)


def to_curl(request: RequestSpec | ResolvedRequest) -> str:
    """Build an equivalent cURL command.

    ``parse_curl(to_curl(x))`` gives back the same method, URL, headers and body,
    except for headers HTTP itself would not carry: a header with an empty name
    is dropped on parse, and values lose leading and trailing whitespace.
    """
    if isinstance(request, RequestSpec):
        headers = [(h.name, h.value) for h in request.headers]
    else:
        headers = list(request.headers.items())

    parts = ["curl"]
    method = (request.method or "GET").upper()
    if method != "GET":
        parts.append(f"-X {method}")
    parts.append(_double_quote(request.url))
    for name, value in headers:
        parts.append(f"-H {_double_quote(f'{name}: {value}')}")
    if request.body is not None:
        parts.append(f"-d {_quote_body(request.body)}")
    return " ".join(parts)
