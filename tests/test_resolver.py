import base64

import pytest

from api_harness.errors import NoUrlResolvable
from api_harness.models import ApiDefinition, EndpointDefinition, KeyValue, RequestOverride
from api_harness.resolver import auth_headers, join_url, resolve


def _api(**kwargs) -> ApiDefinition:
    data = {"name": "Test API", "base_url": "https://api.test"}
    data.update(kwargs)
    return ApiDefinition(**data)


def _endpoint(**kwargs) -> EndpointDefinition:
    data = {"name": "Users", "path": "/users"}
    data.update(kwargs)
    return EndpointDefinition(**data)


class TestUrl:
    def test_base_url_only(self):
        assert resolve(_api(base_url="https://api.test/v1/")).url == "https://api.test/v1/"

    @pytest.mark.parametrize(
        "base, path",
        [
            ("https://api.test/", "users"),
            ("https://api.test", "/users"),
            ("https://api.test/", "/users"),
            ("https://api.test", "users"),
        ],
    )
    def test_exactly_one_slash_between_base_and_path(self, base, path):
        req = resolve(_api(base_url=base), _endpoint(path=path))
        assert req.url == "https://api.test/users"

    def test_custom_url_ignores_endpoint(self):
        req = resolve(
            _api(),
            _endpoint(path="/ignored", query_params=[KeyValue(name="p", value="1")]),
            RequestOverride(custom_url="https://x/y"),
        )
        assert req.url == "https://x/y"

    def test_empty_custom_url_falls_back_to_endpoint(self):
        req = resolve(_api(), _endpoint(), RequestOverride(custom_url=""))
        assert req.url == "https://api.test/users"

    def test_no_url_resolvable(self):
        with pytest.raises(NoUrlResolvable):
            resolve(_api(base_url=""))

    def test_custom_url_rescues_empty_base(self):
        assert resolve(_api(base_url=""), None, RequestOverride(custom_url="https://z")).url == "https://z"

    def test_query_params_appended(self):
        api = _api(default_query_params=[KeyValue(name="lang", value="pt"), KeyValue(name="page", value="1")])
        ep = _endpoint(query_params=[KeyValue(name="page", value="2")])
        assert resolve(api, ep).url == "https://api.test/users?lang=pt&page=2"

    def test_query_params_on_base_url_only(self):
        api = _api(base_url="https://api.test/search?q=a", default_query_params=[KeyValue(name="n", value="5")])
        assert resolve(api).url == "https://api.test/search?q=a&n=5"

    def test_join_url_helper(self):
        assert join_url("http://h//", "a/b") == "http://h/a/b"


class TestMethod:
    def test_default_get(self):
        assert resolve(_api()).method == "GET"

    def test_endpoint_method(self):
        assert resolve(_api(), _endpoint(method="DELETE")).method == "DELETE"

    def test_override_method_wins_and_is_upper_cased(self):
        req = resolve(_api(), _endpoint(method="DELETE"), RequestOverride(custom_method="patch"))
        assert req.method == "PATCH"

    def test_endpoint_method_used_with_custom_url(self):
        req = resolve(_api(), _endpoint(method="PUT"), RequestOverride(custom_url="https://x"))
        assert req.method == "PUT"


class TestHeaders:
    def test_bearer_auth(self):
        api = _api(auth_type="bearer", credential="tok-123")
        assert resolve(api, None, RequestOverride()).headers["Authorization"] == "Bearer tok-123"

    def test_basic_auth_is_base64_encoded(self):
        api = _api(auth_type="basic", credential="user:pass")
        expected = "Basic " + base64.b64encode(b"user:pass").decode()
        assert resolve(api).headers["Authorization"] == expected

    def test_api_key_default_header(self):
        api = _api(auth_type="api_key", credential="k")
        assert resolve(api).headers == {"Authorization": "k"}

    def test_api_key_custom_header(self):
        api = _api(auth_type="api_key", credential="k", api_key_header="X-API-Key")
        assert resolve(api).headers == {"X-API-Key": "k"}

    @pytest.mark.parametrize("auth_type", ["none", "oauth2"])
    def test_no_auth_header(self, auth_type):
        api = _api(auth_type=auth_type, credential="whatever")
        assert resolve(api).headers == {}

    @pytest.mark.parametrize("auth_type", ["api_key", "bearer", "basic"])
    def test_empty_credential_means_no_auth(self, auth_type):
        assert auth_headers(_api(auth_type=auth_type, credential="")) == {}

    def test_precedence_chain(self):
        api = _api(
            auth_type="bearer",
            credential="t",
            default_headers=[
                KeyValue(name="A", value="api"),
                KeyValue(name="B", value="api"),
                KeyValue(name="Authorization", value="from-defaults"),
            ],
        )
        ep = _endpoint(headers=[KeyValue(name="B", value="endpoint"), KeyValue(name="C", value="endpoint")])
        override = RequestOverride(custom_headers={"C": "override"})
        headers = resolve(api, ep, override).headers
        assert headers == {"A": "api", "B": "endpoint", "Authorization": "Bearer t", "C": "override"}

    def test_override_beats_endpoint(self):
        ep = _endpoint(headers=[KeyValue(name="X", value="1")])
        headers = resolve(_api(), ep, RequestOverride(custom_headers={"X": "2"})).headers
        assert headers["X"] == "2"

    def test_override_beats_auth(self):
        api = _api(auth_type="bearer", credential="t")
        headers = resolve(api, None, RequestOverride(custom_headers={"Authorization": "Bearer other"})).headers
        assert headers["Authorization"] == "Bearer other"

    def test_duplicate_default_headers_last_wins(self):
        api = _api(default_headers=[KeyValue(name="X", value="1"), KeyValue(name="X", value="2")])
        assert resolve(api).headers == {"X": "2"}

    def test_names_are_case_sensitive(self):
        api = _api(default_headers=[KeyValue(name="accept", value="a")])
        ep = _endpoint(headers=[KeyValue(name="Accept", value="b")])
        assert resolve(api, ep).headers == {"accept": "a", "Accept": "b"}

    def test_endpoint_headers_skipped_with_custom_url(self):
        api = _api(default_headers=[KeyValue(name="A", value="1")])
        ep = _endpoint(headers=[KeyValue(name="E", value="1")])
        headers = resolve(api, ep, RequestOverride(custom_url="https://x")).headers
        assert headers == {"A": "1"}


class TestBody:
    def test_no_body_by_default(self):
        assert resolve(_api()).body is None
        assert resolve(_api(), _endpoint()).body is None

    def test_body_template_serialized(self):
        ep = _endpoint(method="POST", body_template={"name": "Maria", "tags": [1, 2]})
        assert resolve(_api(), ep).body == '{"name": "Maria", "tags": [1, 2]}'

    def test_string_template_passes_through(self):
        ep = _endpoint(method="POST", body_template="a=1&b=2")
        assert resolve(_api(), ep).body == "a=1&b=2"

    def test_custom_body_wins(self):
        ep = _endpoint(method="POST", body_template={"a": 1})
        assert resolve(_api(), ep, RequestOverride(custom_body="raw")).body == "raw"

    def test_empty_custom_body_falls_back_to_template(self):
        ep = _endpoint(method="POST", body_template={"a": 1})
        assert resolve(_api(), ep, RequestOverride(custom_body="")).body == '{"a": 1}'
        assert resolve(_api(), None, RequestOverride(custom_body="")).body is None

    def test_body_kept_for_get(self):
        req = resolve(_api(), None, RequestOverride(custom_body="{}"))
        assert req.method == "GET"
        assert req.body == "{}"


class TestPurity:
    def test_definitions_not_modified(self):
        api = _api(auth_type="bearer", credential="t", default_headers=[KeyValue(name="A", value="1")])
        ep = _endpoint(headers=[KeyValue(name="B", value="2")])
        before = (api.model_dump(), ep.model_dump())
        resolve(api, ep, RequestOverride(custom_headers={"A": "x"}))
        assert (api.model_dump(), ep.model_dump()) == before
