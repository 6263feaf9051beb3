# Copyright contributors to the OpenAPI MCP Server project
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

import pytest
import certifi
from openapi_mcp_server.ApiConnection import ApiConnection, CustomHTTPAdapter, parse_headers

@pytest.mark.parametrize("header_str, expected", [
    (None,                                  {}),
    ("",                                    {}),
    ("X-Api-Key:abc",                       {"X-Api-Key": "abc"}),
    ("X-Api-Key:abc,X-Tenant:acme",         {"X-Api-Key": "abc", "X-Tenant": "acme"}),
    (" X-Api-Key : abc , X-Tenant: acme ",  {"X-Api-Key": "abc", "X-Tenant": "acme"}),
    ("Authorization:Bearer a:b:c",          {"Authorization": "Bearer a:b:c"}),
    ("X-Callback:http://localhost:8080",    {"X-Callback": "http://localhost:8080"}),
    ("novalue,:nokey,empty:,,ok:1",         {"ok": "1"}),
])
def test_parse_headers(header_str, expected):
    assert parse_headers(header_str) == expected

@pytest.mark.parametrize("base_url, expected", [
    ("https://api.example.com",          "https://api.example.com/"),
    ("https://api.example.com/v2",       "https://api.example.com/v2/"),
    ("http://localhost:8080/api/",       "http://localhost:8080/api/"),
])
def test_base_url(base_url, expected):
    assert ApiConnection(base_url=base_url).base_url == expected

@pytest.mark.parametrize("base_url", [None, ""])
def test_base_url_required(base_url):
    with pytest.raises(ValueError) as exc_info:
        ApiConnection(base_url=base_url)
    assert str(exc_info.value) == "API base URL is required (--api-base-url or API_BASE_URL)"

def test_base_url_invalid():
    with pytest.raises(ValueError) as exc_info:
        ApiConnection(base_url="not a url")
    assert str(exc_info.value) == "'not a url' is not a valid URL"

def test_headers_are_copied():
    headers = {"X-Api-Key": "abc"}
    connection = ApiConnection(base_url="https://api.example.com", headers=headers)
    headers["X-Api-Key"] = "changed"
    assert connection.headers == {"X-Api-Key": "abc"}
    assert ApiConnection(base_url="https://api.example.com").headers == {}

def test_session_with_ssl_verification():
    connection = ApiConnection(base_url="https://api.example.com", headers={"X-Api-Key": "abc"})
    with connection.get_session() as session:
        assert session.verify == certifi.where()
        assert session.headers["X-Api-Key"] == "abc"
        assert not isinstance(session.get_adapter("https://api.example.com"), CustomHTTPAdapter)

def test_session_with_custom_certificate():
    connection = ApiConnection(base_url="https://api.example.com", ssl_cert_path=certifi.where())
    with connection.get_session() as session:
        assert isinstance(session.get_adapter("https://api.example.com"), CustomHTTPAdapter)

def test_session_without_ssl_verification():
    connection = ApiConnection(base_url="https://api.example.com", verify_ssl=False)
    assert connection.cacert is None
    with connection.get_session() as session:
        assert session.verify is False

def test_session_http():
    connection = ApiConnection(base_url="http://localhost:8080/api", timeout=3)
    assert connection.timeout == 3
    with connection.get_session() as session:
        assert session.verify is True

def test_session_without_static_headers():
    connection = ApiConnection(base_url="https://api.example.com", headers={"Authorization": "Bearer abc"})
    with connection.get_session(with_headers=False) as session:
        assert "Authorization" not in session.headers
        assert session.verify == certifi.where()
