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

import requests
from requests.adapters import HTTPAdapter
import ssl
import logging
from validator_collection import checkers

class CustomHTTPAdapter(HTTPAdapter):
    """
    A class that modifies the default behaviour with regards to certificates in order to
        - accept self-signed certificates
        - skip hostname verification
    """
    def __init__(self, certfile=None):
         self.certfile = certfile
         HTTPAdapter.__init__(self)

    def init_poolmanager(self, *args, **kwargs):
        context = ssl.create_default_context(cafile = self.certfile)
        context.verify_flags = ssl.VERIFY_ALLOW_PROXY_CERTS | ssl.VERIFY_X509_TRUSTED_FIRST | ssl.VERIFY_X509_PARTIAL_CHAIN
        kwargs['ssl_context'] = context
        kwargs['assert_hostname'] = False
        return super().init_poolmanager(*args, **kwargs)

def parse_headers(header_str: str | None) -> dict[str, str]:
    """
    Parses a list of headers formatted as 'key1:value1,key2:value2'.
    Only the first ':' of an entry separates the key from the value, so values may contain ':'.
    Entries without a key or a value are ignored.
    """
    headers = {}
    if header_str:
        for header in header_str.split(','):
            key, _, value = header.partition(':')
            if key.strip() and value.strip():
                headers[key.strip()] = value.strip()
    return headers

class ApiConnection:
    """
    Static configuration of the target REST API: base URL, headers sent with every request and TLS settings.
    """

    def __init__(self, base_url, headers=None,
                 verify_ssl=True, ssl_cert_path=None,
                 timeout=None):

        self.logger = logging.getLogger("openapi_mcp_server.ApiConnection")

        if not base_url:
            raise ValueError("API base URL is required (--api-base-url or API_BASE_URL)")
        if not checkers.is_url(base_url):
            raise ValueError("'"+base_url+"' is not a valid URL")

        # keep a trailing / so that the paths of the operations are resolved relatively to the base URL
        self.base_url = base_url if base_url.endswith('/') else base_url + '/'
        self.headers  = dict(headers or {})

        if verify_ssl:
            import certifi
            self.cacert = certifi.where()
        else:
            self.cacert = None

        self.verify_ssl    = verify_ssl
        self.ssl_cert_path = ssl_cert_path
        self.timeout       = timeout

    def get_session(self, with_headers=True):
        """
        Creates and returns a requests Session object configured with SSL settings and the static headers.
        The static headers are left out when with_headers is False (requests not sent to the API itself).
        """
        session = requests.Session()

        if self.base_url.startswith('https') and self.verify_ssl:
            session.verify = self.cacert
            if self.ssl_cert_path:
                session.mount('https://', CustomHTTPAdapter(certfile = self.ssl_cert_path))
        elif not self.verify_ssl:
            session.verify = False
            import urllib3
            urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

        if with_headers:
            session.headers.update(self.headers)

        self.logger.debug(f"Session created with URL: {self.base_url} and headers: {list(self.headers.keys()) if with_headers else []}")
        return session
