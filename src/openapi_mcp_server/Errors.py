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

class OpenApiMcpError(Exception):
    """Base class for the errors reported to the caller of a tool."""
    pass

class LoadError(OpenApiMcpError):
    """Raised when the OpenAPI document cannot be read or parsed."""
    pass

class ToolNotFoundError(OpenApiMcpError):
    """Raised when a tool call references an unknown tool id or name."""
    def __init__(self, key):
        self.key = key
        super().__init__(f"Tool not found: {key}")

class MissingParameterError(OpenApiMcpError):
    """Raised before any network activity when a required argument is absent."""
    def __init__(self, parameter):
        self.parameter = parameter
        super().__init__(f"Missing required parameter: {parameter}")

class UpstreamError(OpenApiMcpError):
    """
    Raised when the HTTP call fails, either at the network level (status is None)
    or with a non-success response (status and body of the response are kept).
    """
    def __init__(self, message, status=None, body=None):
        self.status = status
        self.body   = body
        super().__init__(message)
