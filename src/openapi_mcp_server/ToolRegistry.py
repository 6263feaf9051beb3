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

from types import MappingProxyType
import mcp.types as types
from .ApiEndpoint import ApiEndpoint

class ToolRegistry:
    """
    Read-only collection of the endpoints published as tools, keyed by tool id.
    The registry is built once at startup and shared by the tool calls; it offers no way to add or remove an endpoint.
    """

    def __init__(self, endpoints: dict[str, ApiEndpoint] = None):
        self._endpoints = MappingProxyType(dict(endpoints or {}))

    def get(self, tool_id: str) -> ApiEndpoint | None:
        return self._endpoints.get(tool_id)

    def find(self, key: str) -> ApiEndpoint | None:
        """
        Looks up an endpoint by tool id first, then by tool name (first match in registration order).
        """
        endpoint = self._endpoints.get(key)
        if endpoint is not None:
            return endpoint
        for endpoint in self._endpoints.values():
            if endpoint.name == key:
                return endpoint
        return None

    def tools(self) -> list[types.Tool]:
        return [endpoint.tool for endpoint in self._endpoints.values()]

    def items(self):
        return self._endpoints.items()

    def __len__(self):
        return len(self._endpoints)

    def __iter__(self):
        return iter(self._endpoints)

    def __contains__(self, tool_id):
        return tool_id in self._endpoints

    def __repr__(self):
        return f'ToolRegistry({len(self._endpoints)} tools)'
