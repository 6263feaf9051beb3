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

import mcp.types as types

class ParameterSpec:
    """
    A parameter declared by an operation. The subclass tells where the value goes in the HTTP request.

    Attributes:
        name (str): name of the parameter, unique within one operation
        required (bool): a call without this argument is rejected
        description (str): description of the parameter, or None
    """
    location = None

    def __init__(self, name:str, required:bool=False, description:str=None):
        self.name        = name
        self.required    = required
        self.description = description

    def schema_property(self) -> dict:
        """returns the property describing this parameter in the input schema of the tool"""
        return {'type':        'string',
                'description': self.description or f'{self.name} parameter'}

    def __repr__(self):
        return f'{type(self).__name__}({self.name!r}, required={self.required})'

class TypedParameterSpec(ParameterSpec):
    """
    A parameter carrying a primitive value or an array of primitive values (path, query, header, form data).

    Attributes:
        value_type (str): string, number, integer, boolean, array or object
        item_type (str): type of the elements when value_type is 'array', None otherwise
    """
    def __init__(self, name:str, required:bool=False, description:str=None, value_type:str=None, item_type:str=None):
        super().__init__(name, required, description)
        self.value_type = value_type or 'string'
        self.item_type  = (item_type or 'string') if self.value_type == 'array' else None

    def schema_property(self) -> dict:
        prop = super().schema_property() | {'type': self.value_type}
        if self.item_type:
            prop['items'] = {'type': self.item_type}
        return prop

class PathParameterSpec(TypedParameterSpec):
    location = 'path'

class QueryParameterSpec(TypedParameterSpec):
    location = 'query'

class HeaderParameterSpec(TypedParameterSpec):
    location = 'header'

class FormDataParameterSpec(TypedParameterSpec):
    location = 'formData'

class BodyParameterSpec(ParameterSpec):
    """
    The body of the request. The schema is kept as is, and the tool always declares the argument as an object.
    """
    location = 'body'

    def __init__(self, name:str, required:bool=False, description:str=None, schema:dict=None):
        super().__init__(name, required, description)
        self.schema = schema

    def schema_property(self) -> dict:
        return super().schema_property() | {'type': 'object'}

PARAMETER_SPECS = {spec.location: spec for spec in [PathParameterSpec, QueryParameterSpec, HeaderParameterSpec,
                                                    FormDataParameterSpec, BodyParameterSpec]}

class ApiEndpoint:
    """
    This class encapsulates the execution plan and tool description of one operation (path + HTTP method).
    Attributes:
        tool_id (str): stable identifier derived from the method and the path eg. GET-users-id
        method (str): GET, PUT,... (upper case)
        path (str): path template of the operation eg. /users/{id}
        parameters (list[ParameterSpec]): parameters in declaration order
        tool (types.Tool): An object describing the tool, including its name, description, and input schema.

    Args:
        tool_id (str): The identifier of the tool.
        tool_name (str): The sanitized name of the tool.
        title (str): human readable name of the operation
        description (str):
        method (str):
        path (str):
        parameters (list): parameter specs in declaration order
        input_schema (dict): The schema describing the expected input for the tool.
    """
    def __init__(self, tool_id:str, tool_name:str, title:str, description:str, method:str, path:str, parameters:list[ParameterSpec], input_schema:dict):
        self.tool_id    = tool_id
        self.method     = method
        self.path       = path
        self.parameters = parameters
        self.tool       = types.Tool(
            name=tool_name,
            title=title,
            description=description,
            inputSchema=input_schema,
        )

    @property
    def name(self) -> str:
        return self.tool.name

    def __repr__(self):
        return f'ApiEndpoint({self.tool_id!r}, {self.method} {self.path})'

class ApiRequest:
    """
    A fully resolved HTTP request, ready to be sent.
    body is None when the request has no body.
    """
    def __init__(self, method:str, url:str, headers:dict[str, str], body=None):
        self.method  = method
        self.url     = url
        self.headers = headers
        self.body    = body

    def __repr__(self):
        return f'ApiRequest({self.method} {self.url})'

class ApiResponse:
    """
    A successful HTTP response. body is the decoded JSON document, or the text of the response for other content types.
    """
    def __init__(self, status:int, headers:dict[str, str], body=None):
        self.status  = status
        self.headers = headers
        self.body    = body

    def __repr__(self):
        return f'ApiResponse({self.status})'
