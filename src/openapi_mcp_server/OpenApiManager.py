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

import logging
import json
import re
from urllib.parse import urljoin, urlsplit, urlunsplit, urlencode
import requests
import yaml
from .ApiConnection import ApiConnection
from .ApiEndpoint import ApiEndpoint, ApiRequest, ApiResponse, ParameterSpec, BodyParameterSpec, PARAMETER_SPECS
from .Errors import LoadError, ToolNotFoundError, MissingParameterError, UpstreamError
from .ToolRegistry import ToolRegistry
from .ToolTrace import EventSink, LoggingEventSink

HTTP_METHODS = ('get', 'put', 'post', 'delete', 'options', 'head', 'patch')

# methods whose query parameters are sent in the URL
QUERY_STRING_METHODS = ('GET', 'DELETE')

TOOL_NAME_MAX_LENGTH = 64
DEFAULT_TOOL_NAME    = 'tool'

def sanitize_tool_name(name) -> str:
    """
    Turns any value into a valid tool name: characters outside [A-Za-z0-9_] are replaced by '_',
    the result is truncated to 64 characters and an empty result is replaced by 'tool'.
    """
    sanitized = re.sub(r'[^A-Za-z0-9_]', '_', '' if name is None else str(name))
    sanitized = sanitized[:TOOL_NAME_MAX_LENGTH]
    return sanitized or DEFAULT_TOOL_NAME

def make_tool_id(method:str, path:str) -> str:
    """
    eg. ('get', '/users/{id}/posts') -> 'GET-users-id-posts'
    """
    clean_path = path.removeprefix('/').replace('{', '').replace('}', '')
    return re.sub(r'[^A-Za-z0-9-]', '-', f'{method.upper()}-{clean_path}')

def to_string(value) -> str:
    """string form of an argument, as sent in a path segment, a query parameter or a header"""
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (list, tuple)):
        return ','.join(to_string(item) for item in value)
    if isinstance(value, dict):
        return json.dumps(value, separators=(',', ':'), ensure_ascii=False)
    return str(value)

def parse_document(text:str) -> dict:
    """parses an OpenAPI document, in JSON or in YAML"""
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        try:
            return yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise LoadError(f"Failed to parse the OpenAPI document: {e}") from e


class OpenApiManager:

    def __init__(self, connection: ApiConnection, events: EventSink = None):
        """
        :no-index:
        Initializes the OpenApiManager with the provided connection settings.

        Args:
            connection (ApiConnection): base URL, static headers and TLS settings of the target REST API
            events (EventSink): receives the diagnostics of the tool generation and of the request assembly
        """
        self.logger = logging.getLogger(__name__)
        self.connection = connection
        self.events = events if events is not None else LoggingEventSink()

    #
    # loading
    #

    def load_document(self, source) -> dict:
        """
        :no-index:
        Loads the OpenAPI document.

        Args:
            source: the document itself (dict), the URL of the document or the path of a local JSON or YAML file

        Returns:
            dict: the OpenAPI document, or raise a LoadError if it cannot be read or parsed.
        """
        if isinstance(source, dict):
            document = source
        else:
            source = str(source)
            try:
                if source.startswith(('http://', 'https://')):
                    self.logger.info("Retrieving " + source)
                    # the static headers are credentials of the API, not of the host serving the document
                    with self.connection.get_session(with_headers=False) as session:
                        response = session.get(source, timeout=self.connection.timeout)
                    response.raise_for_status()
                    text = response.text
                else:
                    self.logger.info("Reading " + source)
                    with open(source, encoding='utf-8') as f:
                        text = f.read()
            except (OSError, UnicodeDecodeError, requests.RequestException) as e:
                raise LoadError(f"Unable to read the OpenAPI document {source}: {e}") from e
            document = parse_document(text)

        if not isinstance(document, dict):
            raise LoadError("The OpenAPI document is not an object")
        if not isinstance(document.get('paths'), dict):
            raise LoadError("The OpenAPI document has no 'paths' object")
        return document

    #
    # translation
    #

    def generate_tools(self, document:dict, tools_to_publish: list[str] = [], tools_to_ignore: list[str] = []) -> ToolRegistry:
        """
        :no-index:
        Converts every operation (path + HTTP method) of the document into a tool

        Args:
            document (dict): an OpenAPI document (Swagger 2.0 flat parameter list)
            tools_to_publish (list): lower case ids or names of the tools to publish (all the tools if empty)
            tools_to_ignore (list): lower case ids or names of the tools to discard

        Returns:
            ToolRegistry: the tools, keyed by tool id.
        """
        endpoints : dict[str, ApiEndpoint] = {}

        for path, path_item in document.get('paths', {}).items():
            if not isinstance(path_item, dict):
                continue

            shared_parameters = path_item.get('parameters') or []

            for method, operation in path_item.items():
                # skip 'parameters', '$ref' and the vendor extensions
                if method.lower() not in HTTP_METHODS or not isinstance(operation, dict):
                    continue

                endpoint = self.generate_endpoint(document, path, method, operation, shared_parameters)

                keys = (endpoint.tool_id.lower(), endpoint.name.lower())
                if   len(tools_to_publish) > 0 and not any(key in tools_to_publish for key in keys):
                    continue # ignore this tool as it is not in the list of tools to be published
                elif len(tools_to_ignore) > 0  and     any(key in tools_to_ignore  for key in keys):
                    continue # ignore this tool as it is in the list of tools to be discarded/not published

                if endpoint.tool_id in endpoints:
                    # the last operation wins
                    self.events.warn('tool.collision', tool_id=endpoint.tool_id,
                                     replaced=f'{endpoints[endpoint.tool_id].method} {endpoints[endpoint.tool_id].path}',
                                     by=f'{endpoint.method} {endpoint.path}')

                self.events.emit('tool.registered', tool_id=endpoint.tool_id, name=endpoint.name)
                endpoints[endpoint.tool_id] = endpoint

        self.logger.info("Successfully generated %d MCP tools for %s", len(endpoints), self.connection.base_url)
        return ToolRegistry(endpoints)

    def generate_endpoint(self, document:dict, path:str, method:str, operation:dict, shared_parameters:list = []) -> ApiEndpoint:
        method      = method.upper()
        tool_id     = make_tool_id(method, path)
        title       = str(operation.get('summary') or f'{method} {path}')
        description = str(operation.get('description') or f'Make a {method} request to {path}')

        input_schema = {'type': 'object', 'properties': {}}
        parameters   = []

        for param in self._merge_parameters(document, shared_parameters, operation.get('parameters') or []):
            spec = self.generate_parameter(param, tool_id)
            if spec is None:
                continue

            parameters.append(spec)
            input_schema['properties'][spec.name] = spec.schema_property()
            if spec.required:
                input_schema.setdefault('required', []).append(spec.name)

        return ApiEndpoint(tool_id      = tool_id,
                           tool_name    = sanitize_tool_name(title),
                           title        = title,
                           description  = description,
                           method       = method,
                           path         = path,
                           parameters   = parameters,
                           input_schema = input_schema)

    def generate_parameter(self, param, tool_id:str = None) -> ParameterSpec | None:
        """
        returns the spec of a parameter object, or None if the parameter has no name or no location
        """
        if not isinstance(param, dict):
            return None

        name     = param.get('name')
        location = param.get('in')
        if not name or not location:
            return None

        spec_class = PARAMETER_SPECS.get(location)
        if spec_class is None:
            self.events.warn('parameter.unsupported_location', tool_id=tool_id, parameter=name, location=location)
            return None

        required    = bool(param.get('required', False))
        description = param.get('description')

        if spec_class is BodyParameterSpec:
            return BodyParameterSpec(name, required, description, schema=param.get('schema'))

        items = param.get('items')
        return spec_class(name, required, description,
                          value_type = param.get('type'),
                          item_type  = items.get('type') if isinstance(items, dict) else None)

    def _merge_parameters(self, document:dict, shared_parameters:list, parameters:list) -> list:
        # the parameters of the operation override the parameters shared by all the operations of the path
        merged = {}
        for position, param in enumerate(list(shared_parameters) + list(parameters)):
            param = self._resolve_ref(document, param)
            if isinstance(param, dict) and param.get('name') and param.get('in'):
                key = (param.get('name'), param.get('in'))
            else:
                key = position
            merged[key] = param
        return list(merged.values())

    def _resolve_ref(self, document:dict, param):
        # local references only eg. {'$ref': '#/parameters/limit'}
        if not isinstance(param, dict) or not isinstance(param.get('$ref'), str):
            return param

        ref = param['$ref']
        if not ref.startswith('#/'):
            self.events.warn('parameter.unresolved_ref', ref=ref)
            return None

        current = document
        for part in ref[2:].split('/'):
            part = part.replace('~1', '/').replace('~0', '~')
            if not isinstance(current, dict) or part not in current:
                self.events.warn('parameter.unresolved_ref', ref=ref)
                return None
            current = current[part]
        return current

    #
    # request assembly
    #

    def build_request(self, registry:ToolRegistry, key:str, arguments:dict | None) -> ApiRequest:
        """
        Looks up the tool by id or name, then assembles the HTTP request.
        Raises ToolNotFoundError or MissingParameterError, before any network activity.
        """
        endpoint = registry.find(key)
        if endpoint is None:
            self.logger.error("Available tools: %s", ', '.join(f'{tool_id} ({candidate.name})' for tool_id, candidate in registry.items()))
            raise ToolNotFoundError(key)
        return self.assemble_request(endpoint, arguments)

    def assemble_request(self, endpoint:ApiEndpoint, arguments:dict | None) -> ApiRequest:
        """
        :no-index:
        Places every argument in the HTTP request according to the location of its parameter.

        Args:
            endpoint (ApiEndpoint): the operation to invoke
            arguments (dict): values of the parameters, by name. None values are ignored.

        Returns:
            ApiRequest: the method, URL, headers and body of the request.
        """
        arguments = arguments or {}

        path    = endpoint.path
        query   = {}
        body    = None
        headers = dict(self.connection.headers)

        for spec in endpoint.parameters:
            value = arguments.get(spec.name)
            if value is None:
                if spec.required:
                    raise MissingParameterError(spec.name)
                continue

            if spec.location == 'path':
                path = path.replace('{' + spec.name + '}', to_string(value), 1)

            elif spec.location == 'query':
                if isinstance(value, (list, tuple)):
                    query[spec.name] = [to_string(item) for item in value]
                else:
                    query[spec.name] = to_string(value)

            elif spec.location == 'header':
                headers[spec.name] = to_string(value)

            elif spec.location == 'body':
                body = value

            elif spec.location == 'formData':
                if isinstance(value, dict) and body is None:
                    body = value
                else:
                    self.events.warn('request.form_data', tool_id=endpoint.tool_id, parameter=spec.name,
                                     message='form data parameter sent as a field of a JSON body')
                    if body is None:
                        body = {}
                    if isinstance(body, dict):
                        body = dict(body) | {spec.name: value}
                    else:
                        self.events.warn('request.form_data_dropped', tool_id=endpoint.tool_id, parameter=spec.name)

        url = urljoin(self.connection.base_url, path[1:] if path.startswith('/') else path)

        if query:
            if endpoint.method in QUERY_STRING_METHODS:
                url = self._append_query(url, {name: ','.join(value) if isinstance(value, list) else value
                                               for name, value in query.items()})
            elif body is None:
                self.events.warn('request.query_as_body', tool_id=endpoint.tool_id, method=endpoint.method,
                                 message='query parameters sent as the body of the request')
                body = query
            else:
                self.events.warn('request.query_ignored', tool_id=endpoint.tool_id, parameters=list(query))

        request = ApiRequest(method=endpoint.method, url=url, headers=headers, body=body)
        self.events.emit('request.assembled', tool_id=endpoint.tool_id, method=request.method, url=request.url,
                         headers=list(headers), has_body=body is not None)
        return request

    def _append_query(self, url:str, params:dict[str, str]) -> str:
        parts = urlsplit(url)
        query = urlencode(params, safe=',')
        return urlunsplit(parts._replace(query=f'{parts.query}&{query}' if parts.query else query))

    #
    # invocation
    #

    def send_request(self, request:ApiRequest) -> ApiResponse:
        """
        :no-index:
        Sends the request to the REST API.
        Raises an UpstreamError if the request fails or if the response is not successful (2xx).
        """
        kwargs = {}
        if request.body is not None:
            if isinstance(request.body, (str, bytes)):
                kwargs['data'] = request.body
            else:
                kwargs['json'] = request.body

        try:
            with self.connection.get_session() as session:
                response = session.request(method=request.method,
                                           url=request.url,
                                           headers=request.headers,
                                           timeout=self.connection.timeout,
                                           **kwargs)
        except requests.RequestException as e:
            self.logger.error("Request error: %s", e)
            raise UpstreamError(f"API request failed: {e}") from e

        body = self._decode_body(response)
        if 200 <= response.status_code < 300:
            self.logger.debug(f"Request successful, status={response.status_code} content-type={response.headers.get('Content-Type', '')}")
            return ApiResponse(status=response.status_code, headers=dict(response.headers), body=body)

        err = body if isinstance(body, str) else json.dumps(body, ensure_ascii=False)
        self.logger.error(f"Request error, status: {response.status_code}, error: {err}")
        raise UpstreamError(f"API request failed: {response.status_code} {response.reason} - {err}",
                            status=response.status_code, body=body)

    def _decode_body(self, response):
        if not response.content:
            return ''
        if 'json' in response.headers.get('Content-Type', ''):
            try:
                return response.json()
            except ValueError:
                pass
        return response.text

    def invoke_api(self, registry:ToolRegistry, key:str, arguments:dict | None) -> ApiResponse:
        request = self.build_request(registry, key, arguments)
        return self.send_request(request)
