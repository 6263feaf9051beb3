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

from typing import Optional
import mcp.types as types
from mcp.server.fastmcp import FastMCP
from pydantic import AnyUrl
import asyncio
import logging
import json
import argparse
import os
import sys

from .ApiConnection import ApiConnection, parse_headers
from .Errors import LoadError, UpstreamError
from .OpenApiManager import OpenApiManager, sanitize_tool_name
from .ToolRegistry import ToolRegistry
from .ToolTrace import DiskTraceStorage, ToolExecutionTrace

INSTRUCTIONS = """
OpenAPI MCP server
This server exposes the operations of a REST API described by an OpenAPI (Swagger 2.0) document.
Each tool invokes one operation (path + HTTP method); the arguments of the tool are the parameters of the operation.
"""

class MCPServer:

    def __init__(self, connection: ApiConnection, spec_source,
                 name: str = 'mcp-openapi-server', version: str = '1.0.0',
                 tools: list[str] = [], no_tools: list[str] = [],
                 transport: Optional[str] = 'stdio', host: Optional[str] = '0.0.0.0', port: Optional[int] = 3000, path: Optional[str] = '/mcp',
                 trace_storage: Optional[DiskTraceStorage] = None):
        # Get logger for this class
        self.logger = logging.getLogger(__name__)
        self.connection  = connection
        self.spec_source = spec_source
        self.name        = name
        self.version     = version
        self.tools: list[str] = tools       # explicit list of tools to publish
        self.no_tools: list[str] = no_tools # explicit list of tools to discard
        self.transport = transport
        self.host      = host
        self.port      = port
        self.path      = path
        self.repository = ToolRegistry()
        self.manager = OpenApiManager(connection=connection)
        self.traces  = trace_storage if trace_storage is not None else DiskTraceStorage(trace_executions=False, trace_configuration=False)

    def update_repository(self):
        """
        Loads the OpenAPI document and generates the tools.
        Raises a LoadError if the document cannot be read or parsed.
        """
        document        = self.manager.load_document(self.spec_source)
        self.repository = self.manager.generate_tools(document, self.tools, self.no_tools)
        self.traces.saveConfiguration(self.repository)

    async def list_tools(self) -> list[types.Tool]:
        """
        List available tools.
        Each tool specifies its arguments using JSON Schema validation.
        """
        return self.repository.tools()

    async def call_tool(self,
        name: str, arguments: dict | None
    ) -> list[types.TextContent | types.ImageContent | types.EmbeddedResource]:
        """
        Handle tool execution requests.
        """
        self.logger.info("Invoking tool: %s with arguments: %s", name, list((arguments or {}).keys()))

        # this call may throw an exception, handled by Server.call_tool.handler
        try:
            response = await asyncio.to_thread(self.manager.invoke_api, self.repository, name, arguments)
        except UpstreamError as e:
            self.traces.saveExecution(ToolExecutionTrace(sanitize_tool_name(name), arguments, e.status or 'error',
                                                         e.body if e.body is not None else str(e)))
            raise

        self.traces.saveExecution(ToolExecutionTrace(sanitize_tool_name(name), arguments, response.status, response.body))
        result = response.body

        if isinstance(result, (dict, list)):
            response_text = json.dumps(result, indent=2, ensure_ascii=False)
        else:
            response_text = str(result)

        return [
            types.TextContent(
                type="text",
                text=response_text,
            )
        ]

    async def list_resources(self) -> list[types.Resource]:
        """
        List available resources.
        """
        return []

    async def read_resource(self, uri: AnyUrl) -> str:
        """
        Read a resource by its URI.
        """
        raise ValueError(f"resource not found")

    def start(self):
        self.server = FastMCP(name=self.name,
                              instructions=INSTRUCTIONS,
                              host=self.host,
                              port=self.port,
                              sse_path=self.path,
                              streamable_http_path=self.path,
                             )
        self.server._mcp_server.version = self.version

        # Register handlers
        self.server._mcp_server.list_resources()(self.list_resources)
        self.server._mcp_server.read_resource()(self.read_resource)
        self.server._mcp_server.list_tools()(self.list_tools)
        # the arguments are checked when the request is assembled (required parameters only)
        self.server._mcp_server.call_tool(validate_input=False)(self.call_tool)

        self.logger.info("OpenAPI MCP server running on %s", self.transport)
        self.server.run(transport=self.transport)

def init_logging(level_name):
    level=getattr(logging, level_name, logging.INFO)
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    logging.info(f"Running Python {sys.version_info}. Logging level set to: {logging.getLevelName(level)}")

def create_connection(args):
    return ApiConnection(
        base_url=args.api_base_url,
        headers=parse_headers(args.headers),
        verify_ssl=args.verifyssl != "False",
        ssl_cert_path=args.ssl_cert_path,
        timeout=args.timeout,
    )

def create_trace_storage(args):
    trace = args.trace or []
    return DiskTraceStorage(
        trace_executions='EXECUTIONS' in trace,
        trace_configuration='CONFIGURATION' in trace,
        storage_dir=args.traces_dir,
        max_traces=args.traces_maxsize,
    )

def init(args):
    init_logging(args.log_level)
    connection = create_connection(args)
    if not args.openapi_spec:
        raise ValueError("OpenAPI spec is required (--openapi-spec or OPENAPI_SPEC_PATH)")
    server = MCPServer(
        connection=connection,
        spec_source=args.openapi_spec,
        name=args.name, version=args.version,
        tools   =[tool.lower() for tool in args.tools]    if args.tools else [],
        no_tools=[tool.lower() for tool in args.no_tools] if args.no_tools else [],
        transport=args.transport, host=args.host, port=args.port, path=args.mount_path,
        trace_storage=create_trace_storage(args),
    )
    server.update_repository()
    return server

def _env_list(name):
    value = os.getenv(name)
    return value.split() if value else None

def parse_arguments():
    parser = argparse.ArgumentParser(description="OpenAPI MCP Server")
    parser.add_argument("-u", "--api-base-url",  type=str, default=os.getenv("API_BASE_URL"), help="Base URL for the API")
    parser.add_argument("-s", "--openapi-spec",  type=str, default=os.getenv("OPENAPI_SPEC_PATH"), help="Path or URL to OpenAPI specification")
    parser.add_argument("-H", "--headers",       type=str, default=os.getenv("API_HEADERS"), help="API headers in format 'key1:value1,key2:value2'")
    parser.add_argument("-n", "--name",          type=str, default=os.getenv("SERVER_NAME", "mcp-openapi-server"), help="Server name")
    parser.add_argument("-v", "--version",       type=str, default=os.getenv("SERVER_VERSION", "1.0.0"), help="Server version")
    parser.add_argument("--timeout",             type=float, default=os.getenv("API_TIMEOUT"), help="Timeout in seconds of the requests sent to the API. No timeout if not specified.")
    parser.add_argument("--verifyssl",           type=str, default=os.getenv("VERIFY_SSL", "True"), choices=["True", "False"], help="Disable SSL check. Default is True (SSL verification enabled).")
    parser.add_argument("--ssl-cert-path",       type=str, default=os.getenv("SSL_CERT_PATH"), help="Path to the SSL certificate file. If not provided, defaults to system certificates.")

    # arguments useful when running the MCP server in remote mode
    parser.add_argument("--transport",           type=str, default=os.getenv("TRANSPORT", "stdio"), choices=["stdio", "streamable-http", "sse"], help="Means of communication of the MCP server: local (stdio) or remote.")
    parser.add_argument("--host",                type=str, default=os.getenv("HOST", "0.0.0.0"), help="IP or hostname that the MCP server listens to in remote mode.")
    parser.add_argument("--port",                type=int, default=os.getenv("PORT", 3000), help="Port that the MCP server listens to in remote mode.")
    parser.add_argument("--mount-path",          type=str, default=os.getenv("MOUNT_PATH", "/mcp"), help="Path that the MCP server listens to in remote mode.")

    # Logging-related arguments
    parser.add_argument("--log-level",           type=str, default=os.getenv("LOG_LEVEL", "INFO"),
                        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
                        help="Set the logging level (default: INFO)")
    parser.add_argument("--trace",               type=str, default=_env_list("TRACE"), nargs='+', choices=["EXECUTIONS", "CONFIGURATION"], help="Save the tool executions and/or the tools configuration on disk.")
    parser.add_argument("--traces-dir",          type=str, default=os.getenv("TRACES_DIR"), help="Directory of the traces. Default is ~/.openapi-mcp-server/traces")
    parser.add_argument("--traces-maxsize",      type=int, default=os.getenv("TRACES_MAXSIZE", 200), help="Maximum number of execution traces kept on disk (default: 200)")

    # tools filtering
    parser.add_argument("--tools",               type=str, default=_env_list("TOOLS"),    nargs='+', help="Explicit list of tools (ids or names) to publish. All the other tools are filtered out. If this option is not specified, all the tools are published by the MCP server.")
    parser.add_argument("--no-tools",            type=str, default=_env_list("NO_TOOLS"), nargs='+', help="Explicit list of tools (ids or names) to discard. All the other tools are published. Option ignored if the option --tools is provided.")

    return parser.parse_args()

def main():
    args = parse_arguments()
    try:
        server = init(args)
    except (ValueError, LoadError) as e:
        logging.error("Failed to start server: %s", e)
        sys.exit(1)
    server.start()

if __name__ == "__main__":
    main()
