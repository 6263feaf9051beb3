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

from typing import Dict, Any, Optional
import json
import os
import glob
import logging
import time

CONFIGURATION_FILE = "tools.json"

class EventSink:
    """
    Receives the diagnostic events emitted while the tools are generated and the requests are assembled.
    """

    def emit(self, event: str, **fields):
        pass

    def warn(self, event: str, **fields):
        pass

class NullEventSink(EventSink):
    """Discards all the events."""
    pass

class LoggingEventSink(EventSink):
    """
    Forwards the events to a logger: regular events at DEBUG level, warnings at WARNING level.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger("openapi_mcp_server.events")

    def emit(self, event: str, **fields):
        if self.logger.isEnabledFor(logging.DEBUG):
            self.logger.debug("%s %s", event, _format_fields(fields))

    def warn(self, event: str, **fields):
        self.logger.warning("%s %s", event, _format_fields(fields))

def _format_fields(fields: Dict[str, Any]) -> str:
    return json.dumps(fields, default=repr, ensure_ascii=False)

class ToolExecutionTrace:
    """
    Class to store details about a tool execution
    Captures all relevant information for tracing and debugging purposes.
    """

    def __init__(
        self,
        tool_name: str,
        inputs: Dict[str, Any],
        http_code: str,
        results: Any,
    ):
        self.tool_name = tool_name
        self.http_code = http_code
        self.inputs = inputs
        self.results = results
        self.timestamp = f"{time.time_ns():x}"

class DiskTraceStorage:
    """
    A storage mechanism for ToolExecutionTrace objects that saves them to disk.
    Maintains a limited number of traces by removing the oldest ones when limit is reached.
    """

    def __init__(self, trace_executions: bool, trace_configuration: bool,
                 storage_dir: Optional[str] = None, max_traces: int = 200):
        """
        Initialize the disk-based trace storage.

        Args:
            storage_dir: Directory to store traces (defaults to ~/.openapi-mcp-server/traces)
            max_traces: Maximum number of execution traces to keep (defaults to 200)
        """
        if storage_dir is None:
            home_dir    = os.path.expanduser("~")
            storage_dir = os.path.join(home_dir, ".openapi-mcp-server", "traces")

        self.storage_dir         = storage_dir
        self.max_traces          = max_traces
        self.logger              = logging.getLogger(__name__)
        self.trace_executions    = trace_executions
        self.trace_configuration = trace_configuration
        self.trace_files: list[str] = []

        if trace_executions or trace_configuration:
            self.logger.info("Tracing is enabled in %s", storage_dir)
            if self._exists_storage_dir():
                self._init_trace_files()

    def _exists_storage_dir(self):
        if not os.path.isdir(self.storage_dir):
            os.makedirs(self.storage_dir, exist_ok=True)
            return False
        return True

    def _init_trace_files(self):
        # in-memory index of the execution traces, sorted from the oldest to the newest
        self.trace_files = [path for path in glob.glob(os.path.join(self.storage_dir, "*.json"))
                            if os.path.isfile(path) and os.path.basename(path) != CONFIGURATION_FILE]
        self.trace_files.sort(key=lambda x: os.path.getmtime(x))

    def saveConfiguration(self, registry):
        """
        save the tools configuration (one entry per tool id) to storage.
        """
        if not self.trace_configuration:
            return

        self._exists_storage_dir()

        configuration = {}
        for tool_id, endpoint in registry.items():
            configuration[tool_id] = {
                'method':     endpoint.method,
                'path':       endpoint.path,
                'parameters': [{'name': spec.name, 'in': spec.location, 'required': spec.required}
                               for spec in endpoint.parameters],
                'tool':       endpoint.tool.model_dump(exclude_none=True),
            }
        with open(os.path.join(self.storage_dir, CONFIGURATION_FILE), 'w') as f:
            f.write(json.dumps(configuration, indent=2))

    def saveExecution(self, trace: ToolExecutionTrace):
        """
        save a trace to storage.
        If the number of traces exceeds max_traces, the oldest traces will be removed.

        Returns:
            str: path of the trace file, or None when executions are not traced
        """
        if not self.trace_executions:
            return None

        self._exists_storage_dir()

        file_path = os.path.join(self.storage_dir, f"{trace.tool_name}-{trace.http_code}-{trace.timestamp}.json")
        with open(file_path, 'w') as f:
            f.write(json.dumps({'tool':    trace.tool_name,
                                'status':  trace.http_code,
                                'inputs':  trace.inputs,
                                'results': trace.results}, indent=2, default=str))
        self.logger.debug(f"Saved traces file {file_path}")

        self._enforce_max_traces(file_path)
        return file_path

    def _enforce_max_traces(self, file_path:str = None):
        """Remove oldest created traces file if the number exceeds max_traces."""
        if file_path:
            self.trace_files.append(file_path)

        while len(self.trace_files) > self.max_traces:
            file2remove_path = self.trace_files.pop(0)
            try:
                os.remove(file2remove_path)
                self.logger.debug(f"Removed traces file {file2remove_path}")
            except OSError as e:
                self.logger.warning(f"Error removing traces file {file2remove_path}: {e}")
