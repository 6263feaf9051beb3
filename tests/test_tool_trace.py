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
import json
import logging
import os
from openapi_mcp_server.ToolTrace import DiskTraceStorage, ToolExecutionTrace, LoggingEventSink, NullEventSink, CONFIGURATION_FILE

def test_trace_disabled(tmp_path):
    storage_dir = tmp_path / "traces"
    traces = DiskTraceStorage(trace_executions=False, trace_configuration=False, storage_dir=str(storage_dir))
    assert traces.saveExecution(ToolExecutionTrace("List_pets", {}, 200, [])) is None
    assert not storage_dir.exists()

def test_default_storage_dir():
    traces = DiskTraceStorage(trace_executions=False, trace_configuration=False)
    assert traces.storage_dir == os.path.join(os.path.expanduser("~"), ".openapi-mcp-server", "traces")
    assert traces.max_traces == 200

def test_save_execution(tmp_path):
    storage_dir = tmp_path / "traces"
    traces = DiskTraceStorage(trace_executions=True, trace_configuration=False, storage_dir=str(storage_dir))
    trace  = ToolExecutionTrace("List_pets", {"limit": 2}, 200, [{"name": "rex"}])

    file_path = traces.saveExecution(trace)

    assert file_path == os.path.join(str(storage_dir), f"List_pets-200-{trace.timestamp}.json")
    with open(file_path) as f:
        assert json.load(f) == {"tool": "List_pets", "status": 200, "inputs": {"limit": 2}, "results": [{"name": "rex"}]}

def test_max_traces(tmp_path):
    traces = DiskTraceStorage(trace_executions=True, trace_configuration=False, storage_dir=str(tmp_path), max_traces=2)

    first  = traces.saveExecution(ToolExecutionTrace("tool1", {}, 200, "ok"))
    second = traces.saveExecution(ToolExecutionTrace("tool2", {}, 404, "not found"))
    third  = traces.saveExecution(ToolExecutionTrace("tool3", {}, "error", "refused"))

    assert not os.path.exists(first)
    assert os.path.exists(second)
    assert os.path.exists(third)
    assert traces.trace_files == [second, third]

def test_existing_traces_are_indexed(tmp_path):
    old_trace = tmp_path / "tool0-200-0.json"
    old_trace.write_text("{}")
    configuration = tmp_path / CONFIGURATION_FILE
    configuration.write_text("{}")

    traces = DiskTraceStorage(trace_executions=True, trace_configuration=True, storage_dir=str(tmp_path), max_traces=1)
    assert traces.trace_files == [str(old_trace)]

    traces.saveExecution(ToolExecutionTrace("tool1", {}, 200, "ok"))
    assert not old_trace.exists()
    # the tools configuration is never removed
    assert configuration.exists()

def test_null_event_sink():
    events = NullEventSink()
    assert events.emit("tool.registered", tool_id="GET-pets") is None
    assert events.warn("tool.collision", tool_id="GET-pets") is None

def test_logging_event_sink(caplog):
    events = LoggingEventSink()
    with caplog.at_level(logging.DEBUG, logger="openapi_mcp_server.events"):
        events.emit("tool.registered", tool_id="GET-pets", name="List_pets")
        events.warn("parameter.unsupported_location", parameter="session", location="cookie")

    assert [(record.levelno, record.getMessage()) for record in caplog.records] == [
        (logging.DEBUG,   'tool.registered {"tool_id": "GET-pets", "name": "List_pets"}'),
        (logging.WARNING, 'parameter.unsupported_location {"parameter": "session", "location": "cookie"}'),
    ]

def test_logging_event_sink_level(caplog):
    events = LoggingEventSink(logging.getLogger("petstore"))
    with caplog.at_level(logging.WARNING, logger="petstore"):
        events.emit("request.assembled", url="https://api.example.com/pets")
    assert caplog.records == []
