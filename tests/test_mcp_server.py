"""
Tests for the MCP server tools and JSON-RPC dispatch.
"""

import io
import json
import logging
import pytest
from envibe.core.manifest import MANIFEST_FILENAME
from envibe.mcp_server import (
    PROTOCOL_VERSION,
    TOOLS,
    get_log_level,
    handle_request,
    handle_tool_call,
    run_server,
)


MANIFEST = """version: 1
variables:
  NODE_ENV:
    access: full
    description: Environment mode
  DATABASE_URL:
    access: read-only
    required: true
  API_KEY:
    access: placeholder
  STRIPE_SECRET:
    access: hidden
    required: true
"""


@pytest.fixture
def project(tmp_path):
    """A project with a manifest and a .env file."""
    (tmp_path / MANIFEST_FILENAME).write_text(MANIFEST)
    (tmp_path / ".env").write_text(
        "# local settings\n"
        "NODE_ENV=development\n"
        "DATABASE_URL=postgres://localhost/app\n"
        "API_KEY=sk-live-123\n"
    )
    return tmp_path


class TestTools:
    """Test tool calls against a project directory."""

    def test_env_list(self, project):
        """Lists visible variables only, with masked values."""
        result = handle_tool_call('env_list', {}, str(project))

        assert result['success'] is True
        keys = [v['key'] for v in result['variables']]
        assert keys == ['API_KEY', 'DATABASE_URL', 'NODE_ENV']
        assert 'sk-live-123' not in json.dumps(result)

    def test_env_get(self, project):
        """Returns a single projected variable."""
        result = handle_tool_call('env_get', {'key': 'NODE_ENV'}, str(project))

        assert result['success'] is True
        assert result['variable']['display_value'] == 'development'
        assert result['variable']['can_modify'] is True

    def test_env_get_hidden_looks_missing(self, project):
        """Hidden and unknown variables give the same answer."""
        hidden = handle_tool_call('env_get', {'key': 'STRIPE_SECRET'}, str(project))
        missing = handle_tool_call('env_get', {'key': 'NOPE'}, str(project))

        assert hidden['success'] is False
        assert missing['success'] is False
        assert hidden['error'].replace('STRIPE_SECRET', 'X') == missing['error'].replace('NOPE', 'X')

    def test_env_set_allowed(self, project):
        """FULL variables are written and .env.ai is regenerated."""
        result = handle_tool_call('env_set', {'key': 'NODE_ENV', 'value': 'production'}, str(project))

        assert result['success'] is True
        env_text = (project / '.env').read_text()
        assert 'NODE_ENV=production' in env_text
        assert env_text.startswith('# local settings\n')
        assert 'NODE_ENV=production' in (project / '.env.ai').read_text()

    def test_env_set_denied(self, project):
        """Non-FULL variables are refused and .env is untouched."""
        before = (project / '.env').read_text()

        result = handle_tool_call('env_set', {'key': 'API_KEY', 'value': 'stolen'}, str(project))

        assert result['success'] is False
        assert 'placeholder' in result['error']
        assert (project / '.env').read_text() == before

    def test_env_set_requires_value(self, project):
        """A missing value is rejected."""
        result = handle_tool_call('env_set', {'key': 'NODE_ENV'}, str(project))
        assert result['success'] is False

    def test_env_describe(self, project):
        """Describes access and capabilities."""
        result = handle_tool_call('env_describe', {'key': 'DATABASE_URL'}, str(project))

        assert result['success'] is True
        assert result['access'] == 'read-only'
        assert result['can_modify'] is False
        assert result['required'] is True

    def test_env_describe_hidden(self, project):
        """Hidden variables are not described."""
        result = handle_tool_call('env_describe', {'key': 'STRIPE_SECRET'}, str(project))
        assert result['success'] is False

    def test_env_check_required(self, project):
        """Missing hidden variables are counted, not named."""
        result = handle_tool_call('env_check_required', {}, str(project))

        assert result['success'] is True
        assert result['ok'] is False
        assert result['missing'] == []
        assert result['hidden_missing_count'] == 1

    def test_missing_manifest(self, tmp_path):
        """Tools report a missing manifest instead of raising."""
        result = handle_tool_call('env_list', {}, str(tmp_path))
        assert result['success'] is False
        assert 'envibe setup' in result['error']

    def test_missing_key_argument(self, project):
        """Key-based tools require a key."""
        result = handle_tool_call('env_get', {}, str(project))
        assert result['success'] is False

    def test_unknown_tool(self, project):
        """Unknown tools are reported."""
        result = handle_tool_call('env_delete', {}, str(project))
        assert result['success'] is False
        assert 'Unknown tool' in result['error']

    def test_project_root_argument(self, project, tmp_path_factory):
        """The project_root argument overrides the default root."""
        other = tmp_path_factory.mktemp('other')
        result = handle_tool_call('env_list', {'project_root': str(project)}, str(other))
        assert result['success'] is True


class TestHandleRequest:
    """Test JSON-RPC dispatch."""

    def test_initialize(self):
        """initialize returns server info."""
        response = handle_request({'jsonrpc': '2.0', 'id': 1, 'method': 'initialize'})

        assert response['id'] == 1
        assert response['result']['protocolVersion'] == PROTOCOL_VERSION
        assert response['result']['serverInfo']['name'] == 'envibe'

    def test_tools_list(self):
        """tools/list returns every tool."""
        response = handle_request({'jsonrpc': '2.0', 'id': 2, 'method': 'tools/list'})

        names = [tool['name'] for tool in response['result']['tools']]
        assert names == [tool['name'] for tool in TOOLS]
        assert 'env_set' in names

    def test_tools_call(self, project):
        """tools/call wraps the tool result as text content."""
        response = handle_request({
            'jsonrpc': '2.0',
            'id': 3,
            'method': 'tools/call',
            'params': {'name': 'env_get', 'arguments': {'key': 'NODE_ENV'}},
        }, str(project))

        result = response['result']
        assert result['isError'] is False
        payload = json.loads(result['content'][0]['text'])
        assert payload['variable']['key'] == 'NODE_ENV'

    def test_tools_call_error(self, project):
        """Failed tool calls are flagged as errors."""
        response = handle_request({
            'jsonrpc': '2.0',
            'id': 4,
            'method': 'tools/call',
            'params': {'name': 'env_set', 'arguments': {'key': 'DATABASE_URL', 'value': 'x'}},
        }, str(project))

        assert response['result']['isError'] is True

    def test_notification(self):
        """Notifications get no response."""
        assert handle_request({'jsonrpc': '2.0', 'method': 'notifications/initialized'}) is None

    def test_unknown_method(self):
        """Unknown methods return a JSON-RPC error."""
        response = handle_request({'jsonrpc': '2.0', 'id': 5, 'method': 'resources/list'})
        assert response['error']['code'] == -32601

    def test_tools_call_params_not_object(self):
        """Non-object params get an invalid-params error."""
        response = handle_request({'jsonrpc': '2.0', 'id': 6, 'method': 'tools/call', 'params': [1]})

        assert response['id'] == 6
        assert response['error']['code'] == -32602

    def test_tools_call_arguments_not_object(self, project):
        """Non-object arguments get an invalid-params error."""
        response = handle_request({
            'jsonrpc': '2.0',
            'id': 7,
            'method': 'tools/call',
            'params': {'name': 'env_list', 'arguments': 'NODE_ENV'},
        }, str(project))

        assert response['error']['code'] == -32602


class TestRunServer:
    """Test the stdio loop."""

    def test_keeps_serving_after_bad_message(self, monkeypatch, capsys):
        """A malformed request is answered and later requests still are."""
        monkeypatch.setattr('sys.stdin', io.StringIO(
            'not json\n'
            '{"jsonrpc": "2.0", "id": 1, "method": "tools/call", "params": [1]}\n'
            '{"jsonrpc": "2.0", "id": 2, "method": "tools/list"}\n'
        ))

        run_server('.')

        responses = [json.loads(line) for line in capsys.readouterr().out.splitlines()]
        assert [r['id'] for r in responses] == [1, 2]
        assert responses[0]['error']['code'] == -32602
        assert 'tools' in responses[1]['result']


class TestLogLevel:
    """Test ENVIBE_LOG_LEVEL handling."""

    def test_default(self, monkeypatch):
        """WARNING when unset."""
        monkeypatch.delenv('ENVIBE_LOG_LEVEL', raising=False)
        assert get_log_level() == logging.WARNING

    def test_known_name(self, monkeypatch):
        """Level names are case-insensitive."""
        monkeypatch.setenv('ENVIBE_LOG_LEVEL', 'debug')
        assert get_log_level() == logging.DEBUG

    def test_unknown_name(self, monkeypatch):
        """Unknown names fall back to WARNING."""
        monkeypatch.setenv('ENVIBE_LOG_LEVEL', 'verbose')
        assert get_log_level() == logging.WARNING
