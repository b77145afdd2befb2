"""
MCP (Model Context Protocol) Server for envibe.

Exposes the AI-visible view of the environment as tools for AI agents like
Claude, Cursor, Windsurf. Raw values only leave this process when the
manifest grants full or read-only access.

Available tools:
- env_list: List all variables the AI may see
- env_get: Get one variable
- env_set: Set a variable (full access only)
- env_describe: Describe a variable's access level
- env_check_required: Report required variables that are not set
"""

import json
import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict, Optional

from . import __version__
from .core.errors import ManifestError, ManifestNotFoundError
from .core.dotenv import ENV_FILENAME, ENV_AI_FILENAME, load_env_file, update_env_variable
from .core.filter import (
    can_modify,
    can_see,
    filter_for_ai,
    generate_ai_env_content,
    get_config,
    get_variable_for_ai,
    validate_modification,
)
from .core.manifest import MANIFEST_FILENAME, load_manifest


logger = logging.getLogger(__name__)

SERVER_NAME = "envibe"
PROTOCOL_VERSION = "2024-11-05"


def _load(project_root: str):
    """Load manifest and env values for a project."""
    root = Path(project_root)
    manifest = load_manifest(str(root / MANIFEST_FILENAME))
    env = load_env_file(str(root / ENV_FILENAME)).variables
    return manifest, env


def _manifest_error(error: ManifestError) -> Dict[str, Any]:
    if isinstance(error, ManifestNotFoundError):
        return {
            'success': False,
            'error': f"No manifest found ({MANIFEST_FILENAME}). Ask the user to run 'envibe setup'.",
        }
    return {
        'success': False,
        'error': str(error),
    }


def env_list_tool(project_root: str = ".") -> Dict[str, Any]:
    """
    List all AI-visible variables.

    Returns:
        Dictionary with the filtered variables
    """
    try:
        manifest, env = _load(project_root)
    except ManifestError as e:
        return _manifest_error(e)

    variables = filter_for_ai(env, manifest)
    return {
        'success': True,
        'count': len(variables),
        'variables': [v.to_dict() for v in variables],
    }


def env_get_tool(key: str, project_root: str = ".") -> Dict[str, Any]:
    """
    Get a single variable as the AI is allowed to see it.

    Hidden variables and unknown, unset ones are reported the same way so
    the response does not reveal that a hidden variable exists.
    """
    try:
        manifest, env = _load(project_root)
    except ManifestError as e:
        return _manifest_error(e)

    variable = None
    if key in env or key in manifest.variables:
        variable = get_variable_for_ai(key, env, manifest)

    if variable is None:
        return {
            'success': False,
            'error': f"Variable '{key}' not found or hidden",
        }

    return {
        'success': True,
        'variable': variable.to_dict(),
    }


def env_set_tool(key: str, value: str, project_root: str = ".") -> Dict[str, Any]:
    """
    Set a variable in .env, if the manifest grants full access.

    .env.ai is regenerated after a successful write.
    """
    try:
        manifest, _ = _load(project_root)
    except ManifestError as e:
        return _manifest_error(e)

    validation = validate_modification(key, manifest)
    if not validation.allowed:
        logger.info("Denied env_set for %s", key)
        return {
            'success': False,
            'error': validation.reason,
        }

    root = Path(project_root)
    env_path = root / ENV_FILENAME
    update_env_variable(key, value, str(env_path))

    env = load_env_file(str(env_path)).variables
    variables = filter_for_ai(env, manifest)
    (root / ENV_AI_FILENAME).write_text(generate_ai_env_content(variables))

    return {
        'success': True,
        'key': key,
        'message': f"Set {key} and regenerated {ENV_AI_FILENAME}",
    }


def env_describe_tool(key: str, project_root: str = ".") -> Dict[str, Any]:
    """Describe a variable's access level and capabilities."""
    try:
        manifest, _ = _load(project_root)
    except ManifestError as e:
        return _manifest_error(e)

    config = get_config(key, manifest)
    if not can_see(config.access):
        return {
            'success': False,
            'error': f"Variable '{key}' not found or hidden",
        }

    return {
        'success': True,
        'key': key,
        'access': config.access.value,
        'description': config.description,
        'in_manifest': key in manifest.variables,
        'can_see': True,
        'can_modify': can_modify(config.access),
        'required': config.required,
    }


def env_check_required_tool(project_root: str = ".") -> Dict[str, Any]:
    """Report required variables that are not set in .env."""
    try:
        manifest, env = _load(project_root)
    except ManifestError as e:
        return _manifest_error(e)

    missing = []
    hidden_missing = 0
    for key, config in manifest.variables.items():
        if not config.required or key in env:
            continue
        # Hidden variables are reported by count only
        if can_see(config.access):
            missing.append(key)
        else:
            hidden_missing += 1

    return {
        'success': True,
        'ok': not missing and not hidden_missing,
        'missing': sorted(missing),
        'hidden_missing_count': hidden_missing,
    }


def _project_root_property() -> Dict[str, Any]:
    return {
        'type': 'string',
        'description': 'Project root directory (default: server project root)',
    }


def _key_property() -> Dict[str, Any]:
    return {
        'type': 'string',
        'description': 'Environment variable name',
    }


TOOLS = [
    {
        'name': 'env_list',
        'description': 'List environment variables the AI may see, with access levels and display values',
        'inputSchema': {
            'type': 'object',
            'properties': {'project_root': _project_root_property()},
        },
    },
    {
        'name': 'env_get',
        'description': 'Get one environment variable as the AI is allowed to see it',
        'inputSchema': {
            'type': 'object',
            'properties': {'key': _key_property(), 'project_root': _project_root_property()},
            'required': ['key'],
        },
    },
    {
        'name': 'env_set',
        'description': 'Set an environment variable in .env (only variables with full access)',
        'inputSchema': {
            'type': 'object',
            'properties': {
                'key': _key_property(),
                'value': {'type': 'string', 'description': 'New value'},
                'project_root': _project_root_property(),
            },
            'required': ['key', 'value'],
        },
    },
    {
        'name': 'env_describe',
        'description': 'Describe the access level of an environment variable',
        'inputSchema': {
            'type': 'object',
            'properties': {'key': _key_property(), 'project_root': _project_root_property()},
            'required': ['key'],
        },
    },
    {
        'name': 'env_check_required',
        'description': 'Check that all required environment variables are set',
        'inputSchema': {
            'type': 'object',
            'properties': {'project_root': _project_root_property()},
        },
    },
]


def handle_tool_call(tool_name: str, arguments: Dict[str, Any], default_root: str = ".") -> Dict[str, Any]:
    """
    Handle a tool call from MCP client.

    Args:
        tool_name: Name of the tool to call
        arguments: Tool arguments
        default_root: Project root used when the call does not pass one

    Returns:
        Tool result dictionary
    """
    project_root = arguments.get('project_root') or default_root
    logger.info("Tool call: %s", tool_name)

    if tool_name in ('env_get', 'env_set', 'env_describe'):
        key = arguments.get('key')
        if not isinstance(key, str) or not key:
            return {'success': False, 'error': f"Tool {tool_name} requires a 'key' argument"}

    if tool_name == 'env_list':
        return env_list_tool(project_root)
    elif tool_name == 'env_get':
        return env_get_tool(arguments['key'], project_root)
    elif tool_name == 'env_set':
        value = arguments.get('value')
        if not isinstance(value, str):
            return {'success': False, 'error': "Tool env_set requires a string 'value' argument"}
        return env_set_tool(arguments['key'], value, project_root)
    elif tool_name == 'env_describe':
        return env_describe_tool(arguments['key'], project_root)
    elif tool_name == 'env_check_required':
        return env_check_required_tool(project_root)
    else:
        return {
            'success': False,
            'error': f'Unknown tool: {tool_name}'
        }


def _invalid_params(request_id, message: str) -> Optional[Dict[str, Any]]:
    if request_id is None:
        return None
    return {
        'jsonrpc': '2.0',
        'id': request_id,
        'error': {'code': -32602, 'message': message},
    }


def handle_request(request: Dict[str, Any], default_root: str = ".") -> Optional[Dict[str, Any]]:
    """
    Dispatch one JSON-RPC request.

    Returns:
        Response dictionary, or None for notifications
    """
    method = request.get('method')
    request_id = request.get('id')

    if method == 'initialize':
        result = {
            'protocolVersion': PROTOCOL_VERSION,
            'capabilities': {'tools': {}},
            'serverInfo': {'name': SERVER_NAME, 'version': __version__},
        }
    elif method == 'tools/list':
        result = {'tools': TOOLS}
    elif method == 'tools/call':
        params = request.get('params') or {}
        arguments = None
        if isinstance(params, dict):
            arguments = params.get('arguments') or {}
        if not isinstance(arguments, dict):
            logger.warning("Rejecting tools/call with malformed params")
            return _invalid_params(request_id, "tools/call expects an object with 'name' and 'arguments'")
        tool_name = params.get('name')
        try:
            payload = handle_tool_call(tool_name, arguments, default_root)
        except Exception as e:
            logger.exception("Error executing %s", tool_name)
            payload = {'success': False, 'error': str(e)}
        result = {
            'content': [{'type': 'text', 'text': json.dumps(payload, indent=2)}],
            'isError': not payload.get('success', False),
        }
    elif request_id is None:
        # Notification (e.g. notifications/initialized)
        return None
    else:
        return {
            'jsonrpc': '2.0',
            'id': request_id,
            'error': {'code': -32601, 'message': f'Method not found: {method}'},
        }

    if request_id is None:
        return None

    return {
        'jsonrpc': '2.0',
        'id': request_id,
        'result': result,
    }


def get_log_level() -> int:
    """Log level from ENVIBE_LOG_LEVEL; unknown names fall back to WARNING."""
    level = logging.getLevelName(os.getenv('ENVIBE_LOG_LEVEL', 'WARNING').strip().upper())
    return level if isinstance(level, int) else logging.WARNING


def run_server(project_root: Optional[str] = None):
    """
    Run the MCP server.

    Reads JSON-RPC messages from stdin and writes responses to stdout.
    Logs go to stderr.
    """
    logging.basicConfig(
        stream=sys.stderr,
        level=get_log_level(),
        format='%(asctime)s %(name)s %(levelname)s %(message)s',
    )
    default_root = project_root or os.getenv('ENVIBE_PROJECT_ROOT') or '.'
    logger.info("envibe MCP server starting (project root: %s)", default_root)

    try:
        for line in sys.stdin:
            if not line.strip():
                continue

            try:
                request = json.loads(line)
            except json.JSONDecodeError:
                logger.warning("Skipping malformed JSON-RPC line")
                continue

            if not isinstance(request, dict):
                logger.warning("Skipping non-object JSON-RPC message")
                continue

            response = handle_request(request, default_root)
            if response is not None:
                print(json.dumps(response))
                sys.stdout.flush()

    except KeyboardInterrupt:
        pass


if __name__ == '__main__':
    run_server()
