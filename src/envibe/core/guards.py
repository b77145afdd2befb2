"""
Project guard rails that keep raw .env files away from AI tooling.

- .gitignore: make sure files holding real values are never committed
- .claude/settings.json: deny file and shell access to raw .env files,
  allow the AI-safe files, and register the envibe MCP server
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Tuple

from .discovery import discover_env_files


logger = logging.getLogger(__name__)

GITIGNORE_FILE = ".gitignore"
CLAUDE_DIR = ".claude"
CLAUDE_SETTINGS_FILE = ".claude/settings.json"
MCP_SERVER_NAME = "envibe"

GITIGNORE_PATTERNS = [
    "# envibe - environment files with secrets",
    ".env",
    ".env.local",
    ".env.development",
    ".env.production",
    ".env.staging",
    ".env.*.local",
    ".env.secrets",
    ".env.keys",
    "",
    "# envibe - generated AI-safe view (regenerated)",
    ".env.ai",
]

# Static deny rules: file tools plus the shell commands that would bypass them
DENY_RULES = [
    "Read(./.env)",
    "Read(./.env.*)",
    "Edit(./.env)",
    "Edit(./.env.*)",
    "Write(./.env)",
    "Write(./.env.*)",
    "Bash(cat .env:*)",
    "Bash(cat ./.env:*)",
    "Bash(head .env:*)",
    "Bash(head ./.env:*)",
    "Bash(tail .env:*)",
    "Bash(tail ./.env:*)",
    "Bash(less .env:*)",
    "Bash(less ./.env:*)",
    "Bash(more .env:*)",
    "Bash(more ./.env:*)",
    "Bash(grep .env:*)",
    "Bash(grep ./.env:*)",
]

ALLOW_RULES = [
    "Read(./.env.ai)",
    "Read(./.env.manifest.yaml)",
    "Read(./.env.example)",
]


@dataclass
class ConfigureResult:
    """What configure_claude_settings changed."""
    deny_added: int = 0
    allow_added: int = 0
    mcp_already_configured: bool = False
    recovered: bool = False  # existing settings were unreadable and replaced
    discovered_files: List[str] = field(default_factory=list)


def patch_gitignore(content: str) -> Tuple[str, int]:
    """
    Add envibe's ignore patterns to .gitignore content.

    Patterns already present are not repeated.

    Args:
        content: Current .gitignore content (may be empty)

    Returns:
        Tuple of (new content, number of patterns added)
    """
    existing = {line.strip() for line in content.splitlines()}
    lines_to_add = []
    added = 0

    for pattern in GITIGNORE_PATTERNS:
        if pattern == "" or pattern.startswith("#"):
            lines_to_add.append(pattern)
            continue
        if pattern not in existing:
            lines_to_add.append(pattern)
            added += 1

    if added == 0:
        return content, 0

    prefix = content.rstrip()
    addition = "\n".join(lines_to_add) + "\n"
    if prefix:
        return prefix + "\n\n" + addition, added
    return addition, added


def configure_gitignore(project_root: str = ".") -> int:
    """
    Patch the project's .gitignore in place.

    Returns:
        Number of patterns added (0 if already configured)
    """
    path = Path(project_root) / GITIGNORE_FILE
    content = path.read_text() if path.exists() else ""

    new_content, added = patch_gitignore(content)
    if added:
        path.write_text(new_content)
    return added


def deny_rules_for_file(filename: str) -> List[str]:
    """Deny rules for one discovered .env file."""
    return [
        f"Read(./{filename})",
        f"Bash(cat {filename}:*)",
        f"Bash(cat ./{filename}:*)",
        f"Bash(head {filename}:*)",
        f"Bash(head ./{filename}:*)",
        f"Bash(tail {filename}:*)",
        f"Bash(tail ./{filename}:*)",
    ]


def _merge_rules(target: list, rules: List[str]) -> int:
    added = 0
    for rule in rules:
        if rule not in target:
            target.append(rule)
            added += 1
    return added


def configure_claude_settings(project_root: str = ".") -> ConfigureResult:
    """
    Merge envibe's permission rules into .claude/settings.json.

    Existing settings are kept; rules are only added if missing. The
    envibe MCP server entry is always (re)written.

    Args:
        project_root: Project root directory

    Returns:
        ConfigureResult describing what changed
    """
    root = Path(project_root)
    settings_path = root / CLAUDE_SETTINGS_FILE
    settings_path.parent.mkdir(parents=True, exist_ok=True)

    result = ConfigureResult()
    settings = {}

    if settings_path.exists():
        try:
            settings = json.loads(settings_path.read_text())
        except json.JSONDecodeError as e:
            logger.warning("Could not parse %s (%s); creating new settings", settings_path, e)
            result.recovered = True
        if not isinstance(settings, dict):
            settings = {}
            result.recovered = True

    permissions = settings.get("permissions")
    if not isinstance(permissions, dict):
        permissions = settings["permissions"] = {}
    for name in ("deny", "allow"):
        if not isinstance(permissions.get(name), list):
            permissions[name] = []

    result.discovered_files = [path.name for path in discover_env_files(project_root)]

    deny_rules = list(DENY_RULES)
    for filename in result.discovered_files:
        deny_rules.extend(deny_rules_for_file(filename))

    result.deny_added = _merge_rules(permissions["deny"], deny_rules)
    result.allow_added = _merge_rules(permissions["allow"], ALLOW_RULES)

    servers = settings.get("mcpServers")
    if not isinstance(servers, dict):
        servers = settings["mcpServers"] = {}
    result.mcp_already_configured = MCP_SERVER_NAME in servers
    servers[MCP_SERVER_NAME] = {
        "command": "envibe",
        "args": ["mcp"],
    }

    settings_path.write_text(json.dumps(settings, indent=2) + "\n")
    return result
