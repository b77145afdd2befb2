"""
.env file codec.

Parses dotenv text into a flat name -> value mapping and serializes a
mapping back. The constraint for serialized output is:
    parse_env_content(serialize_env(env)) == env

Single-key updates go through update_env_content, which rewrites one line
and keeps every other line (comments, blank lines, ordering) untouched.
"""

import logging
import re
from pathlib import Path
from typing import Dict, List

from .types import ParsedEnv


logger = logging.getLogger(__name__)

ENV_FILENAME = ".env"
ENV_AI_FILENAME = ".env.ai"

QUOTE_CHARS = ('"', "'")

# Any of these in a value forces double quotes on output
QUOTE_TRIGGERS = (" ", "#", "\n", '"', "'")

# Applied in order when reading; "\\\\" must come after the letter escapes
UNESCAPES = (
    ("\\n", "\n"),
    ("\\r", "\r"),
    ("\\t", "\t"),
    ("\\\\", "\\"),
    ('\\"', '"'),
)

# Applied in order when writing; the backslash itself goes first
ESCAPES = (
    ("\\", "\\\\"),
    ('"', '\\"'),
    ("\n", "\\n"),
    ("\r", "\\r"),
    ("\t", "\\t"),
)


def _require_str(name: str, value) -> None:
    if not isinstance(value, str):
        raise TypeError(f"{name} must be str, not {type(value).__name__}")


def _parse_value(raw: str) -> str:
    """Turn the text after '=' into the stored value."""
    value = raw.strip()

    # Inline comments only count outside quotes
    if not value.startswith(QUOTE_CHARS):
        comment_index = value.find("#")
        if comment_index != -1:
            value = value[:comment_index].strip()

    if len(value) >= 2 and value[0] in QUOTE_CHARS and value[-1] == value[0]:
        value = value[1:-1]

    if "\\" in value:
        for escaped, literal in UNESCAPES:
            value = value.replace(escaped, literal)

    return value


def parse_env_content(content: str) -> Dict[str, str]:
    """
    Parse .env file content into key-value pairs.

    Blank lines, comment lines and lines without '=' are skipped. When a
    key appears more than once the last occurrence wins.

    Args:
        content: String content of a .env file

    Returns:
        Dictionary of key-value pairs, in first-seen order
    """
    _require_str("content", content)
    result: Dict[str, str] = {}

    for line_no, line in enumerate(content.split("\n"), start=1):
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue

        eq_index = stripped.find("=")
        if eq_index == -1:
            logger.debug("Skipping line %d: no '=' found", line_no)
            continue

        key = stripped[:eq_index].strip()
        if not key:
            logger.debug("Skipping line %d: empty key", line_no)
            continue

        result[key] = _parse_value(stripped[eq_index + 1:])

    return result


def needs_quotes(value: str) -> bool:
    return any(char in value for char in QUOTE_TRIGGERS)


def format_value(value: str) -> str:
    """
    Render a value for the right-hand side of an assignment.

    Values containing a space, '#', newline or quote are escaped and
    wrapped in double quotes; anything else is emitted verbatim.
    """
    if not needs_quotes(value):
        return value

    escaped = value
    for literal, replacement in ESCAPES:
        escaped = escaped.replace(literal, replacement)
    return f'"{escaped}"'


def format_assignment(key: str, value: str) -> str:
    return f"{key}={format_value(value)}"


def serialize_env(env: Dict[str, str]) -> str:
    """
    Serialize environment variables to .env format.

    Args:
        env: Mapping of variable names to values

    Returns:
        One KEY=value line per entry, always ending with a newline
    """
    lines = [format_assignment(key, value) for key, value in env.items()]
    return "\n".join(lines) + "\n"


def update_env_content(content: str, key: str, value: str) -> str:
    """
    Set a single variable in existing .env text.

    Only the first line assigning `key` is replaced; comments, blank lines
    and the order of other variables are preserved. A key that is not
    present yet is appended at the end.

    Args:
        content: Existing .env text (may be empty)
        key: Variable name
        value: New value

    Returns:
        Updated .env text
    """
    _require_str("content", content)
    _require_str("value", value)

    new_line = format_assignment(key, value)
    key_pattern = re.compile(rf"^{re.escape(key)}\s*=")
    lines: List[str] = content.split("\n")

    for i, line in enumerate(lines):
        if key_pattern.match(line.strip()):
            lines[i] = new_line
            return "\n".join(lines)

    # Append, leaving exactly one trailing newline
    if lines[-1] == "":
        lines[-1] = new_line
    else:
        lines.append(new_line)
    lines.append("")

    return "\n".join(lines)


def load_env_file(path: str = ENV_FILENAME) -> ParsedEnv:
    """
    Load and parse a .env file.

    A missing file is treated as empty.

    Args:
        path: Path to the .env file

    Returns:
        ParsedEnv with the parsed variables and the raw text
    """
    env_path = Path(path)
    if not env_path.exists():
        return ParsedEnv(variables={}, raw="")

    raw = env_path.read_text()
    return ParsedEnv(variables=parse_env_content(raw), raw=raw)


def save_env_file(env: Dict[str, str], path: str = ENV_FILENAME) -> None:
    Path(path).write_text(serialize_env(env))


def update_env_variable(key: str, value: str, path: str = ENV_FILENAME) -> None:
    """
    Update a single variable in a .env file on disk.

    Args:
        key: Variable name
        value: New value
        path: Path to the .env file (created if missing)
    """
    env_path = Path(path)
    content = env_path.read_text() if env_path.exists() else ""
    env_path.write_text(update_env_content(content, key, value))


def env_file_exists(path: str = ENV_FILENAME) -> bool:
    return Path(path).is_file()


def get_env_variable_names(path: str = ENV_FILENAME) -> List[str]:
    """Get all variable names defined in a .env file."""
    return list(load_env_file(path).variables.keys())


def get_env_filename() -> str:
    return ENV_FILENAME


def get_ai_env_filename() -> str:
    return ENV_AI_FILENAME
