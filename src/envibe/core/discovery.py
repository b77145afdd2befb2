"""
Discovery of .env files in a project root.

Finds the example file a manifest can be seeded from, and the raw .env*
files that hold real values and must be kept away from AI tooling.
"""

from pathlib import Path
from typing import Optional

from .manifest import MANIFEST_FILENAME
from .dotenv import ENV_AI_FILENAME


# Example files, in order of preference
EXAMPLE_FILES = [
    ".env.example",
    ".env.sample",
    ".env.template",
    ".env.local.example",
    ".env.development.example",
]

# Files an AI is allowed to read
SAFE_ENV_FILES = {
    ENV_AI_FILENAME,
    MANIFEST_FILENAME,
    ".env.example",
    ".env.sample",
    ".env.template",
}


def find_example_file(project_root: str = ".") -> Optional[Path]:
    """
    Find the preferred example file in the project root.

    Args:
        project_root: Project root directory

    Returns:
        Path to the first existing example file, or None
    """
    root = Path(project_root)
    for filename in EXAMPLE_FILES:
        path = root / filename
        if path.is_file():
            return path
    return None


def is_safe_env_file(filename: str) -> bool:
    return filename in SAFE_ENV_FILES


def discover_env_files(project_root: str = ".") -> list[Path]:
    """
    Discover .env* files in the project root that hold real values.

    Safe files (.env.ai, the manifest, example files) are skipped.
    Subdirectories are not scanned.

    Args:
        project_root: Project root directory

    Returns:
        List of Path objects sorted by file name
    """
    root = Path(project_root)
    if not root.is_dir():
        return []

    env_files = []
    for path in root.iterdir():
        if not path.is_file():
            continue

        name = path.name
        if not name.startswith(".env"):
            continue
        if is_safe_env_file(name):
            continue

        env_files.append(path)

    env_files.sort(key=lambda p: p.name)
    return env_files
