"""
envibe - Granular AI access control for environment variables

Keeps real secrets in .env, tells an AI agent only what the manifest
allows, and gates every change the agent asks for.
"""

__version__ = "0.1.0"

from .core import dotenv, patterns, filter, manifest

__all__ = [
    "dotenv",
    "patterns",
    "filter",
    "manifest",
]
