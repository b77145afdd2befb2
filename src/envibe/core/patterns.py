"""
Default access levels inferred from variable names.

Used when seeding a manifest from an existing .env or example file. Rules
are grouped by access level and checked in this order:
- HIDDEN: signing secrets, private keys, payment-provider secrets
- PLACEHOLDER: API keys, tokens, passwords, credentials
- READ_ONLY: connection strings and infrastructure endpoints
- FULL: environment mode, ports, flags and other plain config

The first matching rule wins. Names matching nothing are left to the
caller; classify_variables falls back to PLACEHOLDER.
"""

import re
from dataclasses import dataclass
from typing import Dict, Iterable, Optional, Pattern

from .types import AccessLevel, VariableConfig, make_config


DEFAULT_DESCRIPTION = "Unclassified variable (defaulting to placeholder)"


@dataclass(frozen=True)
class PatternRule:
    """A name pattern and the access level it implies."""
    regex: Pattern
    access: AccessLevel
    description: str

    def matches(self, name: str) -> bool:
        return self.regex.search(name) is not None


def _rules(access: AccessLevel, *entries) -> tuple:
    return tuple(
        PatternRule(re.compile(pattern, re.IGNORECASE), access, description)
        for pattern, description in entries
    )


HIDDEN_RULES = _rules(
    AccessLevel.HIDDEN,
    (r"stripe.*secret", "Payment provider secret"),
    (r"private.*key", "Private key"),
    (r"signing.*secret", "Signing secret"),
    (r"master.*key", "Master key"),
    (r"encryption.*key", "Encryption key"),
)

PLACEHOLDER_RULES = _rules(
    AccessLevel.PLACEHOLDER,
    (r"api.?key", "API key"),
    (r"secret.?key", "Secret key"),
    (r"access.?key", "Access key"),
    (r"auth.?token", "Authentication token"),
    (r"bearer", "Bearer token"),
    (r"(^|_)token$", "Access token"),
    (r"password|passwd|pwd", "Password"),
    (r"secret", "Secret value"),
    (r"credential", "Credentials"),
)

READ_ONLY_RULES = _rules(
    AccessLevel.READ_ONLY,
    (r"_url$", "Service URL"),
    (r"_uri$", "Service URI"),
    (r"connection.?string", "Connection string"),
    (r"_host$", "Service host"),
    (r"_endpoint$", "Service endpoint"),
    (r"_dsn$", "Data source name"),
)

FULL_RULES = _rules(
    AccessLevel.FULL,
    (r"^node_env$|_env$|^env$", "Environment mode"),
    (r"port$", "Port number"),
    (r"^debug$|_debug$", "Debug flag"),
    (r"log.?level", "Log level"),
    (r"timeout", "Timeout setting"),
    (r"^max_|_max$", "Limit setting"),
    (r"^enable_|_enabled$", "Feature toggle"),
    (r"^feature_", "Feature flag"),
    (r"region$", "Region"),
    (r"version$", "Version"),
)

# Priority order matters: STRIPE_SECRET must hit HIDDEN before "secret"
RULES = HIDDEN_RULES + PLACEHOLDER_RULES + READ_ONLY_RULES + FULL_RULES


def classify_variable(name: str) -> Optional[VariableConfig]:
    """
    Infer an access level for a variable name.

    Args:
        name: Environment variable name (any case)

    Returns:
        VariableConfig with access and description, or None if no rule
        matches
    """
    for rule in RULES:
        if rule.matches(name):
            return make_config(rule.access, description=rule.description)
    return None


def get_default_config() -> VariableConfig:
    """Fail-safe config for variables no rule recognises."""
    return make_config(AccessLevel.PLACEHOLDER, description=DEFAULT_DESCRIPTION)


def classify_variables(names: Iterable[str]) -> Dict[str, VariableConfig]:
    """
    Classify several variable names at once.

    Unrecognised names get the PLACEHOLDER default, never FULL.

    Args:
        names: Variable names, in the order they should appear

    Returns:
        Mapping of name to VariableConfig, preserving input order
    """
    return {
        name: classify_variable(name) or get_default_config()
        for name in names
    }
