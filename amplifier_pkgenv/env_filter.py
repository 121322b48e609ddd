"""Environment variables handed to installer subprocesses.

Installers run third-party tooling (git) on behalf of a session, so by default
they inherit only non-secret variables and never prompt on a terminal.
"""

from __future__ import annotations

from enum import Enum


class EnvVarPolicy(str, Enum):
    """How much of the host environment an installer subprocess inherits."""

    INHERIT_ALL = "inherit_all"
    CORE_ONLY = "core_only"
    INHERIT_NONE = "inherit_none"


# Kept even under inherit_none so tools can still be found and run.
ESSENTIAL_VARS: frozenset[str] = frozenset(
    {"PATH", "HOME", "LANG", "TMPDIR", "SSL_CERT_FILE", "SSL_CERT_DIR"}
)

SECRET_SUFFIXES: tuple[str, ...] = (
    "_API_KEY",
    "_SECRET",
    "_TOKEN",
    "_PASSWORD",
    "_CREDENTIAL",
    "_AUTH",
)

# Installers are non-interactive.
NON_INTERACTIVE_VARS: dict[str, str] = {
    "GIT_TERMINAL_PROMPT": "0",
    "GIT_ASKPASS": "echo",
}


def is_secret(name: str) -> bool:
    upper = name.upper()
    return any(upper.endswith(suffix) for suffix in SECRET_SUFFIXES)


def installer_env(
    policy: EnvVarPolicy | str,
    base_env: dict[str, str],
    overrides: dict[str, str] | None = None,
) -> dict[str, str]:
    """Build the environment for an installer subprocess.

    Args:
        policy: Which host vars to inherit from base_env.
        base_env: The host environment (typically os.environ).
        overrides: Vars that always win, applied last.
    """
    policy = EnvVarPolicy(policy)
    if policy == EnvVarPolicy.INHERIT_ALL:
        result = dict(base_env)
    elif policy == EnvVarPolicy.CORE_ONLY:
        result = {k: v for k, v in base_env.items() if not is_secret(k)}
    else:
        result = {k: v for k, v in base_env.items() if k in ESSENTIAL_VARS}

    result.update(NON_INTERACTIVE_VARS)
    if overrides:
        result.update(overrides)
    return result
