"""Access token resolution for `prsignal watch`.

Resolution order (stops at first success):
  1. --token on the command line
  2. the provider's environment variable (GITHUB_TOKEN, GITLAB_TOKEN, BITBUCKET_TOKEN)
  3. GitHub only: `gh auth token` (GitHub CLI session)
"""

from __future__ import annotations

import logging
import os
import subprocess

logger = logging.getLogger(__name__)

TOKEN_ENV_VARS = {
    "github": "GITHUB_TOKEN",
    "gitlab": "GITLAB_TOKEN",
    "bitbucket": "BITBUCKET_TOKEN",
}


def _gh_cli_token() -> str | None:
    try:
        result = subprocess.run(
            ["gh", "auth", "token"],
            capture_output=True,
            text=True,
            timeout=5,
        )
    except (FileNotFoundError, subprocess.TimeoutExpired):
        # gh is not installed or timed out
        return None
    if result.returncode != 0:
        return None
    token = result.stdout.strip()
    if token:
        logger.debug("Resolved GitHub token via gh CLI session.")
    return token or None


def resolve_token(provider: str, explicit: str | None = None) -> str | None:
    """Return an access token for ``provider`` or None if no source has one.

    Never raises; callers should check for None and emit a UsageError.
    """
    if explicit:
        return explicit

    env_var = TOKEN_ENV_VARS.get(provider)
    if env_var and os.environ.get(env_var):
        return os.environ[env_var]

    if provider == "github":
        return _gh_cli_token()
    return None
