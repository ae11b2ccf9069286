"""
AWS credential resolution.

Credentials come from an environment mapping when it is complete, otherwise
from the shared credentials file (``~/.aws/credentials`` or the path in
``AWS_SHARED_CREDENTIALS_FILE``).
"""

import logging
import os
from pathlib import Path
from typing import Mapping, Optional

from pydantic import BaseModel, ConfigDict

from .errors import IncompleteCredentialsError, ProfileNotFoundError

logger = logging.getLogger(__name__)


class Credentials(BaseModel):
    """Resolved AWS credentials for one region."""

    model_config = ConfigDict(frozen=True)

    region: str
    access_key_id: str
    secret_access_key: str
    session_token: Optional[str] = None


class ProfileFileCache:
    """
    Read-once cache of the shared credentials file.

    The file is read on the first call to ``lines()`` and the stripped,
    non-comment lines are kept for the lifetime of the object. There is no
    invalidation: edits to the file are only picked up by a new cache (in
    practice, a new process). The first path read wins; later calls with a
    different path (e.g. a changed AWS_SHARED_CREDENTIALS_FILE) get the
    cached lines of the first file. A failed read leaves the cache empty so
    the next call tries again.
    """

    def __init__(self) -> None:
        self._lines: Optional[list[str]] = None

    @property
    def loaded(self) -> bool:
        return self._lines is not None

    def lines(self, path: Path) -> list[str]:
        if self._lines is None:
            logger.debug(f"Reading AWS credentials file {path}")
            text = path.read_text(encoding="ascii")
            self._lines = [
                line.strip()
                for line in text.split("\n")
                if line.strip() and not line.strip().startswith("#")
            ]
        return self._lines


# Shared by every resolver in the process.
shared_profile_cache = ProfileFileCache()


def credentials_file_path(env: Mapping[str, str]) -> Path:
    override = env.get("AWS_SHARED_CREDENTIALS_FILE")
    if override:
        return Path(override)
    return Path.home() / ".aws" / "credentials"


def _section(lines: list[str], profile: str) -> dict[str, str]:
    header = f"[{profile}]"
    if header in lines:
        begin = lines.index(header)
    elif "[default]" in lines:
        begin = lines.index("[default]")
    else:
        raise ProfileNotFoundError("Section not found.")

    values: dict[str, str] = {}
    for line in lines[begin + 1:]:
        if line.startswith("["):
            break
        name, _, value = line.partition("=")
        values[name.strip()] = value.strip()
    return values


def resolve_credentials(
    region: Optional[str] = None,
    profile: Optional[str] = None,
    env: Optional[Mapping[str, str]] = None,
    cache: Optional[ProfileFileCache] = None,
) -> Credentials:
    """
    Resolve AWS credentials.

    Args:
        region: Explicit region, takes precedence over everything else
        profile: Profile name in the credentials file (defaults to AWS_PROFILE, then "default")
        env: Environment mapping (defaults to os.environ)
        cache: Credentials file cache (defaults to the process-wide cache)

    Returns:
        Complete credentials

    Raises:
        ProfileNotFoundError: If neither the profile nor [default] exists
        IncompleteCredentialsError: If a mandatory field is still missing
        OSError: If the credentials file cannot be read
    """
    env = os.environ if env is None else env
    cache = shared_profile_cache if cache is None else cache

    region = region or env.get("AWS_REGION") or env.get("AWS_DEFAULT_REGION") or None
    access_key_id = env.get("AWS_ACCESS_KEY_ID") or None
    secret_access_key = env.get("AWS_SECRET_ACCESS_KEY") or None
    if region and access_key_id and secret_access_key:
        return Credentials(
            region=region,
            access_key_id=access_key_id,
            secret_access_key=secret_access_key,
            session_token=env.get("AWS_SESSION_TOKEN") or None,
        )

    lines = cache.lines(credentials_file_path(env))
    section = _section(lines, profile or env.get("AWS_PROFILE") or "default")

    region = region or section.get("region") or None
    access_key_id = section.get("aws_access_key_id") or None
    secret_access_key = section.get("aws_secret_access_key") or None
    if not region or not access_key_id or not secret_access_key:
        raise IncompleteCredentialsError("Incomplete AWS credentials file.")

    return Credentials(
        region=region,
        access_key_id=access_key_id,
        secret_access_key=secret_access_key,
        session_token=section.get("aws_session_token") or None,
    )
