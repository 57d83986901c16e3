"""Connection resolution — turns --profile / --endpoint into an engine configuration."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

import boto3
import botocore.session
from botocore.exceptions import BotoCoreError, ProfileNotFound
import structlog

logger = structlog.get_logger(__name__)


class ConnectionConfigError(RuntimeError):
    """The requested profile or endpoint could not be resolved."""


@dataclass(frozen=True)
class ConnectionConfig:
    """Either an explicit ``endpoint`` or AWS ``credentials`` for a profile.

    ``credentials`` is a boto3 session; credentials inside it are resolved
    lazily by the engine on first use.
    """

    endpoint: Optional[str] = None
    credentials: Optional[boto3.Session] = None
    profile: Optional[str] = None
    role_arn: Optional[str] = None

    def describe(self) -> list[tuple[str, str]]:
        """Label/value pairs shown under the startup "Using:" heading."""
        rows: list[tuple[str, str]] = []
        if self.credentials is not None:
            rows.append(("profile", self.profile or "default"))
            if self.role_arn:
                rows.append(("Role", self.role_arn))
        if self.endpoint:
            rows.append(("Endpoint", self.endpoint))
        return rows


def _scoped_config(core: Any) -> dict[str, Any]:
    try:
        return dict(core.get_scoped_config())
    except ProfileNotFound:
        raise
    except BotoCoreError as e:
        logger.debug("connection.scoped_config_unreadable", error=str(e))
        return {}


def resolve_connection(
    profile: Optional[str] = None, endpoint: Optional[str] = None
) -> ConnectionConfig:
    """Build the connection configuration used for the whole session.

    An endpoint wins over a profile. Without an endpoint the named profile
    (or the default credential chain when *profile* is None) is loaded from
    the shared AWS config files.
    """
    if endpoint:
        logger.debug("connection.endpoint", endpoint=endpoint)
        return ConnectionConfig(endpoint=endpoint)

    core = botocore.session.Session(profile=profile)
    try:
        scoped = _scoped_config(core)
        session = boto3.Session(botocore_session=core)
    except ProfileNotFound as e:
        raise ConnectionConfigError(str(e)) from e

    logger.debug("connection.profile", profile=profile or "default")
    return ConnectionConfig(
        credentials=session,
        profile=profile or session.profile_name,
        role_arn=scoped.get("role_arn"),
    )
