"""Boundary protocols for the auth and persistence collaborators.

The grader never owns user accounts or storage. It asks an ``IdentityResolver``
who sent a bearer token and hands finished results to a ``ResultSink``. Both
are attached to ``app.state`` by whoever embeds the API.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Protocol

from chartexam.exceptions import AuthenticationError
from chartexam.logging import get_logger

logger = get_logger(__name__)


class IdentityResolver(Protocol):
    """Maps a bearer token to a verified user id, or None when the token is not valid."""

    def resolve(self, token: str) -> str | None: ...


class ResultSink(Protocol):
    """Accepts ``{userId, testType, score, totalPoints, details}`` records."""

    async def save(self, record: dict[str, Any]) -> None: ...


class StaticTokenResolver:
    """In-memory token table, for local runs and tests."""

    def __init__(self, tokens: Mapping[str, str]) -> None:
        self._tokens = dict(tokens)

    def resolve(self, token: str) -> str | None:
        return self._tokens.get(token)


class LoggingResultSink:
    """Sink that only logs results; used when no persistence collaborator is wired."""

    async def save(self, record: dict[str, Any]) -> None:
        logger.info(
            "result_recorded",
            user_id=record.get("userId"),
            test_type=record.get("testType"),
            score=record.get("score"),
            total_points=record.get("totalPoints"),
        )


def identify(authorization: str | None, resolver: IdentityResolver | None) -> str | None:
    """Resolve the caller from an Authorization header.

    No header, or no resolver configured, means an anonymous caller.

    Raises:
        AuthenticationError: If a header is present but the token is rejected.
    """
    if not authorization or resolver is None:
        return None

    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise AuthenticationError("Authorization header must be 'Bearer <token>'")

    user_id = resolver.resolve(token.strip())
    if user_id is None:
        raise AuthenticationError("Invalid or expired token")
    return user_id


async def persist_result(sink: ResultSink, record: dict[str, Any]) -> None:
    """Hand a result to the sink. Failures are logged and never reach the caller."""
    try:
        await sink.save(record)
    except Exception as e:
        logger.error(
            "result_persist_failed",
            user_id=record.get("userId"),
            test_type=record.get("testType"),
            error=str(e),
        )
