"""Session-aware dependencies for member APIs."""

from __future__ import annotations

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from pegplug_api.api.errors import http_error
from pegplug_api.db.session import get_session
from pegplug_api.domain.errors import RewardError
from pegplug_api.models.user import User
from pegplug_api.services.rewards.membership import MembershipService


MAX_USER_ID_LENGTH = 64


async def require_member_session(
    session_user: str | None = Header(None, alias="X-Session-User"),
    db: AsyncSession = Depends(get_session),
) -> User:
    """Resolve the authenticated user from forwarded session headers.

    The user row is created on first touch and the daily spin allotment is
    refreshed before the endpoint runs.
    """

    if not session_user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing session user context",
        )

    user_id = session_user.strip()
    if not user_id or len(user_id) > MAX_USER_ID_LENGTH:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid session user identifier",
        )

    try:
        user = await MembershipService(db).touch(user_id)
        await db.commit()
    except RewardError as exc:
        raise http_error(exc) from exc
    return user
