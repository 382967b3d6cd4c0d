"""FastAPI dependencies for JWT-authenticated endpoints that need no specific permission."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request


async def get_current_user(request: Request) -> int:
    """Require a valid JWT user. Returns user_id.

    Raises HTTPException(401) if no authenticated user.
    """
    user_id: int | None = getattr(request.state, "user_id", None)
    if user_id is None:
        raise HTTPException(status_code=401, detail="Authentication required")
    return user_id


async def get_current_user_type(request: Request) -> str | None:
    return getattr(request.state, "user_type", None)


CurrentUser = Annotated[int, Depends(get_current_user)]
CurrentUserType = Annotated[str | None, Depends(get_current_user_type)]
