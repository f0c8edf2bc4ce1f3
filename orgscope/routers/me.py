from __future__ import annotations

from fastapi import APIRouter, Depends

from orgscope.models.security import User
from orgscope.rbac.context import UserContext
from orgscope.schemas.security import UserContextOut
from orgscope.security.dependencies import get_current_user, get_user_context

router = APIRouter(tags=["me"])


@router.get("/me", response_model=UserContextOut)
def me(
    user: User = Depends(get_current_user),
    context: UserContext = Depends(get_user_context),
) -> UserContextOut:
    return UserContextOut(email=user.email, **context.to_dict())
