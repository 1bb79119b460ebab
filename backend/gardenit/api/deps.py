"""Shared API dependencies."""
from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from gardenit.database import get_db
from gardenit.models.user import User

__all__ = ["get_db", "get_current_user"]


def get_current_user(
    x_user_id: str | None = Header(None),
    db: Session = Depends(get_db),
) -> User:
    """Resolve the user authenticated by the upstream auth layer.
    
    The auth proxy forwards the verified user id in ``X-User-Id``.
    """
    if not x_user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    user = db.query(User).filter(User.id == x_user_id).first()
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    return user
