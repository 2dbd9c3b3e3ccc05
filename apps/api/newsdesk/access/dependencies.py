from __future__ import annotations

import logging
from collections.abc import Callable

from fastapi import Depends, HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from newsdesk.access.cache import AccessCache, get_access_cache
from newsdesk.access.evaluator import has_menu_access, has_permission
from newsdesk.core.auth import AuthUser, get_current_user
from newsdesk.core.database import get_db


logger = logging.getLogger("newsdesk.access")


def require_permission(permission_slug: str) -> Callable[..., AuthUser]:
    """Route guard: 403 unless the caller holds ``permission_slug``.

    Store failures deny access instead of surfacing a 500.
    """

    def checker(
        user: AuthUser = Depends(get_current_user),
        db: Session = Depends(get_db),
        cache: AccessCache = Depends(get_access_cache),
    ) -> AuthUser:
        try:
            allowed = has_permission(db, cache, user.sub, permission_slug)
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error(
                "authz.store_error",
                exc_info=True,
                extra={"user_id": user.sub, "permission": permission_slug, "error": str(exc)},
            )
            allowed = False

        if not allowed:
            logger.warning("authz.denied", extra={"user_id": user.sub, "permission": permission_slug})
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Missing permission: {permission_slug}",
            )
        return user

    return checker


def require_menu(menu_slug: str) -> Callable[..., AuthUser]:
    def checker(
        user: AuthUser = Depends(get_current_user),
        db: Session = Depends(get_db),
        cache: AccessCache = Depends(get_access_cache),
    ) -> AuthUser:
        try:
            allowed = has_menu_access(db, cache, user.sub, menu_slug)
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error(
                "authz.store_error",
                exc_info=True,
                extra={"user_id": user.sub, "menu": menu_slug, "error": str(exc)},
            )
            allowed = False

        if not allowed:
            logger.warning("authz.denied", extra={"user_id": user.sub, "menu": menu_slug})
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Missing menu access: {menu_slug}",
            )
        return user

    return checker
