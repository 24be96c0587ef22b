# backend/farmflow/apps/accounts/router_public.py

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from farmflow.database import get_db
from farmflow.security import get_current_active_user
from . import models, permissions, schemas, services

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post(
    "/login",
    response_model=schemas.Token,
    summary="Login with username and password",
)
def login(
    payload: schemas.LoginRequest,
    db: Session = Depends(get_db),
):
    try:
        user = services.authenticate_user(db=db, login_req=payload)
    except services.AuthenticationError as exc:
        logger.info("Failed login for %s", payload.username)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc) or "Incorrect username or password.",
        )

    token, expires_in = services.issue_access_token_for_user(user)
    return schemas.Token(
        access_token=token,
        expires_in=expires_in,
        role=user.role,
        tenant_id=user.tenant_id,
    )


@router.get("/me", response_model=schemas.UserRead)
def read_me(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_active_user),
):
    return schemas.UserRead(
        id=current_user.id,
        tenant_id=current_user.tenant_id,
        username=current_user.username,
        role=current_user.role,
        role_label=permissions.role_label(current_user.role),
        is_active=current_user.is_active,
        created_at=current_user.created_at,
        last_login_at=current_user.last_login_at,
        enabled_modules=services.get_enabled_modules(db, current_user),
    )
