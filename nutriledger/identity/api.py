# -*- coding: utf-8 -*-
"""Identity — API endpoints (register with onboarding, login)."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from ..context import LedgerContext
from ..deps import get_context
from ..onboarding.models import AuthResponse, LoginRequest, RegisterRequest, UserPublic
from ..onboarding.storage import fetch_profile, register_with_onboarding
from .security import get_current_user

router = APIRouter(prefix="/api/auth", tags=["Auth"])


def _user_public(row: dict) -> UserPublic:
    return UserPublic(id=row["id"], email=row["email"], created_at=row["created_at"])


@router.post("/register", response_model=AuthResponse, summary="Create an account from onboarding answers")
async def register(request: RegisterRequest, ctx: LedgerContext = Depends(get_context)):
    user_id, profile, _ = await register_with_onboarding(
        ctx.repository,
        ctx.identity,
        email=request.email,
        password=request.password,
        answers=request.onboarding,
    )
    user = ctx.identity.get_user(user_id)
    await ctx.load_user(user_id)
    return AuthResponse(user=_user_public(user), token=ctx.identity.issue_token(user), profile=profile)


@router.post("/login", response_model=AuthResponse, summary="Login")
async def login(request: LoginRequest, ctx: LedgerContext = Depends(get_context)):
    user = ctx.identity.sign_in(request.email, request.password)
    await ctx.load_user(user["id"])
    return AuthResponse(
        user=_user_public(user),
        token=ctx.identity.issue_token(user),
        profile=fetch_profile(ctx.repository, user["id"]),
    )


@router.get("/me", response_model=UserPublic, summary="Get current user")
def me(user: dict = Depends(get_current_user), ctx: LedgerContext = Depends(get_context)):
    return _user_public(ctx.identity.get_user(user["id"]) or user)
