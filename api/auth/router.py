"""
Auth API endpoints: registration, login and logout.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, status

from . import dependencies, schemas, service

router = APIRouter()


@router.post("/users", status_code=status.HTTP_201_CREATED)
async def register(payload: schemas.RegisterRequest) -> schemas.UserResponse:
    return await service.register(payload)


@router.post("/sessions")
async def login(payload: schemas.LoginRequest) -> schemas.SessionResponse:
    return await service.login(payload)


@router.delete("/sessions")
async def logout(access_token: str = Depends(dependencies.get_bearer_token)) -> dict:
    return await service.logout(access_token)
