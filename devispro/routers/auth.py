# devispro/routers/auth.py
from fastapi import APIRouter

from devispro.schemas import RegisterIn, LoginIn
from devispro.services.user_service import register_user, authenticate, serialize_user

router = APIRouter(tags=["auth"])


@router.post("/register")
def register(payload: RegisterIn):
    token, user = register_user(payload)
    return {"success": True, "token": token, "user": serialize_user(user)}


@router.post("/login")
def login(payload: LoginIn):
    token, user = authenticate(payload.email, payload.password)
    return {"success": True, "token": token, "user": serialize_user(user)}
