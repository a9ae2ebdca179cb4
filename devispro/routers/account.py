# devispro/routers/account.py
from fastapi import APIRouter, Depends

from devispro.dependencies import get_current_user
from devispro.models import User
from devispro.services.user_service import serialize_user

router = APIRouter(tags=["account"])


@router.get("/user")
def current_user(user: User = Depends(get_current_user)):
    return {"success": True, "user": serialize_user(user)}


# alias conservé pour l'ancien front
@router.get("/me")
def me(user: User = Depends(get_current_user)):
    return {"success": True, "user": serialize_user(user)}


@router.get("/credits")
def credits(user: User = Depends(get_current_user)):
    return {
        "success": True,
        "credits": user.credits,
        "subscriptionTier": user.subscription_tier,
        "unlimited": user.unlimited_credits,
    }
