# asclepius/routes/auth.py
from fastapi import APIRouter, Depends, Form
from fastapi.responses import JSONResponse
from fastapi.security import OAuth2PasswordRequestForm

from asclepius.auth import IdentityProvider
from asclepius.context import SessionContext
from asclepius.db import get_db
from asclepius.deps import get_identity, get_session
from asclepius.schemas.directory import Me, TokenOut
from asclepius.services import accounts

router = APIRouter(prefix="/auth", tags=["auth"])


# ---------- Registration ----------
@router.post("/register/athlete", status_code=201)
async def register_athlete(
    name: str = Form(""),
    email: str = Form(""),
    password: str = Form(""),
    age: str = Form(""),
    sport: str = Form(""),
    identity: IdentityProvider = Depends(get_identity),
):
    uid = await accounts.register_athlete(get_db(), identity, name, email, password, age, sport)
    return {"message": "Athlete registered", "uid": uid}


@router.post("/register/physio", status_code=201)
async def register_physio(
    name: str = Form(""),
    email: str = Form(""),
    password: str = Form(""),
    specialization: str = Form(""),
    license_number: str = Form(""),
    identity: IdentityProvider = Depends(get_identity),
):
    uid = await accounts.register_physio(get_db(), identity, name, email, password, specialization, license_number)
    return {"message": "Physiotherapist registered", "uid": uid}


# ---------- Login / logout ----------
@router.post("/token", response_model=TokenOut)
async def login(
    form_data: OAuth2PasswordRequestForm = Depends(),
    identity: IdentityProvider = Depends(get_identity),
):
    ctx, token = await accounts.login(get_db(), identity, form_data.username, form_data.password)

    # JSON for API clients, cookie for browser sessions
    resp = JSONResponse(TokenOut(access_token=token, role=ctx.role, uid=ctx.uid).model_dump())
    resp.set_cookie(key="token", value=token, httponly=True, samesite="lax")
    return resp


@router.post("/logout")
async def logout(
    ctx: SessionContext = Depends(get_session),
    identity: IdentityProvider = Depends(get_identity),
):
    await accounts.logout(get_db(), identity, ctx)
    resp = JSONResponse({"message": "Logged out"})
    resp.delete_cookie("token")
    return resp


@router.get("/me", response_model=Me)
async def me(ctx: SessionContext = Depends(get_session)):
    return await accounts.profile(get_db(), ctx)
