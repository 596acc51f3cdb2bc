# vault/api/users.py

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel

from vault.api.deps import get_store
from vault.core.errors import Conflict, MalformedInput, StoreError
from vault.core.rate_limit import AUTH_LIMIT, limiter
from vault.core.user import authenticate, register_user
from vault.infra.log_store import LogStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users")


class CredentialsSchema(BaseModel):
    username: str
    password: str


@router.post("/signup", status_code=201)
@limiter.limit(AUTH_LIMIT)
def signup(request: Request, payload: CredentialsSchema, store: LogStore = Depends(get_store)):
    try:
        register_user(store, payload.username, payload.password)
        return {"message": "User created successfully"}
    except MalformedInput as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Conflict:
        raise HTTPException(status_code=409, detail="Username already exists")
    except StoreError as e:
        logger.error(f"Signup failed: {e}")
        raise HTTPException(status_code=500, detail="Internal Server Error")


@router.post("/login")
@limiter.limit(AUTH_LIMIT)
def login(request: Request, payload: CredentialsSchema, store: LogStore = Depends(get_store)):
    try:
        user = authenticate(store, payload.username, payload.password)
    except StoreError as e:
        logger.error(f"Login failed: {e}")
        raise HTTPException(status_code=500, detail="Internal Server Error")

    if user is None:
        logger.info(f"Rejected login for {payload.username}")
        raise HTTPException(status_code=401, detail="Invalid username or password")

    return {"message": "Login successful", "user": user}


@router.get("")
def list_users(store: LogStore = Depends(get_store)):
    try:
        return store.list_users()
    except StoreError as e:
        logger.error(f"List users failed: {e}")
        raise HTTPException(status_code=500, detail="Internal Server Error")
