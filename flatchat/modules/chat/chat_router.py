"""
chat_router.py

HTTP endpoints for the chat room:

    POST /api/login    {"nick": "..."}   -> sets the session cookie
    POST /api/post     {"text": "..."}
    GET|POST /api/poll
    POST /api/logout

The session token is read from the session cookie, or from the
X-Session-Token header for clients that do not keep cookies.
ChatError -> JSON error mapping lives in chat_server.
"""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Request, Response
from pydantic import BaseModel

from flatchat.core.config import SESSION_COOKIE_NAME, SESSION_HEADER_NAME
from flatchat.core.observability import get_logger
from flatchat.modules.chat.chat_service import ChatService

log = get_logger("api")
router = APIRouter(prefix="/api")


# =========================
# API models
# =========================

class LoginRequest(BaseModel):
    nick: str = ""


class LoginResponse(BaseModel):
    ok: bool = True
    token: str
    nick: str
    joined_at: int


class PostRequest(BaseModel):
    text: str = ""


class OkResponse(BaseModel):
    ok: bool = True


class ChatMessageOut(BaseModel):
    ts: int
    nick: str
    text: str


class PollResponse(BaseModel):
    ok: bool = True
    messages: List[ChatMessageOut]
    online_count: int
    online_users: List[str]


# =========================
# Dependencies
# =========================

def get_chat_service(request: Request) -> ChatService:
    return request.app.state.chat_service


def get_session_token(request: Request) -> Optional[str]:
    token = request.cookies.get(SESSION_COOKIE_NAME) or request.headers.get(SESSION_HEADER_NAME)
    token = (token or "").strip()
    return token or None


# =========================
# Endpoints
# =========================

@router.post("/login", response_model=LoginResponse)
def login(
    req: LoginRequest,
    response: Response,
    service: ChatService = Depends(get_chat_service),
    token: Optional[str] = Depends(get_session_token),
):
    # A browser logging in again with a live cookie would otherwise leave
    # a ghost entry behind until it expired.
    session = service.login(req.nick, replaces=token)
    response.set_cookie(SESSION_COOKIE_NAME, session.token, httponly=True, samesite="lax")
    log.info(f"Login '{session.nickname}'")
    return LoginResponse(token=session.token, nick=session.nickname, joined_at=session.joined_at)


@router.post("/post", response_model=OkResponse)
def post_message(
    req: PostRequest,
    service: ChatService = Depends(get_chat_service),
    token: Optional[str] = Depends(get_session_token),
):
    service.post(token, req.text)
    return OkResponse()


@router.api_route("/poll", methods=["GET", "POST"], response_model=PollResponse)
def poll(
    service: ChatService = Depends(get_chat_service),
    token: Optional[str] = Depends(get_session_token),
):
    result = service.poll(token)
    return PollResponse(**result.to_dict())


@router.post("/logout", response_model=OkResponse)
def logout(
    response: Response,
    service: ChatService = Depends(get_chat_service),
    token: Optional[str] = Depends(get_session_token),
):
    left = service.logout(token)
    if left is not None:
        log.info(f"Logout '{left.nickname}'")
    response.delete_cookie(SESSION_COOKIE_NAME)
    return OkResponse()
