from fastapi import APIRouter, Depends, HTTPException, status
from sqlmodel import Session
from app.db.session import get_session
from app.models.user import User
from app.schemas.auth import LoginRequest, LogoutRequest, RefreshRequest, RegisterRequest, TokenResponse
from app.schemas.user import UserOut
from app.services.auth_service import (
    authenticate_user,
    create_user,
    get_current_user,
    get_user_by_email,
    issue_tokens,
    revoke_refresh_token,
    to_user_out,
    validate_refresh_token,
)

router = APIRouter(prefix='/auth', tags=['auth'])


@router.post('/register', response_model=UserOut, status_code=status.HTTP_201_CREATED)
def register(payload: RegisterRequest, session: Session = Depends(get_session)) -> UserOut:
    if get_user_by_email(session, payload.email):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='Email already registered')
    user = create_user(session, payload.email, payload.password, payload.display_name)
    return to_user_out(user)


@router.post('/login', response_model=TokenResponse)
def login(payload: LoginRequest, session: Session = Depends(get_session)) -> TokenResponse:
    user = authenticate_user(session, payload.email, payload.password)
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail='Invalid email or password')
    access_token, refresh_token = issue_tokens(session, user.id)
    return TokenResponse(access_token=access_token, refresh_token=refresh_token)


@router.post('/refresh', response_model=TokenResponse)
def refresh(payload: RefreshRequest, session: Session = Depends(get_session)) -> TokenResponse:
    user_id = validate_refresh_token(session, payload.refresh_token)
    revoke_refresh_token(session, payload.refresh_token)
    access_token, refresh_token = issue_tokens(session, user_id)
    return TokenResponse(access_token=access_token, refresh_token=refresh_token)


@router.post('/logout')
def logout(payload: LogoutRequest, session: Session = Depends(get_session)) -> dict:
    revoke_refresh_token(session, payload.refresh_token)
    return {'status': 'ok'}


@router.get('/me', response_model=UserOut)
def me(user: User = Depends(get_current_user)) -> UserOut:
    return to_user_out(user)
