import logging
import re

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, field_validator

from school_admin.auth import jwt_handler
from school_admin.auth.dependencies import (
    CurrentUser,
    get_current_user,
    get_optional_user,
    get_user_store,
    require_roles,
)
from school_admin.auth.permissions import ROLES
from school_admin.core.exceptions import AuthenticationError, DuplicateKeyError
from school_admin.store.user_store import UserStore

logger = logging.getLogger(__name__)

router = APIRouter(tags=['auth'])

USERNAME_PATTERN = re.compile(r'^[A-Za-z0-9_]{3,50}$')
EMAIL_PATTERN = re.compile(r'^[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}$')
PHONE_PATTERN = re.compile(r'^\+?[0-9 ()-]{7,20}$')
MIN_PASSWORD_LENGTH = 8


def validate_password_strength(value: str) -> str:
    if len(value) < MIN_PASSWORD_LENGTH:
        raise ValueError(f'Password must be at least {MIN_PASSWORD_LENGTH} characters long.')
    if not re.search(r'[A-Z]', value):
        raise ValueError('Password must contain at least one uppercase letter.')
    if not re.search(r'[a-z]', value):
        raise ValueError('Password must contain at least one lowercase letter.')
    if not re.search(r'[0-9]', value):
        raise ValueError('Password must contain at least one number.')
    return value


class LoginRequest(BaseModel):
    username: str
    password: str

    @field_validator('username')
    @classmethod
    def normalize_username(cls, value: str) -> str:
        return value.strip()


class LoginResponse(BaseModel):
    token: str
    token_type: str = 'bearer'
    expires_in: int
    user: CurrentUser


class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: str

    @field_validator('new_password')
    @classmethod
    def validate_new_password(cls, value: str) -> str:
        return validate_password_strength(value)


class RegisterRequest(BaseModel):
    username: str
    email: str
    password: str
    full_name: str
    role: str
    phone: str | None = None

    @field_validator('username')
    @classmethod
    def validate_username(cls, value: str) -> str:
        normalized = value.strip()
        if not USERNAME_PATTERN.match(normalized):
            raise ValueError('Username must be at least 3 characters of letters, numbers and underscores.')
        return normalized

    @field_validator('email')
    @classmethod
    def validate_email(cls, value: str) -> str:
        normalized = value.strip().lower()
        if not EMAIL_PATTERN.match(normalized):
            raise ValueError('Invalid email format.')
        return normalized

    @field_validator('password')
    @classmethod
    def validate_password(cls, value: str) -> str:
        return validate_password_strength(value)

    @field_validator('full_name')
    @classmethod
    def validate_full_name(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Full name is required.')
        return normalized

    @field_validator('role')
    @classmethod
    def validate_role(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in ROLES:
            raise ValueError('Invalid role.')
        return normalized

    @field_validator('phone')
    @classmethod
    def validate_phone(cls, value: str | None) -> str | None:
        if value is None or not value.strip():
            return None
        normalized = value.strip()
        if not PHONE_PATTERN.match(normalized):
            raise ValueError('Invalid phone number format.')
        return normalized


def to_current_user(user: dict) -> CurrentUser:
    return CurrentUser(
        id=user['id'],
        username=user['username'],
        email=user['email'],
        full_name=user.get('full_name'),
        role=user['role'],
    )


@router.post('/login', response_model=LoginResponse)
def login(payload: LoginRequest, users: UserStore = Depends(get_user_store)):
    user = users.authenticate(payload.username, payload.password)
    if user is None:
        raise AuthenticationError(
            'Invalid username or password',
            error='Invalid credentials',
            reason='invalid_credentials',
        )
    if not user['is_active']:
        raise AuthenticationError('Your account has been disabled', error='Account disabled', reason='disabled')

    logger.info('User %s logged in', user['id'])
    return LoginResponse(
        token=jwt_handler.create_access_token(subject=user['id']),
        expires_in=jwt_handler.expires_in_seconds(),
        user=to_current_user(user),
    )


@router.post('/logout')
def logout(current_user: CurrentUser = Depends(get_current_user)):
    # Tokens are stateless; the client discards its copy.
    logger.info('User %s logged out', current_user.id)
    return {'message': 'Logout successful'}


@router.get('/me', response_model=CurrentUser)
def me(current_user: CurrentUser = Depends(get_current_user)):
    return current_user


@router.get('/verify')
def verify(current_user: CurrentUser | None = Depends(get_optional_user)):
    if current_user is None:
        return {'valid': False}
    return {'valid': True, 'user': current_user.model_dump(by_alias=True)}


@router.post('/change-password')
def change_password(
    payload: ChangePasswordRequest,
    current_user: CurrentUser = Depends(get_current_user),
    users: UserStore = Depends(get_user_store),
):
    users.change_password(current_user.id, payload.current_password, payload.new_password)
    return {'message': 'Password changed successfully'}


@router.post('/register', status_code=status.HTTP_201_CREATED)
def register(
    payload: RegisterRequest,
    admin: CurrentUser = Depends(require_roles('admin')),
    users: UserStore = Depends(get_user_store),
):
    if users.username_exists(payload.username) or users.email_exists(payload.email):
        raise DuplicateKeyError('Username or email already exists')

    user = users.create({**payload.model_dump(), 'is_active': True})
    logger.info('User %s registered by %s', user['id'], admin.id)
    return user
