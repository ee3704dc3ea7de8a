from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from school_admin.auth.dependencies import CurrentUser, get_user_store, require_roles
from school_admin.core.exceptions import NotFoundError, ValidationError
from school_admin.store.user_store import UserStore

router = APIRouter(tags=['users'])

MAX_PAGE_SIZE = 100


class UserStatusRequest(BaseModel):
    is_active: bool


@router.get('')
def list_users(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=MAX_PAGE_SIZE),
    role: str | None = None,
    is_active: bool | None = None,
    search: str | None = None,
    _current_user: CurrentUser = Depends(require_roles('admin')),
    users: UserStore = Depends(get_user_store),
):
    filters = {'role': role, 'is_active': is_active, 'search': search}
    return users.get_all_users(page=page, limit=limit, filters=filters)


@router.get('/{user_id}')
def get_user(
    user_id: str,
    _current_user: CurrentUser = Depends(require_roles('admin', 'head_teacher')),
    users: UserStore = Depends(get_user_store),
):
    profile = users.get_profile(user_id)
    if profile is None:
        raise NotFoundError('User not found')
    return profile


@router.patch('/{user_id}/status')
def set_user_status(
    user_id: str,
    payload: UserStatusRequest,
    current_user: CurrentUser = Depends(require_roles('admin')),
    users: UserStore = Depends(get_user_store),
):
    if user_id == current_user.id and not payload.is_active:
        raise ValidationError('You cannot deactivate your own account')

    user = users.set_active_status(user_id, payload.is_active)
    if user is None:
        raise NotFoundError('User not found')
    return user
