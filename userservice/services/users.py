from typing import Optional
import uuid

from servicecommon.auth import Principal, Role
from servicecommon.errors import ConflictError, ForbiddenError, InvalidInputError, NotFoundError
from servicecommon.logging import get_logger
from servicecommon.pagination import Page, normalize_page
from userservice.repositories.users import EMAIL_EXISTS, UserRepository
from userservice.schemas import CurrentUser, RegisteredUser, RoleUpdated, UserStatus, UserSummary
from userservice.security.passwords import hash_password, verify_password

CANT_UPDATE_SELF = 'cannot update your own account'
CANT_DELETE_SELF = 'cannot delete your own account'
WRONG_PASSWORD = 'current password does not match'

DEFAULT_LIST_LIMIT = 10
MAX_LIST_LIMIT = 100

logger = get_logger('userservice.services.users')


def normalize_email(email: str) -> str:
    return email.strip().lower()


class UserService:
    def __init__(self, users: UserRepository):
        self.users = users

    def register(self, name: str, email: str, password: str) -> RegisteredUser:
        email = normalize_email(email)
        try:
            self.users.find_by_email(email, include_deleted=True)
        except NotFoundError:
            pass
        else:
            raise ConflictError(EMAIL_EXISTS)

        record = self.users.create(name=name.strip(), email=email, password_hash=hash_password(password))
        return RegisteredUser.model_validate(record)

    def get_current_user(self, user_id: uuid.UUID) -> CurrentUser:
        if user_id == uuid.UUID(int=0):
            raise NotFoundError()
        record = self.users.find_by_id(user_id, include_deleted=True)
        return CurrentUser(
            id=record.id,
            name=record.name,
            email=record.email,
            status=UserStatus.INACTIVE if record.is_deleted else UserStatus.ACTIVE,
            created_at=record.created_at,
        )

    def list_users(self, page: Optional[int], limit: Optional[int], search: str = '',
                   role: Optional[Role] = None) -> Page[UserSummary]:
        page = normalize_page(page)
        if limit is None or limit < 1:
            limit = DEFAULT_LIST_LIMIT
        elif limit > MAX_LIST_LIMIT:
            limit = MAX_LIST_LIMIT
        return self.users.list(page=page, limit=limit, search=(search or '').strip(), role=role)

    def update_role(self, principal: Principal, user_id: uuid.UUID, role: Role) -> RoleUpdated:
        if principal.user_id == user_id:
            raise InvalidInputError(CANT_UPDATE_SELF)
        record = self.users.update(user_id, role=role)
        logger.info('User role updated', user_id=str(user_id), role=record.role.value, by=str(principal.user_id))
        return RoleUpdated(id=record.id, email=record.email, role=record.role, updated_at=record.updated_at)

    def change_password(self, principal: Principal, current_password: str, new_password: str) -> None:
        record = self.users.find_by_id(principal.user_id)
        if not verify_password(current_password, record.password_hash):
            raise ForbiddenError(WRONG_PASSWORD)
        self.users.update(record.id, password_hash=hash_password(new_password))

    def delete_user(self, principal: Principal, user_id: uuid.UUID) -> None:
        if principal.user_id == user_id:
            raise InvalidInputError(CANT_DELETE_SELF)
        self.users.soft_delete(user_id)
        logger.info('User deleted', user_id=str(user_id), by=str(principal.user_id))
