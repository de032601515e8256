"""
User persistence with cache-aside reads.

Cached records keep the soft-delete marker so a single key serves both the
"active only" and the "include deleted" lookups; filtering happens after the
cache read.
"""

from typing import Any, Dict, Optional
import uuid

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from servicecommon.auth import Role
from servicecommon.cache import CacheGateway
from servicecommon.errors import ConflictError, NotFoundError
from servicecommon.logging import get_logger
from servicecommon.pagination import LIKE_ESCAPE, Page, contains_pattern, offset_for
from userservice.db.models import User, now_utc
from userservice.schemas import UserRecord, UserSummary

USER_TTL = 1800
LIST_TTL = 3600

EMAIL_EXISTS = 'email already exists'


def user_key(user_id: uuid.UUID) -> str:
    return f'user:{user_id}'


def user_email_key(email: str) -> str:
    return f'user:email:{email}'


def user_list_key(page: int, limit: int, search: str, role: Optional[Role]) -> str:
    role_part = role.value if role else ''
    return f'userlist:page:{page}:limit:{limit}:search:{search}:role:{role_part}'


USER_LIST_PATTERN = 'userlist:*'


class UserRepository:
    def __init__(self, db: Session, cache: CacheGateway, ttl: int = USER_TTL, list_ttl: int = LIST_TTL):
        self.db = db
        self.cache = cache
        self.ttl = ttl
        self.list_ttl = list_ttl
        self.logger = get_logger('userservice.repositories.users')

    def _invalidate(self, user_id: uuid.UUID, email: str) -> None:
        self.cache.invalidate(keys=[user_key(user_id), user_email_key(email)], patterns=[USER_LIST_PATTERN])

    def _cache_record(self, record: UserRecord) -> None:
        self.cache.set_model(user_key(record.id), record, self.ttl)
        self.cache.set_model(user_email_key(record.email), record, self.ttl)

    def create(self, name: str, email: str, password_hash: str, role: Role = Role.USER) -> UserRecord:
        user = User(name=name, email=email, password_hash=password_hash, role=role.value)
        self.db.add(user)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise ConflictError(EMAIL_EXISTS)
        self.db.refresh(user)
        self._invalidate(user.id, user.email)
        self.logger.info('User created', user_id=str(user.id))
        return UserRecord.model_validate(user)

    def find_by_id(self, user_id: uuid.UUID, include_deleted: bool = False) -> UserRecord:
        record = self.cache.get_model(user_key(user_id), UserRecord)
        if record is None:
            user = self.db.get(User, user_id)
            if user is None:
                raise NotFoundError()
            record = UserRecord.model_validate(user)
            self._cache_record(record)
        if record.is_deleted and not include_deleted:
            raise NotFoundError()
        return record

    def find_by_email(self, email: str, include_deleted: bool = False) -> UserRecord:
        record = self.cache.get_model(user_email_key(email), UserRecord)
        if record is None:
            user = self.db.execute(select(User).where(User.email == email)).scalar_one_or_none()
            if user is None:
                raise NotFoundError()
            record = UserRecord.model_validate(user)
            self._cache_record(record)
        if record.is_deleted and not include_deleted:
            raise NotFoundError()
        return record

    def update(self, user_id: uuid.UUID, **fields: Any) -> UserRecord:
        user = self.db.get(User, user_id)
        if user is None or user.deleted_at is not None:
            raise NotFoundError()
        for k, v in fields.items():
            setattr(user, k, v.value if isinstance(v, Role) else v)
        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)
        self._invalidate(user.id, user.email)
        return UserRecord.model_validate(user)

    def soft_delete(self, user_id: uuid.UUID) -> UserRecord:
        user = self.db.get(User, user_id)
        if user is None or user.deleted_at is not None:
            raise NotFoundError()
        user.deleted_at = now_utc()
        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)
        self._invalidate(user.id, user.email)
        self.logger.info('User soft-deleted', user_id=str(user.id))
        return UserRecord.model_validate(user)

    def list(self, page: int, limit: int, search: str = '', role: Optional[Role] = None) -> Page[UserSummary]:
        key = user_list_key(page, limit, search, role)
        cached = self.cache.get_model(key, Page[UserSummary])
        if cached is not None:
            return cached

        stmt = select(User).where(User.deleted_at.is_(None))
        if search:
            stmt = stmt.where(User.email.ilike(contains_pattern(search), escape=LIKE_ESCAPE))
        if role is not None:
            stmt = stmt.where(User.role == role.value)
        total = self.db.execute(select(func.count()).select_from(stmt.subquery())).scalar_one()
        rows = self.db.execute(
            stmt.order_by(User.created_at.desc()).offset(offset_for(page, limit)).limit(limit)
        ).scalars().all()

        filters: Dict[str, Any] = {'page': page, 'limit': limit, 'search': search, 'role': role.value if role else None}
        result = Page[UserSummary](total=total, data=[UserSummary.model_validate(u) for u in rows], filter=filters)
        self.cache.set_model(key, result, self.list_ttl)
        return result
