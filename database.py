"""
Relational storage for user accounts (SQLAlchemy Core).

The "users" table carries a UNIQUE constraint on email, so duplicate
registrations are rejected by the store itself, not only by a prior lookup.
"""
import logging
from typing import Optional

from sqlalchemy import Column, Integer, MetaData, String, Table, create_engine, insert, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from errors import DuplicateEmailError, InternalError
from schemas import User

logger = logging.getLogger(__name__)

metadata = MetaData()

users = Table(
    "users",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(255), nullable=False),
    Column("email", String(255), nullable=False, unique=True, index=True),
    Column("password", String(255), nullable=False),
)


def make_engine(database_url: str, **kwargs) -> Engine:
    return create_engine(database_url, pool_pre_ping=True, **kwargs)


class UserStore:
    def __init__(self, engine: Engine):
        self.engine = engine

    def create_schema(self) -> None:
        metadata.create_all(self.engine)

    def get_by_email(self, email: str) -> Optional[User]:
        stmt = select(users.c.id, users.c.name, users.c.email, users.c.password).where(users.c.email == email)
        try:
            with self.engine.connect() as conn:
                row = conn.execute(stmt).mappings().first()
        except SQLAlchemyError as e:
            logger.exception("User lookup failed")
            raise InternalError(details=type(e).__name__) from e
        if row is None:
            return None
        return User(**row)

    def create_user(self, name: str, email: str, password_hash: str) -> int:
        stmt = insert(users).values(name=name, email=email, password=password_hash)
        try:
            with self.engine.begin() as conn:
                result = conn.execute(stmt)
                return result.inserted_primary_key[0]
        except IntegrityError as e:
            logger.info(f"Rejected duplicate registration for {email}")
            raise DuplicateEmailError() from e
        except SQLAlchemyError as e:
            logger.exception("User insert failed")
            raise InternalError(details=type(e).__name__) from e

    def dispose(self) -> None:
        self.engine.dispose()
