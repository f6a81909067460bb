import logging
from typing import Optional

from passlib.context import CryptContext

from database import UserStore
from errors import DuplicateEmailError, InvalidPasswordError, UserNotFoundError, ValidationError
from schemas import LoginRequest, PublicUser, SignupRequest

logger = logging.getLogger(__name__)

BCRYPT_ROUNDS = 10

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=BCRYPT_ROUNDS)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return pwd_context.verify(password, password_hash)
    except (ValueError, TypeError):
        # Unrecognized or corrupt hash in the table
        logger.warning("Stored password hash could not be verified")
        return False


def _missing(*values: Optional[str]) -> bool:
    return any(v is None or not v.strip() for v in values)


def register(store: UserStore, payload: SignupRequest) -> int:
    if _missing(payload.name, payload.email, payload.password):
        raise ValidationError("Name, email, and password are required.")

    # Early exit for the common case; the UNIQUE constraint still decides under races
    if store.get_by_email(payload.email) is not None:
        raise DuplicateEmailError()

    user_id = store.create_user(payload.name, payload.email, hash_password(payload.password))
    logger.info(f"Registered user {user_id} <{payload.email}>")
    return user_id


def login(store: UserStore, payload: LoginRequest) -> PublicUser:
    if _missing(payload.email, payload.password):
        raise ValidationError("Email and password are required.")

    user = store.get_by_email(payload.email)
    if user is None:
        logger.info(f"Login failed, unknown email <{payload.email}>")
        raise UserNotFoundError()

    if not verify_password(payload.password, user.password):
        logger.info(f"Login failed, wrong password for <{payload.email}>")
        raise InvalidPasswordError()

    return user.public()
