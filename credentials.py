"""User accounts: registration, login checks and profile lookup."""

import logging
import re

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from errors import Conflict, InternalError, NotFound, Unauthorized, ValidationError
from models import User, db, utcnow
from security import DEFAULT_HASH_METHOD, hash_password, verify_password

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MIN_PASSWORD_LENGTH = 6


def normalize_email(email):
    return email.strip().lower() if isinstance(email, str) else ""


def _field_error(field, message):
    return {"field": field, "message": message}


class CredentialStore:
    """Owns the users table. Email addresses are stored lower-cased."""

    def __init__(self, session=None, hash_method=DEFAULT_HASH_METHOD):
        self.session = session if session is not None else db.session
        self.hash_method = hash_method

    def register(self, email, password, name):
        email = normalize_email(email)
        name = name.strip() if isinstance(name, str) else ""

        errors = []
        if not EMAIL_PATTERN.match(email):
            errors.append(_field_error("email", "A valid email is required"))
        if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
            errors.append(_field_error(
                "password", f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
            ))
        if not name:
            errors.append(_field_error("name", "Name is required"))
        if errors:
            raise ValidationError(details=errors)

        if self._find_by_email(email) is not None:
            raise Conflict("Email already registered")

        user = User(
            email=email,
            password_hash=hash_password(password, method=self.hash_method),
            name=name,
            created_at=utcnow(),
        )
        try:
            self.session.add(user)
            self.session.commit()
        except IntegrityError:
            # lost a race with a concurrent registration of the same email
            self.session.rollback()
            raise Conflict("Email already registered")
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.exception("Registration failed")
            raise InternalError() from exc

        logger.info("Registered user id=%s", user.id)
        return user

    def authenticate(self, email, password):
        email = normalize_email(email)

        errors = []
        if not EMAIL_PATTERN.match(email):
            errors.append(_field_error("email", "A valid email is required"))
        if not isinstance(password, str) or not password:
            errors.append(_field_error("password", "Password is required"))
        if errors:
            raise ValidationError(details=errors)

        user = self._find_by_email(email)
        # Same answer for unknown email and wrong password
        if user is None or not verify_password(password, user.password_hash):
            logger.warning("Failed login attempt")
            raise Unauthorized("Invalid credentials")

        logger.info("User id=%s logged in", user.id)
        return user

    def get_by_id(self, user_id):
        try:
            user = self.session.get(User, user_id)
        except SQLAlchemyError as exc:
            logger.exception("User lookup failed")
            raise InternalError() from exc
        if user is None:
            raise NotFound("User not found")
        return user

    def count(self):
        return self.session.query(User).count()

    def _find_by_email(self, email):
        try:
            return self.session.query(User).filter_by(email=email).first()
        except SQLAlchemyError as exc:
            logger.exception("User lookup failed")
            raise InternalError() from exc
