import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from src.api.auth import PasswordHasher
from src.api.errors import Conflict, InvalidCredentials, ValidationError
from src.api.models import User

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


class CredentialStore:
    """
    Registration and login over the users table.

    Emails are stored lowercased so the unique index enforces
    case-insensitive uniqueness.
    """

    def __init__(self, db: Session, hasher: PasswordHasher):
        self.db = db
        self.hasher = hasher

    def find_by_email(self, email: str) -> Optional[User]:
        return self.db.query(User).filter(User.email == normalize_email(email)).first()

    def get(self, user_id: str) -> Optional[User]:
        return self.db.query(User).filter(User.id == user_id).first()

    # PUBLIC_INTERFACE
    def register(self, name: str, email: str, password: str) -> User:
        """
        Create a user with a hashed password.

        Raises:
            ValidationError if name, email or password is blank.
            Conflict if the email (ignoring case) is already registered.
        """
        name = (name or "").strip()
        email = normalize_email(email)
        if not name or not email or not password:
            raise ValidationError("All fields required")

        if self.find_by_email(email) is not None:
            raise Conflict()

        user = User(name=name, email=email, password_hash=self.hasher.hash(password))
        self.db.add(user)
        try:
            self.db.commit()
        except IntegrityError:
            # lost a race with a concurrent registration of the same email
            self.db.rollback()
            raise Conflict()
        self.db.refresh(user)
        logger.info("registered user %s", user.id)
        return user

    # PUBLIC_INTERFACE
    def authenticate(self, email: str, password: str) -> User:
        """
        Resolve a user from login credentials.

        Raises:
            InvalidCredentials for an unknown email or a wrong password alike.
        """
        user = self.find_by_email(email)
        if user is None:
            # unknown emails cost one verify, same as a wrong password
            self.hasher.verify_dummy(password)
            logger.info("login rejected")
            raise InvalidCredentials()
        if not self.hasher.verify(password, user.password_hash):
            logger.info("login rejected")
            raise InvalidCredentials()
        logger.info("login succeeded for user %s", user.id)
        return user

