import logging
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from carebook.config.database import transactional
from carebook.repositories import UserRepository
from carebook.repositories.records import UserRecord
from carebook.schemas.user import UserCreate
from carebook.utils.errors import DuplicateUser, UserNotFound

logger = logging.getLogger(__name__)


class UserService:
    @staticmethod
    def create_user(db: Session, user_data: UserCreate) -> UserRecord:
        users = UserRepository(db)
        if users.get_by_email(user_data.email):
            raise DuplicateUser(f"User with email {user_data.email} already exists")

        try:
            with transactional(db):
                user = users.insert(user_data.full_name, user_data.email, user_data.phone_number)
        except IntegrityError:
            raise DuplicateUser(f"User with email {user_data.email} already exists")

        logger.info(f"✓ Created user {user.id}")
        return user

    @staticmethod
    def get_user_by_id(db: Session, user_id: str) -> UserRecord:
        user = UserRepository(db).get(user_id)
        if not user:
            raise UserNotFound(f"User with ID {user_id} not found")
        return user
