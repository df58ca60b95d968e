"""User repository - Database operations for patient accounts"""

from typing import Optional

from sqlalchemy.orm import Session

from carebook.models import User
from carebook.repositories.records import UserRecord


class UserRepository:
    """Repository for user database operations"""

    def __init__(self, db: Session):
        self.db = db

    def get(self, user_id: str) -> Optional[UserRecord]:
        """Get user by ID"""
        row = self.db.query(User).filter(User.id == user_id).first()
        return UserRecord.from_row(row) if row else None

    def get_by_email(self, email: str) -> Optional[UserRecord]:
        """Get user by email"""
        row = self.db.query(User).filter(User.email == email).first()
        return UserRecord.from_row(row) if row else None

    def insert(self, full_name: str, email: str, phone_number: Optional[str] = None) -> UserRecord:
        row = User(full_name=full_name, email=email, phone_number=phone_number)
        self.db.add(row)
        self.db.flush()
        return UserRecord.from_row(row)
