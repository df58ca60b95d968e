from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from carebook.config.database import get_db
from carebook.schemas.user import UserCreate, UserResponse
from carebook.services.user_service import UserService

router = APIRouter(prefix="/users", tags=["Users"])

@router.post("/", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def create_user(user: UserCreate, db: Session = Depends(get_db)):
    """Register a patient or doctor account"""
    return UserService.create_user(db, user)

@router.get("/{user_id}", response_model=UserResponse)
def get_user(user_id: str, db: Session = Depends(get_db)):
    """Get user by ID"""
    return UserService.get_user_by_id(db, user_id)
