from pydantic import BaseModel, Field, EmailStr
from typing import Optional


class UserCreate(BaseModel):
    full_name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    phone_number: Optional[str] = Field(None, max_length=20)


class UserResponse(BaseModel):
    id: str
    full_name: str
    email: str
    phone_number: Optional[str] = None

    class Config:
        from_attributes = True
