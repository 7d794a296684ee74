from typing import Literal

from pydantic import BaseModel, EmailStr, Field


class UserBootstrapIn(BaseModel):
    email: EmailStr
    display_name: str | None = Field(default=None, max_length=200)
    role: Literal["buyer", "dealer", "tipper", "admin"] = "buyer"


class UserBootstrapOut(BaseModel):
    user_id: str
    role: str
    api_key: str


class UserRotateKeyOut(BaseModel):
    user_id: str
    api_key: str
