from __future__ import annotations

from pydantic import BaseModel, Field


class RegisterRequest(BaseModel):
    email: str = Field(..., min_length=3)

    model_config = {"json_schema_extra": {"example": {"email": "saver@example.com"}}}


class TokenResponse(BaseModel):
    user_id: str
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int


class RefreshRequest(BaseModel):
    refresh_token: str

    model_config = {"json_schema_extra": {"example": {"refresh_token": "<jwt>"}}}
