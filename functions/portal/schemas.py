"""
Pydantic schemas for the portal API.
"""

from __future__ import annotations

from typing import Dict, Literal, Optional

from pydantic import BaseModel, Field, RootModel, StrictStr, model_validator


class LoginRequest(BaseModel):
    # The dashboard login form posts ``email``; API clients may send ``username``.
    email: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None

    @property
    def identifier(self) -> Optional[str]:
        # Stripped like CreateUserRequest.username.
        for value in (self.username, self.email):
            if value and value.strip():
                return value.strip()
        return None


class LoginResponse(BaseModel):
    success: Literal[True] = True
    message: str = "Login successful"


class CreateUserRequest(BaseModel):
    # Usernames are addressed as a single path segment, so "/" is refused.
    username: str = Field(..., min_length=1, max_length=128, pattern=r"^[^/]+$")
    password: str = Field(..., min_length=1, max_length=1024)

    @model_validator(mode="after")
    def _strip_username(self) -> "CreateUserRequest":
        self.username = self.username.strip()
        if not self.username:
            raise ValueError("username must not be blank")
        return self


class SafeUser(BaseModel):
    id: str
    username: str


class ContentPayload(RootModel[Dict[StrictStr, StrictStr]]):
    """Full or partial key -> value mapping of site content."""


class ContentUpdateResponse(BaseModel):
    success: Literal[True] = True
    message: str = "Content updated"


class HealthResponse(BaseModel):
    status: Literal["ok"] = "ok"
    storage: str
