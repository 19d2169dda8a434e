"""Auth schemas, camelCase on the wire."""

from pydantic import BaseModel, ConfigDict, Field


class _Schema(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class LoginRequest(_Schema):
    user_id: str = Field(alias="userID", min_length=1)
    password: str = Field(min_length=1)


class RefreshRequest(_Schema):
    refresh_token: str = Field(alias="refreshToken", min_length=1)


class UserInfo(_Schema):
    user_id: str = Field(alias="userID")
    username: str = ""
    email: str = ""
    role: str = "user"


class TokenResponse(_Schema):
    access_token: str = Field(alias="accessToken")
    token_type: str = Field(default="bearer", alias="tokenType")
    expires_in: int = Field(alias="expiresIn")


class LoginResponse(TokenResponse):
    refresh_token: str = Field(alias="refreshToken")
    user: UserInfo
