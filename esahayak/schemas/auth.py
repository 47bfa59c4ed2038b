from typing import Optional, Annotated
from datetime import datetime
from pydantic import BaseModel, EmailStr, Field, ConfigDict, StringConstraints
from pydantic.alias_generators import to_camel
from uuid import UUID

NameStr = Annotated[str, StringConstraints(min_length=2, max_length=80, strip_whitespace=True)]


class SignupBody(BaseModel):
    name: NameStr
    email: EmailStr


class CustomVerifyBody(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    email: EmailStr
    name: Optional[NameStr] = None
    callback_url: Optional[str] = Field(None, description="Where the client lands after verification")


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True, alias_generator=to_camel, populate_by_name=True)

    id: UUID
    name: Optional[str] = None
    email: EmailStr
    email_verified: Optional[datetime] = None


class SignupResponse(BaseModel):
    message: str = "Account created successfully! We'll send you a magic link to complete your signup."
    user: UserOut


class VerificationIssued(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    success: bool = True
    expires: datetime
    # only populated when settings.expose_verify_token is on
    token: Optional[str] = None
    email_sent: bool = False


class VerifyResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    success: bool = True
    user: UserOut
    callback_url: str


class SessionOut(BaseModel):
    user: UserOut
    expires: datetime


class MessageResponse(BaseModel):
    message: str
