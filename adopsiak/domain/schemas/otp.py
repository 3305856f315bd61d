from pydantic import BaseModel, EmailStr, Field, field_validator


class _EmailIn(BaseModel):
    email: EmailStr

    @field_validator("email", mode="before")
    @classmethod
    def strip_email(cls, v):
        return v.strip() if isinstance(v, str) else v


class SendOtpIn(_EmailIn):
    pass


class CheckOtpIn(_EmailIn):
    otp: str = Field(min_length=4, max_length=10)


class SuccessOut(BaseModel):
    success: bool = True
