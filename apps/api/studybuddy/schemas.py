from pydantic import BaseModel, Field, field_validator

EMAIL_PATTERN = r"^[^\s@]+@[^\s@]+\.[^\s@]+$"


class ClassifyRequest(BaseModel):
    message: str = Field(default="", max_length=20000)


class VerdictResponse(BaseModel):
    flagged: bool
    reason: str


class CreateSessionRequest(BaseModel):
    student_name: str = Field(min_length=1, max_length=64)
    parent_email: str = Field(pattern=EMAIL_PATTERN, max_length=254)

    @field_validator("student_name")
    @classmethod
    def _name_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("student_name must not be blank")
        return value


class SessionCreated(BaseModel):
    session_id: str
    student_name: str
    greeting: str


class SessionResponse(BaseModel):
    session_id: str
    student_name: str
    parent_email: str  # masked
    locked: bool
    message_count: int
    created_at: str


class ChatRequest(BaseModel):
    message: str = Field(max_length=4000)


class ChatResponse(BaseModel):
    locked: bool
    reply: str | None = None
    reason: str
    model: str | None = None
    stub: bool = False
    fallback: bool = False


class LockStatus(BaseModel):
    locked: bool
    time_remaining: int = 0
    can_resend: bool = False
    parent_email: str | None = None  # masked
    reason: str | None = None


class VerifyCodeRequest(BaseModel):
    code: str = Field(pattern=r"^[0-9]{6}$")


class VerifyCodeResponse(BaseModel):
    ok: bool
    message: str


class ModerationEventOut(BaseModel):
    id: int
    message: str
    reason: str
    created_at: str
