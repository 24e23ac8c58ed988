from pydantic import BaseModel, ConfigDict, EmailStr, Field


class CreatePaymentRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1)
    phone: str = Field(min_length=1)
    email: EmailStr
    ref: str | None = None


class CreatePaymentResponse(BaseModel):
    authorization_url: str
    reference: str
    amount: float
