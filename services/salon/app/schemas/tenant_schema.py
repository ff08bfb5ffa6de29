from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class RegistrationRequest(BaseModel):
    """Registration of a new business and, if needed, its owner account."""

    business_name: str = Field(min_length=1, max_length=100, examples=["Bella Vita Spa"])
    slug: Optional[str] = Field(default=None, description="URL address; derived from the name when omitted", examples=["bella-vita-spa"])
    business_type: Literal["salon", "barberia", "spa", "unas", "centro-bienestar"] = Field(default="salon", examples=["spa"])
    address: str = Field(default="", examples=["Av. Revolución 1234, Tijuana, BC"])
    phone: str = Field(default="", examples=["6641234567"])
    email: Optional[EmailStr] = Field(default=None, examples=["info@bellavita.mx"])
    description: str = Field(default="", examples=["Tu destino de belleza y relajación"])
    primary_color: Optional[str] = Field(default=None, pattern="^#[0-9A-Fa-f]{6}$")
    secondary_color: Optional[str] = Field(default=None, pattern="^#[0-9A-Fa-f]{6}$")
    owner_email: EmailStr = Field(examples=["ana@bellavita.mx"])
    owner_password: str = Field(min_length=8, examples=["Secreta123!"])
    owner_first_name: str = Field(min_length=1, examples=["Ana"])
    owner_last_name: str = Field(min_length=1, examples=["López"])
    owner_phone: str = Field(default="", examples=["6641234567"])

    model_config = ConfigDict(populate_by_name=True)


class LoginRequest(BaseModel):
    username: str = Field(min_length=1, examples=["ana@bellavita.mx"])
    password: str = Field(min_length=1)


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    role: str


class TenantSummary(BaseModel):
    id: str
    name: str
    slug: str
    business_type: str
    description: str = ""
    primary_color: str
    secondary_color: str
    logo: Optional[str] = None

    @classmethod
    def from_tenant(cls, tenant) -> "TenantSummary":
        return cls(
            id=tenant.id,
            name=tenant.name,
            slug=tenant.slug,
            business_type=tenant.business_type,
            description=tenant.description,
            primary_color=tenant.primary_color,
            secondary_color=tenant.secondary_color,
            logo=tenant.logo,
        )


class RegistrationResponse(TokenResponse):
    tenant: TenantSummary


class SlugCheckResponse(BaseModel):
    slug: str
    available: bool
    error: Optional[str] = None
    suggestion: Optional[str] = None
