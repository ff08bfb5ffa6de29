from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from pydantic import BaseModel, ValidationError

from app.context import SalonContext, SalonContextFactory
from app.core.security import JWT_ALGORITHM, SECRET_KEY
from app.models.tenant import Tenant
from app.services.tenant_directory import TenantDirectory

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/{slug}/login")


class TokenPayload(BaseModel):
    sub: str
    tenant_id: str
    role: Optional[str] = None


def get_current_token(token: str = Depends(oauth2_scheme)) -> TokenPayload:
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[JWT_ALGORITHM])
        return TokenPayload(**payload)
    except (JWTError, ValidationError):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )


def get_directory(request: Request) -> TenantDirectory:
    return request.app.state.directory


def get_tenant(slug: str, directory: TenantDirectory = Depends(get_directory)) -> Tenant:
    tenant = directory.get_tenant_by_slug(slug)
    if tenant is None:
        raise HTTPException(status_code=404, detail="Business not found")
    return tenant


def get_context(request: Request, tenant: Tenant = Depends(get_tenant)) -> SalonContext:
    factory: SalonContextFactory = request.app.state.contexts
    return factory.build(tenant)


def require_admin(
    tenant: Tenant = Depends(get_tenant),
    token: TokenPayload = Depends(get_current_token),
) -> TokenPayload:
    # a token only opens the business it was issued for
    if token.tenant_id != tenant.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You do not have access to this business",
        )
    return token
