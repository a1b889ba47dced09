from fastapi import APIRouter, Depends

from api.deps import get_auth_service
from schemas.user import TokenResponse, UserCredentials, UserResponse
from services.auth_service import AuthService

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/register", response_model=UserResponse, status_code=201)
async def register(body: UserCredentials, auth: AuthService = Depends(get_auth_service)):
    """Create a citizen account. Administrator accounts are provisioned with scripts/create_admin.py."""
    user = await auth.register(body)
    await auth.commit()
    return UserResponse.model_validate(user)


@router.post("/login", response_model=TokenResponse)
async def login(body: UserCredentials, auth: AuthService = Depends(get_auth_service)):
    return await auth.login(body)
