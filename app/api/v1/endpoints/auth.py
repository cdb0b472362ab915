from datetime import timedelta
from fastapi import APIRouter, Request, Response, status, Depends
from app.schemas.user import (
    RegisterRequest,
    UserLoginRequest,
    ProfileUpdateRequest,
    UserData,
    AccessTokenResponse,
    LoginResponse,
)
from app.schemas.response import ApiResponse
from app.services.auth import AuthService
from app.core.config import Settings
from app.core.dependencies import (
    check_login_rate_limit,
    check_register_rate_limit,
    get_app_settings,
    get_auth_service,
    get_current_claims,
)
from app.core.security import TokenClaims

router = APIRouter()


def _set_refresh_cookie(response: Response, settings: Settings, token: str) -> None:
    refresh_token_expires = timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)
    response.set_cookie(
        key=settings.REFRESH_COOKIE_NAME,
        value=token,
        httponly=settings.COOKIE_HTTP_ONLY,
        secure=settings.COOKIE_SECURE,
        samesite=settings.COOKIE_SAME_SITE,
        max_age=int(refresh_token_expires.total_seconds())
    )


@router.post("/register", response_model=ApiResponse, status_code=status.HTTP_201_CREATED)
async def register(
    user: RegisterRequest,
    _: None = Depends(check_register_rate_limit),
    auth_service: AuthService = Depends(get_auth_service)
):
    """Create a standard account. The client logs in separately."""
    created = await auth_service.register_user(
        name=user.name,
        email=user.email,
        password=user.password
    )

    return ApiResponse(
        success=True,
        message="User registered successfully",
        data={"user": UserData.model_validate(created)}
    )


@router.post("/login", response_model=ApiResponse, status_code=status.HTTP_200_OK)
async def login(
    credentials: UserLoginRequest,
    response: Response,
    settings: Settings = Depends(get_app_settings),
    _: None = Depends(check_login_rate_limit),
    auth_service: AuthService = Depends(get_auth_service)
):
    """Authenticate user, return the access token and set the refresh cookie."""
    result = await auth_service.login_user(
        email=credentials.email,
        password=credentials.password
    )

    _set_refresh_cookie(response, settings, result["refresh_token"].token)

    return ApiResponse(
        success=True,
        message="Login successful",
        data=LoginResponse(
            accessToken=result["access_token"].token,
            user=UserData.model_validate(result["user"])
        )
    )


@router.post("/refresh-token", response_model=ApiResponse, status_code=status.HTTP_200_OK)
async def refresh_token(
    request: Request,
    settings: Settings = Depends(get_app_settings),
    auth_service: AuthService = Depends(get_auth_service)
):
    """Exchange the refresh cookie for a new access token. The cookie is left as is."""
    access_token = await auth_service.refresh_access_token(
        request.cookies.get(settings.REFRESH_COOKIE_NAME)
    )

    return ApiResponse(
        success=True,
        message="Token refreshed successfully",
        data=AccessTokenResponse(accessToken=access_token.token)
    )


@router.post("/logout", response_model=ApiResponse, status_code=status.HTTP_200_OK)
async def logout(
    request: Request,
    response: Response,
    settings: Settings = Depends(get_app_settings),
    auth_service: AuthService = Depends(get_auth_service)
):
    """Logout user by deleting the stored refresh token and clearing the cookie."""
    await auth_service.logout_user(request.cookies.get(settings.REFRESH_COOKIE_NAME))

    response.delete_cookie(
        key=settings.REFRESH_COOKIE_NAME,
        httponly=settings.COOKIE_HTTP_ONLY,
        secure=settings.COOKIE_SECURE,
        samesite=settings.COOKIE_SAME_SITE
    )

    return ApiResponse(
        success=True,
        message="Logout successful"
    )


@router.get("/profile", response_model=ApiResponse, status_code=status.HTTP_200_OK)
async def get_profile(
    claims: TokenClaims = Depends(get_current_claims),
    auth_service: AuthService = Depends(get_auth_service)
):
    user = await auth_service.get_profile(claims.subject)
    return ApiResponse(
        success=True,
        message="Profile retrieved successfully",
        data={"user": UserData.model_validate(user)}
    )


@router.put("/profile", response_model=ApiResponse, status_code=status.HTTP_200_OK)
async def update_profile(
    profile: ProfileUpdateRequest,
    claims: TokenClaims = Depends(get_current_claims),
    auth_service: AuthService = Depends(get_auth_service)
):
    user = await auth_service.update_profile(claims.subject, profile.name)
    return ApiResponse(
        success=True,
        message="Profile updated successfully",
        data={"user": UserData.model_validate(user)}
    )
