"""User management endpoints, restricted to administrators."""
from fastapi import APIRouter, status, Depends
from app.schemas.user import AdminCreateUserRequest, AdminUpdateUserRequest, UserData
from app.schemas.response import ApiResponse
from app.services.users import UserAdminService
from app.core.constants import UserRole
from app.core.dependencies import get_user_admin_service, require_roles
from app.core.security import TokenClaims

router = APIRouter()

require_admin = require_roles(UserRole.ADMINISTRATOR)


@router.get("/users", response_model=ApiResponse, status_code=status.HTTP_200_OK)
async def list_users(
    _: TokenClaims = Depends(require_admin),
    user_service: UserAdminService = Depends(get_user_admin_service)
):
    """List every user, newest first."""
    users = await user_service.list_users()
    return ApiResponse(
        success=True,
        message="Users retrieved successfully",
        data={"users": [UserData.model_validate(user) for user in users]}
    )


@router.post("/create-user", response_model=ApiResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    payload: AdminCreateUserRequest,
    _: TokenClaims = Depends(require_admin),
    user_service: UserAdminService = Depends(get_user_admin_service)
):
    user = await user_service.create_user(
        name=payload.name,
        email=payload.email,
        password=payload.password,
        role=payload.role
    )
    return ApiResponse(
        success=True,
        message="User created successfully",
        data={"user": UserData.model_validate(user)}
    )


@router.put("/update-user/{user_id}", response_model=ApiResponse, status_code=status.HTTP_200_OK)
async def update_user(
    user_id: int,
    payload: AdminUpdateUserRequest,
    _: TokenClaims = Depends(require_admin),
    user_service: UserAdminService = Depends(get_user_admin_service)
):
    user = await user_service.update_user(
        user_id,
        name=payload.name,
        email=payload.email,
        role=payload.role,
        password=payload.password
    )
    return ApiResponse(
        success=True,
        message="User updated successfully",
        data={"user": UserData.model_validate(user)}
    )


@router.delete("/users/{user_id}", response_model=ApiResponse, status_code=status.HTTP_200_OK)
async def delete_user(
    user_id: int,
    claims: TokenClaims = Depends(require_admin),
    user_service: UserAdminService = Depends(get_user_admin_service)
):
    await user_service.delete_user(acting_user_id=claims.subject, user_id=user_id)
    return ApiResponse(
        success=True,
        message="User deleted successfully"
    )
