from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies import require_manager
from app.models.user import User, UserRole
from app.schemas.auth import UserCreate, UserResponse
from app.services import auth_service

router = APIRouter(prefix="/users", tags=["users"])


@router.get("", response_model=list[UserResponse])
async def list_users(
    role: UserRole | None = Query(default=None),
    manager: User = Depends(require_manager),
    db: AsyncSession = Depends(get_db),
):
    return await auth_service.list_users(db, role=role.value if role else None)


@router.post("", response_model=UserResponse, status_code=201)
async def create_user(
    data: UserCreate,
    manager: User = Depends(require_manager),
    db: AsyncSession = Depends(get_db),
):
    return await auth_service.create_user(
        db, email=data.email, name=data.name, password=data.password, role=data.role.value
    )
