"""
用户管理API（需要 authorisation 权限）
"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from typing import List
import logging
import secrets
from roombook.api.auth import get_password_hash, require_flag
from roombook.db.database import get_db
from roombook.models.user import User
from roombook.schemas.user import UserCreate, UserFlags, UserResponse, UserCreatedResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin-users", tags=["用户管理"])

require_authorisation = require_flag("authorisation")


@router.get("", response_model=List[UserResponse])
def get_users(
    db: Session = Depends(get_db),
    admin: User = Depends(require_authorisation),
):
    """获取用户列表"""
    return db.query(User).order_by(User.email).all()


@router.post("/create", response_model=UserCreatedResponse)
def create_user(
    user: UserCreate,
    db: Session = Depends(get_db),
    admin: User = Depends(require_authorisation),
):
    """创建用户，未提供密码时生成初始密码并返回一次"""
    email = user.email.strip().lower()
    if db.query(User).filter(User.email == email).first():
        raise HTTPException(status_code=400, detail="A user with this email already exists")

    initial_password = None
    password = user.password
    if not password:
        initial_password = password = secrets.token_urlsafe(12)

    db_user = User(
        email=email,
        name=user.name,
        password_hash=get_password_hash(password),
    )
    db.add(db_user)
    db.commit()
    db.refresh(db_user)
    logger.info("用户 %s 创建了用户 %s", admin.email, db_user.email)
    return UserCreatedResponse(user=UserResponse.model_validate(db_user), initial_password=initial_password)


@router.patch("/flags/{user_id}", response_model=UserResponse)
def update_user_flags(
    user_id: int,
    flags: UserFlags,
    db: Session = Depends(get_db),
    admin: User = Depends(require_authorisation),
):
    """修改用户权限标记"""
    db_user = db.query(User).filter(User.id == user_id).first()
    if not db_user:
        raise HTTPException(status_code=404, detail="User not found")
    if db_user.id == admin.id and flags.authorisation is False:
        raise HTTPException(status_code=400, detail="You cannot remove your own authorisation permission")

    for field, value in flags.model_dump(exclude_unset=True).items():
        if value is not None:
            setattr(db_user, field, value)
    db.commit()
    db.refresh(db_user)
    return db_user


@router.delete("/delete/{user_id}")
def delete_user(
    user_id: int,
    db: Session = Depends(get_db),
    admin: User = Depends(require_authorisation),
):
    """删除用户"""
    db_user = db.query(User).filter(User.id == user_id).first()
    if not db_user:
        raise HTTPException(status_code=404, detail="User not found")
    if db_user.id == admin.id:
        raise HTTPException(status_code=400, detail="You cannot delete your own account")
    db.delete(db_user)
    db.commit()
    logger.info("用户 %s 删除了用户 %s", admin.email, db_user.email)
    return {"ok": True}
