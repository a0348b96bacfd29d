from fastapi import APIRouter, Depends, HTTPException, status, Request
from sqlalchemy.orm import Session

from ....application.use_cases.register_user import RegisterUser
from ....config import settings
from ....domain.entities import User
from ....domain.errors import InvalidInput
from ....infrastructure.db import get_db
from ....infrastructure.models import UserORM
from ....infrastructure.protection import auth_limiter
from ....infrastructure.repositories import UserRepository
from ....infrastructure.security import PasswordHasher, create_access_token
from ..authz import require_user
from ..schemas import RegisterReq, LoginReq, UserResp, TokenResp

router = APIRouter(prefix="/api/auth", tags=["auth"])

@router.post("/register", response_model=UserResp, status_code=status.HTTP_201_CREATED)
@auth_limiter.limit(f"{settings.RATE_LIMIT_PER_MINUTE}/minute")
def register(
    request: Request,
    payload: RegisterReq,
    db: Session = Depends(get_db),
):
    uc = RegisterUser(repo=UserRepository(db), hasher=PasswordHasher(), admin_emails=settings.ADMIN_EMAILS)
    try:
        user = uc.execute(payload.email, payload.password, payload.name)
    except ValueError as e:
        raise InvalidInput(str(e)) from e
    return UserResp(id=user.id, email=user.email, name=user.name, role=user.role)

# Более строгий лимит для логина (защита от брутфорса)
@router.post("/login", response_model=TokenResp)
@auth_limiter.limit("10/minute")
def login(
    request: Request,
    payload: LoginReq,
    db: Session = Depends(get_db),
):
    row = db.query(UserORM).filter(UserORM.email == payload.email).first()
    if not row or not PasswordHasher().verify(payload.password, row.password_hash):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    token = create_access_token(sub=row.email, uid=row.id, role=row.role)
    return TokenResp(access_token=token)


@router.get("/me", response_model=UserResp)
def me(user: User = Depends(require_user)):
    return UserResp(id=user.id, email=user.email, name=user.name, role=user.role)
