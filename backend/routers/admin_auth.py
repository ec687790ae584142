from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from auth import ADMIN_USER_TYPE, create_access_token, verify_password
from database import get_db
from models import Admin
from schemas import AdminLogin, TokenResponse

router = APIRouter()


@router.post("/admin/auth/login", response_model=TokenResponse)
def admin_login(login_data: AdminLogin, db: Session = Depends(get_db)):
    admin = db.query(Admin).filter(Admin.username == login_data.username).first()
    if not admin or not admin.is_active or not verify_password(login_data.password, admin.hashed_password):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    access_token = create_access_token(admin.username, ADMIN_USER_TYPE)
    return TokenResponse(access_token=access_token)
