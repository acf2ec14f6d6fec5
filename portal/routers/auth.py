from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException, status, Form
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from portal.db.models.user import User
from portal.core.security import verify_password, create_access_token
from portal.core.config import settings
from portal.routers import deps

router = APIRouter(prefix="/auth", tags=["auth"])

@router.post("/login")
async def login(
    username: str = Form(...),
    password: str = Form(...),
    db: Session = Depends(deps.get_db)
):
    db_user = db.query(User).filter(User.username == username).first()
    if not db_user or not db_user.is_active or not verify_password(password, db_user.hashed_password):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid username or password")

    access_token = create_access_token(
        data={"sub": db_user.username, "role": db_user.role, "business_unit": db_user.business_unit},
        expires_delta=timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )

    response = JSONResponse({
        "access_token": access_token,
        "token_type": "bearer",
        "role": db_user.role,
        "business_unit": db_user.business_unit,
    })
    response.set_cookie(key="access_token", value=f"Bearer {access_token}", httponly=True)
    return response

@router.get("/logout")
async def logout():
    response = JSONResponse({"ok": True})
    response.delete_cookie("access_token")
    return response
