from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from typing import List
from db import get_db
from models.models import User, Status
from schemas.schemas import StatusCreate, StatusOut
from routers.auth import get_current_user, require_admin

router = APIRouter(prefix="/status", tags=["status"])


@router.get("", response_model=List[StatusOut])
async def list_status(db: Session = Depends(get_db),
                      _: User = Depends(get_current_user)):
    return db.query(Status).order_by(Status.id_status).all()


@router.post("", response_model=StatusOut, status_code=201)
async def create_status(data: StatusCreate, db: Session = Depends(get_db),
                        _: User = Depends(require_admin)):
    if db.query(Status).filter(Status.status == data.status).first():
        raise HTTPException(status_code=400, detail="Status já cadastrado")
    status = Status(status=data.status)
    db.add(status)
    db.commit()
    db.refresh(status)
    return status
