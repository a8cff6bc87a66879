from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from typing import List
from db import get_db
from models.models import User, Prioridade
from schemas.schemas import PrioridadeCreate, PrioridadeOut
from routers.auth import get_current_user, require_admin

router = APIRouter(prefix="/prioridades", tags=["prioridades"])


@router.get("", response_model=List[PrioridadeOut])
async def list_prioridades(db: Session = Depends(get_db),
                           _: User = Depends(get_current_user)):
    return db.query(Prioridade).order_by(Prioridade.id_prioridade).all()


@router.post("", response_model=PrioridadeOut, status_code=201)
async def create_prioridade(data: PrioridadeCreate, db: Session = Depends(get_db),
                            _: User = Depends(require_admin)):
    if db.query(Prioridade).filter(Prioridade.prioridade == data.prioridade).first():
        raise HTTPException(status_code=400, detail="Prioridade já cadastrada")
    prioridade = Prioridade(prioridade=data.prioridade)
    db.add(prioridade)
    db.commit()
    db.refresh(prioridade)
    return prioridade
