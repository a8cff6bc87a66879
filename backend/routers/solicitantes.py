from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session, joinedload
from typing import List
from db import get_db
from models.models import User, SolicitanteDemanda, Support
from schemas.schemas import SolicitanteCreate, SolicitanteOut
from routers.auth import get_current_user
from routers.clients import get_client_or_404

router = APIRouter(prefix="/solicitantes", tags=["solicitantes"])


@router.get("", response_model=List[SolicitanteOut])
async def list_solicitantes(db: Session = Depends(get_db),
                            _: User = Depends(get_current_user)):
    return (db.query(SolicitanteDemanda)
            .options(joinedload(SolicitanteDemanda.cliente))
            .order_by(SolicitanteDemanda.nome_solicitante_demanda).all())


@router.get("/cliente/{id_cliente}", response_model=List[SolicitanteOut])
async def list_by_client(id_cliente: int, db: Session = Depends(get_db),
                         _: User = Depends(get_current_user)):
    return (db.query(SolicitanteDemanda)
            .filter(SolicitanteDemanda.id_cliente == id_cliente)
            .order_by(SolicitanteDemanda.nome_solicitante_demanda).all())


@router.post("", response_model=SolicitanteOut)
async def create_solicitante(data: SolicitanteCreate, db: Session = Depends(get_db),
                             _: User = Depends(get_current_user)):
    get_client_or_404(db, data.id_cliente)
    solicitante = SolicitanteDemanda(**data.model_dump())
    db.add(solicitante)
    db.commit()
    db.refresh(solicitante)
    return solicitante


@router.delete("/{id_solicitante}")
async def delete_solicitante(id_solicitante: int, db: Session = Depends(get_db),
                             _: User = Depends(get_current_user)):
    solicitante = db.query(SolicitanteDemanda).filter(
        SolicitanteDemanda.id_solicitante_demanda == id_solicitante).first()
    if not solicitante:
        raise HTTPException(status_code=404, detail="Solicitante não encontrado")
    if db.query(Support.id_suporte).filter(Support.id_solicitante_demanda == id_solicitante).first():
        raise HTTPException(status_code=409, detail="Solicitante possui atendimentos vinculados")
    db.delete(solicitante)
    db.commit()
    return {"message": "Solicitante removido com sucesso"}
