import logging
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from typing import List
from db import get_db
from models.models import User, Client, Support, SolicitanteDemanda, NotaFiscal
from schemas.schemas import ClientCreate, ClientUpdate, ClientOut
from routers.auth import get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/clients", tags=["clients"])


def get_client_or_404(db: Session, client_id: int) -> Client:
    client = db.query(Client).filter(Client.id_cliente == client_id).first()
    if not client:
        raise HTTPException(status_code=404, detail="Cliente não encontrado")
    return client


def _check_cnpj_free(db: Session, cnpj, exclude_id=None):
    if not cnpj:
        return
    q = db.query(Client).filter(Client.cnpj == cnpj)
    if exclude_id is not None:
        q = q.filter(Client.id_cliente != exclude_id)
    if q.first():
        raise HTTPException(status_code=400, detail="CNPJ já cadastrado para outro cliente")


@router.get("", response_model=List[ClientOut])
async def list_clients(db: Session = Depends(get_db),
                       _: User = Depends(get_current_user)):
    return db.query(Client).order_by(Client.nome_cliente).all()


@router.get("/{client_id}", response_model=ClientOut)
async def get_client(client_id: int, db: Session = Depends(get_db),
                     _: User = Depends(get_current_user)):
    return get_client_or_404(db, client_id)


@router.post("", response_model=ClientOut)
async def create_client(data: ClientCreate, db: Session = Depends(get_db),
                        _: User = Depends(get_current_user)):
    _check_cnpj_free(db, data.cnpj)
    client = Client(**data.model_dump())
    db.add(client)
    db.commit()
    db.refresh(client)
    logger.info(f"Cliente criado: {client.id_cliente} {client.nome_cliente}")
    return client


@router.put("/{client_id}", response_model=ClientOut)
async def update_client(client_id: int, data: ClientUpdate,
                        db: Session = Depends(get_db),
                        _: User = Depends(get_current_user)):
    client = get_client_or_404(db, client_id)
    changes = data.model_dump(exclude_unset=True)
    _check_cnpj_free(db, changes.get("cnpj"), exclude_id=client_id)
    for k, v in changes.items():
        setattr(client, k, v)
    db.commit()
    db.refresh(client)
    return client


@router.delete("/{client_id}")
async def delete_client(client_id: int, db: Session = Depends(get_db),
                        _: User = Depends(get_current_user)):
    client = get_client_or_404(db, client_id)
    in_use = (
        db.query(Support.id_suporte).filter(Support.id_cliente == client_id).first()
        or db.query(SolicitanteDemanda.id_solicitante_demanda)
             .filter(SolicitanteDemanda.id_cliente == client_id).first()
        or db.query(NotaFiscal.id).filter(NotaFiscal.id_cliente == client_id).first()
    )
    if in_use:
        raise HTTPException(status_code=409,
                            detail="Cliente possui atendimentos, solicitantes ou notas vinculados")
    try:
        db.delete(client)
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="Cliente possui registros vinculados")
    return {"message": "Cliente removido com sucesso"}
