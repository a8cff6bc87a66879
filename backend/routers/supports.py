import logging
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session, joinedload, Query
from typing import List, Optional
from db import get_db
from models.models import User, Support, Status, Prioridade, SolicitanteDemanda
from schemas.schemas import SupportCreate, SupportUpdate, SupportOut
from services.hours_service import parse_datetime, compute_duracao, month_bounds
from routers.auth import get_current_user
from routers.clients import get_client_or_404

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/supports", tags=["supports"])

_REQUIRED_UPDATE = ("id_status", "id_prioridade", "inicio_suporte", "fim_suporte",
                    "nome_tarefa", "descricao_suporte")
_REQUIRED_CREATE = ("id_cliente", "id_solicitante_demanda") + _REQUIRED_UPDATE


def supports_query(db: Session) -> Query:
    """Support query with every foreign key eagerly loaded."""
    return db.query(Support).options(
        joinedload(Support.cliente),
        joinedload(Support.status),
        joinedload(Support.prioridade),
        joinedload(Support.solicitante_demanda).joinedload(SolicitanteDemanda.cliente),
    )


def _get_support_or_404(db: Session, support_id: int) -> Support:
    support = supports_query(db).filter(Support.id_suporte == support_id).first()
    if not support:
        raise HTTPException(status_code=404, detail="Atendimento não encontrado")
    return support


def _validated_fields(db: Session, data: SupportUpdate, required) -> dict:
    """Common create/update validation; returns the column values to write."""
    if any(not getattr(data, f) for f in required):
        raise HTTPException(status_code=400, detail="Campos obrigatórios não preenchidos")

    inicio = parse_datetime(data.inicio_suporte)
    fim = parse_datetime(data.fim_suporte)
    if inicio is None or fim is None:
        raise HTTPException(status_code=400, detail="Datas inválidas")
    if fim < inicio:
        raise HTTPException(status_code=400,
                            detail="A data de fim deve ser posterior à data de início")

    if not db.get(Status, data.id_status):
        raise HTTPException(status_code=404, detail="Status não encontrado")
    if not db.get(Prioridade, data.id_prioridade):
        raise HTTPException(status_code=404, detail="Prioridade não encontrada")

    fields = {
        "id_status": data.id_status,
        "id_prioridade": data.id_prioridade,
        "inicio_suporte": inicio,
        "fim_suporte": fim,
        "data_suporte": inicio,
        "duracao": compute_duracao(inicio, fim),
        "nome_tarefa": data.nome_tarefa,
        "descricao_suporte": data.descricao_suporte,
    }
    # unparseable first-contact dates are dropped, not rejected
    primeiro_contato = parse_datetime(data.primeiro_contato)
    if primeiro_contato is not None:
        fields["primeiro_contato"] = primeiro_contato
    return fields


@router.get("", response_model=List[SupportOut])
async def list_supports(clientId: Optional[int] = None,
                        month: Optional[int] = None,
                        year: Optional[int] = None,
                        db: Session = Depends(get_db),
                        _: User = Depends(get_current_user)):
    q = supports_query(db)
    if clientId:
        q = q.filter(Support.id_cliente == clientId)
    if month and year:
        try:
            start, end = month_bounds(month, year)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        q = q.filter(Support.data_suporte >= start, Support.data_suporte <= end)
    return q.order_by(Support.data_suporte.desc()).all()


@router.get("/{support_id}", response_model=SupportOut)
async def get_support(support_id: int, db: Session = Depends(get_db),
                      _: User = Depends(get_current_user)):
    return _get_support_or_404(db, support_id)


@router.post("", response_model=SupportOut)
async def create_support(data: SupportCreate, db: Session = Depends(get_db),
                         _: User = Depends(get_current_user)):
    fields = _validated_fields(db, data, _REQUIRED_CREATE)
    get_client_or_404(db, data.id_cliente)
    solicitante = db.get(SolicitanteDemanda, data.id_solicitante_demanda)
    if not solicitante:
        raise HTTPException(status_code=404, detail="Solicitante não encontrado")
    if solicitante.id_cliente != data.id_cliente:
        raise HTTPException(status_code=400, detail="Solicitante não pertence ao cliente informado")

    support = Support(id_cliente=data.id_cliente,
                      id_solicitante_demanda=data.id_solicitante_demanda, **fields)
    db.add(support)
    db.commit()
    logger.info(f"Atendimento {support.id_suporte} criado: cliente={support.id_cliente} {support.duracao}")
    return _get_support_or_404(db, support.id_suporte)


@router.put("/{support_id}", response_model=SupportOut)
async def update_support(support_id: int, data: SupportUpdate,
                         db: Session = Depends(get_db),
                         _: User = Depends(get_current_user)):
    support = _get_support_or_404(db, support_id)
    for k, v in _validated_fields(db, data, _REQUIRED_UPDATE).items():
        setattr(support, k, v)
    db.commit()
    db.expire_all()
    return _get_support_or_404(db, support_id)


@router.delete("/{support_id}")
async def delete_support(support_id: int, db: Session = Depends(get_db),
                         _: User = Depends(get_current_user)):
    support = _get_support_or_404(db, support_id)
    db.delete(support)
    db.commit()
    return {"message": "Atendimento removido com sucesso"}
