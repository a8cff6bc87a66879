import io
import logging
from urllib.parse import quote
from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session
from typing import Optional
from db import get_db
from models.models import User, Support
from schemas.schemas import ClientReport, HoursControl
from services.hours_service import month_bounds, year_bounds, hours_control, slugify
from services.pdf_service import client_report_pdf, hours_control_pdf
from routers.auth import get_current_user
from routers.clients import get_client_or_404
from routers.supports import supports_query

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reports", tags=["reports"])


def _pdf_response(data: bytes, nome_arquivo: str) -> StreamingResponse:
    """`nome_arquivo` pode ter acentos: `filename` segue em ASCII e `filename*` em UTF-8 (RFC 5987)."""
    base = nome_arquivo[:-4] if nome_arquivo.lower().endswith(".pdf") else nome_arquivo
    ascii_name = f"{slugify(base) or 'relatorio'}.pdf"
    return StreamingResponse(
        io.BytesIO(data),
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{ascii_name}"; '
                                        f"filename*=UTF-8''{quote(nome_arquivo, safe='')}"},
    )


def _client_month(db: Session, client_id: int, month: Optional[int], year: Optional[int]):
    if not client_id or not month or not year:
        raise HTTPException(status_code=400, detail="Cliente, mês e ano são obrigatórios")
    try:
        start, end = month_bounds(month, year)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    client = get_client_or_404(db, client_id)
    supports = (supports_query(db)
                .filter(Support.id_cliente == client_id,
                        Support.data_suporte >= start, Support.data_suporte <= end)
                .order_by(Support.data_suporte.asc()).all())
    return client, supports


def _hours_control(db: Session, client_id: Optional[int], year: Optional[int]) -> dict:
    if not year or not client_id:
        raise HTTPException(status_code=400, detail="Ano e cliente são obrigatórios")
    try:
        start, end = year_bounds(year)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    client = get_client_or_404(db, client_id)
    supports = (db.query(Support)
                .filter(Support.id_cliente == client_id,
                        Support.data_suporte >= start, Support.data_suporte <= end)
                .order_by(Support.data_suporte.asc()).all())
    return hours_control(client.nome_cliente, client.total_horas_contratadas, supports)


@router.get("/client/{client_id}", response_model=ClientReport)
async def client_report(client_id: int, month: Optional[int] = None, year: Optional[int] = None,
                        db: Session = Depends(get_db),
                        _: User = Depends(get_current_user)):
    client, supports = _client_month(db, client_id, month, year)
    return {"supports": supports, "client": client}


@router.get("/client/{client_id}/pdf")
async def client_report_pdf_download(client_id: int, month: Optional[int] = None,
                                     year: Optional[int] = None,
                                     db: Session = Depends(get_db),
                                     _: User = Depends(get_current_user)):
    client, supports = _client_month(db, client_id, month, year)
    pdf = client_report_pdf(client, supports, month, year)
    return _pdf_response(pdf, f"relatorio-{client.nome_cliente}-{month}-{year}.pdf")


@router.get("/hours-control", response_model=HoursControl)
async def hours_control_report(year: Optional[int] = None, clientId: Optional[int] = None,
                               db: Session = Depends(get_db),
                               _: User = Depends(get_current_user)):
    return _hours_control(db, clientId, year)


@router.get("/hours-control/pdf")
async def hours_control_pdf_download(year: Optional[int] = None, clientId: Optional[int] = None,
                                     db: Session = Depends(get_db),
                                     _: User = Depends(get_current_user)):
    data = _hours_control(db, clientId, year)
    pdf = hours_control_pdf(data, year)
    return _pdf_response(pdf, f"controle-horas-{data['cliente']}-{year}.pdf")
