from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from sqlalchemy import func
from datetime import datetime
from db import get_db
from models.models import Client, Support, Status, User
from schemas.schemas import DashboardStats
from services.hours_service import total_horas
from routers.auth import get_current_user
from routers.supports import supports_query
from config import STATUS_EM_ANDAMENTO

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("/stats", response_model=DashboardStats)
async def get_stats(db: Session = Depends(get_db),
                    _: User = Depends(get_current_user)):
    now = datetime.now()
    month_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)

    total_clients = db.query(func.count(Client.id_cliente)).scalar() or 0

    monthly = db.query(func.count(Support.id_suporte)).filter(
        Support.data_suporte >= month_start).scalar() or 0

    pending = db.query(func.count(Support.id_suporte)).join(Status).filter(
        Status.status == STATUS_EM_ANDAMENTO).scalar() or 0

    # duracao is stored as text ("1.5h"), so the sum happens in Python
    horas = total_horas(db.query(Support.duracao).all())

    recent = supports_query(db).order_by(Support.data_suporte.desc()).limit(5).all()

    top = (db.query(Client.nome_cliente, func.count(Support.id_suporte).label("total"))
           .join(Support, Support.id_cliente == Client.id_cliente)
           .group_by(Client.id_cliente, Client.nome_cliente)
           .order_by(func.count(Support.id_suporte).desc(), Client.nome_cliente)
           .limit(5).all())

    return {
        "totalClients": total_clients,
        "monthlySupports": monthly,
        "totalHours": round(horas, 2),
        "pendingSupports": pending,
        "recentSupports": recent,
        "topClients": [{"nome_cliente": nome, "total": total} for nome, total in top],
    }
