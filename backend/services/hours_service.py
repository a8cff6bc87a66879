"""Cálculo de duração de atendimentos e controle de horas contratadas × utilizadas."""

import calendar
import re
import unicodedata
from collections import OrderedDict
from datetime import MAXYEAR, MINYEAR, datetime, timezone
from typing import Dict, Iterable, List, Optional, Tuple


def parse_datetime(val, to_utc: bool = True) -> Optional[datetime]:
    """
    ISO 8601 ('2024-05-02T14:30', '...Z', '...-03:00') → datetime naive. None se inválido.

    Com `to_utc` o horário com offset é convertido para UTC; sem ele o offset
    é descartado e fica o horário local (datas de emissão das NFSe).
    """
    if isinstance(val, datetime):
        dt = val
    elif not val or not isinstance(val, str):
        return None
    else:
        txt = val.strip().replace("Z", "+00:00")
        try:
            dt = datetime.fromisoformat(txt)
        except ValueError:
            # sufixos fora do ISO ('10:22:33 BRT'): vale só a data e hora
            try:
                dt = datetime.fromisoformat(txt[:19])
            except ValueError:
                return None
    if dt.tzinfo is not None:
        if to_utc:
            dt = dt.astimezone(timezone.utc)
        dt = dt.replace(tzinfo=None)
    return dt


def compute_duracao(inicio: datetime, fim: datetime) -> str:
    """Duração em horas, 2 casas, no formato gravado no banco: '1.5h', '2h'."""
    horas = round((fim - inicio).total_seconds() / 3600, 2)
    return f"{horas:.2f}".rstrip("0").rstrip(".") + "h"


def parse_duracao(duracao: Optional[str]) -> float:
    """'1.5h' → 1.5; valores ilegíveis contam como 0."""
    if not duracao:
        return 0.0
    m = re.match(r"\s*(-?\d+(?:[.,]\d+)?)", duracao)
    return float(m.group(1).replace(",", ".")) if m else 0.0


def month_bounds(month: int, year: int) -> Tuple[datetime, datetime]:
    """Primeiro instante e último segundo do mês."""
    if not 1 <= month <= 12:
        raise ValueError("Mês inválido")
    _check_year(year)
    last_day = calendar.monthrange(year, month)[1]
    return datetime(year, month, 1), datetime(year, month, last_day, 23, 59, 59)


def _check_year(year: int):
    if not MINYEAR <= year <= MAXYEAR:
        raise ValueError("Ano inválido")


def year_bounds(year: int) -> Tuple[datetime, datetime]:
    _check_year(year)
    return datetime(year, 1, 1), datetime(year, 12, 31, 23, 59, 59)


def total_horas(supports: Iterable) -> float:
    return sum(parse_duracao(s.duracao) for s in supports)


def hours_control(nome_cliente: str, horas_contratadas: float, supports: Iterable) -> Dict:
    """
    Saldo mensal e acumulado de um cliente no ano.

    Só entram os meses com pelo menos um atendimento; as horas contratadas
    do total são a franquia mensal × quantidade desses meses.
    """
    contratadas = float(horas_contratadas or 0)
    por_mes: "OrderedDict[int, List]" = OrderedDict()
    for s in sorted(supports, key=lambda s: s.data_suporte):
        por_mes.setdefault(s.data_suporte.month, []).append(s)

    meses = []
    saldo_acumulado = 0.0
    for mes in sorted(por_mes):
        utilizadas = total_horas(por_mes[mes])
        saldo_mes = contratadas - utilizadas
        saldo_acumulado += saldo_mes
        meses.append({
            "mes": mes,
            "horasContratadas": f"{contratadas:.2f}",
            "horasUtilizadas": f"{utilizadas:.2f}",
            "saldoMes": f"{saldo_mes:.2f}",
            "saldoAcumulado": f"{saldo_acumulado:.2f}",
            "quantidadeAtendimentos": len(por_mes[mes]),
        })

    total_contratadas = contratadas * len(meses)
    total_utilizadas = sum(float(m["horasUtilizadas"]) for m in meses)
    return {
        "cliente": nome_cliente,
        "meses": meses,
        "totais": {
            "horasContratadas": f"{total_contratadas:.2f}",
            "horasUtilizadas": f"{total_utilizadas:.2f}",
            "saldo": f"{total_contratadas - total_utilizadas:.2f}",
            "quantidadeAtendimentos": sum(m["quantidadeAtendimentos"] for m in meses),
        },
    }


def slugify(nome: str) -> str:
    """'Café – Filial Sul' → 'cafe-filial-sul'; só [a-z0-9-], para nomes de arquivo."""
    ascii_ = unicodedata.normalize("NFKD", nome or "").encode("ascii", "ignore").decode("ascii")
    return re.sub(r"[^a-z0-9]+", "-", ascii_.lower()).strip("-")
