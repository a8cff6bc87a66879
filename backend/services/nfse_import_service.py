import logging
from typing import Dict, List, Optional, Tuple
from sqlalchemy.orm import Session
from models.models import Client, NotaFiscal
from services import xml_service

logger = logging.getLogger(__name__)


def _numero(inf) -> str:
    return (xml_service.numero_nfse(inf) if inf is not None else None) or "Número não identificado"


def import_comp_list(db: Session, comps: List, xml_content: str,
                     cliente: Optional[Client] = None) -> Tuple[List[NotaFiscal], List[Dict]]:
    """
    Grava cada CompNfse como NotaFiscal.

    Sem `cliente` (upload manual) o cliente é resolvido pelo CNPJ do tomador;
    com `cliente` (consulta ao web service) todas as notas vão para ele.
    Cada nota falha isoladamente: o erro entra na lista e o laço continua.
    """
    importadas: List[NotaFiscal] = []
    erros: List[Dict] = []

    for comp in comps:
        inf = xml_service.inf_nfse(comp)
        if inf is None:
            erros.append({"numero": "Número não identificado",
                          "erro": "Dados da nota fiscal não encontrados"})
            continue

        destino = cliente
        if destino is None:
            cnpj = xml_service.tomador_cnpj(inf)
            if not cnpj:
                erros.append({"numero": _numero(inf), "erro": "CNPJ do tomador não encontrado"})
                continue
            destino = db.query(Client).filter(Client.cnpj == cnpj).first()
            if destino is None:
                erros.append({"numero": _numero(inf),
                              "erro": f"Cliente não encontrado com o CNPJ {cnpj}"})
                continue

        try:
            dados = xml_service.parse_inf_nfse(inf)
        except ValueError as e:
            erros.append({"numero": _numero(inf), "erro": str(e)})
            continue

        existente = db.query(NotaFiscal).filter(
            NotaFiscal.numero == dados["numero"],
            NotaFiscal.codigo_verificacao == dados["codigo_verificacao"],
            NotaFiscal.id_cliente == destino.id_cliente,
        ).first()
        # same note twice in one XML: the first one is still pending in the session
        repetida = any(n.numero == dados["numero"] and n.codigo_verificacao == dados["codigo_verificacao"]
                       and n.id_cliente == destino.id_cliente for n in importadas)
        if existente is not None or repetida:
            erros.append({"numero": dados["numero"],
                          "erro": "Nota fiscal já importada para este cliente"})
            continue

        nota = NotaFiscal(**dados, xml_content=xml_content, id_cliente=destino.id_cliente)
        db.add(nota)
        importadas.append(nota)

    if importadas:
        db.commit()
        for nota in importadas:
            db.refresh(nota)
    logger.info(f"NFSe import: {len(importadas)} importada(s), {len(erros)} erro(s)")
    return importadas, erros


def summary_message(importadas: int, erros: int) -> str:
    msg = f"{importadas} nota(s) fiscal(is) importada(s) com sucesso"
    return msg + (f" e {erros} erro(s)" if erros else "")
