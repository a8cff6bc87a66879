import io
import logging
import re
from fastapi import APIRouter, Depends, HTTPException, UploadFile, File
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session, joinedload
from typing import List
from db import get_db
from models.models import User, NotaFiscal
from schemas.schemas import NotaFiscalOut, NFSeImportRequest, NFSeConsultaRequest, ImportResult
from services import xml_service
from services.xml_service import NFSeXMLError
from services.nfse_import_service import import_comp_list, summary_message
from services.nfse_ws_service import (build_consulta_xml, build_soap_envelope, consultar_nfse,
                                      NFSeServiceError)
from services.pdf_service import nfse_pdf
from routers.auth import get_current_user
from routers.clients import get_client_or_404

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/nfse", tags=["nfse"])


def _get_nota_or_404(db: Session, nota_id: int) -> NotaFiscal:
    nota = (db.query(NotaFiscal).options(joinedload(NotaFiscal.cliente))
            .filter(NotaFiscal.id == nota_id).first())
    if not nota:
        raise HTTPException(status_code=404, detail="Nota não encontrada")
    return nota


def _import_xml(db: Session, xml_content: str) -> dict:
    """Upload manual: cada nota vai para o cliente cujo CNPJ é o do tomador."""
    try:
        root = xml_service.load_xml(xml_content)
        comps = xml_service.extract_comp_nfse(root)
    except NFSeXMLError as e:
        logger.warning(f"NFSe import: {e}")
        raise HTTPException(status_code=400, detail={
            "message": "Erro ao processar o XML. Verifique se o arquivo está no formato correto.",
            "error": str(e),
        })
    if not comps:
        raise HTTPException(status_code=400, detail="Nenhuma nota fiscal encontrada no XML")

    importadas, erros = import_comp_list(db, comps, xml_content)
    if not importadas and erros:
        raise HTTPException(status_code=400, detail={
            "message": "Nenhuma nota fiscal foi importada",
            "detalhes": {"erros": erros},
        })
    return {
        "message": summary_message(len(importadas), len(erros)),
        "importadas": len(importadas),
        "erros": len(erros),
        "detalhes": {"notasImportadas": importadas, "notasErro": erros},
    }


@router.get("", response_model=List[NotaFiscalOut])
async def list_nfse(db: Session = Depends(get_db),
                    _: User = Depends(get_current_user)):
    return (db.query(NotaFiscal).options(joinedload(NotaFiscal.cliente))
            .order_by(NotaFiscal.data_emissao.desc()).all())


@router.post("/import", response_model=ImportResult)
async def import_nfse(data: NFSeImportRequest, db: Session = Depends(get_db),
                      _: User = Depends(get_current_user)):
    if not data.xmlContent or not data.xmlContent.strip():
        raise HTTPException(status_code=400, detail="Conteúdo XML não fornecido")
    return _import_xml(db, data.xmlContent)


@router.post("/upload", response_model=ImportResult)
async def upload_nfse(file: UploadFile = File(...), db: Session = Depends(get_db),
                      _: User = Depends(get_current_user)):
    content = await file.read()
    fname = (file.filename or "").lower()
    ct = (file.content_type or "").lower()
    if not (fname.endswith(".xml") or ct in ("application/xml", "text/xml")):
        raise HTTPException(status_code=400, detail="Formato não suportado. Envie um arquivo XML")
    if not content.strip():
        raise HTTPException(status_code=400, detail="Conteúdo XML não fornecido")
    try:
        xml_content = content.decode("utf-8-sig")
    except UnicodeDecodeError:
        xml_content = content.decode("latin-1")
    return _import_xml(db, xml_content)


@router.post("/consultar", response_model=ImportResult)
async def consultar(data: NFSeConsultaRequest, db: Session = Depends(get_db),
                    _: User = Depends(get_current_user)):
    """Consulta o web service municipal e importa as notas retornadas para o cliente informado."""
    if not data.clientId:
        raise HTTPException(status_code=400, detail="ID do cliente é obrigatório")

    envelope = data.soapEnvelope
    if not envelope:
        cnpj = re.sub(r"\D", "", data.cnpj or "")
        if not cnpj or not data.inscricaoMunicipal:
            raise HTTPException(status_code=400,
                                detail="Envelope SOAP ou CNPJ e Inscrição Municipal são obrigatórios")
        if bool(data.dataInicial) != bool(data.dataFinal):
            raise HTTPException(status_code=400, detail="Informe data inicial e final")
        if data.dataInicial and data.dataInicial > data.dataFinal:
            raise HTTPException(status_code=400, detail="Data inicial posterior à data final")
        envelope = build_soap_envelope(build_consulta_xml(
            cnpj, data.inscricaoMunicipal, data.numeroNota, data.dataInicial, data.dataFinal))

    cliente = get_client_or_404(db, data.clientId)

    try:
        xml_response = await consultar_nfse(envelope)
    except NFSeServiceError as e:
        raise HTTPException(status_code=502, detail=str(e))

    try:
        root = xml_service.load_xml(xml_response)
        comps = xml_service.extract_comp_nfse(root)
    except NFSeXMLError as e:
        logger.error(f"NFSe consulta: resposta ilegível ({e})")
        raise HTTPException(status_code=502, detail="Resposta inválida do web service da NFSe")

    mensagens = xml_service.service_errors(root)
    if mensagens:
        logger.info(f"NFSe consulta: mensagens do web service {mensagens}")

    importadas, erros = import_comp_list(db, comps, xml_response, cliente=cliente)
    return {
        "message": summary_message(len(importadas), len(erros)),
        "importadas": len(importadas),
        "erros": len(erros),
        "detalhes": {"notasImportadas": importadas, "notasErro": erros},
        "mensagens": mensagens,
    }


@router.get("/{nota_id}", response_model=NotaFiscalOut)
async def get_nfse(nota_id: int, db: Session = Depends(get_db),
                   _: User = Depends(get_current_user)):
    return _get_nota_or_404(db, nota_id)


def _detalhes(nota: NotaFiscal) -> dict:
    if not nota.xml_content:
        raise HTTPException(status_code=404, detail="XML da nota não disponível")
    try:
        return xml_service.find_nfse_detalhes(nota.xml_content, nota.numero, nota.codigo_verificacao)
    except NFSeXMLError as e:
        raise HTTPException(status_code=422, detail=str(e))


@router.get("/{nota_id}/detalhes")
async def get_nfse_detalhes(nota_id: int, db: Session = Depends(get_db),
                            _: User = Depends(get_current_user)):
    return _detalhes(_get_nota_or_404(db, nota_id))


@router.get("/{nota_id}/pdf")
async def get_nfse_pdf(nota_id: int, db: Session = Depends(get_db),
                       _: User = Depends(get_current_user)):
    nota = _get_nota_or_404(db, nota_id)
    pdf = nfse_pdf(_detalhes(nota))
    return StreamingResponse(
        io.BytesIO(pdf),
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="nfse-{nota.numero}.pdf"'},
    )


@router.delete("/{nota_id}")
async def delete_nfse(nota_id: int, db: Session = Depends(get_db),
                      _: User = Depends(get_current_user)):
    nota = _get_nota_or_404(db, nota_id)
    db.delete(nota)
    db.commit()
    return {"ok": True}
