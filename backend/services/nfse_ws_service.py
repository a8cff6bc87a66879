import httpx
import logging
from datetime import date
from typing import Optional
from xml.sax.saxutils import escape
from config import NFSE_WS_URL, NFSE_SOAP_ACTION, NFSE_TIMEOUT, NFSE_VERIFY_SSL

logger = logging.getLogger(__name__)

ABRASF_NS = "http://www.abrasf.org.br/nfse.xsd"
ABRASF_VERSAO = "2.03"


class NFSeServiceError(Exception):
    """Falha de transporte ao falar com o web service municipal."""


def build_consulta_xml(cnpj: str, inscricao_municipal: str,
                       numero_nota: Optional[str] = None,
                       data_inicial: Optional[date] = None,
                       data_final: Optional[date] = None) -> str:
    numero = f"\n  <NumeroNfse>{escape(numero_nota)}</NumeroNfse>" if numero_nota else ""
    periodo = ""
    if data_inicial and data_final:
        periodo = (
            "\n  <PeriodoEmissao>"
            f"\n    <DataInicial>{data_inicial:%Y-%m-%d}</DataInicial>"
            f"\n    <DataFinal>{data_final:%Y-%m-%d}</DataFinal>"
            "\n  </PeriodoEmissao>"
        )
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        f'<ConsultarNfseEnvio xmlns="{ABRASF_NS}" xmlns:xsi="http://www.w3.org/2001/XMLSchema-instance">\n'
        "  <Prestador>\n"
        f"    <CpfCnpj>\n      <Cnpj>{escape(cnpj)}</Cnpj>\n    </CpfCnpj>\n"
        f"    <InscricaoMunicipal>{escape(inscricao_municipal)}</InscricaoMunicipal>\n"
        f"  </Prestador>{numero}{periodo}\n"
        "</ConsultarNfseEnvio>"
    )


def build_soap_envelope(dados_xml: str) -> str:
    """Envelope SOAP 1.1 do ConsultarNfse; cabeçalho e dados seguem em CDATA."""
    cabecalho = (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        f'<cabecalho xmlns="{ABRASF_NS}" versao="{ABRASF_VERSAO}">\n'
        f"  <versaoDados>{ABRASF_VERSAO}</versaoDados>\n"
        "</cabecalho>"
    )
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        '<soap:Envelope xmlns:soap="http://schemas.xmlsoap.org/soap/envelope/" '
        'xmlns:ns="http://nfse.abrasf.org.br">\n'
        "  <soap:Header/>\n"
        "  <soap:Body>\n"
        "    <ns:ConsultarNfse>\n"
        f"      <nfseCabecMsg><![CDATA[{cabecalho}]]></nfseCabecMsg>\n"
        f"      <nfseDadosMsg><![CDATA[{dados_xml}]]></nfseDadosMsg>\n"
        "    </ns:ConsultarNfse>\n"
        "  </soap:Body>\n"
        "</soap:Envelope>"
    )


async def consultar_nfse(soap_envelope: str) -> str:
    """POST do envelope no web service ABRASF; devolve o XML de resposta cru."""
    try:
        # certificado da prefeitura não fecha cadeia; verificação controlada por NFSE_VERIFY_SSL
        async with httpx.AsyncClient(timeout=NFSE_TIMEOUT, verify=NFSE_VERIFY_SSL) as client:
            resp = await client.post(
                NFSE_WS_URL,
                content=soap_envelope.encode("utf-8"),
                headers={
                    "Content-Type": "text/xml;charset=UTF-8",
                    "SOAPAction": NFSE_SOAP_ACTION,
                },
            )
    except httpx.TimeoutException:
        logger.warning(f"NFSe WS timeout ({NFSE_TIMEOUT}s) em {NFSE_WS_URL}")
        raise NFSeServiceError("Timeout ao consultar o web service da NFSe")
    except httpx.HTTPError as e:
        logger.error(f"NFSe WS error: {e}")
        raise NFSeServiceError(f"Erro ao consultar o web service da NFSe: {e}")

    # SOAP faults chegam com HTTP 500 e corpo XML; o parser decide o que fazer
    if resp.status_code >= 400 and "xml" not in resp.headers.get("content-type", ""):
        logger.error(f"NFSe WS HTTP {resp.status_code}: {resp.text[:200]}")
        raise NFSeServiceError(f"Web service da NFSe respondeu HTTP {resp.status_code}")
    logger.info(f"NFSe WS HTTP {resp.status_code}, {len(resp.content)} bytes")
    return resp.text
