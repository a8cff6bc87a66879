import asyncio
from datetime import date

import httpx
import pytest

from services import nfse_ws_service
from services.nfse_ws_service import (build_consulta_xml, build_soap_envelope, consultar_nfse,
                                      NFSeServiceError)
from services.xml_service import load_xml, _find, _txt


def _mock_transport(monkeypatch, handler):
    real_client = httpx.AsyncClient

    def factory(**kwargs):
        return real_client(transport=httpx.MockTransport(handler), **kwargs)

    monkeypatch.setattr(nfse_ws_service.httpx, "AsyncClient", factory)


def test_consulta_xml_by_period():
    xml = build_consulta_xml("99888777000166", "998877",
                             data_inicial=date(2024, 3, 1), data_final=date(2024, 3, 31))
    root = load_xml(xml)
    assert _txt(root, "Prestador", "CpfCnpj", "Cnpj") == "99888777000166"
    assert _txt(root, "Prestador", "InscricaoMunicipal") == "998877"
    assert _txt(root, "PeriodoEmissao", "DataInicial") == "2024-03-01"
    assert _find(root, "NumeroNfse") is None


def test_consulta_xml_by_number_escapes():
    xml = build_consulta_xml("99888777000166", "998877", numero_nota="12<3")
    assert "<NumeroNfse>12&lt;3</NumeroNfse>" in xml
    assert "PeriodoEmissao" not in xml


def test_soap_envelope_wraps_in_cdata():
    envelope = build_soap_envelope("<ConsultarNfseEnvio/>")
    root = load_xml(envelope)
    body = _find(root, "Body", "ConsultarNfse")
    assert _txt(body, "nfseDadosMsg") == "<ConsultarNfseEnvio/>"
    cabecalho = load_xml(_txt(body, "nfseCabecMsg"))
    assert _txt(cabecalho, "versaoDados") == "2.03"


def test_consultar_posts_envelope(monkeypatch):
    seen = {}

    def handler(request: httpx.Request):
        seen["body"] = request.content.decode("utf-8")
        seen["headers"] = request.headers
        return httpx.Response(200, text="<ok/>", headers={"content-type": "text/xml"})

    _mock_transport(monkeypatch, handler)
    assert asyncio.run(consultar_nfse("<env/>")) == "<ok/>"
    assert seen["body"] == "<env/>"
    assert seen["headers"]["content-type"].startswith("text/xml")
    assert "soapaction" in seen["headers"]


def test_consultar_soap_fault_is_returned(monkeypatch):
    _mock_transport(monkeypatch, lambda request: httpx.Response(
        500, text="<Fault/>", headers={"content-type": "text/xml; charset=utf-8"}))
    assert asyncio.run(consultar_nfse("<env/>")) == "<Fault/>"


def test_consultar_http_error(monkeypatch):
    _mock_transport(monkeypatch, lambda request: httpx.Response(
        503, text="Service Unavailable", headers={"content-type": "text/html"}))
    with pytest.raises(NFSeServiceError, match="HTTP 503"):
        asyncio.run(consultar_nfse("<env/>"))


def test_consultar_timeout(monkeypatch):
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    _mock_transport(monkeypatch, handler)
    with pytest.raises(NFSeServiceError, match="Timeout"):
        asyncio.run(consultar_nfse("<env/>"))


def test_consultar_connection_error(monkeypatch):
    def handler(request):
        raise httpx.ConnectError("recusado", request=request)

    _mock_transport(monkeypatch, handler)
    with pytest.raises(NFSeServiceError):
        asyncio.run(consultar_nfse("<env/>"))
