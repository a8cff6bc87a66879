from datetime import datetime
from xml.sax.saxutils import escape

import pytest

from conftest import comp_nfse, consultar_resposta, TOMADOR_CNPJ
from services import xml_service
from services.xml_service import NFSeXMLError


def test_extract_and_parse_default_namespace():
    root = xml_service.load_xml(consultar_resposta(comp_nfse("1"), comp_nfse("2")))
    comps = xml_service.extract_comp_nfse(root)
    assert len(comps) == 2

    inf = xml_service.inf_nfse(comps[0])
    dados = xml_service.parse_inf_nfse(inf)
    assert dados["numero"] == "1"
    assert dados["codigo_verificacao"] == "ABC123"
    assert dados["data_emissao"] == datetime(2024, 3, 15, 10, 22, 33)
    assert dados["competencia"] == datetime(2024, 3, 1)
    assert dados["valor_servicos"] == 1500.0
    assert dados["valor_liquido"] == 1425.0
    assert dados["discriminacao"] == "Suporte DBA mensal"
    assert xml_service.tomador_cnpj(inf) == TOMADOR_CNPJ


def test_prefixed_tags_are_ignored():
    xml = consultar_resposta(comp_nfse("7", prefix="ns2"), prefix="ns2")
    comps = xml_service.extract_comp_nfse(xml_service.load_xml(xml))
    assert xml_service.parse_inf_nfse(xml_service.inf_nfse(comps[0]))["numero"] == "7"


def test_single_comp_nfse_root():
    xml = comp_nfse("3").replace("<CompNfse>", '<CompNfse xmlns="http://www.abrasf.org.br/nfse.xsd">', 1)
    comps = xml_service.extract_comp_nfse(xml_service.load_xml(xml))
    assert len(comps) == 1


def test_soap_envelope_with_escaped_output():
    inner = consultar_resposta(comp_nfse("9"))
    envelope = (
        '<soap:Envelope xmlns:soap="http://schemas.xmlsoap.org/soap/envelope/">'
        '<soap:Body><ns:ConsultarNfseResponse xmlns:ns="http://nfse.abrasf.org.br">'
        f'<outputXML>{escape(inner)}</outputXML>'
        '</ns:ConsultarNfseResponse></soap:Body></soap:Envelope>'
    )
    comps = xml_service.extract_comp_nfse(xml_service.load_xml(envelope))
    assert xml_service.numero_nfse(xml_service.inf_nfse(comps[0])) == "9"


def test_service_messages_without_notes():
    xml = ('<ConsultarNfseResposta xmlns="http://www.abrasf.org.br/nfse.xsd"><ListaMensagemRetorno>'
           '<MensagemRetorno><Codigo>E160</Codigo><Mensagem>Nenhuma NFS-e encontrada</Mensagem>'
           '</MensagemRetorno></ListaMensagemRetorno></ConsultarNfseResposta>')
    root = xml_service.load_xml(xml)
    assert xml_service.extract_comp_nfse(root) == []
    assert xml_service.service_errors(root) == [
        {"codigo": "E160", "mensagem": "Nenhuma NFS-e encontrada", "correcao": None}]


def test_invalid_xml_and_unknown_structure():
    with pytest.raises(NFSeXMLError):
        xml_service.load_xml("<nao-fecha>")
    with pytest.raises(NFSeXMLError):
        xml_service.extract_comp_nfse(xml_service.load_xml("<Outro><a/></Outro>"))


def test_parse_errors_carry_import_messages():
    comps = xml_service.extract_comp_nfse(xml_service.load_xml(
        consultar_resposta(comp_nfse(valor="abc"), comp_nfse(emissao="ontem"), comp_nfse(codigo=""))))
    msgs = []
    for comp in comps:
        with pytest.raises(ValueError) as exc:
            xml_service.parse_inf_nfse(xml_service.inf_nfse(comp))
        msgs.append(str(exc.value))
    assert msgs == ["Valores da nota fiscal inválidos", "Datas da nota fiscal inválidas",
                    "Número ou código de verificação da nota não encontrado"]


def test_detalhes_lookup_in_stored_xml():
    xml = consultar_resposta(comp_nfse("1", "AAA"), comp_nfse("2", "BBB"))
    det = xml_service.find_nfse_detalhes(xml, "2", "BBB")
    assert det["numeroNota"] == "2"
    assert det["prestador"]["razaoSocial"] == "DB Consultoria ME"
    assert det["prestador"]["cnpj"] == "99888777000166"
    assert det["prestador"]["endereco"]["cidade"] == "Vila Velha"
    assert det["tomador"]["cnpj"] == TOMADOR_CNPJ
    assert det["servico"]["valores"]["issRetido"] is True
    assert det["servico"]["valores"]["valorIss"] == 75.0
    with pytest.raises(NFSeXMLError):
        xml_service.find_nfse_detalhes(xml, "3", "CCC")


def test_emission_date_keeps_municipal_local_time():
    root = xml_service.load_xml(consultar_resposta(comp_nfse("1", emissao="2024-03-15T23:10:00-03:00")))
    dados = xml_service.parse_inf_nfse(xml_service.inf_nfse(xml_service.extract_comp_nfse(root)[0]))
    assert dados["data_emissao"] == datetime(2024, 3, 15, 23, 10)
