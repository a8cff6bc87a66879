"""
Leitura de NFSe no layout ABRASF (2.0x).

Os XMLs chegam tanto do upload manual quanto do retorno do web service
municipal, com ou sem prefixos de namespace. Todas as buscas ignoram o
namespace.
"""

import re
import xml.etree.ElementTree as ET
from datetime import datetime
from typing import Dict, List, Optional

from services.hours_service import parse_datetime


class NFSeXMLError(ValueError):
    """XML ilegível ou fora do layout ABRASF esperado."""


def _strip_ns(tag: str) -> str:
    return re.sub(r"\{[^}]+\}", "", tag)


def _find(elem, *path_parts):
    """Navega pelo XML ignorando namespaces."""
    cur = elem
    for part in path_parts:
        if cur is None:
            return None
        found = next((c for c in cur if _strip_ns(c.tag) == part), None)
        if found is None:
            return None
        cur = found
    return cur


def _findall(elem, tag: str) -> List[ET.Element]:
    return [c for c in elem if _strip_ns(c.tag) == tag] if elem is not None else []


def _txt(elem, *path, default=None) -> Optional[str]:
    node = _find(elem, *path)
    if node is None or node.text is None:
        return default
    return node.text.strip()


def _float(val, default: float = 0.0) -> float:
    if val in (None, ""):
        return default
    return float(val)


def _data(val: Optional[str]) -> datetime:
    """Data/hora da nota no horário local do município. Raises ValueError."""
    dt = parse_datetime(val, to_utc=False)
    if dt is None:
        raise ValueError(f"data inválida: {val!r}")
    return dt


def load_xml(content) -> ET.Element:
    if isinstance(content, str):
        content = content.strip()
    try:
        return ET.fromstring(content)
    except ET.ParseError as e:
        raise NFSeXMLError(f"XML inválido: {e}")


def _unwrap_soap(root: ET.Element) -> ET.Element:
    """
    Resposta do web service: o ConsultarNfseResposta pode vir como filho do
    envelope ou como texto escapado dentro de <outputXML>/<return>.
    """
    for el in root.iter():
        if _strip_ns(el.tag) == "ConsultarNfseResposta":
            return el
    for el in root.iter():
        if _strip_ns(el.tag) in ("outputXML", "return") and el.text and el.text.strip():
            return load_xml(el.text)
    return root


def extract_comp_nfse(root: ET.Element) -> List[ET.Element]:
    """Lista de <CompNfse> de um ConsultarNfseResposta, de um envelope SOAP ou de uma nota avulsa."""
    root = _unwrap_soap(root)
    tag = _strip_ns(root.tag)
    if tag == "CompNfse":
        return [root]
    if tag == "ConsultarNfseResposta":
        comps: List[ET.Element] = []
        for lista in _findall(root, "ListaNfse"):
            comps.extend(_findall(lista, "CompNfse"))
        return comps
    raise NFSeXMLError("Não foi possível encontrar as notas fiscais no XML")


def service_errors(root: ET.Element) -> List[Dict]:
    """Mensagens de retorno (<ListaMensagemRetorno>) do web service, se houver."""
    root = _unwrap_soap(root)
    msgs = []
    for el in root.iter():
        if _strip_ns(el.tag) == "MensagemRetorno":
            msgs.append({
                "codigo": _txt(el, "Codigo"),
                "mensagem": _txt(el, "Mensagem"),
                "correcao": _txt(el, "Correcao"),
            })
    return msgs


def inf_nfse(comp: ET.Element) -> Optional[ET.Element]:
    return _find(comp, "Nfse", "InfNfse")


def numero_nfse(inf: ET.Element) -> Optional[str]:
    return _txt(inf, "Numero")


def tomador_cnpj(inf: ET.Element) -> Optional[str]:
    ident = _find(inf, "TomadorServico", "IdentificacaoTomador", "CpfCnpj")
    if ident is None:
        # layout 2.04+: DeclaracaoPrestacaoServico/InfDeclaracaoPrestacaoServico/Tomador
        ident = _find(inf, "DeclaracaoPrestacaoServico", "InfDeclaracaoPrestacaoServico",
                      "Tomador", "IdentificacaoTomador", "CpfCnpj")
    return _txt(ident, "Cnpj")


def _servico(inf: ET.Element):
    servico = _find(inf, "Servico")
    if servico is None:
        servico = _find(inf, "DeclaracaoPrestacaoServico", "InfDeclaracaoPrestacaoServico", "Servico")
    return servico


def parse_inf_nfse(inf: ET.Element) -> Dict:
    """
    Campos persistidos de uma NFSe. Levanta ValueError com a mensagem que
    vai para o relatório de importação.
    """
    numero = _txt(inf, "Numero")
    codigo = _txt(inf, "CodigoVerificacao")
    if not numero or not codigo:
        raise ValueError("Número ou código de verificação da nota não encontrado")

    servico = _servico(inf)
    valores = _find(servico, "Valores")
    try:
        valor_servicos = _float(_txt(valores, "ValorServicos"))
        valor_liquido = _float(_txt(valores, "ValorLiquidoNfse") or _txt(inf, "ValoresNfse", "ValorLiquidoNfse"))
    except ValueError:
        raise ValueError("Valores da nota fiscal inválidos")

    try:
        data_emissao = _data(_txt(inf, "DataEmissao"))
        competencia = _data(
            _txt(inf, "Competencia")
            or _txt(inf, "DeclaracaoPrestacaoServico", "InfDeclaracaoPrestacaoServico", "Competencia")
        )
    except ValueError:
        raise ValueError("Datas da nota fiscal inválidas")

    return {
        "numero": numero,
        "codigo_verificacao": codigo,
        "data_emissao": data_emissao,
        "competencia": competencia,
        "valor_servicos": valor_servicos,
        "valor_liquido": valor_liquido,
        "discriminacao": _txt(servico, "Discriminacao", default=""),
    }


def _endereco(el) -> Dict:
    end = _find(el, "Endereco")
    return {
        "logradouro": _txt(end, "Endereco") or _txt(end, "Logradouro"),
        "numero": _txt(end, "Numero"),
        "complemento": _txt(end, "Complemento"),
        "bairro": _txt(end, "Bairro"),
        "cidade": _txt(end, "Cidade") or _txt(end, "CodigoMunicipio"),
        "uf": _txt(end, "Uf"),
        "cep": _txt(end, "Cep"),
    }


def parse_nfse_detalhes(inf: ET.Element) -> Dict:
    """Visão completa da nota (prestador, tomador, valores) para exibição e PDF."""
    prestador = _find(inf, "PrestadorServico")
    tomador = _find(inf, "TomadorServico")
    servico = _servico(inf)
    valores = _find(servico, "Valores")
    ident_prest = _find(prestador, "IdentificacaoPrestador")

    def num(tag):
        try:
            return _float(_txt(valores, tag))
        except ValueError:
            return 0.0

    return {
        "numeroNota": _txt(inf, "Numero"),
        "codigoVerificacao": _txt(inf, "CodigoVerificacao"),
        "dataEmissao": _txt(inf, "DataEmissao"),
        "competencia": _txt(inf, "Competencia"),
        "discriminacao": _txt(servico, "Discriminacao", default=""),
        "prestador": {
            "razaoSocial": _txt(prestador, "RazaoSocial"),
            "cnpj": _txt(ident_prest, "Cnpj") or _txt(ident_prest, "CpfCnpj", "Cnpj"),
            "inscricaoMunicipal": _txt(ident_prest, "InscricaoMunicipal"),
            "endereco": _endereco(prestador),
        },
        "tomador": {
            "razaoSocial": _txt(tomador, "RazaoSocial"),
            "cnpj": tomador_cnpj(inf),
            "endereco": _endereco(tomador),
        },
        "servico": {
            "discriminacao": _txt(servico, "Discriminacao", default=""),
            "valores": {
                "valorServicos": num("ValorServicos"),
                "valorDeducoes": num("ValorDeducoes"),
                "baseCalculo": num("BaseCalculo"),
                "aliquota": num("Aliquota"),
                "valorIss": num("ValorIss"),
                "issRetido": _txt(valores, "IssRetido") == "1" or _txt(servico, "IssRetido") == "1",
                "valorLiquido": num("ValorLiquidoNfse"),
            },
        },
    }


def find_nfse_detalhes(xml_content: str, numero: str, codigo: str) -> Dict:
    """Localiza a nota pelo número/código dentro do XML armazenado (que pode conter várias)."""
    root = load_xml(xml_content)
    for comp in extract_comp_nfse(root):
        inf = inf_nfse(comp)
        if inf is not None and _txt(inf, "Numero") == numero and _txt(inf, "CodigoVerificacao") == codigo:
            return parse_nfse_detalhes(inf)
    raise NFSeXMLError("Nota não encontrada no XML armazenado")
