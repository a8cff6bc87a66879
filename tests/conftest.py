import os

os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["SECRET_KEY"] = "test-secret"
os.environ["ADMIN_USERNAME"] = "admin"
os.environ["ADMIN_PASSWORD"] = "admin123"

from datetime import datetime

import pytest
from fastapi.testclient import TestClient

from db import Base, engine, SessionLocal
from main import app, seed_defaults
from models.models import Client, SolicitanteDemanda, Status, Prioridade, Support
from services.hours_service import compute_duracao

TOMADOR_CNPJ = "11222333000181"


@pytest.fixture(autouse=True)
def fresh_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    seed_defaults()
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


@pytest.fixture
def token(client):
    resp = client.post("/api/auth/login", json={"username": "admin", "password": "admin123"})
    assert resp.status_code == 200
    return resp.json()["token"]


@pytest.fixture
def auth(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def cliente(db):
    c = Client(nome_cliente="Acme Ltda", dia_fechamento=25, gestor="Maria",
               total_horas_contratadas=10, cnpj=TOMADOR_CNPJ, inscricao_municipal="12345")
    db.add(c)
    db.commit()
    db.refresh(c)
    return c


@pytest.fixture
def solicitante(db, cliente):
    s = SolicitanteDemanda(nome_solicitante_demanda="João", id_cliente=cliente.id_cliente)
    db.add(s)
    db.commit()
    db.refresh(s)
    return s


@pytest.fixture
def make_support(db, cliente, solicitante):
    status = db.query(Status).filter(Status.status == "Em andamento").one()
    prioridade = db.query(Prioridade).first()

    def _make(inicio: datetime, fim: datetime, status_nome: str = None, **kw):
        st = status
        if status_nome:
            st = db.query(Status).filter(Status.status == status_nome).one()
        s = Support(id_cliente=kw.pop("id_cliente", cliente.id_cliente), id_status=st.id_status,
                    id_prioridade=prioridade.id_prioridade,
                    id_solicitante_demanda=kw.pop("id_solicitante_demanda",
                                                  solicitante.id_solicitante_demanda),
                    inicio_suporte=inicio, fim_suporte=fim, data_suporte=inicio,
                    duracao=compute_duracao(inicio, fim),
                    nome_tarefa=kw.pop("nome_tarefa", "Backup"),
                    descricao_suporte=kw.pop("descricao_suporte", "Ajuste de rotina de backup"), **kw)
        db.add(s)
        db.commit()
        db.refresh(s)
        return s
    return _make


def comp_nfse(numero="101", codigo="ABC123", cnpj=TOMADOR_CNPJ, valor="1500.00",
              liquido="1425.00", emissao="2024-03-15T10:22:33", competencia="2024-03-01",
              prefix="") -> str:
    p = f"{prefix}:" if prefix else ""
    return f"""
  <{p}CompNfse>
    <{p}Nfse versao="2.03">
      <{p}InfNfse Id="nfse{numero}">
        <{p}Numero>{numero}</{p}Numero>
        <{p}CodigoVerificacao>{codigo}</{p}CodigoVerificacao>
        <{p}DataEmissao>{emissao}</{p}DataEmissao>
        <{p}Competencia>{competencia}</{p}Competencia>
        <{p}Servico>
          <{p}Valores>
            <{p}ValorServicos>{valor}</{p}ValorServicos>
            <{p}ValorDeducoes>0.00</{p}ValorDeducoes>
            <{p}BaseCalculo>{valor}</{p}BaseCalculo>
            <{p}Aliquota>5.00</{p}Aliquota>
            <{p}ValorIss>75.00</{p}ValorIss>
            <{p}IssRetido>1</{p}IssRetido>
            <{p}ValorLiquidoNfse>{liquido}</{p}ValorLiquidoNfse>
          </{p}Valores>
          <{p}Discriminacao>Suporte DBA mensal</{p}Discriminacao>
        </{p}Servico>
        <{p}PrestadorServico>
          <{p}IdentificacaoPrestador>
            <{p}Cnpj>99888777000166</{p}Cnpj>
            <{p}InscricaoMunicipal>998877</{p}InscricaoMunicipal>
          </{p}IdentificacaoPrestador>
          <{p}RazaoSocial>DB Consultoria ME</{p}RazaoSocial>
          <{p}Endereco>
            <{p}Endereco>Rua das Flores</{p}Endereco>
            <{p}Numero>10</{p}Numero>
            <{p}Bairro>Centro</{p}Bairro>
            <{p}Cidade>Vila Velha</{p}Cidade>
            <{p}Uf>ES</{p}Uf>
            <{p}Cep>29100000</{p}Cep>
          </{p}Endereco>
        </{p}PrestadorServico>
        <{p}TomadorServico>
          <{p}IdentificacaoTomador>
            <{p}CpfCnpj><{p}Cnpj>{cnpj}</{p}Cnpj></{p}CpfCnpj>
          </{p}IdentificacaoTomador>
          <{p}RazaoSocial>Acme Ltda</{p}RazaoSocial>
        </{p}TomadorServico>
      </{p}InfNfse>
    </{p}Nfse>
  </{p}CompNfse>"""


def consultar_resposta(*comps: str, prefix: str = "") -> str:
    p = f"{prefix}:" if prefix else ""
    ns = f'xmlns:{prefix}="http://www.abrasf.org.br/nfse.xsd"' if prefix \
        else 'xmlns="http://www.abrasf.org.br/nfse.xsd"'
    return (f'<?xml version="1.0" encoding="UTF-8"?>\n<{p}ConsultarNfseResposta {ns}>'
            f'<{p}ListaNfse>{"".join(comps)}</{p}ListaNfse></{p}ConsultarNfseResposta>')
