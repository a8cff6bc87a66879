from sqlalchemy import Column, Integer, String, Float, DateTime, ForeignKey, Enum, Text, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import enum
from db import Base


class UserRole(str, enum.Enum):
    admin = "admin"
    viewer = "viewer"


class User(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True)
    username = Column(String, unique=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    role = Column(Enum(UserRole), default=UserRole.viewer)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class Client(Base):
    __tablename__ = "clientes"
    id_cliente = Column(Integer, primary_key=True)
    nome_cliente = Column(String, nullable=False)
    dia_fechamento = Column(Integer, nullable=False)
    gestor = Column(String)
    # Monthly budget; hours-control multiplies it by the months with activity
    total_horas_contratadas = Column(Float, nullable=False, default=0)
    cnpj = Column(String(14), unique=True)
    inscricao_municipal = Column(String)
    suportes = relationship("Support", back_populates="cliente")
    solicitantes = relationship("SolicitanteDemanda", back_populates="cliente")
    notas = relationship("NotaFiscal", back_populates="cliente")


class Status(Base):
    __tablename__ = "status"
    id_status = Column(Integer, primary_key=True)
    status = Column(String, unique=True, nullable=False)


class Prioridade(Base):
    __tablename__ = "prioridades"
    id_prioridade = Column(Integer, primary_key=True)
    prioridade = Column(String, unique=True, nullable=False)


class SolicitanteDemanda(Base):
    __tablename__ = "solicitantes_demanda"
    id_solicitante_demanda = Column(Integer, primary_key=True)
    nome_solicitante_demanda = Column(String, nullable=False)
    id_cliente = Column(Integer, ForeignKey("clientes.id_cliente"), nullable=False)
    cliente = relationship("Client", back_populates="solicitantes")


class Support(Base):
    __tablename__ = "suportes"
    id_suporte = Column(Integer, primary_key=True)
    id_cliente = Column(Integer, ForeignKey("clientes.id_cliente"), nullable=False)
    id_status = Column(Integer, ForeignKey("status.id_status"), nullable=False)
    id_prioridade = Column(Integer, ForeignKey("prioridades.id_prioridade"), nullable=False)
    id_solicitante_demanda = Column(Integer, ForeignKey("solicitantes_demanda.id_solicitante_demanda"),
                                    nullable=False)
    primeiro_contato = Column(DateTime)
    inicio_suporte = Column(DateTime, nullable=False)
    fim_suporte = Column(DateTime, nullable=False)
    data_suporte = Column(DateTime, nullable=False, index=True)
    duracao = Column(String, nullable=False)  # e.g. "1.5h"
    nome_tarefa = Column(String, nullable=False)
    descricao_suporte = Column(Text, nullable=False)
    cliente = relationship("Client", back_populates="suportes")
    status = relationship("Status")
    prioridade = relationship("Prioridade")
    solicitante_demanda = relationship("SolicitanteDemanda")


class NotaFiscal(Base):
    __tablename__ = "notas_fiscais"
    __table_args__ = (
        UniqueConstraint("numero", "codigo_verificacao", "id_cliente", name="uq_nfse_cliente"),
    )
    id = Column(Integer, primary_key=True)
    numero = Column(String, nullable=False)
    codigo_verificacao = Column(String, nullable=False)
    data_emissao = Column(DateTime)
    competencia = Column(DateTime)
    valor_servicos = Column(Float, default=0)
    valor_liquido = Column(Float, default=0)
    discriminacao = Column(Text, default="")
    xml_content = Column(Text)
    data_importacao = Column(DateTime(timezone=True), server_default=func.now())
    id_cliente = Column(Integer, ForeignKey("clientes.id_cliente"), nullable=False)
    cliente = relationship("Client", back_populates="notas")
