import re
from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
from datetime import date, datetime
from models.models import UserRole


def _only_digits(v: Optional[str]) -> Optional[str]:
    if v is None:
        return None
    digits = re.sub(r"\D", "", v)
    if not digits:
        return None
    if len(digits) != 14:
        raise ValueError("CNPJ deve conter 14 dígitos")
    return digits


# ── Auth ──────────────────────────────────────────────────────────────────────

class LoginRequest(BaseModel):
    username: Optional[str] = None
    password: Optional[str] = None


class UserCreate(BaseModel):
    username: str = Field(min_length=1)
    password: str = Field(min_length=1)
    role: UserRole = UserRole.viewer


class UserOut(BaseModel):
    id: int
    username: str
    role: UserRole
    created_at: Optional[datetime] = None
    class Config:
        from_attributes = True


class LoginResponse(BaseModel):
    user: UserOut
    token: str


class RegisterResponse(BaseModel):
    message: str
    user: UserOut


class Token(BaseModel):
    access_token: str
    token_type: str


# ── Cadastros ─────────────────────────────────────────────────────────────────

class ClientCreate(BaseModel):
    nome_cliente: str = Field(min_length=1)
    dia_fechamento: int = Field(ge=1, le=31)
    gestor: Optional[str] = None
    total_horas_contratadas: float = Field(default=0, ge=0)
    cnpj: Optional[str] = None
    inscricao_municipal: Optional[str] = None

    @field_validator("cnpj")
    @classmethod
    def normalize_cnpj(cls, v):
        return _only_digits(v)


class ClientUpdate(BaseModel):
    nome_cliente: Optional[str] = Field(default=None, min_length=1)
    dia_fechamento: Optional[int] = Field(default=None, ge=1, le=31)
    gestor: Optional[str] = None
    total_horas_contratadas: Optional[float] = Field(default=None, ge=0)
    cnpj: Optional[str] = None
    inscricao_municipal: Optional[str] = None

    @field_validator("cnpj")
    @classmethod
    def normalize_cnpj(cls, v):
        return _only_digits(v)


class ClientOut(BaseModel):
    id_cliente: int
    nome_cliente: str
    dia_fechamento: int
    gestor: Optional[str] = None
    total_horas_contratadas: float
    cnpj: Optional[str] = None
    inscricao_municipal: Optional[str] = None
    class Config:
        from_attributes = True


class StatusCreate(BaseModel):
    status: str = Field(min_length=1)


class StatusOut(BaseModel):
    id_status: int
    status: str
    class Config:
        from_attributes = True


class PrioridadeCreate(BaseModel):
    prioridade: str = Field(min_length=1)


class PrioridadeOut(BaseModel):
    id_prioridade: int
    prioridade: str
    class Config:
        from_attributes = True


class SolicitanteCreate(BaseModel):
    id_cliente: int
    nome_solicitante_demanda: str = Field(min_length=1)


class SolicitanteOut(BaseModel):
    id_solicitante_demanda: int
    nome_solicitante_demanda: str
    id_cliente: int
    cliente: Optional[ClientOut] = None
    class Config:
        from_attributes = True


# ── Atendimentos ──────────────────────────────────────────────────────────────

class SupportUpdate(BaseModel):
    # Everything optional so missing fields surface as 400, not 422
    id_status: Optional[int] = None
    id_prioridade: Optional[int] = None
    primeiro_contato: Optional[str] = None
    inicio_suporte: Optional[str] = None
    fim_suporte: Optional[str] = None
    nome_tarefa: Optional[str] = None
    descricao_suporte: Optional[str] = None


class SupportCreate(SupportUpdate):
    id_cliente: Optional[int] = None
    id_solicitante_demanda: Optional[int] = None


class SupportOut(BaseModel):
    id_suporte: int
    id_cliente: int
    id_status: int
    id_prioridade: int
    id_solicitante_demanda: int
    primeiro_contato: Optional[datetime] = None
    inicio_suporte: datetime
    fim_suporte: datetime
    data_suporte: datetime
    duracao: str
    nome_tarefa: str
    descricao_suporte: str
    cliente: ClientOut
    status: StatusOut
    prioridade: PrioridadeOut
    solicitante_demanda: SolicitanteOut
    class Config:
        from_attributes = True


# ── Relatórios ────────────────────────────────────────────────────────────────

class ClientReport(BaseModel):
    supports: List[SupportOut]
    client: ClientOut


class HoursMonth(BaseModel):
    mes: int
    horasContratadas: str
    horasUtilizadas: str
    saldoMes: str
    saldoAcumulado: str
    quantidadeAtendimentos: int


class HoursTotals(BaseModel):
    horasContratadas: str
    horasUtilizadas: str
    saldo: str
    quantidadeAtendimentos: int


class HoursControl(BaseModel):
    cliente: str
    meses: List[HoursMonth]
    totais: HoursTotals


class TopClient(BaseModel):
    nome_cliente: str
    total: int


class DashboardStats(BaseModel):
    totalClients: int
    monthlySupports: int
    totalHours: float
    pendingSupports: int
    recentSupports: List[SupportOut]
    topClients: List[TopClient]


# ── NFSe ──────────────────────────────────────────────────────────────────────

class NotaFiscalOut(BaseModel):
    id: int
    numero: str
    codigo_verificacao: str
    data_emissao: Optional[datetime] = None
    competencia: Optional[datetime] = None
    valor_servicos: Optional[float] = None
    valor_liquido: Optional[float] = None
    discriminacao: Optional[str] = None
    data_importacao: Optional[datetime] = None
    id_cliente: int
    cliente: Optional[ClientOut] = None
    class Config:
        from_attributes = True


class NFSeImportRequest(BaseModel):
    xmlContent: Optional[str] = None


class NFSeConsultaRequest(BaseModel):
    clientId: Optional[int] = None
    soapEnvelope: Optional[str] = None
    cnpj: Optional[str] = None
    inscricaoMunicipal: Optional[str] = None
    numeroNota: Optional[str] = None
    dataInicial: Optional[date] = None
    dataFinal: Optional[date] = None


class NotaErro(BaseModel):
    numero: str
    erro: str


class MensagemRetorno(BaseModel):
    codigo: Optional[str] = None
    mensagem: Optional[str] = None
    correcao: Optional[str] = None


class ImportDetalhes(BaseModel):
    notasImportadas: List[NotaFiscalOut] = []
    notasErro: List[NotaErro] = []


class ImportResult(BaseModel):
    message: str
    importadas: int
    erros: int
    detalhes: ImportDetalhes
    mensagens: List[MensagemRetorno] = []
