"""
Geração de PDFs com PyMuPDF (fitz).

Três documentos, montados em memória e devolvidos como bytes:
  1. Relatório de atendimentos do cliente no mês (ofício paisagem).
  2. Controle de horas do ano (A4 retrato).
  3. Espelho da NFSe (A4 retrato).

As tabelas são desenhadas à mão (retângulos + texto), com quebra de linha e de página.
"""

import logging
import re
from datetime import datetime
from typing import Callable, Dict, List, Optional, Sequence
import fitz  # PyMuPDF

from services.hours_service import parse_datetime, parse_duracao

logger = logging.getLogger(__name__)

_MM = 72 / 25.4  # pontos por milímetro

MESES_PT = ["janeiro", "fevereiro", "março", "abril", "maio", "junho", "julho",
            "agosto", "setembro", "outubro", "novembro", "dezembro"]


def _rgb(r: int, g: int, b: int) -> tuple:
    return (r / 255, g / 255, b / 255)


COLORS = {
    "header": _rgb(178, 200, 171),     # verde camomila
    "text": _rgb(64, 64, 64),
    "light_gray": _rgb(245, 245, 245),
    "positive": _rgb(121, 159, 109),
    "negative": _rgb(159, 109, 109),
    "neutral": _rgb(128, 128, 128),
    "title": _rgb(41, 49, 51),
    "subtitle": _rgb(82, 86, 89),
    "grid": _rgb(200, 200, 200),
}

_FONT = "helv"
_FONT_BOLD = "hebo"


# ── Formatação ────────────────────────────────────────────────────────────────

def format_currency(value) -> str:
    """1234.5 → 'R$ 1.234,50'."""
    try:
        number = float(value or 0)
    except (TypeError, ValueError):
        number = 0.0
    txt = f"{abs(number):,.2f}".replace(",", "X").replace(".", ",").replace("X", ".")
    return f"-R$ {txt}" if number < 0 else f"R$ {txt}"


def format_decimal_br(value) -> str:
    try:
        number = float(value or 0)
    except (TypeError, ValueError):
        number = 0.0
    return f"{number:,.2f}".replace(",", "X").replace(".", ",").replace("X", ".")


def format_cnpj(cnpj: Optional[str]) -> str:
    if not cnpj:
        return ""
    digits = re.sub(r"\D", "", cnpj)
    return re.sub(r"^(\d{2})(\d{3})(\d{3})(\d{4})(\d{2})$", r"\1.\2.\3/\4-\5", digits)


def format_cep(cep: Optional[str]) -> str:
    if not cep:
        return ""
    digits = re.sub(r"\D", "", cep)
    return re.sub(r"^(\d{5})(\d{3})$", r"\1-\2", digits)


def format_endereco(end: Optional[Dict]) -> str:
    if not end:
        return ""
    parts = [end.get("logradouro"), end.get("numero"), end.get("complemento"),
             end.get("bairro"), end.get("cidade"), end.get("uf"), format_cep(end.get("cep"))]
    return ", ".join(p for p in parts if p)


def mes_ano(month: int, year: int, abbreviated: bool = False) -> str:
    nome = MESES_PT[month - 1]
    return f"{nome[:3]}/{year}" if abbreviated else f"{nome}/{year}"


def _fmt_dt(dt: Optional[datetime], fmt: str) -> str:
    return dt.strftime(fmt) if dt else ""
    try:
        return datetime.fromisoformat(val.strip()[:19])
    except ValueError:
        return None


# ── Desenho ─────────────────────────────────────────────────────────────────

class PdfCanvas:
    """Cursor sobre um documento fitz: tamanho da página, margens e o y atual."""

    def __init__(self, width_mm: float, height_mm: float, margin_mm: float):
        self.doc = fitz.open()
        self.width = width_mm * _MM
        self.height = height_mm * _MM
        self.margin = margin_mm * _MM
        self.page = None
        self.y = 0.0
        self.new_page()

    @property
    def content_width(self) -> float:
        return self.width - 2 * self.margin

    def new_page(self):
        self.page = self.doc.new_page(width=self.width, height=self.height)
        self.y = self.margin

    def ensure_space(self, needed: float) -> bool:
        """Quebra a página se `needed` pontos não couberem. True se quebrou."""
        if self.y + needed > self.height - self.margin:
            self.new_page()
            return True
        return False

    def text(self, x: float, y: float, text: str, size: float = 10, bold: bool = False,
             color=COLORS["text"]):
        self.page.insert_text((x, y), text, fontsize=size,
                              fontname=_FONT_BOLD if bold else _FONT, color=color)

    def centered_title(self, text: str, size: float = 14, color=COLORS["text"]):
        w = fitz.get_text_length(text, fontname=_FONT_BOLD, fontsize=size)
        self.text((self.width - w) / 2, self.y + size, text, size=size, bold=True, color=color)
        self.y += size * 1.6

    def heading(self, text: str, size: float = 12, color=COLORS["title"]):
        self.ensure_space(size * 2)
        self.y += size * 0.8
        self.text(self.margin, self.y + size, text, size=size, color=color)
        self.y += size * 1.4

    def logo(self, x: float, y: float):
        """Cilindro de banco de dados com a cruz de suporte."""
        s = _MM
        for dy in (15, 10, 5):
            r = fitz.Rect(x + 2 * s, y + (dy - 3) * s, x + 18 * s, y + (dy + 3) * s)
            self.page.draw_oval(r, color=None, fill=COLORS["header"])
        self.page.draw_line((x + 2 * s, y + 5 * s), (x + 2 * s, y + 15 * s), color=COLORS["text"])
        self.page.draw_line((x + 18 * s, y + 5 * s), (x + 18 * s, y + 15 * s), color=COLORS["text"])
        self.page.draw_circle((x + 10 * s, y + 10 * s), 2 * s, color=COLORS["text"])
        self.page.draw_line((x + 8 * s, y + 10 * s), (x + 12 * s, y + 10 * s), color=COLORS["text"])
        self.page.draw_line((x + 10 * s, y + 8 * s), (x + 10 * s, y + 12 * s), color=COLORS["text"])

    @staticmethod
    def wrap(text: str, width: float, size: float, bold: bool = False) -> List[str]:
        font = _FONT_BOLD if bold else _FONT
        lines: List[str] = []
        for paragraph in str(text if text is not None else "").split("\n"):
            current = ""
            for word in paragraph.split(" "):
                candidate = f"{current} {word}" if current else word
                if fitz.get_text_length(candidate, fontname=font, fontsize=size) <= width:
                    current = candidate
                    continue
                if current:
                    lines.append(current)
                # palavra mais larga que a célula é cortada
                while fitz.get_text_length(word, fontname=font, fontsize=size) > width and len(word) > 1:
                    cut = len(word)
                    while cut > 1 and fitz.get_text_length(word[:cut], fontname=font, fontsize=size) > width:
                        cut -= 1
                    lines.append(word[:cut])
                    word = word[cut:]
                current = word
            lines.append(current)
        return lines or [""]

    def table(self, body: Sequence[Sequence], col_widths: Sequence[Optional[float]],
              head: Optional[Sequence[str]] = None, size: float = 9, padding: float = 2,
              grid: bool = True, zebra: bool = False, bold_cols: Sequence[int] = (),
              style: Optional[Callable[[int, int, str], Dict]] = None):
        """
        Desenha uma tabela no cursor, quebrando a página e repetindo `head` quando preciso.
        `col_widths` em mm; colunas None dividem a largura restante.
        `style(row, col, text)` pode devolver {"bold", "fill", "color"} para a célula.
        """
        fixed = sum(w * _MM for w in col_widths if w is not None)
        n_auto = sum(1 for w in col_widths if w is None)
        auto = max((self.content_width - fixed) / n_auto, 20 * _MM) if n_auto else 0
        widths = [w * _MM if w is not None else auto for w in col_widths]
        pad = padding * _MM
        line_h = size * 1.25

        def layout(cells, fill=None, bold=False, row_idx=-1):
            prepared = []
            for c, value in enumerate(cells):
                st = {"bold": bold or c in bold_cols, "fill": fill, "color": COLORS["text"]}
                if style is not None and row_idx >= 0:
                    st.update(style(row_idx, c, str(value)) or {})
                text = "" if value is None else str(value)
                prepared.append((self.wrap(text, widths[c] - 2 * pad, size, st["bold"]), st))
            row_h = max(len(lines) for lines, _ in prepared) * line_h + 2 * pad
            return prepared, row_h

        def draw(prepared, row_h):
            x = self.margin
            for c, (lines, st) in enumerate(prepared):
                rect = fitz.Rect(x, self.y, x + widths[c], self.y + row_h)
                if st["fill"] is not None or grid:
                    self.page.draw_rect(rect, color=COLORS["grid"] if grid else None,
                                        fill=st["fill"], width=0.5)
                ty = self.y + pad + size
                for line in lines:
                    self.text(x + pad, ty, line, size=size, bold=st["bold"], color=st["color"])
                    ty += line_h
                x += widths[c]
            self.y += row_h

        head_row = layout(head, fill=COLORS["header"], bold=True) if head else None
        if head_row:
            self.ensure_space(head_row[1] * 2)
            draw(*head_row)
        for i, row in enumerate(body):
            fill = COLORS["light_gray"] if zebra and i % 2 == 1 else None
            prepared, row_h = layout(row, fill=fill, row_idx=i)
            if self.ensure_space(row_h) and head_row:
                draw(*head_row)
            draw(prepared, row_h)
        self.y += 2 * _MM
        return self

    def to_bytes(self) -> bytes:
        data = self.doc.tobytes()
        self.doc.close()
        return data


# ── Documentos ──────────────────────────────────────────────────────────────

def client_report_pdf(client, supports: Sequence, month: int, year: int) -> bytes:
    """Relatório mensal de atendimentos, ofício paisagem (330 × 216 mm)."""
    pdf = PdfCanvas(330, 216, 5)
    pdf.logo(pdf.margin, pdf.margin)
    pdf.centered_title(f"RELATÓRIO DE ATENDIMENTOS - {client.nome_cliente}")
    pdf.y = pdf.margin + 15 * _MM

    pdf.table(
        [
            ["Cliente:", client.nome_cliente, "Período:", mes_ano(month, year)],
            ["Gestor:", client.gestor or "", "Dia Fechamento:", str(client.dia_fechamento)],
            ["Total Horas Contratadas:", format_decimal_br(client.total_horas_contratadas), "", ""],
        ],
        [40, 120, 40, 120], size=10, grid=False, bold_cols=(0, 2),
    )
    pdf.y += 5 * _MM

    body = []
    for s in supports:
        body.append([
            _fmt_dt(s.data_suporte, "%d/%m/%Y"),
            _fmt_dt(s.primeiro_contato, "%d/%m/%Y %H:%M"),
            _fmt_dt(s.inicio_suporte, "%H:%M"),
            _fmt_dt(s.fim_suporte, "%H:%M"),
            s.status.status if s.status else "",
            s.prioridade.prioridade if s.prioridade else "",
            s.solicitante_demanda.nome_solicitante_demanda if s.solicitante_demanda else "",
            s.nome_tarefa,
            s.descricao_suporte,
            s.duracao,
        ])
    total = sum(parse_duracao(s.duracao) for s in supports)
    body.append(["TOTAL", "", "", "", "", "", "", "", "", f"{total:.2f}h"])
    last = len(body) - 1

    pdf.table(
        body, [20, 30, 20, 20, 20, 20, 30, 35, None, 20],
        head=["Data", "Primeiro Contato", "Início Suporte", "Fim Suporte", "Status",
              "Prioridade", "Solicitante", "Tarefa", "Descrição", "Duração"],
        size=8, zebra=True,
        style=lambda r, c, v: {"bold": True, "fill": COLORS["light_gray"]} if r == last else None,
    )
    logger.info(f"PDF relatório cliente={client.id_cliente} {month}/{year}: {len(supports)} atendimento(s)")
    return pdf.to_bytes()


def hours_control_pdf(data: Dict, year: int) -> bytes:
    """Controle anual de horas, A4 retrato, saldos coloridos."""
    pdf = PdfCanvas(210, 297, 10)
    pdf.logo(pdf.margin, pdf.margin)
    pdf.centered_title(f"CONTROLE DE HORAS SUPORTE DBA - {data['cliente']}")
    pdf.y = pdf.margin + 20 * _MM

    body = [
        [mes_ano(m["mes"], year, abbreviated=True), m["horasContratadas"], m["horasUtilizadas"],
         m["saldoMes"], m["saldoAcumulado"], str(m["quantidadeAtendimentos"])]
        for m in data["meses"]
    ]
    totais = data["totais"]
    body.append(["TOTAL", totais["horasContratadas"], totais["horasUtilizadas"], totais["saldo"],
                 "", str(totais["quantidadeAtendimentos"])])
    last = len(body) - 1

    def style(r, c, v):
        if r == last:
            return {"bold": True, "fill": COLORS["light_gray"]}
        if c in (3, 4):
            value = float(v)
            if value > 0:
                return {"color": COLORS["positive"]}
            if value < 0:
                return {"color": COLORS["negative"]}
            return {"color": COLORS["neutral"]}
        return None

    pdf.table(
        body, [25, 30, 30, 25, 30, 30],
        head=["Mês", "Horas Contratadas", "Horas Utilizadas", "Saldo Mês",
              "Saldo Acumulado", "Qtd. Atendimentos"],
        size=9, padding=3, zebra=True, style=style,
    )
    return pdf.to_bytes()


def nfse_pdf(detalhes: Dict) -> bytes:
    """Espelho da NFSe a partir de `xml_service.parse_nfse_detalhes`."""
    pdf = PdfCanvas(210, 297, 14)
    pdf.text(pdf.margin, pdf.margin + 16, "Nota Fiscal de Serviços Eletrônica - NFSe",
             size=16, color=COLORS["title"])
    pdf.y = pdf.margin + 26

    def info(rows):
        pdf.table(rows, [50, 100], size=10, grid=False, bold_cols=(0,))

    emissao = parse_datetime(detalhes.get("dataEmissao"), to_utc=False)
    competencia = parse_datetime(detalhes.get("competencia"), to_utc=False)
    info([
        ["Número da Nota:", detalhes.get("numeroNota") or ""],
        ["Código de Verificação:", detalhes.get("codigoVerificacao") or ""],
        ["Data de Emissão:", _fmt_dt(emissao, "%d/%m/%Y")],
        ["Competência:", mes_ano(competencia.month, competencia.year) if competencia else ""],
    ])

    prestador = detalhes.get("prestador") or {}
    pdf.heading("Prestador de Serviços")
    info([
        ["Razão Social:", prestador.get("razaoSocial") or ""],
        ["CNPJ:", format_cnpj(prestador.get("cnpj"))],
        ["Inscrição Municipal:", prestador.get("inscricaoMunicipal") or ""],
        ["Endereço:", format_endereco(prestador.get("endereco"))],
    ])

    tomador = detalhes.get("tomador") or {}
    pdf.heading("Tomador de Serviços")
    info([
        ["Razão Social:", tomador.get("razaoSocial") or ""],
        ["CNPJ:", format_cnpj(tomador.get("cnpj"))],
        ["Endereço:", format_endereco(tomador.get("endereco"))],
    ])

    pdf.heading("Discriminação dos Serviços")
    pdf.table([[detalhes.get("discriminacao") or ""]], [180], size=10, padding=4, grid=False)

    valores = (detalhes.get("servico") or {}).get("valores") or {}
    pdf.heading("Valores")
    info([
        ["Valor dos Serviços:", format_currency(valores.get("valorServicos"))],
        ["Valor de Deduções:", format_currency(valores.get("valorDeducoes"))],
        ["Base de Cálculo:", format_currency(valores.get("baseCalculo"))],
        ["Alíquota:", f"{format_decimal_br(valores.get('aliquota'))}%"],
        ["ISS Retido:", "Sim" if valores.get("issRetido") else "Não"],
        ["Valor do ISS:", format_currency(valores.get("valorIss"))],
        ["Valor Líquido:", format_currency(valores.get("valorLiquido"))],
    ])
    return pdf.to_bytes()
