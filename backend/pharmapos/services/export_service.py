# Overview: Renders the sales/stock report as CSV or PDF for download.

"""
Report Export

Both formats carry the same content:
- header: company name, report title, period label, generation date
- summary: units sold, revenue, units in stock
- sale history: date, product, quantity, unit price, total
- current stock: product, quantity

Amounts are cents internally and rendered as "<CURRENCY_LABEL> 1234.50".
"""

from __future__ import annotations

import csv
import io
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from .reporting_service import PERIOD_LABELS

REPORT_TITLE = "Relatório de Vendas e Estoque"
DATE_FORMAT = "%d/%m/%Y"

EXPORT_FORMATS = {
    "csv": "text/csv; charset=utf-8",
    "pdf": "application/pdf",
}

# Table header fill, matches the app's primary colour
HEADER_FILL = colors.HexColor("#14B8A6")


class ExportError(Exception):
    """Raised for unsupported export requests."""
    pass


@dataclass(frozen=True)
class ExportSale:
    occurred_at: datetime
    product_name: str
    quantity: int
    unit_price_cents: int
    total_cents: int


@dataclass(frozen=True)
class ExportStockLine:
    product_name: str
    stock_quantity: int


@dataclass(frozen=True)
class ExportInput:
    company_name: str
    currency_label: str
    period: str
    sales: list[ExportSale]
    stock: list[ExportStockLine]
    total_units: int
    total_revenue_cents: int

    @property
    def period_label(self) -> str:
        return PERIOD_LABELS.get(self.period, self.period)

    @property
    def stock_units(self) -> int:
        return sum(line.stock_quantity for line in self.stock)


def build_export_input(
    period: str,
    records: Iterable,
    products: Iterable,
    total_units: int,
    total_revenue_cents: int,
    *,
    company_name: str,
    currency_label: str,
) -> ExportInput:
    """records should already be limited to the period; order is preserved."""
    return ExportInput(
        company_name=company_name,
        currency_label=currency_label,
        period=period,
        sales=[
            ExportSale(
                occurred_at=r.occurred_at,
                product_name=r.product_name_snapshot,
                quantity=r.quantity,
                unit_price_cents=r.unit_price_cents_snapshot,
                total_cents=r.total_cents,
            )
            for r in records
        ],
        stock=[ExportStockLine(p.name, p.stock_quantity) for p in products],
        total_units=total_units,
        total_revenue_cents=total_revenue_cents,
    )


def format_money(cents: int, currency_label: str) -> str:
    sign = "-" if cents < 0 else ""
    whole, frac = divmod(abs(cents), 100)
    return f"{currency_label} {sign}{whole}.{frac:02d}"


def export_filename(period: str, fmt: str, generated_at: datetime) -> str:
    return f"report-{period}-{generated_at.strftime('%Y-%m-%d')}.{fmt}"


def _summary_rows(data: ExportInput) -> list[list[str]]:
    return [
        ["Total de Vendas", f"{data.total_units} unidades"],
        ["Receita Total", format_money(data.total_revenue_cents, data.currency_label)],
        ["Produtos em Estoque", f"{data.stock_units} unidades"],
    ]


def _sales_rows(data: ExportInput) -> list[list[str]]:
    return [
        [
            s.occurred_at.strftime(DATE_FORMAT),
            s.product_name,
            str(s.quantity),
            format_money(s.unit_price_cents, data.currency_label),
            format_money(s.total_cents, data.currency_label),
        ]
        for s in data.sales
    ]


def _stock_rows(data: ExportInput) -> list[list[str]]:
    return [[line.product_name, str(line.stock_quantity)] for line in data.stock]


SALES_HEADER = ["Data", "Produto", "Quantidade", "Preço Unitário", "Total"]
STOCK_HEADER = ["Produto", "Quantidade em Estoque"]


def render_csv(data: ExportInput, generated_at: datetime) -> bytes:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")

    writer.writerow([data.company_name])
    writer.writerow([REPORT_TITLE])
    writer.writerow([f"Período: {data.period_label}"])
    writer.writerow([f"Data de emissão: {generated_at.strftime(DATE_FORMAT)}"])
    writer.writerow([])

    writer.writerow(["RESUMO DO PERÍODO"])
    writer.writerows(_summary_rows(data))
    writer.writerow([])

    writer.writerow(["HISTÓRICO DE VENDAS"])
    writer.writerow(SALES_HEADER)
    writer.writerows(_sales_rows(data))
    writer.writerow([])

    writer.writerow(["ESTOQUE ATUAL"])
    writer.writerow(STOCK_HEADER)
    writer.writerows(_stock_rows(data))

    return buffer.getvalue().encode("utf-8")


def _table(rows: list[list[str]]) -> Table:
    table = Table(rows, repeatRows=1)
    table.setStyle(
        TableStyle(
            [
                ("BACKGROUND", (0, 0), (-1, 0), HEADER_FILL),
                ("TEXTCOLOR", (0, 0), (-1, 0), colors.whitesmoke),
                ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
                ("FONTSIZE", (0, 0), (-1, 0), 10),
                ("BOTTOMPADDING", (0, 0), (-1, 0), 8),
                ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, colors.HexColor("#F1F5F9")]),
                ("FONTNAME", (0, 1), (-1, -1), "Helvetica"),
                ("FONTSIZE", (0, 1), (-1, -1), 9),
                ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
                ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
            ]
        )
    )
    return table


def render_pdf(data: ExportInput, generated_at: datetime) -> bytes:
    buffer = io.BytesIO()
    doc = SimpleDocTemplate(buffer, pagesize=A4, title=REPORT_TITLE)
    styles = getSampleStyleSheet()
    story = []

    # Paragraph text is reportlab markup
    story.append(Paragraph(escape(data.company_name), styles["Title"]))
    story.append(Paragraph(REPORT_TITLE, styles["Heading2"]))
    story.append(Paragraph(f"Período: {data.period_label}", styles["Normal"]))
    story.append(Paragraph(f"Data de emissão: {generated_at.strftime(DATE_FORMAT)}", styles["Normal"]))
    story.append(Spacer(1, 12))

    story.append(Paragraph("Resumo do Período", styles["Heading3"]))
    for label, value in _summary_rows(data):
        story.append(Paragraph(escape(f"{label}: {value}"), styles["Normal"]))
    story.append(Spacer(1, 12))

    story.append(Paragraph("Histórico de Vendas", styles["Heading3"]))
    sales_rows = _sales_rows(data)
    if sales_rows:
        story.append(_table([SALES_HEADER] + sales_rows))
    else:
        story.append(Paragraph("Sem vendas no período.", styles["Normal"]))
    story.append(Spacer(1, 12))

    story.append(Paragraph("Estoque Atual", styles["Heading3"]))
    stock_rows = _stock_rows(data)
    if stock_rows:
        story.append(_table([STOCK_HEADER] + stock_rows))
    else:
        story.append(Paragraph("Sem produtos cadastrados.", styles["Normal"]))

    doc.build(story)
    return buffer.getvalue()


def render(data: ExportInput, fmt: str, generated_at: datetime) -> bytes:
    if fmt == "csv":
        return render_csv(data, generated_at)
    if fmt == "pdf":
        return render_pdf(data, generated_at)
    raise ExportError("format must be csv or pdf")
