"""Rental agreement PDF rendering"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from io import BytesIO
from typing import List, Optional

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle


@dataclass
class AgreementParty:
    name: str
    email: str


@dataclass
class AgreementContext:
    """Everything printed on a rental agreement"""

    booking_id: str
    property_title: str
    property_address: str
    tenant: AgreementParty
    landlord: AgreementParty
    start_date: date
    end_date: date
    total_amount: Decimal
    currency: str
    payment_type: str
    security_deposit: Optional[Decimal] = None
    schedule: List[tuple] = field(default_factory=list)  # (number, due_date, amount)
    issued_on: date = field(default_factory=date.today)


def format_money(amount: Decimal, currency: str) -> str:
    return f"{currency} {amount:,.2f}"


def _party_table(context: AgreementContext) -> Table:
    table = Table(
        [
            ["Landlord", context.landlord.name, context.landlord.email],
            ["Tenant", context.tenant.name, context.tenant.email],
        ],
        colWidths=[80, 200, 200],
    )
    table.setStyle(
        TableStyle(
            [
                ("FONTNAME", (0, 0), (0, -1), "Helvetica-Bold"),
                ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
                ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
            ]
        )
    )
    return table


def _schedule_table(context: AgreementContext) -> Table:
    rows = [["#", "Due date", "Amount"]]
    for number, due_date, amount in context.schedule:
        rows.append([str(number), due_date.isoformat(), format_money(amount, context.currency)])

    table = Table(rows, colWidths=[40, 180, 180])
    table.setStyle(
        TableStyle(
            [
                ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#1F2937")),
                ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
                ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
                ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
                ("ALIGN", (2, 1), (2, -1), "RIGHT"),
            ]
        )
    )
    return table


def render_rental_agreement(context: AgreementContext) -> bytes:
    buffer = BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        rightMargin=30,
        leftMargin=30,
        topMargin=30,
        bottomMargin=30,
        title=f"Rental Agreement {context.booking_id}",
    )

    styles = getSampleStyleSheet()
    styles.add(
        ParagraphStyle(
            name="AgreementTitle",
            fontSize=18,
            alignment=TA_CENTER,
            spaceAfter=12,
            textColor=colors.HexColor("#1F2937"),
        )
    )

    deposit = (
        format_money(context.security_deposit, context.currency)
        if context.security_deposit is not None
        else "None"
    )

    elements = [
        Paragraph("RENTAL AGREEMENT", styles["AgreementTitle"]),
        Paragraph(f"Agreement reference: <b>{context.booking_id}</b>", styles["Normal"]),
        Paragraph(f"Issued on {context.issued_on.isoformat()}", styles["Normal"]),
        Spacer(1, 12),
        _party_table(context),
        Spacer(1, 12),
        Paragraph(
            f"The landlord agrees to let <b>{context.property_title}</b>, "
            f"{context.property_address}, to the tenant from "
            f"<b>{context.start_date.isoformat()}</b> to <b>{context.end_date.isoformat()}</b>.",
            styles["Normal"],
        ),
        Spacer(1, 8),
        Paragraph(f"Total rent: <b>{format_money(context.total_amount, context.currency)}</b>", styles["Normal"]),
        Paragraph(f"Security deposit: {deposit}", styles["Normal"]),
        Paragraph(f"Payment type: {context.payment_type}", styles["Normal"]),
        Spacer(1, 12),
        Paragraph("Installment schedule", styles["Heading3"]),
        _schedule_table(context),
        Spacer(1, 24),
        Paragraph("Signed by both parties electronically.", styles["Italic"]),
    ]

    doc.build(elements)
    return buffer.getvalue()
