# fees/receipts.py

"""
Payment receipt PDF rendering with reportlab.
"""

from io import BytesIO
import logging

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from core.exceptions import LedgerStateError
from core.utils import format_money, iso_date

logger = logging.getLogger(__name__)


def receipt_filename(payment):
    reference = (payment.receipt_number or str(payment.pk)).replace('/', '-')
    return f"receipt_{reference}.pdf"


def _receipt_rows(payment):
    rows = [
        ['Receipt Number', payment.receipt_number or '-'],
        ['Receipt Date', iso_date(payment.receipt_date) or '-'],
        ['Application', payment.application.arn],
        ['Amount', format_money(payment.amount, payment.currency)],
        ['Mode', payment.get_mode_display()],
        ['Status', payment.get_status_display()],
    ]
    if payment.demand_id:
        rows.append(['Demand', payment.demand.demand_number])
    if payment.gateway_order_id:
        rows.append(['Gateway Order', payment.gateway_order_id])
    if payment.gateway_payment_id:
        rows.append(['Gateway Payment', payment.gateway_payment_id])
    if payment.instrument_number:
        instrument = payment.instrument_number
        if payment.instrument_bank:
            instrument += f" ({payment.instrument_bank})"
        rows.append(['Instrument', instrument])
    if payment.instrument_date:
        rows.append(['Instrument Date', iso_date(payment.instrument_date)])
    return rows


def render_payment_receipt(payment):
    """
    Render a one-page receipt for a settled payment.

    Returns:
        bytes: PDF document

    Raises:
        LedgerStateError: PAYMENT_NOT_SETTLED
    """
    if not payment.is_settled:
        raise LedgerStateError('PAYMENT_NOT_SETTLED', f"Payment is {payment.status}; no receipt is available")

    buffer = BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        rightMargin=40,
        leftMargin=40,
        topMargin=40,
        bottomMargin=30,
        title=f"Payment Receipt {payment.receipt_number or ''}".strip(),
    )

    elements = []

    styles = getSampleStyleSheet()
    title_style = ParagraphStyle(
        'ReceiptTitle',
        parent=styles['Heading1'],
        fontSize=20,
        textColor=colors.HexColor('#4472C4'),
        spaceAfter=12,
        alignment=TA_CENTER,
    )
    subtitle_style = ParagraphStyle(
        'ReceiptSubtitle',
        parent=styles['Normal'],
        fontSize=10,
        textColor=colors.grey,
        spaceAfter=20,
        alignment=TA_CENTER,
    )

    elements.append(Paragraph("Payment Receipt", title_style))
    elements.append(Paragraph(f"Application {payment.application.arn}", subtitle_style))
    elements.append(Spacer(1, 0.2 * inch))

    data = [['Field', 'Details']] + _receipt_rows(payment)
    table = Table(data, colWidths=[2.0 * inch, 4.2 * inch])
    table.setStyle(TableStyle([
        # Header
        ('BACKGROUND', (0, 0), (-1, 0), colors.HexColor('#4472C4')),
        ('TEXTCOLOR', (0, 0), (-1, 0), colors.whitesmoke),
        ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
        ('FONTSIZE', (0, 0), (-1, 0), 11),
        ('BOTTOMPADDING', (0, 0), (-1, 0), 8),

        # Body
        ('FONTNAME', (0, 1), (0, -1), 'Helvetica-Bold'),
        ('FONTSIZE', (0, 1), (-1, -1), 10),
        ('ALIGN', (0, 0), (-1, -1), 'LEFT'),
        ('VALIGN', (0, 0), (-1, -1), 'MIDDLE'),
        ('GRID', (0, 0), (-1, -1), 0.5, colors.grey),
        ('ROWBACKGROUNDS', (0, 1), (-1, -1), [colors.white, colors.HexColor('#F2F2F2')]),
    ]))
    elements.append(table)
    elements.append(Spacer(1, 0.3 * inch))
    elements.append(Paragraph(
        "This is a computer generated receipt and does not require a signature.",
        subtitle_style,
    ))

    doc.build(elements)
    pdf = buffer.getvalue()
    buffer.close()

    logger.info(f"Rendered receipt {payment.receipt_number} for payment {payment.pk}")
    return pdf
