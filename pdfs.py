from __future__ import annotations

import os
from datetime import datetime, timezone
from io import BytesIO
from typing import Any, Dict, Optional

from reportlab.lib.pagesizes import LETTER
from reportlab.lib.units import inch
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from currency import format_number
from loans_core import LoanSchedule


def _money(x, currency: str = "UGX", decimals: int = 0) -> str:
    return f"{currency} {format_number(x, decimals)}"


def _utc_now_str() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")


def _decimals_of(schedule: LoanSchedule) -> int:
    return max(0, -int(schedule.monthly_payment.as_tuple().exponent))


def _table_header(pdf, left: float, y: float) -> float:
    pdf.setFont("Helvetica-Bold", 9)
    pdf.drawString(left, y, "Month")
    pdf.drawRightString(left + 1.9 * inch, y, "Payment")
    pdf.drawRightString(left + 3.2 * inch, y, "Principal")
    pdf.drawRightString(left + 4.5 * inch, y, "Interest")
    pdf.drawRightString(left + 5.8 * inch, y, "Balance")
    pdf.setFont("Helvetica", 9)
    return y - 0.18 * inch


def make_loan_schedule_pdf(
    brand: str,
    schedule: LoanSchedule,
    borrower: Optional[Dict[str, Any]] = None,
    currency: str = "UGX",
    logo_path: Optional[str] = None,
) -> bytes:
    """
    One-document loan schedule: terms, totals, then the month-by-month
    table (continues on new pages as needed).
    """
    buf = BytesIO()
    pdf = canvas.Canvas(buf, pagesize=LETTER)
    width, height = LETTER
    left = 1 * inch
    dec = _decimals_of(schedule)

    if logo_path and os.path.exists(logo_path):
        logo = ImageReader(logo_path)
        pdf.drawImage(
            logo,
            0.7 * inch,
            height - 1.2 * inch,
            width=1.0 * inch,
            preserveAspectRatio=True,
            mask="auto",
        )

    # Header
    pdf.setFont("Helvetica-Bold", 15)
    pdf.drawString(2.0 * inch, height - 0.9 * inch, f"{brand} - Loan Payment Schedule")
    pdf.setFont("Helvetica", 9)
    pdf.drawRightString(width - 1 * inch, height - 0.9 * inch, _utc_now_str())

    y = height - 1.5 * inch

    # Borrower block
    if borrower:
        pdf.setFont("Helvetica-Bold", 11)
        pdf.drawString(left, y, "Borrower")
        y -= 0.22 * inch
        pdf.setFont("Helvetica", 10)
        pdf.drawString(left, y, f"Name: {borrower.get('name') or 'N/A'}    Group: {borrower.get('group') or 'N/A'}")
        y -= 0.28 * inch

    # Terms block
    terms = schedule.terms
    pdf.setFont("Helvetica-Bold", 11)
    pdf.drawString(left, y, "Loan Terms")
    y -= 0.22 * inch
    pdf.setFont("Helvetica", 10)
    pdf.drawString(left, y, f"Principal: {_money(terms.principal, currency, dec)}")
    y -= 0.18 * inch
    pdf.drawString(left, y, f"Annual interest rate: {terms.annual_rate_percent}%")
    y -= 0.18 * inch
    pdf.drawString(left, y, f"Term: {terms.term_months} month(s)")
    y -= 0.28 * inch

    # Totals block
    pdf.setFont("Helvetica-Bold", 11)
    pdf.drawString(left, y, "Summary")
    y -= 0.22 * inch
    pdf.setFont("Helvetica", 10)
    pdf.drawString(left, y, f"Monthly payment: {_money(schedule.monthly_payment, currency, dec)}")
    y -= 0.18 * inch
    pdf.drawString(left, y, f"Total interest: {_money(schedule.total_interest, currency, dec)}")
    y -= 0.18 * inch
    pdf.drawString(left, y, f"Total amount: {_money(schedule.total_amount, currency, dec)}")
    y -= 0.32 * inch

    # Schedule table
    pdf.setFont("Helvetica-Bold", 11)
    pdf.drawString(left, y, "Schedule")
    y -= 0.22 * inch
    y = _table_header(pdf, left, y)

    for e in schedule.entries:
        if y < 1.0 * inch:
            pdf.showPage()
            y = _table_header(pdf, left, height - 1.0 * inch)

        pdf.drawString(left, y, str(e.month))
        pdf.drawRightString(left + 1.9 * inch, y, format_number(e.payment, dec))
        pdf.drawRightString(left + 3.2 * inch, y, format_number(e.principal, dec))
        pdf.drawRightString(left + 4.5 * inch, y, format_number(e.interest, dec))
        pdf.drawRightString(left + 5.8 * inch, y, format_number(e.balance, dec))
        y -= 0.16 * inch

    pdf.showPage()
    pdf.save()
    buf.seek(0)
    return buf.getvalue()
