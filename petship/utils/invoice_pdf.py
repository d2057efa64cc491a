# petship/utils/invoice_pdf.py

from __future__ import annotations

import io
from datetime import date, datetime

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.pdfgen import canvas
from reportlab.platypus import Table, TableStyle

COMPANY_NAME = "PetShippers"
TAGLINE = "Door-to-door pet transport"

OCEAN = colors.HexColor("#0f5e8c")
MUTED = colors.HexColor("#6b7280")
INK = colors.HexColor("#111827")
RULE = colors.HexColor("#e5e7eb")

MARGIN = 18 * mm
HISTORY_ROWS = 10


def _fmt_date(d):
    if not d:
        return "-"
    if isinstance(d, (datetime, date)):
        return d.strftime("%Y-%m-%d")
    return str(d)


def _money(cents) -> str:
    if cents is None:
        return "-"
    return f"${cents / 100:,.2f}"


def invoice_number(shipment) -> str:
    return f"SHP-{shipment.id:05d}"


def _header(c, shipment, width, height):
    band = 28 * mm
    c.setFillColor(OCEAN)
    c.rect(0, height - band, width, band, stroke=0, fill=1)

    c.setFillColor(colors.white)
    c.setFont("Helvetica-Bold", 16)
    c.drawString(MARGIN, height - 16 * mm, COMPANY_NAME)
    c.setFont("Helvetica", 9)
    c.drawString(MARGIN, height - 22 * mm, TAGLINE)

    due = _fmt_date(shipment.payment_due_date)
    c.setFont("Helvetica-Bold", 12)
    c.drawRightString(width - MARGIN, height - 14 * mm, f"INVOICE {invoice_number(shipment)}")
    c.setFont("Helvetica", 9)
    c.drawRightString(width - MARGIN, height - 20 * mm, f"Payment: {shipment.payment_status or 'not billed'} | Due: {due}")
    return height - 38 * mm


def _card(c, x, top, w, title, lines, *, bold_first=False):
    """Titled rounded box, 30mm tall."""
    c.setFillColor(INK)
    c.setFont("Helvetica-Bold", 11)
    c.drawString(x, top, title)

    box_top = top - 6 * mm
    c.setStrokeColor(RULE)
    c.setFillColor(colors.white)
    c.roundRect(x, box_top - 30 * mm, w, 30 * mm, 6, stroke=1, fill=1)

    c.setFillColor(INK)
    line_y = box_top - 8 * mm
    for i, text in enumerate(line for line in lines if line):
        c.setFont("Helvetica-Bold" if bold_first and i == 0 else "Helvetica", 10 if bold_first and i == 0 else 9)
        c.drawString(x + 4 * mm, line_y, str(text)[:60])
        line_y -= 5 * mm


def _parties(c, shipment, width, y):
    half = width / 2
    _card(
        c,
        MARGIN,
        y,
        half - MARGIN - 4 * mm,
        "Billed To",
        [shipment.owner_name or "-", shipment.owner_email, shipment.owner_phone],
        bold_first=True,
    )

    breed = f", {shipment.pet_breed}" if shipment.pet_breed else ""
    _card(
        c,
        half + 2 * mm,
        y,
        half - MARGIN - 2 * mm,
        "Shipment",
        [
            f"Pet: {shipment.pet_name} ({shipment.pet_type}{breed})",
            f"Route: {shipment.route_from} -> {shipment.route_to}",
            f"Flight: {shipment.flight_number or '-'}",
            f"Status: {shipment.status.replace('_', ' ')}",
        ],
    )
    return y - 46 * mm


def _line_item_rows(shipment) -> list[list[str]]:
    rows = [
        [str(item.get("description", "-")), str(item.get("category", "other")), _money(item.get("amount_cents", 0))]
        for item in shipment.line_items or []
    ]
    # Billing set as a bare total still prints one line.
    return rows or [["Pet shipping services", "shipping", _money(shipment.total_amount_cents)]]


def _items_table(c, shipment, width, height, y):
    table = Table(
        [["Description", "Category", "Amount"]] + _line_item_rows(shipment),
        colWidths=[110 * mm, 36 * mm, 30 * mm],
        hAlign="LEFT",
    )
    table.setStyle(
        TableStyle(
            [
                ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#f3f4f6")),
                ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
                ("FONTSIZE", (0, 0), (-1, -1), 9),
                ("GRID", (0, 0), (-1, -1), 0.5, RULE),
                ("ALIGN", (2, 0), (2, -1), "RIGHT"),
                ("PADDING", (0, 0), (-1, -1), 6),
            ]
        )
    )
    _, table_h = table.wrapOn(c, width - 2 * MARGIN, height)
    table.drawOn(c, MARGIN, y - table_h)
    return y - table_h - 10 * mm


def _totals(c, shipment, width, y):
    value_x = width - MARGIN
    label_x = value_x - 40 * mm
    rows = (
        ("Total", shipment.total_amount_cents or 0, False),
        ("Paid", shipment.paid_amount_cents or 0, False),
        ("Balance due", shipment.outstanding_cents, True),
    )
    for offset, (label, cents, strong) in zip((0, 6 * mm, 14 * mm), rows):
        c.setFont("Helvetica-Bold" if strong else "Helvetica", 10 if strong else 9)
        c.setFillColor(INK if strong else MUTED)
        c.drawRightString(label_x, y - offset, label)
        c.setFillColor(INK)
        c.drawRightString(value_x, y - offset, _money(cents))
    return y - 24 * mm


def _history(c, shipment, y):
    entries = list(shipment.payment_history or [])[-HISTORY_ROWS:]
    if not entries:
        return y

    c.setFillColor(INK)
    c.setFont("Helvetica-Bold", 10)
    c.drawString(MARGIN, y, "Payment history")
    y -= 6 * mm

    c.setFont("Helvetica", 9)
    c.setFillColor(MUTED)
    for entry in entries:
        sign = "-" if entry.entry_type == "refund" else ""
        c.drawString(
            MARGIN,
            y,
            f"{_fmt_date(entry.processed_at)}  {entry.entry_type:<7} {sign}{_money(entry.amount_cents)}  {entry.method or ''}",
        )
        y -= 5 * mm
    return y


def _footer(c, width):
    c.setFillColor(RULE)
    c.rect(0, 0, width, 12 * mm, stroke=0, fill=1)
    c.setFont("Helvetica", 8)
    c.setFillColor(colors.HexColor("#374151"))
    c.drawString(MARGIN, 4 * mm, f"{COMPANY_NAME} | Questions? Reply in your shipment conversation.")
    c.setFillColor(MUTED)
    c.drawRightString(width - MARGIN, 4 * mm, f"Generated: {_fmt_date(date.today())}")


def render_shipment_invoice_pdf(shipment) -> bytes:
    """
    Render a billing statement for a shipment (NO DB writes).
    Returns PDF bytes.
    """
    buf = io.BytesIO()
    c = canvas.Canvas(buf, pagesize=A4)
    c.setTitle(f"Invoice {invoice_number(shipment)}")
    width, height = A4

    y = _header(c, shipment, width, height)
    y = _parties(c, shipment, width, y)
    y = _items_table(c, shipment, width, height, y)
    y = _totals(c, shipment, width, y)
    _history(c, shipment, y)
    _footer(c, width)

    c.showPage()
    c.save()
    return buf.getvalue()
