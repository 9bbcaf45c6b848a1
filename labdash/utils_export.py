from io import StringIO, BytesIO
from flask import Response
import csv

XLSX_MIMETYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _attachment(filename):
    return {"Content-Disposition": f"attachment; filename={filename}"}


def _cell(value):
    if value is None:
        return ""
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return value


def stream_csv(filename, headers, rows):
    buf = StringIO()
    w = csv.writer(buf)
    if headers: w.writerow(headers)
    for r in rows:
        w.writerow([_cell(v) for v in r])
    data = buf.getvalue().encode("utf-8-sig")
    return Response(data, mimetype="text/csv", headers=_attachment(filename))


def stream_xlsx(filename, headers, rows, sheet_title=None):
    from openpyxl import Workbook
    from openpyxl.styles import Font

    wb = Workbook()
    ws = wb.active
    if sheet_title:
        ws.title = sheet_title[:31]
    if headers:
        ws.append(list(headers))
        for cell in ws[1]:
            cell.font = Font(bold=True)
    for r in rows:
        ws.append([_cell(v) for v in r])
    bio = BytesIO()
    wb.save(bio)
    return Response(bio.getvalue(), mimetype=XLSX_MIMETYPE, headers=_attachment(filename))


def stream_pdf(filename, title, headers, rows):
    from reportlab.lib.pagesizes import A4, landscape
    from reportlab.pdfgen import canvas
    from reportlab.lib.units import cm

    buf = BytesIO()
    c = canvas.Canvas(buf, pagesize=landscape(A4))
    width, height = landscape(A4)

    y = height - 2*cm
    c.setFont("Helvetica-Bold", 14)
    c.drawString(2*cm, y, title)
    y -= 0.8*cm

    col_width = (width - 4*cm) / max(len(headers) if headers else 1, 1)

    def draw_headers(y):
        c.setFont("Helvetica-Bold", 10)
        x = 2*cm
        for h in headers or ():
            c.drawString(x, y, str(h)[:40])
            x += col_width
        c.setFont("Helvetica", 9)
        return y - 0.6*cm if headers else y

    y = draw_headers(y)
    for row in rows:
        if y < 2*cm:
            c.showPage()
            y = draw_headers(height - 2*cm)
        x = 2*cm
        for cell in row:
            c.drawString(x, y, str(_cell(cell))[:50])
            x += col_width
        y -= 0.5*cm

    c.showPage()
    c.save()
    return Response(buf.getvalue(), mimetype="application/pdf", headers=_attachment(filename))
