"""
Exportación tabular a Excel (openpyxl) y CSV.
Ambas funciones reciben cabeceras y filas ya formateadas y devuelven bytes.
"""
import csv
import io
from typing import Any, List, Optional

from openpyxl import Workbook
from openpyxl.styles import Font, Alignment, PatternFill
from openpyxl.utils import get_column_letter


def to_xlsx(headers: List[str], rows: List[List[Any]], sheet_title: str = "Datos",
            title: Optional[str] = None) -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = sheet_title[:31]

    if title:
        ws.append([title])
        ws.merge_cells(start_row=1, start_column=1, end_row=1, end_column=len(headers))
        ws['A1'].font = Font(bold=True, size=14)
        ws['A1'].alignment = Alignment(horizontal="center")
        ws.append([])

    ws.append(headers)
    header_fill = PatternFill(start_color="366092", end_color="366092", fill_type="solid")
    header_font = Font(bold=True, color="FFFFFF", size=11)
    for cell in ws[ws.max_row]:
        cell.fill = header_fill
        cell.font = header_font
        cell.alignment = Alignment(horizontal="center", vertical="center")

    for row in rows:
        ws.append(["" if v is None else v for v in row])

    # Ancho de columnas según contenido
    for idx, header in enumerate(headers, start=1):
        largo = max([len(str(header))] + [len(str(r[idx - 1] or "")) for r in rows])
        ws.column_dimensions[get_column_letter(idx)].width = min(largo + 2, 60)

    out = io.BytesIO()
    wb.save(out)
    return out.getvalue()


def to_csv(headers: List[str], rows: List[List[Any]]) -> bytes:
    out = io.StringIO()
    w = csv.writer(out)
    w.writerow(headers)
    for row in rows:
        w.writerow(["" if v is None else v for v in row])
    # BOM para que Excel reconozca UTF-8
    return out.getvalue().encode("utf-8-sig")
