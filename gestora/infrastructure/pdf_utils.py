"""
Reporte PDF del registro de auditoría
=====================================

Página A4 apaisada: cabecera con la empresa en la primera página,
pie con fecha de generación y número de página en todas.
Las filas de severidad crítica se resaltan.
"""
from io import BytesIO
from datetime import datetime
from typing import Any, List, Optional, Sequence
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import cm
from reportlab.lib.enums import TA_CENTER
from reportlab.platypus import SimpleDocTemplate, Table, TableStyle, Paragraph, Spacer

AZUL = colors.HexColor('#1f3a68')
GRIS_FILA = colors.HexColor('#f3f4f6')
ROJO_CRITICO = colors.HexColor('#fde2e1')
MARGEN = 1.2 * cm

# Proporción del ancho útil por columna (ID, Fecha, Acción, Recurso, Descripción, Severidad, Usuario, IP)
ANCHOS_AUDITORIA = (0.05, 0.12, 0.10, 0.10, 0.33, 0.08, 0.12, 0.10)


def _estilos():
    base = getSampleStyleSheet()
    return {
        "titulo": ParagraphStyle('TituloAuditoria', parent=base['Heading1'], fontSize=15,
                                 textColor=AZUL, alignment=TA_CENTER, spaceAfter=6),
        "subtitulo": ParagraphStyle('SubtituloAuditoria', parent=base['Normal'], fontSize=10,
                                    textColor=colors.grey, alignment=TA_CENTER, spaceAfter=10),
        "celda": ParagraphStyle('CeldaAuditoria', parent=base['Normal'], fontSize=7.5, leading=9),
        "cabecera": ParagraphStyle('CabeceraAuditoria', parent=base['Normal'], fontSize=7.5, leading=9,
                                   fontName='Helvetica-Bold', textColor=colors.white),
    }


def create_table_pdf(
    company_name: str,
    company_ruc: Optional[str],
    report_title: str,
    headers: Sequence[str],
    rows: List[List[Any]],
    report_subtitle: Optional[str] = None,
    columna_severidad: Optional[int] = None,
) -> BytesIO:
    """
    Genera el PDF tabular y lo devuelve en un BytesIO posicionado al inicio.

    columna_severidad: índice de la columna de severidad; las filas con
    valor "critical" se pintan de rojo claro.
    """
    buffer = BytesIO()
    ancho, alto = landscape(A4)
    generado = datetime.now().strftime('%d/%m/%Y %H:%M')

    def pie(canvas_obj, doc):
        canvas_obj.saveState()
        canvas_obj.setFont("Helvetica", 7)
        canvas_obj.setFillColor(colors.grey)
        canvas_obj.drawString(MARGEN, 0.7 * cm, f"Generado el {generado}")
        canvas_obj.drawRightString(ancho - MARGEN, 0.7 * cm, f"Página {canvas_obj.getPageNumber()}")
        canvas_obj.restoreState()

    def primera_pagina(canvas_obj, doc):
        canvas_obj.saveState()
        canvas_obj.setFont("Helvetica-Bold", 13)
        canvas_obj.setFillColor(AZUL)
        canvas_obj.drawString(MARGEN, alto - 1.3 * cm, company_name)
        if company_ruc:
            canvas_obj.setFont("Helvetica", 9)
            canvas_obj.setFillColor(colors.grey)
            canvas_obj.drawRightString(ancho - MARGEN, alto - 1.3 * cm, f"RUC {company_ruc}")
        canvas_obj.setStrokeColor(AZUL)
        canvas_obj.line(MARGEN, alto - 1.6 * cm, ancho - MARGEN, alto - 1.6 * cm)
        canvas_obj.restoreState()
        pie(canvas_obj, doc)

    doc = SimpleDocTemplate(buffer, pagesize=(ancho, alto), leftMargin=MARGEN, rightMargin=MARGEN,
                            topMargin=2.2 * cm, bottomMargin=1.5 * cm, title=report_title)
    estilos = _estilos()

    util = ancho - 2 * MARGEN
    if len(headers) == len(ANCHOS_AUDITORIA):
        anchos = [util * p for p in ANCHOS_AUDITORIA]
    else:
        anchos = [util / len(headers)] * len(headers)

    datos = [[Paragraph(escape(str(h)), estilos["cabecera"]) for h in headers]]
    datos += [[Paragraph("" if v is None else escape(str(v)), estilos["celda"]) for v in fila] for fila in rows]

    estilo_tabla = [
        ('BACKGROUND', (0, 0), (-1, 0), AZUL),
        ('GRID', (0, 0), (-1, -1), 0.4, colors.lightgrey),
        ('VALIGN', (0, 0), (-1, -1), 'TOP'),
        ('ROWBACKGROUNDS', (0, 1), (-1, -1), [colors.white, GRIS_FILA]),
    ]
    if columna_severidad is not None:
        for n, fila in enumerate(rows, start=1):
            if str(fila[columna_severidad]).lower() == "critical":
                estilo_tabla.append(('BACKGROUND', (0, n), (-1, n), ROJO_CRITICO))

    tabla = Table(datos, colWidths=anchos, repeatRows=1)
    tabla.setStyle(TableStyle(estilo_tabla))

    elementos = [Paragraph(report_title, estilos["titulo"])]
    if report_subtitle:
        elementos.append(Paragraph(report_subtitle, estilos["subtitulo"]))
    elementos += [Spacer(1, 0.3 * cm), tabla]

    doc.build(elementos, onFirstPage=primera_pagina, onLaterPages=pie)
    buffer.seek(0)
    return buffer
