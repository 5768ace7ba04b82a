"""
Export Service - renders computed reports as downloadable documents

The accounting services return structured data only; this module turns
that data into .xlsx workbooks (openpyxl) and PDF reports (reportlab).
"""
from datetime import datetime
from io import BytesIO
from typing import Any, Dict, List, Sequence, Tuple

Row = Tuple[str, Any]


def _fmt(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "Yes" if value else "No"
    try:
        return f"{float(value):,.2f}"
    except (TypeError, ValueError):
        return str(value)


def income_statement_rows(statement: Dict[str, Any]) -> List[Row]:
    rows: List[Row] = [("Revenue", None)]
    rows += [(f"  {line['code']} {line['name']}", line["amount"]) for line in statement["revenue"]]
    rows.append(("Cost of Sales", None))
    rows += [(f"  {line['code']} {line['name']}", line["amount"]) for line in statement["cost"]]
    rows.append(("Expenses", None))
    rows += [(f"  {line['code']} {line['name']}", line["amount"]) for line in statement["expenses"]]
    totals = statement["totals"]
    rows += [
        ("Total Revenue", totals["total_revenue"]),
        ("Total Cost", totals["total_cost"]),
        ("Gross Profit", totals["gross_profit"]),
        ("Total Expenses", totals["total_expenses"]),
        ("Net Profit", totals["net_profit"]),
        ("Gross Margin %", totals["gross_margin"]),
        ("Net Margin %", totals["net_margin"]),
    ]
    return rows


def balance_sheet_rows(sheet: Dict[str, Any]) -> List[Row]:
    rows: List[Row] = []
    for title, key in (("Assets", "assets"), ("Liabilities", "liabilities"), ("Equity", "equity")):
        rows.append((title, None))
        for line in sheet[key]:
            label = f"  {line['code']} {line['name']}" if line.get("code") else f"  {line['name']}"
            rows.append((label, line["amount"]))
    totals = sheet["totals"]
    rows += [
        ("Total Assets", totals["total_assets"]),
        ("Total Liabilities", totals["total_liabilities"]),
        ("Total Equity", totals["total_equity"]),
        ("Liabilities + Equity", totals["liabilities_and_equity"]),
        ("Balanced", totals["is_balanced"]),
    ]
    return rows


def cash_flow_rows(cash_flow: Dict[str, Any]) -> List[Row]:
    adjustments = cash_flow["adjustments"]
    return [
        ("Net Income", cash_flow["net_income"]),
        ("Non-cash Adjustments", adjustments["non_cash_adjustments"]),
        ("Change in Receivables", adjustments["receivables_delta"]),
        ("Change in Inventory", adjustments["inventory_delta"]),
        ("Change in Payables", adjustments["payables_delta"]),
        ("Working Capital Change", adjustments["working_capital_change"]),
        ("Operating Cash Flow", cash_flow["operating_cash_flow"]),
    ]


class ExportService:

    def trial_balance_workbook(self, report: Dict[str, Any]) -> bytes:
        """Trial balance as .xlsx: period header, one row per account, totals row"""
        from openpyxl import Workbook
        from openpyxl.styles import Font, Alignment, Border, Side, PatternFill

        wb = Workbook()
        ws = wb.active
        ws.title = "Trial Balance"

        header_font = Font(bold=True, color="FFFFFF", size=11)
        header_fill = PatternFill(start_color="1e40af", end_color="1e40af", fill_type="solid")
        total_font = Font(bold=True, size=10)
        total_fill = PatternFill(start_color="f3f4f6", end_color="f3f4f6", fill_type="solid")
        thin_border = Border(
            left=Side(style='thin'),
            right=Side(style='thin'),
            top=Side(style='thin'),
            bottom=Side(style='thin')
        )

        ws['A1'] = "From"
        ws['B1'] = str(report.get("date_from") or "")
        ws['A2'] = "To"
        ws['B2'] = str(report.get("date_to") or "")

        headers = ['Code', 'Account', 'Debit', 'Credit', 'Balance']
        for col, header in enumerate(headers, 1):
            cell = ws.cell(row=4, column=col, value=header)
            cell.font = header_font
            cell.fill = header_fill
            cell.alignment = Alignment(horizontal='center')
            cell.border = thin_border

        row = 5
        for line in report["lines"]:
            ws.cell(row=row, column=1, value=line["code"]).border = thin_border
            ws.cell(row=row, column=2, value=line["name"]).border = thin_border
            for col, key in ((3, "debit"), (4, "credit"), (5, "balance")):
                cell = ws.cell(row=row, column=col, value=float(line[key]))
                cell.number_format = '#,##0.00'
                cell.alignment = Alignment(horizontal='right')
                cell.border = thin_border
            row += 1

        totals = report["totals"]
        ws.cell(row=row, column=2, value="TOTAL")
        ws.cell(row=row, column=3, value=float(totals["debit"]))
        ws.cell(row=row, column=4, value=float(totals["credit"]))
        ws.cell(row=row, column=5, value=float(totals["debit"]) - float(totals["credit"]))
        for col in range(1, 6):
            cell = ws.cell(row=row, column=col)
            cell.font = total_font
            cell.fill = total_fill
            cell.border = thin_border
            if col >= 3:
                cell.number_format = '#,##0.00'

        ws.column_dimensions['A'].width = 14
        ws.column_dimensions['B'].width = 40
        for col in ('C', 'D', 'E'):
            ws.column_dimensions[col].width = 16

        buffer = BytesIO()
        wb.save(buffer)
        return buffer.getvalue()

    def report_pdf(self, title: str, subtitle: str, rows: Sequence[Row]) -> bytes:
        """Paginated report: title, subtitle, and a two-column label/value table"""
        from reportlab.lib.pagesizes import A4
        from reportlab.lib import colors
        from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
        from reportlab.lib.units import inch
        from reportlab.platypus import SimpleDocTemplate, Table, TableStyle, Paragraph, Spacer
        from reportlab.lib.enums import TA_CENTER, TA_RIGHT

        buffer = BytesIO()
        doc = SimpleDocTemplate(buffer, pagesize=A4,
                                leftMargin=0.5*inch, rightMargin=0.5*inch,
                                topMargin=0.5*inch, bottomMargin=0.5*inch)

        styles = getSampleStyleSheet()
        title_style = ParagraphStyle('Title', parent=styles['Heading1'], alignment=TA_CENTER, fontSize=16)
        subtitle_style = ParagraphStyle('Subtitle', parent=styles['Normal'], alignment=TA_CENTER, fontSize=10)
        header_style = ParagraphStyle('Header', parent=styles['Normal'], alignment=TA_RIGHT, fontSize=9)

        elements = [
            Paragraph(title, title_style),
            Paragraph(subtitle, subtitle_style),
            Paragraph(f"Generated: {datetime.now().strftime('%Y-%m-%d %H:%M')}", header_style),
            Spacer(1, 0.3*inch),
        ]

        table_data = [['Item', 'Amount']]
        section_rows = []
        for index, (label, value) in enumerate(rows, 1):
            table_data.append([label, _fmt(value)])
            if value is None:
                section_rows.append(index)

        table = Table(table_data, colWidths=[4.5*inch, 2*inch])
        style = [
            ('BACKGROUND', (0, 0), (-1, 0), colors.HexColor('#1e40af')),
            ('TEXTCOLOR', (0, 0), (-1, 0), colors.whitesmoke),
            ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
            ('FONTSIZE', (0, 0), (-1, 0), 10),
            ('FONTSIZE', (0, 1), (-1, -1), 9),
            ('ALIGN', (1, 1), (1, -1), 'RIGHT'),
            ('BOTTOMPADDING', (0, 0), (-1, 0), 8),
            ('GRID', (0, 0), (-1, -1), 0.5, colors.grey),
        ]
        for index in section_rows:
            style.append(('FONTNAME', (0, index), (-1, index), 'Helvetica-Bold'))
            style.append(('BACKGROUND', (0, index), (-1, index), colors.HexColor('#f3f4f6')))
        table.setStyle(TableStyle(style))
        elements.append(table)

        doc.build(elements)
        return buffer.getvalue()
