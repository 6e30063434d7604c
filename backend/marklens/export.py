"""
export.py — Excel workbook export of a cohort analysis.
"""

from typing import Any, Dict, List, Optional

import pandas as pd
from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils.dataframe import dataframe_to_rows

SUBJECT_COLUMNS = ["subject", "average", "highest", "lowest", "count"]
RANKING_COLUMNS = ["rank", "student_id", "student_name", "average", "total_marks", "mark_count"]

HEADER_FONT = Font(bold=True, color="FFFFFF", size=11)
HEADER_FILL = PatternFill(start_color="1a1a2e", end_color="1a1a2e", fill_type="solid")
RED_FILL = PatternFill(start_color="fadbd8", end_color="fadbd8", fill_type="solid")
GREEN_FILL = PatternFill(start_color="d5f5e3", end_color="d5f5e3", fill_type="solid")
THIN_BORDER = Border(
    left=Side(style="thin"), right=Side(style="thin"),
    top=Side(style="thin"), bottom=Side(style="thin"),
)


def _frame(rows: List[Dict[str, Any]], columns: List[str]) -> pd.DataFrame:
    return pd.DataFrame(rows, columns=columns)


def _style_sheet(ws, dataframe: pd.DataFrame, at_risk_threshold: Optional[float] = None):
    """Header styling, borders, optional risk fill, frozen header, auto-width."""
    for cell in ws[1]:
        cell.font = HEADER_FONT
        cell.fill = HEADER_FILL
        cell.alignment = Alignment(horizontal="center")
        cell.border = THIN_BORDER

    avg_col_idx = None
    if "average" in dataframe.columns:
        avg_col_idx = list(dataframe.columns).index("average") + 1

    for row in ws.iter_rows(min_row=2, max_row=ws.max_row):
        for cell in row:
            cell.border = THIN_BORDER
            cell.alignment = Alignment(horizontal="center")

        if avg_col_idx:
            row[avg_col_idx - 1].number_format = "0.0"

        if avg_col_idx and at_risk_threshold is not None and row[avg_col_idx - 1].value is not None:
            fill = RED_FILL if float(row[avg_col_idx - 1].value) < at_risk_threshold else GREEN_FILL
            for cell in row:
                cell.fill = fill

    ws.freeze_panes = "A2"

    for col_cells in ws.columns:
        max_len = max(len(str(cell.value or "")) for cell in col_cells)
        ws.column_dimensions[col_cells[0].column_letter].width = min(max_len + 4, 30)


def generate_excel_export(output_path: str, analysis: Dict[str, Any], app_name: str = "MarkLens"):
    """Write subject stats, rankings and the at-risk list to separate sheets."""
    threshold = analysis.get("summary", {}).get("at_risk_threshold", 50.0)

    sheets = [
        ("Subjects", _frame(analysis.get("subjects", []), SUBJECT_COLUMNS), None, "1a1a2e"),
        ("Rankings", _frame(analysis.get("rankings", []), RANKING_COLUMNS), threshold, "0f3460"),
        ("At Risk", _frame(analysis.get("at_risk", []), RANKING_COLUMNS), threshold, "e94560"),
    ]

    wb = Workbook()
    wb.properties.title = f"{app_name} cohort analysis"
    wb.remove(wb.active)

    for title, df, risk_threshold, tab_color in sheets:
        ws = wb.create_sheet(title=title)
        ws.sheet_properties.tabColor = tab_color
        for row in dataframe_to_rows(df, index=False, header=True):
            ws.append(row)
        _style_sheet(ws, df, risk_threshold)

    wb.save(output_path)
