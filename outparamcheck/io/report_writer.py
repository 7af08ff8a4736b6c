"""検査結果の出力モジュール（テキスト・Excel）。"""

from collections import Counter
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Sequence, TextIO
import logging

from openpyxl import Workbook
from openpyxl.styles import PatternFill, Font, Alignment, Border, Side

from ..models.diagnostic import OutParamError

logger = logging.getLogger(__name__)


class ReportWriter:
    """指摘をテキストまたはExcelワークブックとして書き出す。"""

    HEADERS: List[str] = [
        "File", "Line", "Column", "Offset", "Function", "Argument", "Statement",
    ]
    COLUMN_WIDTHS: List[int] = [50, 8, 8, 10, 30, 10, 60]

    HEADER_COLOR = "4472C4"
    ERROR_COLOR = "FFC7CE"

    def write_text(self, errors: Sequence[OutParamError], stream: TextIO) -> None:
        """指摘を1行ずつ書き出す。

        Args:
            errors: 指摘リスト
            stream: 出力先ストリーム
        """
        for error in errors:
            stream.write(f"{error}\n")

    def write_excel(self, errors: Sequence[OutParamError], output_file: str) -> None:
        """指摘一覧とサマリーシートを持つExcelファイルを作成する。

        Args:
            errors: 指摘リスト
            output_file: 出力Excelファイルのパス
        """
        output_path = Path(output_file)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        wb = Workbook()
        ws = wb.active
        ws.title = "Diagnostics"

        thin_border = self._thin_border()
        self._write_header_row(ws, self.HEADERS, thin_border)

        for row, error in enumerate(errors, start=2):
            values = [
                error.position.filename,
                error.position.line,
                error.position.column,
                error.position.offset,
                error.method,
                error.argument,
                error.line,
            ]
            for col, value in enumerate(values, start=1):
                cell = ws.cell(row=row, column=col)
                cell.value = value
                cell.border = thin_border

            ws.cell(row=row, column=6).fill = PatternFill(
                start_color=self.ERROR_COLOR,
                end_color=self.ERROR_COLOR,
                fill_type="solid"
            )
            ws.cell(row=row, column=7).alignment = Alignment(
                wrap_text=True, vertical="top"
            )

        for i, width in enumerate(self.COLUMN_WIDTHS, start=1):
            col_letter = ws.cell(row=1, column=i).column_letter
            ws.column_dimensions[col_letter].width = width
        ws.freeze_panes = "A2"

        self._write_summary(wb, errors)

        wb.save(output_path)
        logger.info(f"Report written to {output_path}")

    def _write_summary(self, wb: Workbook, errors: Sequence[OutParamError]) -> None:
        """関数ごとの指摘件数を集計したSummaryシートを追加する。"""
        ws = wb.create_sheet("Summary")

        ws["A1"] = "Out-parameter check summary"
        ws["A1"].font = Font(bold=True, size=14)
        ws.merge_cells("A1:C1")

        ws["A2"] = f"Generated: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}"
        ws.merge_cells("A2:C2")

        thin_border = self._thin_border()
        headers = ["Function", "Count", "Files"]
        for i, header in enumerate(headers, 1):
            cell = ws.cell(row=4, column=i)
            cell.value = header
            cell.font = Font(bold=True)
            cell.border = thin_border
            cell.alignment = Alignment(horizontal="center")

        counts: Counter = Counter(error.method for error in errors)
        files: Dict[str, set] = {}
        for error in errors:
            files.setdefault(error.method, set()).add(error.position.filename)

        row = 5
        for method, count in counts.most_common():
            ws.cell(row=row, column=1, value=method).border = thin_border
            cell_count = ws.cell(row=row, column=2, value=count)
            cell_count.alignment = Alignment(horizontal="right")
            cell_count.border = thin_border
            cell_files = ws.cell(row=row, column=3, value=len(files[method]))
            cell_files.alignment = Alignment(horizontal="right")
            cell_files.border = thin_border
            row += 1

        cell_total_label = ws.cell(row=row, column=1, value="Total")
        cell_total_label.font = Font(bold=True)
        cell_total_label.border = thin_border

        cell_total = ws.cell(row=row, column=2, value=len(errors))
        cell_total.font = Font(bold=True)
        cell_total.alignment = Alignment(horizontal="right")
        cell_total.border = thin_border

        ws.column_dimensions["A"].width = 40
        ws.column_dimensions["B"].width = 10
        ws.column_dimensions["C"].width = 10

    def _write_header_row(self, ws, headers: List[str], border: Border) -> None:
        fill = PatternFill(
            start_color=self.HEADER_COLOR,
            end_color=self.HEADER_COLOR,
            fill_type="solid"
        )
        for i, header in enumerate(headers, 1):
            cell = ws.cell(row=1, column=i)
            cell.value = header
            cell.font = Font(bold=True, color="FFFFFF")
            cell.alignment = Alignment(horizontal="center", vertical="center")
            cell.fill = fill
            cell.border = border

    @staticmethod
    def _thin_border() -> Border:
        return Border(
            left=Side(style="thin"),
            right=Side(style="thin"),
            top=Side(style="thin"),
            bottom=Side(style="thin")
        )
