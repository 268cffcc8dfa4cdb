from __future__ import annotations

from datetime import datetime, time, timedelta, timezone
from typing import BinaryIO, Optional, Union

from openpyxl import Workbook
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.table import Table, TableStyleInfo

from jpos.domain.errors import ValidationError
from jpos.domain.models import Sale, SalesSummary


def parse_bound(value: Optional[str], end_of_day: bool = False) -> Optional[datetime]:
    """Parse an ISO date or datetime into an aware UTC datetime.

    A date-only value means the start of that day, or its last instant when
    ``end_of_day`` is set. Naive datetimes are taken as UTC.
    """
    if value is None or str(value).strip() == "":
        return None
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    date_only = len(text) == 10
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError as e:
        raise ValidationError(f"Invalid date: {value!r}.") from e
    if date_only and end_of_day:
        parsed = datetime.combine(parsed.date(), time.max)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _sale_time(sale: Sale) -> datetime:
    return parse_bound(sale.timestamp)


class ReportingService:
    def __init__(self, repo):
        self.repo = repo

    def _window(self, start: Optional[str], end: Optional[str]) -> tuple[datetime, datetime]:
        end_dt = parse_bound(end, end_of_day=True) or datetime.now(timezone.utc)
        start_dt = parse_bound(start) or (end_dt - timedelta(days=7))
        if start_dt > end_dt:
            raise ValidationError("'from' must not be after 'to'.")
        return start_dt, end_dt

    def sales_between(self, start: Optional[str] = None, end: Optional[str] = None) -> list[Sale]:
        start_dt, end_dt = self._window(start, end)
        sales = [Sale.from_dict(s) for s in self.repo.get_by_prefix("sale:")]
        picked = [s for s in sales if start_dt <= _sale_time(s) <= end_dt]
        return sorted(picked, key=_sale_time)

    def sales_summary(self, start: Optional[str] = None, end: Optional[str] = None) -> SalesSummary:
        sales = self.sales_between(start, end)
        total = sum(s.total for s in sales)
        by_date: dict[str, float] = {}
        for s in sales:
            day = _sale_time(s).date().isoformat()
            by_date[day] = by_date.get(day, 0.0) + s.total
        return SalesSummary(
            total_sales=total,
            total_transactions=len(sales),
            avg_transaction_value=(total / len(sales)) if sales else 0.0,
            sales_by_date=by_date,
        )

    def export_sales_report_excel(
        self,
        target: Union[str, BinaryIO],
        start: Optional[str] = None,
        end: Optional[str] = None,
    ) -> None:
        wb = Workbook()

        def money(cell):
            cell.number_format = "#,##0.00"

        def bold_row(ws, r):
            for c in ws[r]:
                c.font = Font(bold=True)

        def set_widths(ws, widths: dict[str, int]):
            for col, w in widths.items():
                ws.column_dimensions[col].width = w

        def add_table(ws, name: str, start_row: int, start_col: int, end_row: int, end_col: int):
            ref = f"{get_column_letter(start_col)}{start_row}:{get_column_letter(end_col)}{end_row}"
            tab = Table(displayName=name, ref=ref)
            tab.tableStyleInfo = TableStyleInfo(
                name="TableStyleMedium9",
                showRowStripes=True,
                showColumnStripes=False,
            )
            ws.add_table(tab)

        start_dt, end_dt = self._window(start, end)
        sales = self.sales_between(start_dt.isoformat(), end_dt.isoformat())
        summary = self.sales_summary(start_dt.isoformat(), end_dt.isoformat())

        ws = wb.active
        ws.title = "Summary"
        ws["A1"] = "Sales Summary"
        ws["A1"].font = Font(bold=True, size=14)
        ws["A3"] = "Window"
        ws["B3"] = f"{start_dt.isoformat()}  ->  {end_dt.isoformat()}"

        rows = [
            ("Transactions", summary.total_transactions, False),
            ("Total sales", summary.total_sales, True),
            ("Average transaction", summary.avg_transaction_value, True),
        ]
        for i, (label, val, is_money) in enumerate(rows):
            r = 5 + i
            ws[f"A{r}"] = label
            ws[f"B{r}"] = val
            if is_money:
                money(ws[f"B{r}"])

        r = 5 + len(rows) + 1
        ws[f"A{r}"] = "Date"
        ws[f"B{r}"] = "Sales"
        bold_row(ws, r)
        for day, amount in sorted(summary.sales_by_date.items()):
            r += 1
            ws[f"A{r}"] = day
            ws[f"B{r}"] = amount
            money(ws[f"B{r}"])
        set_widths(ws, {"A": 24, "B": 48})

        ws2 = wb.create_sheet("Sales Detail")
        ws2.append([
            "Sale ID", "Timestamp", "Customer", "Payment",
            "Product ID", "Product Name",
            "Qty", "Unit Price", "Discount %", "Line Total", "Sale Total",
        ])
        bold_row(ws2, 1)

        out_row = 2
        for s in sales:
            for it in s.items:
                ws2.append([
                    s.id, s.timestamp, s.customer_name or "", s.payment_method,
                    it.product_id, it.product_name,
                    it.quantity, it.price, it.discount, it.line_total, s.total,
                ])
                for col in ("H", "J", "K"):
                    money(ws2[f"{col}{out_row}"])
                out_row += 1

        ws2.freeze_panes = "A2"
        set_widths(ws2, {
            "A": 18, "B": 26, "C": 22, "D": 10,
            "E": 18, "F": 34,
            "G": 6, "H": 14, "I": 11, "J": 14, "K": 14,
        })
        if ws2.max_row >= 2:
            add_table(ws2, "SalesDetail", 1, 1, ws2.max_row, 11)

        wb.save(target)
