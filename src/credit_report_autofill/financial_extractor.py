"""
Financial statement extractor for Chinese-language spreadsheets.

Statements uploaded by customers have no fixed layout: a label such as
"资产总计" may sit in any column, with its amount somewhere to the right or on
the line below. The extractor scans every cell for known labels and harvests
the nearest non-zero number.
"""

import io
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import pandas as pd
from openpyxl import load_workbook

from .errors import SpreadsheetFormatError
from .number_parser import parse_number

CellGrid = List[List[Any]]


@dataclass(frozen=True)
class LabelRule:
    """Synonymous statement labels mapped to one canonical metric key"""
    key: str
    synonyms: Tuple[str, ...]
    # A cell containing any of these phrases never matches this rule
    excludes: Tuple[str, ...] = ()

    def matches(self, text: str) -> Optional[str]:
        if any(phrase in text for phrase in self.excludes):
            return None
        for synonym in self.synonyms:
            if synonym in text:
                return synonym
        return None


_EQUITY_TOTALS = ('负债和所有者权益', '负债及所有者权益', '负债和股东权益', '负债及股东权益')

# Declaration order is lookup order: the first rule that matches claims the key
BALANCE_SHEET_RULES: List[LabelRule] = [
    LabelRule('totalAssets', ('资产总计', '资产总额', '资产合计', '资产总数', '总资产'),
              excludes=('流动资产', '率')),
    LabelRule('totalLiabilities', ('负债总计', '负债总额', '负债合计', '总负债'),
              excludes=('流动负债', '率') + _EQUITY_TOTALS),
    LabelRule('ownerEquity', ('所有者权益合计', '所有者权益', '股东权益合计', '股东权益', '净资产'),
              excludes=_EQUITY_TOTALS + ('率',)),
    LabelRule('paidInCapital', ('实收资本',)),
    LabelRule('currentAssets', ('流动资产合计', '流动资产'), excludes=('非流动资产',)),
    LabelRule('currentLiabilities', ('流动负债合计', '流动负债'), excludes=('非流动负债',)),
    LabelRule('inventory', ('存货',)),
    LabelRule('accountsReceivable', ('应收账款',)),
    LabelRule('cashAndEquivalents', ('货币资金',)),
]

INCOME_STATEMENT_RULES: List[LabelRule] = [
    LabelRule('revenue', ('营业收入', '主营业务收入', '营业总收入', '销售收入')),
    LabelRule('netProfit', ('净利润',)),
    LabelRule('totalProfit', ('利润总额',)),
    LabelRule('operatingProfit', ('营业利润',)),
    LabelRule('operatingCost', ('营业成本', '主营业务成本')),
    LabelRule('sellingExpenses', ('销售费用',)),
    LabelRule('adminExpenses', ('管理费用',)),
    LabelRule('financialExpenses', ('财务费用',)),
]

_YEAR_PATTERN = re.compile(r'(\d{4})')


@dataclass
class StatementRecord:
    """Facts harvested from one uploaded file"""
    year: Optional[int] = None
    balance_sheet: Dict[str, Any] = field(default_factory=dict)
    income_statement: Dict[str, Any] = field(default_factory=dict)
    sheets: Dict[str, CellGrid] = field(default_factory=dict)
    source: str = ''


def extract_year_from_file_name(file_name: str) -> Optional[int]:
    """First run of 4 digits in the file name, e.g. '2023年报表.xlsx' -> 2023"""
    match = _YEAR_PATTERN.search(file_name or '')
    return int(match.group(1)) if match else None


def _frame_to_grid(frame: pd.DataFrame) -> CellGrid:
    grid = []
    for row in frame.itertuples(index=False, name=None):
        grid.append([None if pd.isna(cell) else cell for cell in row])
    return grid


def read_cell_grids(data: bytes, file_name: str) -> Dict[str, CellGrid]:
    """
    Read every sheet of a spreadsheet into a cell grid.
    .xlsx/.xlsm are read with openpyxl, .csv and legacy formats with pandas.
    """
    suffix = Path(file_name or '').suffix.lower()
    try:
        if suffix == '.csv':
            frame = pd.read_csv(io.BytesIO(data), header=None, dtype=object)
            return {Path(file_name).stem: _frame_to_grid(frame)}

        if suffix in ('.xlsx', '.xlsm', ''):
            wb = load_workbook(io.BytesIO(data), read_only=True, data_only=True)
            try:
                return {
                    ws.title: [list(row) for row in ws.iter_rows(values_only=True)]
                    for ws in wb.worksheets
                }
            finally:
                wb.close()

        frames = pd.read_excel(io.BytesIO(data), sheet_name=None, header=None,
                               engine='xlrd' if suffix == '.xls' else None)
        return {name: _frame_to_grid(frame) for name, frame in frames.items()}
    except Exception as e:
        raise SpreadsheetFormatError(f"无法解析Excel文件: {file_name} ({e})") from e


class FinancialStatementExtractor:
    """Harvests balance sheet and income statement facts from cell grids"""

    def __init__(self, balance_sheet_rules: List[LabelRule] = None,
                 income_statement_rules: List[LabelRule] = None):
        self.balance_sheet_rules = balance_sheet_rules or BALANCE_SHEET_RULES
        self.income_statement_rules = income_statement_rules or INCOME_STATEMENT_RULES
        self.logger = logging.getLogger(__name__)

    def parse_file(self, data: bytes, file_name: str) -> StatementRecord:
        """Parse one spreadsheet file (all sheets) into a StatementRecord."""
        grids = read_cell_grids(data, file_name)
        record = StatementRecord(year=extract_year_from_file_name(file_name), source=file_name)

        for sheet_name, grid in grids.items():
            record.sheets[sheet_name] = grid
            self.logger.debug(f"Scanning sheet '{sheet_name}' ({len(grid)} rows)")
            self.extract_from_grid(grid, record)

        self.compute_derived_metrics(record)
        self.logger.info(
            f"{file_name}: year={record.year}, "
            f"balance sheet items={len(record.balance_sheet)}, "
            f"income statement items={len(record.income_statement)}"
        )
        return record

    def extract_from_grid(self, grid: CellGrid, record: StatementRecord = None) -> StatementRecord:
        """
        Scan every cell for statement labels and harvest the adjacent amount.
        Keys that are already set on the record are never overwritten.
        """
        if record is None:
            record = StatementRecord()

        for row_idx, row in enumerate(grid):
            if not row:
                continue
            next_row = grid[row_idx + 1] if row_idx + 1 < len(grid) else None

            for col_idx, cell in enumerate(row):
                text = '' if cell is None else str(cell).strip()
                if not text:
                    continue
                self._match_rules(self.balance_sheet_rules, record.balance_sheet, text, row, col_idx, next_row)
                self._match_rules(self.income_statement_rules, record.income_statement, text, row, col_idx, next_row)

        return record

    def _match_rules(self, rules: List[LabelRule], target: Dict[str, Any], text: str,
                     row: List[Any], col_idx: int, next_row: Optional[List[Any]]):
        for rule in rules:
            if rule.key in target:
                continue
            label = rule.matches(text)
            if label is None:
                continue

            value = self._first_amount(row[col_idx + 1:])
            if value is not None:
                target[rule.key] = value
                self.logger.debug(f"Found {rule.key}: {value} from '{label}'")
                continue

            if next_row:
                value = self._first_amount(next_row)
                if value is not None:
                    target[rule.key] = value
                    self.logger.debug(f"Found {rule.key}: {value} from next row")

    @staticmethod
    def _first_amount(cells: List[Any]) -> Optional[Any]:
        # Zero counts as absent: stray zero cells are never authoritative
        for cell in cells:
            value = parse_number(cell)
            if value is not None and value != 0:
                return value
        return None

    def compute_derived_metrics(self, record: StatementRecord) -> StatementRecord:
        """Ratios are only computed when every input is present and non-zero."""
        bs = record.balance_sheet
        inc = record.income_statement

        if bs.get('totalAssets') and bs.get('totalLiabilities'):
            bs['debtRatio'] = f"{bs['totalLiabilities'] / bs['totalAssets'] * 100:.2f}"

        if bs.get('currentAssets') and bs.get('currentLiabilities'):
            bs['currentRatio'] = f"{bs['currentAssets'] / bs['currentLiabilities']:.2f}"
            quick_assets = bs['currentAssets'] - bs.get('inventory', 0)
            bs['quickRatio'] = f"{quick_assets / bs['currentLiabilities']:.2f}"

        if inc.get('netProfit') and bs.get('ownerEquity'):
            bs['roe'] = f"{inc['netProfit'] / bs['ownerEquity'] * 100:.2f}"

        if bs.get('totalAssets') and bs.get('totalLiabilities') and not bs.get('ownerEquity'):
            bs['ownerEquity'] = bs['totalAssets'] - bs['totalLiabilities']
            self.logger.info(f"Calculated owner equity: {bs['ownerEquity']}")

        return record
