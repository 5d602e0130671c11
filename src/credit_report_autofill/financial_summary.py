"""
Multi-year aggregation of extracted statement facts.

Each uploaded file yields one StatementRecord. Records are collected per year
and flattened into the End / Beginning / LastYear view the report form uses.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from .errors import InputFormatError
from .financial_extractor import FinancialStatementExtractor, StatementRecord

logger = logging.getLogger(__name__)

FileInput = Union[str, Path, Tuple[str, bytes]]

BALANCE_SUMMARY_KEYS = ['totalAssets', 'totalLiabilities', 'ownerEquity',
                        'debtRatio', 'currentRatio', 'quickRatio']


@dataclass
class FinancialDataset:
    raw_data: Dict[int, StatementRecord] = field(default_factory=dict)
    balance_sheet: List[Dict[str, Any]] = field(default_factory=list)
    income_statement: List[Dict[str, Any]] = field(default_factory=list)
    errors: Dict[str, str] = field(default_factory=dict)

    def add_record(self, record: StatementRecord):
        if record.year:
            self.raw_data[record.year] = record
        self.balance_sheet.append({'year': record.year, **record.balance_sheet})
        self.income_statement.append({'year': record.year, **record.income_statement})

    def sort(self):
        """Ascending by year; files without a year sort first"""
        self.balance_sheet.sort(key=lambda entry: entry.get('year') or 0)
        self.income_statement.sort(key=lambda entry: entry.get('year') or 0)

    @property
    def is_empty(self) -> bool:
        return not (self.raw_data or self.balance_sheet or self.income_statement)


def _read_input(item: FileInput) -> Tuple[str, bytes]:
    if isinstance(item, tuple):
        return item[0], item[1]
    path = Path(item)
    return path.name, path.read_bytes()


def parse_financial_files(files: Iterable[FileInput],
                          extractor: FinancialStatementExtractor = None) -> FinancialDataset:
    """
    Parse statement files one after another.
    A file that cannot be read is logged and skipped; the batch continues.
    """
    extractor = extractor or FinancialStatementExtractor()
    dataset = FinancialDataset()

    for item in files:
        name = item[0] if isinstance(item, tuple) else str(item)
        try:
            name, data = _read_input(item)
            record = extractor.parse_file(data, name)
        except (InputFormatError, OSError) as e:
            logger.error(f"Error parsing {name}: {e}")
            dataset.errors[name] = str(e)
            continue
        dataset.add_record(record)

    dataset.sort()
    return dataset


def _put(summary: Dict[str, Any], key: str, value: Any):
    if value is not None:
        summary[key] = value


def _summary_from_raw_data(raw_data: Dict[int, StatementRecord]) -> Dict[str, Any]:
    summary = {}
    years = sorted(raw_data, reverse=True)
    if not years:
        return summary

    latest = raw_data[years[0]]
    for key in BALANCE_SUMMARY_KEYS:
        _put(summary, f"{key}End", latest.balance_sheet.get(key))
    _put(summary, 'revenueCurrent', latest.income_statement.get('revenue'))
    _put(summary, 'netProfitCurrent', latest.income_statement.get('netProfit'))

    if len(years) > 1:
        previous = raw_data[years[1]]
        for key in ['totalAssets', 'totalLiabilities', 'ownerEquity', 'debtRatio']:
            _put(summary, f"{key}Beginning", previous.balance_sheet.get(key))
        _put(summary, 'revenueLastYear', previous.income_statement.get('revenue'))
        _put(summary, 'netProfitLastYear', previous.income_statement.get('netProfit'))

    return summary


def get_financial_summary(dataset: Optional[FinancialDataset]) -> Dict[str, Any]:
    """
    Flatten the dataset into current / beginning / last-year figures.

    The newest balance sheet gives the *End* values, the one before it the
    *Beginning* values and the third newest (or the second when only two exist)
    the *LastYear* values. Missing figures are left out of the result.
    """
    if dataset is None:
        logger.info("No financial data available")
        return {}

    balance_sheet = dataset.balance_sheet
    income_statement = dataset.income_statement

    if not balance_sheet and dataset.raw_data:
        logger.info("Using raw data for financial summary")
        return _summary_from_raw_data(dataset.raw_data)

    summary = {}
    if balance_sheet:
        latest = balance_sheet[-1]
        previous = balance_sheet[-2] if len(balance_sheet) > 1 else None
        last_year = balance_sheet[-3] if len(balance_sheet) > 2 else previous

        for key in BALANCE_SUMMARY_KEYS:
            _put(summary, f"{key}End", latest.get(key))
            if previous:
                _put(summary, f"{key}Beginning", previous.get(key))
            if last_year:
                _put(summary, f"{key}LastYear", last_year.get(key))

    if income_statement:
        latest = income_statement[-1]
        previous = income_statement[-2] if len(income_statement) > 1 else None

        _put(summary, 'revenueCurrent', latest.get('revenue'))
        _put(summary, 'netProfitCurrent', latest.get('netProfit'))
        if previous:
            _put(summary, 'revenueLastYear', previous.get('revenue'))
            _put(summary, 'netProfitLastYear', previous.get('netProfit'))

    return summary
