from credit_report_autofill.financial_extractor import StatementRecord
from credit_report_autofill.financial_summary import (FinancialDataset, get_financial_summary,
                                                      parse_financial_files)


def _record(year, assets, liabilities, revenue):
    return StatementRecord(
        year=year,
        balance_sheet={'totalAssets': assets, 'totalLiabilities': liabilities,
                       'ownerEquity': assets - liabilities},
        income_statement={'revenue': revenue},
    )


def _dataset(*records):
    dataset = FinancialDataset()
    for record in records:
        dataset.add_record(record)
    dataset.sort()
    return dataset


def test_three_years():
    dataset = _dataset(_record(2024, 3000, 1500, 900),
                       _record(2022, 1000, 500, 300),
                       _record(2023, 2000, 1000, 600))
    summary = get_financial_summary(dataset)

    assert summary['totalAssetsEnd'] == 3000
    assert summary['totalAssetsBeginning'] == 2000
    assert summary['totalAssetsLastYear'] == 1000
    assert summary['revenueCurrent'] == 900
    assert summary['revenueLastYear'] == 600
    assert 'netProfitCurrent' not in summary


def test_two_years_last_year_is_previous():
    summary = get_financial_summary(_dataset(_record(2023, 2000, 1000, 600),
                                             _record(2024, 3000, 1500, 900)))
    assert summary['totalAssetsBeginning'] == 2000
    assert summary['totalAssetsLastYear'] == 2000


def test_single_year():
    summary = get_financial_summary(_dataset(_record(2024, 3000, 1500, 900)))
    assert summary['totalLiabilitiesEnd'] == 1500
    assert 'totalLiabilitiesBeginning' not in summary
    assert 'revenueLastYear' not in summary


def test_missing_year_sorts_first():
    dataset = _dataset(_record(2023, 2000, 1000, 600), _record(None, 5000, 1000, 100))
    assert [entry['year'] for entry in dataset.balance_sheet] == [None, 2023]
    assert list(dataset.raw_data) == [2023]


def test_raw_data_fallback():
    dataset = FinancialDataset(raw_data={2023: _record(2023, 2000, 1000, 600),
                                         2024: _record(2024, 3000, 1500, 900)})
    summary = get_financial_summary(dataset)
    assert summary['totalAssetsEnd'] == 3000
    assert summary['totalAssetsBeginning'] == 2000
    assert summary['revenueLastYear'] == 600


def test_empty_dataset():
    assert get_financial_summary(None) == {}
    assert get_financial_summary(FinancialDataset()) == {}


def test_bad_file_does_not_abort_batch(statement_workbook):
    dataset = parse_financial_files([
        ('2022年报表.xlsx', b'broken'),
        ('2023年报表.xlsx', statement_workbook),
    ])
    assert list(dataset.raw_data) == [2023]
    assert '2022年报表.xlsx' in dataset.errors
    assert get_financial_summary(dataset)['totalAssetsEnd'] == 1500


def test_parse_from_path(tmp_path, statement_workbook):
    path = tmp_path / '2024年报表.xlsx'
    path.write_bytes(statement_workbook)
    dataset = parse_financial_files([path, tmp_path / 'missing.xlsx'])
    assert list(dataset.raw_data) == [2024]
    assert len(dataset.errors) == 1
