import csv
from decimal import Decimal

import pytest

from dbf_tool import infer_column, main
from reader import read_dbf


def write_csv(path, header, rows):
    with open(path, 'w', newline='', encoding='utf-8') as f:
        w = csv.writer(f)
        w.writerow(header)
        w.writerows(rows)


def test_csv_to_dbf_and_back(tmp_path, capsys):
    csv_in = tmp_path / "in.csv"
    write_csv(csv_in, ['id', 'name'], [['1', 'Alice'], ['22', 'Bob'], ['', 'Chandra']])
    dbf_path = tmp_path / "out.dbf"

    assert main(['csv_to_dbf', str(csv_in), str(dbf_path)]) == 0
    names, rows = read_dbf(str(dbf_path))
    assert names == ['ID', 'NAME']
    assert rows == [[1, 'Alice'], [22, 'Bob'], [None, 'Chandra']]

    csv_out = tmp_path / "back.csv"
    assert main(['dbf_to_csv', str(dbf_path), str(csv_out), '--cols', 'NAME']) == 0
    with open(csv_out, newline='', encoding='utf-8') as f:
        assert list(csv.reader(f)) == [['NAME'], ['Alice'], ['Bob'], ['Chandra']]
    assert "3 rows" in capsys.readouterr().out


def test_info_lists_columns(people_path, capsys):
    assert main(['info', str(people_path)]) == 0
    out = capsys.readouterr().out
    assert "Records:       3" in out
    assert "NAME" in out and "C(20)" in out
    assert "AGE" in out and "N(3)" in out


def test_dbf_to_csv_includes_deleted_on_request(people_path, tmp_path):
    out = tmp_path / "all.csv"
    assert main(['dbf_to_csv', str(people_path), str(out), '--include-deleted']) == 0
    with open(out, newline='', encoding='utf-8') as f:
        assert len(list(csv.reader(f))) == 4


def test_usage_and_runtime_errors(tmp_path):
    assert main([]) == 2
    assert main(['info', str(tmp_path / "missing.dbf")]) == 1


def test_infer_column():
    assert infer_column('age', ['1', '', '300']) == ('AGE', 'N', 3, 0)
    assert infer_column('very_long_name', ['x', 'hello']) == ('VERY_LONG_', 'C', 5, 0)
    assert infer_column('empty', ['', '']) == ('EMPTY', 'C', 1, 0)


def test_infer_decimal_column():
    assert infer_column('price', ['1.5', '', '-12.25', '3']) == ('PRICE', 'N', 6, 2)
    assert infer_column('mixed', ['1.5', 'n/a']) == ('MIXED', 'C', 3, 0)


def test_infer_measures_width_in_target_codepage():
    assert infer_column('city', ['Köln'], 'cp1252') == ('CITY', 'C', 4, 0)
    with pytest.raises(ValueError, match=r"'city', CSV line 3"):
        infer_column('city', ['Wien', 'Москва'], 'cp1252')


def test_csv_to_dbf_decimals_and_codepage(tmp_path, capsys):
    csv_in = tmp_path / "prices.csv"
    write_csv(csv_in, ['city', 'price'], [['Москва', '1.5'], ['Київ', '20.25']])
    dbf_path = tmp_path / "prices.dbf"

    assert main(['csv_to_dbf', str(csv_in), str(dbf_path)]) == 1
    assert "cannot be encoded as cp1252" in capsys.readouterr().err

    assert main(['csv_to_dbf', str(csv_in), str(dbf_path), '--codepage', '0xC9']) == 0
    names, rows = read_dbf(str(dbf_path))
    assert names == ['CITY', 'PRICE']
    assert rows == [['Москва', Decimal('1.50')], ['Київ', Decimal('20.25')]]
