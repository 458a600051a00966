import csv
import datetime
import io
from decimal import Decimal

import pytest

from dbf_errors import RangeError, StateError, TypeMismatchError
from dbf_file import DbfFile, OpenMode
from reader import DbfReader, read_dbf, read_dbf_to_csv
from writer import write_dbf

COLUMNS = [('ID', 'N', 4, 0), ('NAME', 'C', 12), ('BORN', 'D'), ('SCORE', 'N', 6, 2), ('OK', 'L')]
ROWS = [
    [1, 'Alice', datetime.date(1990, 5, 17), Decimal('91.50'), True],
    [2, 'Bob', datetime.date(2000, 2, 29), Decimal('78.25'), False],
    [3, 'Chandra', None, None, None],
]


def test_small_roundtrip(tmp_path):
    path = tmp_path / "t.dbf"
    assert write_dbf(str(path), COLUMNS, ROWS) == 3

    names, out_rows = read_dbf(str(path))

    assert names == ['ID', 'NAME', 'BORN', 'SCORE', 'OK']
    assert out_rows == ROWS


def test_selective_read(tmp_path):
    path = tmp_path / "t2.dbf"
    write_dbf(str(path), COLUMNS, ROWS)

    names, out_rows = read_dbf(str(path), select_columns=['name', 'ID'])
    assert names == ['NAME', 'ID']
    assert out_rows == [['Alice', 1], ['Bob', 2], ['Chandra', 3]]

    with pytest.raises(RangeError):
        read_dbf(str(path), select_columns=['missing'])


def test_write_dbf_rejects_ragged_rows(tmp_path):
    with pytest.raises(ValueError):
        write_dbf(str(tmp_path / "bad.dbf"), COLUMNS, [[1, 'x']])


def test_deleted_rows_are_skipped(people_path):
    names, rows = read_dbf(str(people_path))
    assert [r[0] for r in rows] == ['ALICE', 'CAROL']

    names, rows = read_dbf(str(people_path), skip_deleted=False)
    assert [r[0] for r in rows] == ['ALICE', 'BOB', 'CAROL']


def test_reader_cursor(people_path):
    reader = DbfReader(str(people_path))
    assert reader.field_count == 2
    assert reader.has_rows
    assert reader.records_affected == 3
    assert reader.get_name(1) == 'AGE'
    assert reader.get_ordinal('age') == 1
    assert reader.get_field_type(1) is int
    assert reader.get_data_type_name(0) == 'CHARACTER'

    with pytest.raises(StateError):
        reader.get_value(0)

    assert reader.read()
    assert reader['NAME'] == 'ALICE'
    assert reader[1] == 30
    assert reader.get_int('AGE') == 30
    assert reader.get_decimal('AGE') == Decimal(30)
    assert reader.get_double('AGE') == 30.0
    assert reader.get_string('AGE') == '30'
    assert reader.get_char('NAME') == 'A'
    assert reader.get_values() == ['ALICE', 30]
    assert not reader.is_null('AGE')
    with pytest.raises(TypeMismatchError):
        reader.get_date('NAME')
    with pytest.raises(RangeError):
        reader.get_value(5)

    assert reader.read()
    assert reader.record_index == 1
    assert reader.read()
    assert not reader.read()

    reader.close()
    assert reader.is_closed
    with pytest.raises(StateError):
        reader.read()


def test_reader_skip_deleted_over_stream(people_path):
    stream = io.BytesIO(people_path.read_bytes())
    with DbfReader(stream, skip_deleted=True) as reader:
        seen = [(reader.record_index, rec['NAME']) for rec in reader]
    assert seen == [(0, 'ALICE'), (2, 'CAROL')]
    assert not stream.closed


def test_read_dbf_to_csv(tmp_path):
    path = tmp_path / "t3.dbf"
    write_dbf(str(path), COLUMNS, ROWS)
    out = tmp_path / "out.csv"

    assert read_dbf_to_csv(str(path), str(out), select_columns=['ID', 'BORN', 'SCORE']) == 3

    with open(out, newline='', encoding='utf-8') as f:
        lines = list(csv.reader(f))
    assert lines == [
        ['ID', 'BORN', 'SCORE'],
        ['1', '1990-05-17', '91.50'],
        ['2', '2000-02-29', '78.25'],
        ['3', '', ''],
    ]


def test_write_dbf_sets_language_driver(tmp_path):
    path = tmp_path / "cp.dbf"
    write_dbf(str(path), [('CITY', 'C', 10)], [['Wien'], ['Köln']], language_driver=0x57)
    with DbfFile(str(path), OpenMode.OPEN_EXISTING, read_only=True) as dbf:
        assert dbf.header.encoding == 'cp1252'
        assert dbf.header.record_length == 11
        assert [r['CITY'] for r in dbf] == ['Wien', 'Köln']


def test_reader_binary_getters(tmp_path):
    path = tmp_path / "blob.dbf"
    write_dbf(str(path), [('TAG', 'B', 3), ('NAME', 'C', 4)], [[b'\x07\x08', 'x']])
    with DbfReader(str(path)) as reader:
        assert reader.read()
        assert reader.get_bytes('TAG') == b'\x07\x08\x00'
        assert reader.get_byte('TAG') == 7
        with pytest.raises(TypeMismatchError):
            reader.get_byte('NAME')
