import datetime
import io

import pytest

from byte_utils import unpack_u32
from dbf_errors import DbfIOError, FormatError, RangeError, StateError
from dbf_file import DbfFile, OpenMode


def test_name_age_scenario(tmp_path):
    path = tmp_path / "scenario.dbf"
    with DbfFile(path, OpenMode.CREATE_NEW) as dbf:
        dbf.add_column('NAME', 'C', 20)
        dbf.add_column('AGE', 'N', 3, 0)
        rec = dbf.new_record()
        rec['NAME'] = 'ALICE'
        rec['AGE'] = '30'
        assert dbf.append(rec) == 0

    dbf = DbfFile(path)
    try:
        rec = dbf.new_record()
        assert dbf.read_next(rec) is True
        assert rec['NAME'] == 'ALICE'
        assert rec['AGE'] == 30
        assert rec.get_string('AGE') == '30'
        assert rec.is_deleted is False
        assert rec.record_index == 0
        assert dbf.read_next(rec) is False
    finally:
        dbf.close()


def test_append_then_read_back(tmp_path):
    path = tmp_path / "many.dbf"
    names = [f"ROW{i:03d}" for i in range(25)]
    with DbfFile(path, OpenMode.CREATE_NEW) as dbf:
        dbf.add_column('NAME', 'C', 8)
        dbf.add_column('N', 'N', 4)
        rec = dbf.new_record()
        for i, name in enumerate(names):
            rec.clear()
            rec['NAME'] = name
            rec['N'] = i
            assert dbf.append(rec) == i
        assert dbf.record_count == len(names)

    with DbfFile(path) as dbf:
        assert dbf.record_count == len(names)
        rec = dbf.new_record()
        for i in reversed(range(len(names))):
            dbf.read(rec, i)
            assert rec['NAME'] == names[i]
            assert rec['N'] == i
            assert rec.record_index == i


def test_deleted_flag_survives_reopen(people_path):
    with DbfFile(people_path) as dbf:
        rec = dbf.new_record()
        dbf.read(rec, 2)
        rec.is_deleted = True
        dbf.write(rec, 2)

    with DbfFile(people_path) as dbf:
        flags = [r.is_deleted for r in dbf]
    assert flags == [False, True, True]


def test_read_past_end(people_path):
    with DbfFile(people_path) as dbf:
        rec = dbf.new_record()
        with pytest.raises(RangeError):
            dbf.read(rec, 3)
        with pytest.raises(RangeError):
            dbf.read(rec, -1)
        while dbf.read_next(rec):
            pass
        before = rec.to_bytes()
        assert dbf.read_next(rec) is False
        assert rec.to_bytes() == before
        assert rec.record_index == 2


def test_write_requires_existing_index(people_path):
    with DbfFile(people_path) as dbf:
        rec = dbf.new_record()
        with pytest.raises(RangeError):
            dbf.write(rec, 3)


def test_add_column_after_records_is_state_error(people_path):
    with DbfFile(people_path) as dbf:
        with pytest.raises(StateError):
            dbf.add_column('EXTRA', 'C', 5)
        assert dbf.header.column_count == 2


def test_closed_engine_guards_operations(people_path):
    dbf = DbfFile(people_path)
    rec = dbf.new_record()
    dbf.close()
    dbf.close()
    assert not dbf.is_open
    with pytest.raises(StateError):
        dbf.read_next(rec)
    with pytest.raises(StateError):
        dbf.append(rec)
    with pytest.raises(StateError):
        dbf.header


def test_in_memory_layout(memory_file):
    dbf = DbfFile(memory_file, OpenMode.CREATE, leave_open=True)
    dbf.add_column('ID', 'N', 5)
    rec = dbf.new_record()
    for i in range(3):
        rec['ID'] = i
        dbf.append(rec)
    dbf.close()

    raw = memory_file.getvalue()
    header_length = 32 + 32 + 1
    assert raw[0] == 0x03
    assert unpack_u32(raw[4:8]) == 3
    assert len(raw) == header_length + 3 * 6 + 1
    assert raw[-1] == 0x1A
    assert raw[header_length:header_length + 6] == b'     0'
    assert not memory_file.closed


def test_eof_marker_can_be_disabled(memory_file, monkeypatch):
    monkeypatch.setenv("DBF_WRITE_EOF_MARKER", "false")
    with DbfFile(memory_file, OpenMode.CREATE, leave_open=True) as dbf:
        dbf.add_column('ID', 'N', 5)
        dbf.append(dbf.new_record())
    assert len(memory_file.getvalue()) == 65 + 6


def test_close_stamps_last_update(memory_file):
    with DbfFile(memory_file, OpenMode.CREATE, leave_open=True) as dbf:
        dbf.add_column('ID', 'N', 5)
        dbf.header.touch(datetime.date(1999, 1, 1))
        dbf.append(dbf.new_record())
    today = datetime.date.today()
    assert memory_file.getvalue()[1:4] == bytes([today.year - 1900, today.month, today.day])


def test_header_flushed_when_block_raises(tmp_path):
    path = tmp_path / "crash.dbf"
    with pytest.raises(ValueError):
        with DbfFile(path, OpenMode.CREATE_NEW) as dbf:
            dbf.add_column('ID', 'N', 5)
            dbf.append(dbf.new_record())
            raise ValueError("boom")
    with DbfFile(path) as dbf:
        assert dbf.record_count == 1


def test_create_new_refuses_existing_file(people_path):
    with pytest.raises(DbfIOError):
        DbfFile(people_path, OpenMode.CREATE_NEW)


def test_missing_file_is_io_error(tmp_path):
    with pytest.raises(DbfIOError):
        DbfFile(tmp_path / "nope.dbf")


def test_garbage_header_is_format_error():
    with pytest.raises(FormatError):
        DbfFile(io.BytesIO(b'\x00' * 64))


def test_truncated_record_is_io_error(people_path):
    data = people_path.read_bytes()
    people_path.write_bytes(data[:-10])
    with DbfFile(people_path) as dbf:
        rec = dbf.new_record()
        dbf.read(rec, 0)
        with pytest.raises(DbfIOError):
            dbf.read(rec, 2)


def test_read_only_rejects_writes(people_path):
    with DbfFile(people_path, read_only=True) as dbf:
        rec = dbf.new_record()
        dbf.read(rec, 0)
        with pytest.raises(StateError):
            dbf.write(rec, 0)
        with pytest.raises(StateError):
            dbf.append(rec)


def test_record_from_other_file_is_rejected(people_path, memory_file):
    with DbfFile(people_path) as dbf, DbfFile(memory_file, OpenMode.CREATE) as other:
        other.add_column('X', 'C', 1)
        with pytest.raises(StateError):
            dbf.read_next(other.new_record())


def test_records_iterates_lazily(people_path):
    with DbfFile(people_path) as dbf:
        it = iter(dbf)
        first = next(it)
        assert first['NAME'] == 'ALICE'
        assert dbf.cursor == 1
        rest = [r['NAME'] for r in it]
    assert rest == ['BOB', 'CAROL']


def test_append_without_columns_is_state_error(memory_file):
    with DbfFile(memory_file, OpenMode.CREATE) as dbf:
        with pytest.raises(StateError):
            dbf.append(dbf.new_record())


def test_truthiness_follows_open_state(memory_file):
    dbf = DbfFile(memory_file, OpenMode.CREATE)
    assert dbf
    assert len(dbf) == 0
    dbf.close()
    assert not dbf


def test_flush_persists_count_without_close(tmp_path):
    path = tmp_path / "flushed.dbf"
    dbf = DbfFile(path, OpenMode.CREATE_NEW)
    try:
        dbf.add_column('ID', 'N', 5)
        rec = dbf.new_record()
        rec['ID'] = 7
        dbf.append(rec)
        dbf.flush()
        assert not dbf.header.dirty
        with DbfFile(path, read_only=True) as snapshot:
            assert snapshot.record_count == 1
            assert [r['ID'] for r in snapshot] == [7]
    finally:
        dbf.close()


def test_flush_on_read_only_is_state_error(people_path):
    with DbfFile(people_path, read_only=True) as dbf:
        with pytest.raises(StateError):
            dbf.flush()
