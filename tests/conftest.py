import io

import pytest

from dbf_file import DbfFile, OpenMode
from dbf_settings import get_settings


@pytest.fixture(autouse=True)
def reset_settings():
    """Settings are cached; make env changes in one test invisible to the next."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def people_path(tmp_path):
    """A file with NAME(C,20), AGE(N,3,0) and three records, the second deleted."""
    path = tmp_path / "people.dbf"
    with DbfFile(path, OpenMode.CREATE_NEW) as dbf:
        dbf.add_column('NAME', 'C', 20)
        dbf.add_column('AGE', 'N', 3, 0)
        rec = dbf.new_record()
        for i, (name, age) in enumerate([("ALICE", 30), ("BOB", 41), ("CAROL", 27)]):
            rec.clear()
            rec['NAME'] = name
            rec['AGE'] = age
            rec.is_deleted = (i == 1)
            dbf.append(rec)
    return path


@pytest.fixture
def memory_file():
    """An empty in-memory stream kept open after the engine closes."""
    return io.BytesIO()
