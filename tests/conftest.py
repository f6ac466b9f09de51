import pytest
import sqlitebind
from sqlalchemy.dialects import registry

registry.register("sqlite.sqlitebind", "sqlitebind_sqlalchemy.dialect", "SqliteBindDialect")

@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "test.db")

@pytest.fixture
def conn():
    c = sqlitebind.Connection()
    yield c
    c.close()
