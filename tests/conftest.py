import pytest
import litebind
from sqlalchemy.dialects import registry

registry.register("sqlite.litebind", "litebind_sqlalchemy.dialect", "LitebindDialect")

@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "test.db")

@pytest.fixture
def db():
    conn = litebind.Database()
    yield conn
    conn.close()
