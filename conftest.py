import pytest
from fastapi.testclient import TestClient

from api import create_app
from host import Host
from library import Library, register_book_types


@pytest.fixture
def db_file(tmp_path):
    # tmp_path is unique per test, so each test gets its own database
    return str(tmp_path / "books_test.db")


@pytest.fixture
def host(db_file):
    host = Host(db_file)
    register_book_types(host)
    return host


@pytest.fixture
def lib(host):
    return Library(host)


@pytest.fixture
def client(db_file):
    with TestClient(create_app(db_file=db_file, strict_not_found=False)) as test_client:
        yield test_client


@pytest.fixture
def strict_client(db_file):
    with TestClient(create_app(db_file=db_file, strict_not_found=True)) as test_client:
        yield test_client
