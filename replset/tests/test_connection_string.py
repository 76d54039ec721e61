import pytest

from replset.connection_string import build_uri, resolve_db_name


def test_resolve_db_name_default() -> None:
    assert resolve_db_name("app") == "app"
    assert resolve_db_name("app", None) == "app"
    assert resolve_db_name("app", False) == "app"
    assert resolve_db_name("app", "") == "app"


def test_resolve_db_name_explicit() -> None:
    assert resolve_db_name("app", "foo") == "foo"


def test_resolve_db_name_fresh() -> None:
    first = resolve_db_name("app", True)
    second = resolve_db_name("app", True)

    assert first not in ("app", "True")
    assert first != second


@pytest.mark.parametrize("bind_ip", ["127.0.0.1", "0.0.0.0", "::", "*", "127.0.0.1,10.0.0.5"])
def test_build_uri_loopback(bind_ip: str) -> None:
    assert build_uri(bind_ip, [27017, 27018], "db") == "mongodb://127.0.0.1:27017,127.0.0.1:27018/db"


def test_build_uri_single_host() -> None:
    assert build_uri("localhost", [27017], "orders") == "mongodb://localhost:27017/orders"


def test_build_uri_keeps_port_order() -> None:
    uri = build_uri("127.0.0.1", [30003, 30001, 30002], "db")

    assert uri == "mongodb://127.0.0.1:30003,127.0.0.1:30001,127.0.0.1:30002/db"
