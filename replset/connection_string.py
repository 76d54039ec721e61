from collections.abc import Iterable

from shared.types.common import Host
from shared.utils import connect_host, generate_db_name


def resolve_db_name(default_db_name: str, other_db: str | bool | None = None) -> str:
    """
    An explicit name wins, any other truthy value asks for a fresh random
    name, and otherwise the set-wide default is used.
    """
    if other_db:
        return other_db if isinstance(other_db, str) else generate_db_name()
    return default_db_name


def build_uri(bind_ip: str, ports: Iterable[int], db_name: str) -> str:
    host = connect_host(bind_ip)
    hosts = ",".join(str(Host(host=host, port=port)) for port in ports)
    return f"mongodb://{hosts}/{db_name}"
