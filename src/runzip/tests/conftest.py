import pytest
from loguru import logger

from zipfactory import Member, build_zip


@pytest.fixture(autouse=True)
def _drop_log_sinks():
    # The CLI binds loguru to the stream it sees at startup; do not let it
    # outlive the test that opened it.
    yield
    logger.remove()


@pytest.fixture
def write_zip(tmp_path):
    def _write(name, members, comment=b"", **kwargs):
        path = tmp_path / name
        path.write_bytes(build_zip(members, comment, **kwargs))
        return path

    return _write


@pytest.fixture
def cyrillic_members():
    """One name per legacy codepage plus a pure ASCII and a flagged entry."""
    return [
        Member("Документ.txt".encode("cp866"), b"dos text"),
        Member("Отчет.doc".encode("cp1251"), b"windows text" * 20, deflate=True),
        Member("Привет".encode("koi8-r"), b"unix text", descriptor=True),
        Member(b"readme.txt", b"plain"),
        Member("Готово.txt".encode("utf-8"), b"done", flags=0x800),
    ]


@pytest.fixture
def log_lines():
    lines = []
    handler_id = logger.add(lambda message: lines.append(str(message)), level="TRACE", format="{level} {message}")
    yield lines
    logger.remove(handler_id)


@pytest.fixture
def isolated_home(tmp_path, monkeypatch):
    """Point HOME at an empty directory and clear RUNZIP_CONFIG."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.delenv("RUNZIP_CONFIG", raising=False)
    return home
