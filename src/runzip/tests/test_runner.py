"""
runner tests
Whole-archive processing: dry run, idempotence, batches with failures.
"""

import io
import os
import zipfile

import pytest
from hypothesis import given, settings, strategies as st

from runzip.codec.codepages import Codepage
from runzip.config import RunConfig
from runzip.errors import CorruptArchive, TruncatedFile, UnsupportedFeature
from runzip.runner import process, process_many
from zipfactory import Member, build_zip, legacy_name, payload_bytes


class CollectingSink:
    def __init__(self):
        self.seen = []

    def report(self, summary):
        self.seen.append(summary.archive)


class TestProcess:

    def test_fixes_names(self, write_zip, cyrillic_members):
        path = write_zip("mixed.zip", cyrillic_members)
        summary = process(path, RunConfig())
        assert summary.ok
        assert summary.entry_count == 5
        assert summary.renamed == 3
        assert summary.encodings == {
            "cp866": 1, "windows-1251": 1, "koi8-r": 1, "ascii": 1, "utf-8": 1,
        }
        with zipfile.ZipFile(path) as zf:
            assert zf.namelist()[:3] == ["Документ.txt", "Отчет.doc", "Привет"]

    def test_single_legacy_entry(self, write_zip):
        raw = "Отчет.doc".encode("cp1251")
        path = write_zip("single.zip", [Member(raw, b"payload bytes", deflate=True)])
        before = path.read_bytes()
        process(path, RunConfig())
        after = path.read_bytes()
        with zipfile.ZipFile(io.BytesIO(before)) as old, zipfile.ZipFile(io.BytesIO(after)) as new:
            info = new.infolist()[0]
            assert info.flag_bits & 0x800
            assert info.filename == "Отчет.doc"
            assert payload_bytes(after, info) == payload_bytes(before, old.infolist()[0])
            assert new.read(info) == b"payload bytes"

    def test_dry_run_leaves_file_alone(self, write_zip, cyrillic_members):
        path = write_zip("mixed.zip", cyrillic_members)
        before = path.read_bytes()
        os.utime(path, (1_000_000, 1_000_000))
        summary = process(path, RunConfig(dry_run=True))
        assert summary.renamed == 3
        assert summary.dry_run
        assert path.read_bytes() == before
        assert os.stat(path).st_mtime == 1_000_000

    def test_second_run_changes_nothing(self, write_zip, cyrillic_members):
        path = write_zip("mixed.zip", cyrillic_members)
        process(path, RunConfig())
        once = path.read_bytes()
        summary = process(path, RunConfig())
        assert summary.renamed == 0
        assert path.read_bytes() == once

    def test_all_flagged_archive_is_byte_identical(self, write_zip):
        members = [Member("Готово.txt".encode("utf-8"), flags=0x800), Member(b"plain.txt")]
        path = write_zip("done.zip", members, comment=b"kept")
        before = path.read_bytes()
        summary = process(path, RunConfig())
        assert summary.renamed == 0
        assert path.read_bytes() == before

    def test_legacy_windows_overrides_target(self, write_zip):
        path = write_zip("win.zip", [Member("Отчет.doc".encode("koi8-r"))])
        config = RunConfig().with_overrides(target_encoding="koi8-u", legacy_windows_mode=True)
        summary = process(path, config)
        assert summary.target == "cp866"
        with zipfile.ZipFile(path) as zf:
            info = zf.infolist()[0]
            assert not info.flag_bits & 0x800
            assert legacy_name(info, "cp866") == "Отчет.doc"

    def test_forced_source(self, write_zip):
        # Forcing the wrong codepage converts anyway, exactly as asked.
        raw = "Привет".encode("koi8-r")
        path = write_zip("forced.zip", [Member(raw)])
        summary = process(path, RunConfig().with_overrides(source_encoding="cp1251"))
        assert summary.encodings == {"windows-1251": 1}
        with zipfile.ZipFile(path) as zf:
            assert zf.namelist() == [raw.decode("cp1251")]

    def test_archive_comment_converted(self, write_zip):
        path = write_zip("c.zip", [Member(b"a.txt")], comment="Архив документов".encode("cp866"))
        summary = process(path, RunConfig())
        assert summary.comment_changed
        with zipfile.ZipFile(path) as zf:
            assert zf.comment == "Архив документов".encode("utf-8")

    def test_undecodable_entry_reported(self, write_zip):
        raw = "Сч".encode("cp1251") + b"\x98"
        path = write_zip("bad.zip", [Member(raw), Member("Файл".encode("cp866"))])
        summary = process(path, RunConfig().with_overrides(source_encoding="windows-1251"))
        assert summary.ok
        assert len(summary.undecodable) == 1
        assert summary.renamed == 1

    def test_corrupt_archive_raises_with_path(self, tmp_path):
        path = tmp_path / "broken.zip"
        path.write_bytes(b"garbage" * 10)
        with pytest.raises(CorruptArchive) as info:
            process(path, RunConfig())
        assert info.value.path == str(path)
        assert path.read_bytes() == b"garbage" * 10

    def test_dry_run_rejects_oversized_payload(self, write_zip):
        path = write_zip("big.zip", [Member("Файл".encode("cp866"), b"abc")])
        data = bytearray(path.read_bytes())
        cd = data.find(b"PK\x01\x02")
        data[cd + 20:cd + 24] = (10_000_000).to_bytes(4, "little")
        path.write_bytes(bytes(data))
        with pytest.raises(TruncatedFile):
            process(path, RunConfig(dry_run=True))

    def test_unsupported_archive_untouched(self, write_zip):
        path = write_zip("sfx.zip", [Member("Файл".encode("cp866"))], prefix=b"MZ" + b"\x00" * 30)
        before = path.read_bytes()
        with pytest.raises(UnsupportedFeature):
            process(path, RunConfig())
        assert path.read_bytes() == before


class TestProcessMany:

    def test_failure_does_not_stop_batch(self, write_zip, tmp_path):
        good = write_zip("good.zip", [Member("Файл".encode("cp866"))])
        bad = tmp_path / "bad.zip"
        bad.write_bytes(b"not a zip")
        missing = tmp_path / "missing.zip"
        sink = CollectingSink()

        results = process_many([bad, good, missing], RunConfig(jobs=2), sink=sink)

        assert [r.archive for r in results] == [str(bad), str(good), str(missing)]
        assert results[0].error.startswith("corrupt archive")
        assert results[1].ok and results[1].renamed == 1
        assert results[2].error.startswith("I/O error")
        assert sorted(sink.seen) == sorted(str(p) for p in (bad, good, missing))

    def test_duplicate_paths_processed_once(self, write_zip):
        path = write_zip("one.zip", [Member("Файл".encode("cp866"))])
        results = process_many([path, str(path)], RunConfig())
        assert len(results) == 1

    def test_error_logged(self, tmp_path, log_lines):
        bad = tmp_path / "bad.zip"
        bad.write_bytes(b"PK")
        process_many([bad], RunConfig())
        assert any("Error processing" in line and "bad.zip" in line for line in log_lines)


# ==================== property tests ====================

WORDS = ["Документ", "Отчет", "Привет", "Письмо", "Таблица", "Фото"]


@settings(max_examples=15, deadline=None)
@given(
    st.lists(
        st.tuples(st.sampled_from(WORDS), st.sampled_from(["cp866", "cp1251", "koi8-r"])),
        min_size=1,
        max_size=6,
    ),
    st.sampled_from([c.value for c in Codepage] + ["utf-8"]),
)
def test_processing_is_idempotent(tmp_path_factory, names, target):
    """A second run over its own output changes nothing."""
    members = [Member(f"{i}_{word}.txt".encode(enc), word.encode()) for i, (word, enc) in enumerate(names)]
    path = tmp_path_factory.mktemp("idem") / "a.zip"
    path.write_bytes(build_zip(members))
    config = RunConfig().with_overrides(target_encoding=target)

    process(path, config)
    once = path.read_bytes()
    process(path, config)
    assert path.read_bytes() == once
