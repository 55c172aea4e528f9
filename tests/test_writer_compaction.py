import stat

import pytest

from assetpak import open_file, open_memory
from assetpak.packing.errors import ArgumentError, NotFoundError, PakIOError

from pack_helper import make_pack, read_table, write_pack_file


def _assert_contiguous(data: bytes) -> None:
    magic, count, file_size, rows = read_table(data)
    assert magic == b"PACK"
    assert file_size == len(data)
    expected = 12 + 64 * count
    for _, offset, size in rows:
        assert offset == expected
        expected += size
    assert expected == len(data)


@pytest.mark.parametrize("n", [0, 1, 5])
def test_add_then_write_round_trips(tmp_path, n):
    p = tmp_path / "r.pak"
    pack = open_file(p)
    blobs = [(f"e{i}", bytes([i]) * (i * 7 + 1)) for i in range(n)]
    for name, data in blobs:
        pack.add_memory(name, data)
    pack.write(force=True)
    _assert_contiguous(p.read_bytes())
    reopened = open_file(p)
    assert reopened.count == n
    for i, (name, data) in enumerate(blobs):
        assert reopened.find(name) == i
        assert reopened.extract_alloc(i) == data


def test_hello_world_scenario(tmp_path):
    p = write_pack_file(tmp_path / "s.pak", [("a.txt", b"hello")])
    pack = open_file(p)
    pack.add_memory("b.txt", b"world")
    pack.write()
    assert pack.count == 2
    assert pack.find("b.txt") == 1
    assert pack.extract_alloc(1) == b"world"
    assert pack.extract_alloc(0) == b"hello"


def test_add_from_file(tmp_path):
    src = tmp_path / "payload.bin"
    src.write_bytes(b"\x00\x01\x02" * 1000)
    p = tmp_path / "f.pak"
    pack = open_file(p, chunk_size=7)
    pack.add_file("payload.bin", src)
    pack.write()
    assert pack.extract("payload.bin") == src.read_bytes()
    _assert_contiguous(p.read_bytes())


def test_remove_drops_entry_and_keeps_order(tmp_path):
    p = write_pack_file(
        tmp_path / "m.pak", [("a", b"1"), ("b", b"22"), ("c", b"333")]
    )
    pack = open_file(p)
    pack.remove("b")
    pack.write()
    assert [e.name for e in pack.entries] == ["a", "c"]
    with pytest.raises(NotFoundError):
        pack.find("b")
    assert pack.extract("c") == b"333"
    _assert_contiguous(p.read_bytes())


def test_remove_index(tmp_path):
    p = write_pack_file(tmp_path / "m.pak", [("a", b"1"), ("b", b"22")])
    pack = open_file(p)
    pack.remove_index(0)
    pack.write()
    assert pack.count == 1
    assert pack.name(0) == "b"


def test_remove_unknown_name(tmp_path):
    p = write_pack_file(tmp_path / "m.pak", [("a", b"1")])
    with pytest.raises(NotFoundError):
        open_file(p).remove("zzz")


def test_modify_keeps_slot(tmp_path):
    p = write_pack_file(tmp_path / "m.pak", [("a", b"1"), ("b", b"22")])
    pack = open_file(p)
    pack.modify_memory("a", b"replacement")
    pack.write()
    assert pack.find("a") == 0
    assert pack.extract("a") == b"replacement"
    assert pack.extract("b") == b"22"
    _assert_contiguous(p.read_bytes())


def test_modify_from_file(tmp_path):
    src = tmp_path / "new.txt"
    src.write_bytes(b"fresh")
    p = write_pack_file(tmp_path / "m.pak", [("a", b"stale")])
    pack = open_file(p)
    pack.modify_file("a", src)
    pack.write()
    assert pack.extract("a") == b"fresh"


def test_modify_unknown_name(tmp_path):
    p = write_pack_file(tmp_path / "m.pak", [("a", b"1")])
    with pytest.raises(NotFoundError):
        open_file(p).modify_memory("b", b"x")


def test_add_existing_name_replaces_in_place(tmp_path):
    p = write_pack_file(tmp_path / "m.pak", [("a", b"1"), ("b", b"2")])
    pack = open_file(p)
    pack.add_memory("a", b"new")
    pack.write()
    assert pack.count == 2
    assert pack.extract_alloc(0) == b"new"


def test_last_change_per_name_wins(tmp_path):
    p = write_pack_file(tmp_path / "m.pak", [("a", b"1")])
    pack = open_file(p)
    pack.add_memory("b", b"first")
    pack.modify_memory("b", b"second")
    pack.remove("a")
    pack.write()
    assert [e.name for e in pack.entries] == ["b"]
    assert pack.extract("b") == b"second"


def test_add_then_remove_before_write(tmp_path):
    p = write_pack_file(tmp_path / "m.pak", [("a", b"1")])
    pack = open_file(p)
    pack.add_memory("tmp", b"x")
    pack.remove("tmp")
    pack.write()
    assert [e.name for e in pack.entries] == ["a"]


def test_remove_everything_leaves_header_only(tmp_path):
    p = write_pack_file(tmp_path / "m.pak", [("a", b"1")])
    pack = open_file(p)
    pack.remove("a")
    pack.write()
    assert p.read_bytes() == make_pack([])
    assert pack.write_only


def test_write_without_changes_is_noop(tmp_path):
    p = write_pack_file(tmp_path / "m.pak", [("a", b"1")])
    before = p.read_bytes()
    pack = open_file(p)
    assert pack.write() == 0
    assert p.read_bytes() == before


def test_second_write_is_idempotent(tmp_path):
    p = write_pack_file(tmp_path / "m.pak", [("a", b"1")])
    pack = open_file(p)
    pack.add_memory("b", b"2")
    pack.write()
    first = p.read_bytes()
    pack.write(force=True)
    assert p.read_bytes() == first


def test_memory_mode_rejects_mutation():
    pack = open_memory(make_pack([("a", b"1")]))
    with pytest.raises(ArgumentError):
        pack.add_memory("b", b"2")
    with pytest.raises(ArgumentError):
        pack.remove("a")
    with pytest.raises(ArgumentError):
        pack.write()


def test_failed_write_keeps_original_and_log(tmp_path):
    src = tmp_path / "gone.bin"
    src.write_bytes(b"data")
    p = write_pack_file(tmp_path / "m.pak", [("a", b"1")])
    before = p.read_bytes()
    pack = open_file(p)
    pack.add_file("gone.bin", src)
    src.unlink()
    with pytest.raises(PakIOError):
        pack.write()
    assert p.read_bytes() == before
    assert pack.dirty
    assert len(pack.pending) == 1
    assert [f.name for f in tmp_path.iterdir()] == ["m.pak"]


def test_close_flushes_pending(tmp_path):
    p = tmp_path / "c.pak"
    with open_file(p) as pack:
        pack.add_memory("k", b"v")
    assert open_file(p).extract("k") == b"v"


def test_exception_in_context_discards(tmp_path):
    p = write_pack_file(tmp_path / "c.pak", [("a", b"1")])
    before = p.read_bytes()
    with pytest.raises(RuntimeError):
        with open_file(p) as pack:
            pack.add_memory("k", b"v")
            raise RuntimeError("boom")
    assert p.read_bytes() == before


def test_plan_reports_layout(tmp_path):
    p = write_pack_file(tmp_path / "m.pak", [("a", b"1"), ("b", b"22")])
    pack = open_file(p)
    pack.remove("a")
    pack.add_memory("c", b"333")
    plan = pack.plan()
    assert plan.count == 2
    assert (plan.removed, plan.added, plan.modified) == (1, 1, 0)
    assert [(r.name, r.offset, r.size) for r in plan.rows] == [
        ("b", 140, 2),
        ("c", 142, 3),
    ]
    assert plan.file_size == 145
    # A dry run leaves the file alone.
    assert pack.count == 2
    assert pack.dirty


def test_find_stable_across_noop_write(tmp_path):
    p = write_pack_file(tmp_path / "m.pak", [("a", b"1"), ("b", b"22")])
    pack = open_file(p)
    before = pack.find("b")
    pack.write(force=True)
    assert pack.find("b") == before
    pack.remove("a")
    pack.write()
    assert pack.count == 1


def test_remove_duplicate_name_drops_every_slot(tmp_path):
    p = write_pack_file(
        tmp_path / "dup.pak", [("a", b"1"), ("a", b"22"), ("b", b"3")]
    )
    pack = open_file(p)
    pack.remove("a")
    pack.write()
    assert [e.name for e in pack.entries] == ["b"]
    with pytest.raises(NotFoundError):
        pack.find("a")
    assert pack.extract("b") == b"3"
    _assert_contiguous(p.read_bytes())


def test_modify_duplicate_name_rewrites_every_slot(tmp_path):
    p = write_pack_file(tmp_path / "dup.pak", [("a", b"1"), ("a", b"22")])
    pack = open_file(p)
    pack.modify_memory("a", b"zz")
    pack.write()
    assert pack.count == 2
    assert [pack.extract_alloc(i) for i in range(2)] == [b"zz", b"zz"]


@pytest.mark.parametrize("mode", [0o644, 0o640])
def test_write_keeps_file_mode(tmp_path, mode):
    p = write_pack_file(tmp_path / "m.pak", [("a", b"1")])
    p.chmod(mode)
    pack = open_file(p)
    pack.add_memory("b", b"2")
    pack.write()
    assert stat.S_IMODE(p.stat().st_mode) == mode
