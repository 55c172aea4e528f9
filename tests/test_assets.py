import pytest

from assetpak import (
    AssetMap,
    asset_free,
    asset_get,
    asset_get_chunk,
    asset_write,
    open_file,
)
from assetpak.assets import Asset, AssetSource, AssetState
from assetpak.packing.errors import (
    ArgumentError,
    CapacityError,
    NotFoundError,
    PakIOError,
)

from pack_helper import write_pack_file


@pytest.fixture
def hundred(tmp_path):
    p = tmp_path / "hundred.bin"
    p.write_bytes(bytes(range(100)))
    return p


def test_asset_get_reads_whole_file(hundred):
    asset = asset_get(hundred)
    assert asset.filled
    assert asset.fs
    assert asset.data_length == 100
    assert bytes(asset.data) == bytes(range(100))


def test_asset_get_missing_file(tmp_path):
    with pytest.raises(PakIOError):
        asset_get(tmp_path / "missing.bin")


def test_chunk_clamps_to_file_end(hundred):
    asset = asset_get_chunk(hundred, 0, 10**9)
    assert asset.data_length == 100
    assert asset.chunk
    assert asset.chunk_length == 100


def test_chunk_reads_from_start_offset(hundred):
    asset = asset_get_chunk(hundred, 90, 50)
    assert bytes(asset.data) == bytes(range(90, 100))
    assert asset.chunk_start == 90


def test_chunk_start_beyond_end(hundred):
    with pytest.raises(ArgumentError):
        asset_get_chunk(hundred, 101, 1)


def test_chunk_at_end_is_empty(hundred):
    assert asset_get_chunk(hundred, 100, 5).data_length == 0


def test_asset_text(tmp_path):
    p = tmp_path / "t.txt"
    p.write_text("hi there", encoding="utf-8")
    assert asset_get(p).text() == "hi there"


def test_asset_free_clears_identity(hundred):
    asset = asset_get(hundred)
    asset_free(asset)
    assert not asset.filled
    assert asset.name == ""
    assert asset.data_length == 0
    assert asset.state is AssetState.FREED


def test_asset_write(tmp_path):
    p = tmp_path / "out.bin"
    assert asset_write(p, b"abcdef") == 6
    assert p.read_bytes() == b"abcdef"


def test_map_caches_filesystem_loads(hundred):
    amap = AssetMap(4)
    first = amap.get(str(hundred))
    again = amap.get(str(hundred))
    assert first is again
    assert amap.count == 1
    assert first.uid != 0
    assert str(hundred) in amap


def test_map_missing_file_leaves_slots_unchanged(tmp_path, hundred):
    amap = AssetMap(4)
    amap.get(str(hundred))
    with pytest.raises(PakIOError):
        amap.get(str(tmp_path / "missing.bin"))
    assert amap.count == 1
    assert [a.name for a in amap] == [str(hundred)]


def test_pack_backed_get_matches_extract(tmp_path):
    png = bytes(range(256)) * 3
    p = write_pack_file(tmp_path / "t.pak", [("readme", b"x"), ("tex.png", png)])
    pack = open_file(p)
    amap = AssetMap(8, pack=pack)
    asset = amap.get("tex.png")
    assert asset.source is AssetSource.PACK
    assert bytes(asset.data) == pack.extract_alloc(pack.find("tex.png"))
    assert amap.get("tex.png") is asset


def test_pack_backed_missing_name(tmp_path):
    p = write_pack_file(tmp_path / "t.pak", [("a", b"1")])
    amap = AssetMap(2, pack=open_file(p))
    with pytest.raises(NotFoundError):
        amap.get("nope")
    assert amap.count == 0


def test_deferred_free_happens_on_update(hundred):
    amap = AssetMap(4)
    asset = amap.get(str(hundred))
    asset.request_free()
    assert asset.filled
    assert amap.count == 1
    assert amap.update() == 1
    assert amap.count == 0
    assert not asset.filled
    assert amap.update() == 0


def test_full_map_still_returns_asset(tmp_path):
    paths = []
    for i in range(3):
        p = tmp_path / f"f{i}"
        p.write_bytes(b"x" * i)
        paths.append(str(p))
    amap = AssetMap(2)
    amap.get(paths[0])
    amap.get(paths[1])
    extra = amap.get(paths[2])
    assert extra.filled
    assert amap.count == 2
    assert paths[2] not in amap


def test_add_to_full_map_raises():
    amap = AssetMap(1)
    amap.add(Asset(name="a", filled=True))
    with pytest.raises(CapacityError):
        amap.add(Asset(name="b", filled=True))


def test_remove_by_name_uid_and_asset(hundred, tmp_path):
    other = tmp_path / "o.bin"
    other.write_bytes(b"o")
    amap = AssetMap(4)
    a = amap.get(str(hundred))
    b = amap.get(str(other))
    amap.remove(a.uid)
    amap.remove(b)
    assert amap.count == 0
    with pytest.raises(NotFoundError):
        amap.remove("not-there")


def test_zero_capacity_rejected():
    with pytest.raises(ArgumentError):
        AssetMap(0)


def test_map_write_pushes_new_assets(tmp_path):
    p = write_pack_file(tmp_path / "t.pak", [("a", b"1")])
    amap = AssetMap.from_pack(p, capacity=4)
    amap.get("a")
    amap.add(Asset(name="fresh", filled=True, _buffer=b"new bytes", _length=9))
    amap.write()
    amap.close()
    pack = open_file(p)
    assert [e.name for e in pack.entries] == ["a", "fresh"]
    assert pack.extract("fresh") == b"new bytes"


def test_map_write_requires_pack():
    with pytest.raises(ArgumentError):
        AssetMap(1).write()


def test_free_all(hundred):
    amap = AssetMap(2)
    asset = amap.get(str(hundred))
    amap.free_all()
    assert amap.count == 0
    assert not asset.filled


def test_pack_assets_refresh_after_pack_write(tmp_path):
    p = write_pack_file(tmp_path / "t.pak", [("tex.png", b"old")])
    pack = open_file(p)
    amap = AssetMap(4, pack=pack)
    stale = amap.get("tex.png")
    assert bytes(stale.data) == b"old"
    pack.modify_memory("tex.png", b"new")
    pack.write()
    fresh = amap.get("tex.png")
    assert bytes(fresh.data) == b"new"
    assert bytes(fresh.data) == pack.extract("tex.png")
    assert not stale.filled
    assert amap.count == 1


def test_invalidate_keeps_non_pack_assets(tmp_path):
    p = write_pack_file(tmp_path / "t.pak", [("a", b"1")])
    amap = AssetMap(4, pack=open_file(p))
    amap.get("a")
    local = Asset(name="local", filled=True, _buffer=b"x", _length=1)
    amap.add(local)
    assert amap.invalidate() == 1
    assert [a.name for a in amap] == ["local"]


def test_map_write_evicts_rewritten_pack_assets(tmp_path):
    p = write_pack_file(tmp_path / "t.pak", [("a", b"1")])
    amap = AssetMap(4, pack=open_file(p))
    old = amap.get("a")
    amap.pack.modify_memory("a", b"2")
    amap.write()
    assert not old.filled
    assert bytes(amap.get("a").data) == b"2"
