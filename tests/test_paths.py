import pytest

from assetpak.utils.paths import safe_file_path


def test_relative_path_resolves_under_base(tmp_path):
    (tmp_path / "sub").mkdir()
    assert safe_file_path(tmp_path, "sub/x.bin") == (tmp_path / "sub" / "x.bin").resolve()


def test_absolute_path_inside_base_accepted(tmp_path):
    inside = tmp_path / "x.bin"
    assert safe_file_path(tmp_path, str(inside)) == inside.resolve()


@pytest.mark.parametrize("rel", ["../x.bin", "/etc/passwd", "sub/../../x.bin"])
def test_escaping_paths_rejected(tmp_path, rel):
    with pytest.raises(ValueError):
        safe_file_path(tmp_path, rel)


def test_symlink_out_of_base_rejected(tmp_path):
    base = tmp_path / "base"
    base.mkdir()
    (base / "link").symlink_to(tmp_path)
    with pytest.raises(ValueError):
        safe_file_path(base, "link/other.bin")
