from model.library import SnapshotLibrary
from model.snapshot import ParamSnapshot


def test_library_creates_dirs(tmp_path):
    SnapshotLibrary(root=tmp_path)
    assert (tmp_path / "snapshots").exists()


def test_library_save_and_list(tmp_path):
    lib = SnapshotLibrary(root=tmp_path)
    lib.save(ParamSnapshot(name="Live Set", values={"filter_freq": 1}))
    snapshots = lib.list_snapshots()
    assert len(snapshots) == 1
    assert snapshots[0][1].name == "Live Set"


def test_library_name_collision(tmp_path):
    lib = SnapshotLibrary(root=tmp_path)
    first = lib.save(ParamSnapshot(name="Test"))
    second = lib.save(ParamSnapshot(name="Test"))
    assert first != second
    assert len(lib.list_snapshots()) == 2


def test_library_skips_malformed_files(tmp_path):
    lib = SnapshotLibrary(root=tmp_path)
    (tmp_path / "snapshots" / "broken.json").write_text("{")
    lib.save(ParamSnapshot(name="Good"))
    assert [s.name for _p, s in lib.list_snapshots()] == ["Good"]


def test_library_find_and_delete(tmp_path):
    lib = SnapshotLibrary(root=tmp_path)
    path = lib.save(ParamSnapshot(name="Keep", values={"amp_decay": 3}))
    assert lib.find("Keep").values == {"amp_decay": 3}
    assert lib.find("Missing") is None
    lib.delete(path)
    assert lib.list_snapshots() == []
