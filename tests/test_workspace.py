import shutil
from pathlib import Path

import pytest

from coderunner.errors import InvalidFileName
from coderunner.sandbox.workspace import WorkspaceManager, check_filename


def test_acquire_creates_unique_directories(tmp_path: Path) -> None:
    manager = WorkspaceManager(root=tmp_path)

    first = manager.acquire("req1")
    second = manager.acquire("req1")

    assert first.root_path != second.root_path
    assert first.root_path.is_dir() and second.root_path.is_dir()
    assert first.root_path.parent == tmp_path


def test_materialize_writes_nested_files(tmp_path: Path) -> None:
    manager = WorkspaceManager(root=tmp_path)
    workspace = manager.acquire("req")

    manager.materialize(workspace, {"main.js": "import './lib/a.js'", "./lib/a.js": "export {}"})

    assert (workspace.root_path / "main.js").read_text() == "import './lib/a.js'"
    assert (workspace.root_path / "lib" / "a.js").read_text() == "export {}"
    assert set(workspace.files) == {"main.js", "lib/a.js"}


@pytest.mark.parametrize("name", ["../escape.py", "/etc/passwd", "a/../../b.py", "", ".", "a\\b.py"])
def test_traversal_names_are_rejected(name: str) -> None:
    with pytest.raises(InvalidFileName):
        check_filename(name)


def test_release_removes_tree(tmp_path: Path) -> None:
    manager = WorkspaceManager(root=tmp_path)
    workspace = manager.acquire("req")
    manager.materialize(workspace, {"pkg/main.py": "print(1)"})

    manager.release(workspace)

    assert not workspace.root_path.exists()


def test_release_failure_is_logged_not_raised(tmp_path: Path, monkeypatch) -> None:
    manager = WorkspaceManager(root=tmp_path)
    workspace = manager.acquire("req")

    def boom(path):
        raise PermissionError("denied")

    monkeypatch.setattr(shutil, "rmtree", boom)

    manager.release(workspace)


@pytest.mark.asyncio
async def test_session_releases_on_exception(tmp_path: Path) -> None:
    manager = WorkspaceManager(root=tmp_path)
    seen: list[Path] = []

    with pytest.raises(RuntimeError):
        async with manager.session("req", {"main.py": "print(1)"}) as workspace:
            seen.append(workspace.root_path)
            assert (workspace.root_path / "main.py").is_file()
            raise RuntimeError("sandbox exploded")

    assert seen and not seen[0].exists()


@pytest.mark.asyncio
async def test_session_releases_when_materialize_fails(tmp_path: Path) -> None:
    manager = WorkspaceManager(root=tmp_path)

    with pytest.raises(InvalidFileName):
        async with manager.session("req", {"../x.py": ""}):
            pass

    assert list(tmp_path.iterdir()) == []
