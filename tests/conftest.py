"""Test configuration and fixtures."""

from pathlib import Path
from typing import Generator

import pytest
from git import Actor, Repo


@pytest.fixture(autouse=True)
def isolated_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Keep the real GitHub CLI login out of the tests."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.delenv("GH_CONFIG_DIR", raising=False)
    monkeypatch.delenv("APPDATA", raising=False)
    return home


@pytest.fixture
def gh_config_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point GH_CONFIG_DIR at an empty directory."""
    config_dir = tmp_path / "gh"
    config_dir.mkdir()
    monkeypatch.setenv("GH_CONFIG_DIR", str(config_dir))
    return config_dir


@pytest.fixture
def test_env(tmp_path: Path) -> Generator[tuple[Path, Path], None, None]:
    """Create a test environment with local and remote repositories.

    The local repository has:
    - main: checked out, pushed, the remote's default branch
    - done-feature: never pushed
    - stale-feature: pushed and tracking origin/stale-feature

    Returns:
        Tuple of (local_repo_path, remote_repo_path)
    """
    remote_path = tmp_path / "remote"
    local_path = tmp_path / "local"
    remote_path.mkdir()
    local_path.mkdir()

    # Initialize remote repo, with main as its default branch
    remote_repo = Repo.init(remote_path, bare=True)
    remote_repo.git.symbolic_ref("HEAD", "refs/heads/main")

    # Initialize local repo on main whatever init.defaultBranch says
    local_repo = Repo.init(local_path)
    local_repo.git.symbolic_ref("HEAD", "refs/heads/main")

    author = Actor("Test User", "test@example.com")
    local_repo.config_writer().set_value("user", "name", author.name).release()
    local_repo.config_writer().set_value("user", "email", author.email).release()

    readme = local_path / "README.md"
    readme.write_text("# Test Repository")
    local_repo.index.add(["README.md"])
    local_repo.index.commit("Initial commit", author=author)
    main_branch = local_repo.heads.main

    origin = local_repo.create_remote("origin", url=str(remote_path))
    origin.push("main")
    main_branch.set_tracking_branch(origin.refs.main)

    def create_branch(name: str, push: bool) -> None:
        """Create a branch with one commit of its own."""
        main_branch.checkout()
        branch = local_repo.create_head(name)
        branch.checkout()

        test_file = local_path / f"{name}.txt"
        test_file.write_text(f"{name} content")
        local_repo.index.add([f"{name}.txt"])
        local_repo.index.commit(f"Add {name}", author=author)

        if push:
            origin.push(name)
            branch.set_tracking_branch(origin.refs[name])

    create_branch("done-feature", push=False)
    create_branch("stale-feature", push=True)

    main_branch.checkout()

    yield local_path, remote_path
