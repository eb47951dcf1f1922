"""Server configuration and secure JSON persistence."""

import json
import os

import pytest

from utils import (
    DEFAULT_PORT,
    NodePaths,
    get_app_dir,
    load_server_config,
    read_json,
    write_json_secure,
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    monkeypatch.delenv("PORT", raising=False)
    monkeypatch.delenv("TICKFY_VALIDATOR_HOME", raising=False)


def test_first_run_writes_defaults(tmp_path):
    config = load_server_config(tmp_path / "data")

    assert config.port == DEFAULT_PORT
    assert config.data_dir == str(tmp_path / "data")
    stored = json.loads((tmp_path / "data" / "server-config.json").read_text())
    assert stored == {"port": 8080, "dataDir": str(tmp_path / "data")}
    if os.name == "posix":
        assert ((tmp_path / "data").stat().st_mode & 0o777) == 0o700


def test_port_from_environment(tmp_path, monkeypatch):
    monkeypatch.setenv("PORT", "9090")
    assert load_server_config(tmp_path).port == 9090


def test_invalid_port_environment(tmp_path, monkeypatch):
    monkeypatch.setenv("PORT", "http")
    assert load_server_config(tmp_path).port == DEFAULT_PORT


def test_stored_port_wins(tmp_path, monkeypatch):
    (tmp_path / "server-config.json").write_text(json.dumps({"port": 7000, "dataDir": str(tmp_path)}))
    monkeypatch.setenv("PORT", "9090")
    assert load_server_config(tmp_path).port == 7000


def test_app_dir_override(tmp_path, monkeypatch):
    monkeypatch.setenv("TICKFY_VALIDATOR_HOME", str(tmp_path / "custom"))
    assert get_app_dir() == tmp_path / "custom"
    assert (tmp_path / "custom").is_dir()


def test_write_json_secure(tmp_path):
    target = tmp_path / "nested" / "file.json"
    write_json_secure(target, {"a": 1})

    assert read_json(target) == {"a": 1}
    assert not (tmp_path / "nested" / "file.tmp").exists()
    if os.name == "posix":
        assert (target.stat().st_mode & 0o777) == 0o600


def test_read_json_tolerates_bad_files(tmp_path):
    assert read_json(tmp_path / "missing.json") is None
    (tmp_path / "bad.json").write_text("{oops")
    assert read_json(tmp_path / "bad.json") is None
    (tmp_path / "list.json").write_text("[1, 2]")
    assert read_json(tmp_path / "list.json") is None


def test_node_paths_layout(tmp_path):
    paths = NodePaths(tmp_path)
    assert paths.binary.parent == tmp_path / "bin"
    assert paths.binary.name.startswith("tickfy-blockchaind")
    assert paths.node_home == tmp_path / "node"
    assert paths.genesis == tmp_path / "node" / "config" / "genesis.json"
    assert paths.cosmovisor_root == tmp_path / "node" / "cosmovisor"
    assert paths.wallets == tmp_path / "wallets.json"
    assert paths.cosmovisor_config == tmp_path / "cosmovisor-config.json"
