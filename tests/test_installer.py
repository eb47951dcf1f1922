"""Node binary, node home and cosmovisor provisioning."""

import io
import json
import os
import tarfile

import httpx
import pytest

from errors import ExternalToolError, NotFoundError, TransientIOError, ValidationError
from models import CosmovisorConfig, NodeConfig
from services.installer import NodeInstaller

GENESIS = b'{"chain_id": "tickfyblockchain", "from": "network"}'
BINARY = b"\x7fELF" + b"0" * 4096

FAKE_INIT = """
import os
import sys

args = sys.argv[1:]
if os.environ.get("FAKE_INIT_FAIL"):
    print("Error: failed to initialize", flush=True)
    sys.exit(1)
home = args[args.index("--home") + 1]
config_dir = os.path.join(home, "config")
os.makedirs(config_dir, exist_ok=True)
with open(os.path.join(config_dir, "genesis.json"), "w") as f:
    f.write('{"chain_id": "generated"}')
with open(os.path.join(config_dir, "config.toml"), "w") as f:
    f.write('moniker = "%s"\\n[p2p]\\nseeds = ""\\npersistent_peers = ""\\n' % args[1])
print("initialized " + " ".join(args), flush=True)
"""


def cosmovisor_tarball() -> bytes:
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w:gz") as tar:
        for name, content in (("cosmovisor", b"#!/bin/sh\nexit 0\n"), ("README.md", b"docs")):
            info = tarfile.TarInfo(name)
            info.size = len(content)
            info.mode = 0o644
            tar.addfile(info, io.BytesIO(content))
    return buf.getvalue()


class FakeReleases:
    """Serves release artifacts by URL suffix and records requests."""

    def __init__(self, routes: dict[str, httpx.Response]):
        self.routes = routes
        self.requested: list[str] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.requested.append(url)
        for suffix, response in self.routes.items():
            if url.endswith(suffix):
                return response
        return httpx.Response(404)


@pytest.fixture
def make_installer(paths, logs):
    def _make(routes=None) -> tuple[NodeInstaller, FakeReleases]:
        releases = FakeReleases(routes or {})
        client = httpx.Client(transport=httpx.MockTransport(releases))
        return NodeInstaller(paths, logs, client=client), releases

    return _make


def messages(logs):
    return [entry.split("] ", 1)[1] for entry in logs.recent()]


# ============================================
# install_node
# ============================================

def test_install_node(make_installer, paths, logs):
    installer, releases = make_installer({
        suffix: httpx.Response(200, content=BINARY) for suffix in ("-amd64", "-arm64", ".exe")
    })
    progress = []

    installer.install_node(progress=progress.append)

    assert paths.binary.exists()
    assert paths.binary.read_bytes() == BINARY
    if os.name == "posix":
        assert os.access(paths.binary, os.X_OK)
    assert progress and progress[-1] == 100
    assert progress == sorted(progress)
    assert len(releases.requested) == 1
    assert messages(logs)[-1] == "Binary installed successfully"


def test_install_node_is_idempotent(make_installer, paths):
    paths.bin_dir.mkdir(parents=True, exist_ok=True)
    paths.binary.write_text("already here")
    installer, releases = make_installer()

    installer.install_node()

    assert releases.requested == []
    assert paths.binary.read_text() == "already here"


def test_install_node_not_found(make_installer, paths):
    installer, _ = make_installer()
    with pytest.raises(TransientIOError) as exc_info:
        installer.install_node()
    assert exc_info.value.status_code == 404
    assert not paths.binary.exists()


def test_install_node_connection_error(paths, logs):
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    installer = NodeInstaller(paths, logs, client=httpx.Client(transport=httpx.MockTransport(refuse)))
    with pytest.raises(TransientIOError):
        installer.install_node()
    assert not paths.binary.exists()


# ============================================
# init_node
# ============================================

def test_init_node(make_installer, make_script, paths, logs):
    make_script(paths.binary, FAKE_INIT)
    installer, _ = make_installer({"/genesis.json": httpx.Response(200, content=GENESIS)})

    installer.init_node("  my-node ")

    assert paths.genesis.read_bytes() == GENESIS
    config_toml = paths.node_toml.read_text()
    assert 'seeds = "seed1.tickfy.io:26656,seed2.tickfy.io:26656"' in config_toml
    assert 'persistent_peers = ""' in config_toml

    config = NodeConfig.load(paths.node_config)
    assert config == NodeConfig("my-node", "tickfyblockchain", str(paths.node_home))
    assert json.loads(paths.node_config.read_text())["chainId"] == "tickfyblockchain"
    assert messages(logs)[0] == "Initializing node with moniker: my-node"
    assert messages(logs)[-1] == "Node initialized successfully"


def test_init_node_keeps_generated_genesis_when_download_fails(make_installer, make_script, paths, logs):
    make_script(paths.binary, FAKE_INIT)
    installer, _ = make_installer()

    installer.init_node("my-node")

    assert json.loads(paths.genesis.read_text()) == {"chain_id": "generated"}
    assert paths.node_config.exists()
    assert any(m.startswith("Genesis download skipped") for m in messages(logs))


def test_init_node_requires_moniker(make_installer):
    installer, _ = make_installer()
    with pytest.raises(ValidationError):
        installer.init_node("   ")


def test_init_node_requires_binary(make_installer):
    installer, _ = make_installer()
    with pytest.raises(NotFoundError):
        installer.init_node("my-node")


def test_init_node_is_idempotent(make_installer, paths):
    paths.genesis.parent.mkdir(parents=True, exist_ok=True)
    paths.genesis.write_text("{}")
    installer, releases = make_installer()

    installer.init_node("my-node")

    assert releases.requested == []
    assert not paths.node_config.exists()


def test_init_node_failure(make_installer, make_script, paths, logs, monkeypatch):
    make_script(paths.binary, FAKE_INIT)
    monkeypatch.setenv("FAKE_INIT_FAIL", "1")
    installer, _ = make_installer()

    with pytest.raises(ExternalToolError) as exc_info:
        installer.init_node("my-node")

    assert exc_info.value.returncode == 1
    assert "failed to initialize" in exc_info.value.output
    assert messages(logs)[-1] == "Init error: Error: failed to initialize"
    assert not paths.node_config.exists()


# ============================================
# Cosmovisor
# ============================================

def test_install_cosmovisor(make_installer, paths, logs):
    installer, releases = make_installer({".tar.gz": httpx.Response(200, content=cosmovisor_tarball())})

    installer.install_cosmovisor()

    assert paths.cosmovisor.exists()
    if os.name == "posix":
        assert os.access(paths.cosmovisor, os.X_OK)
    assert not (paths.bin_dir / "cosmovisor.tar.gz").exists()
    assert "cosmovisor%2Fv1.5.0" in releases.requested[0]
    assert messages(logs)[-1] == "Cosmovisor installed successfully"

    installer.install_cosmovisor()
    assert len(releases.requested) == 1


def test_install_cosmovisor_bad_archive(make_installer, paths):
    installer, _ = make_installer({".tar.gz": httpx.Response(200, content=b"this is not gzip")})

    with pytest.raises(ExternalToolError):
        installer.install_cosmovisor()

    assert not paths.cosmovisor.exists()
    assert not (paths.bin_dir / "cosmovisor.tar.gz").exists()


def test_setup_cosmovisor_dirs(make_installer, paths):
    paths.bin_dir.mkdir(parents=True, exist_ok=True)
    paths.binary.write_bytes(b"daemon")
    installer, _ = make_installer()

    installer.setup_cosmovisor_dirs()

    root = paths.cosmovisor_root
    assert (root / "genesis" / "bin" / paths.binary.name).read_bytes() == b"daemon"
    assert (root / "upgrades").is_dir()
    if os.name == "posix":
        assert (root / "current").resolve() == (root / "genesis").resolve()
    assert CosmovisorConfig.load(paths.cosmovisor_config) == CosmovisorConfig(
        installed=True, auto_download=True, version="v1.5.0",
    )

    # Running again replaces the symlink without error
    installer.setup_cosmovisor_dirs()
    assert paths.cosmovisor_config.exists()


def test_setup_cosmovisor_dirs_requires_binary(make_installer, paths):
    installer, _ = make_installer()
    with pytest.raises(NotFoundError):
        installer.setup_cosmovisor_dirs()
    assert not paths.cosmovisor_config.exists()
