from __future__ import annotations

import json
import shutil
from pathlib import Path

import pytest

from bitcache_core.config import BitcacheConfig
from bitcache_core.errors import (
    ArtifactIOError,
    GatewayError,
    InvalidInputError,
    MetadataParseError,
    NotFoundError,
)
from bitcache_core.gateway import GatewayResult
from bitcache_core.workflow import publish_bitstream, retrieve_bitstream, temporary_checkout

HELLO_MD5 = "5d41402abc4b2a76b9719d911017c592"


class DirectoryGateway:
    """Treats a plain directory as the remote: clone copies out, push copies back."""

    def __init__(self, remote: Path, *, failing: str | None = None) -> None:
        self.remote = remote
        self.failing = failing
        self.calls: list[str] = []
        self.messages: list[str] = []
        self.checkouts: list[Path] = []

    def _result(self, operation: str) -> GatewayResult | None:
        self.calls.append(operation)
        if operation == self.failing:
            return GatewayResult(
                operation=operation, ok=False, returncode=1, stderr=f"{operation} rejected"
            )
        return None

    def clone(self, remote_url: str, local_dir: Path) -> GatewayResult:
        failed = self._result("clone")
        if failed is not None:
            return failed
        shutil.copytree(self.remote, local_dir)
        self.checkouts.append(local_dir)
        return GatewayResult(operation="clone", ok=True)

    def stage_all(self, local_dir: Path) -> GatewayResult:
        return self._result("add") or GatewayResult(operation="add", ok=True)

    def commit(self, local_dir: Path, message: str) -> GatewayResult:
        self.messages.append(message)
        return self._result("commit") or GatewayResult(operation="commit", ok=True)

    def push(self, local_dir: Path) -> GatewayResult:
        failed = self._result("push")
        if failed is not None:
            return failed
        shutil.rmtree(self.remote)
        shutil.copytree(local_dir, self.remote)
        return GatewayResult(operation="push", ok=True)


@pytest.fixture()
def remote(tmp_path) -> Path:
    path = tmp_path / "remote"
    path.mkdir()
    (path / "README.md").write_text("bitcache data\n", encoding="utf-8")
    return path


@pytest.fixture()
def inputs(tmp_path) -> tuple[Path, Path]:
    work = tmp_path / "work"
    work.mkdir()
    source = work / "a.bin"
    source.write_bytes(b"hello")
    bitstream = work / "out.bit"
    bitstream.write_bytes(b"\x00\xffbitstream\x01")
    return source, bitstream


def _metadata(remote: Path) -> dict[str, dict[str, str]]:
    return json.loads((remote / "bitcache_metadata.json").read_text(encoding="utf-8"))


def test_publish_then_retrieve_roundtrip(tmp_path, remote, inputs) -> None:
    source, bitstream = inputs
    gateway = DirectoryGateway(remote)

    published = publish_bitstream(
        repo_url="file://remote",
        source=source,
        bitstream=bitstream,
        target_path="artifacts/",
        gateway=gateway,
    )

    assert published.md5 == HELLO_MD5
    assert published.entry.binary_path == "artifacts/out.bit"
    assert published.entry.source_file == "a.bin"
    assert published.replaced is None
    assert gateway.calls == ["clone", "add", "commit", "push"]
    assert gateway.messages == [f"Add bitstream for source MD5: {HELLO_MD5}"]
    assert (remote / "artifacts" / "out.bit").read_bytes() == bitstream.read_bytes()
    assert _metadata(remote)[HELLO_MD5]["binary_path"] == "artifacts/out.bit"

    destination = tmp_path / "dest"
    destination.mkdir()
    retrieved = retrieve_bitstream(
        repo_url="file://remote",
        md5=HELLO_MD5.upper(),
        gateway=DirectoryGateway(remote),
        destination_dir=destination,
    )

    assert retrieved.saved_to == destination / "out.bit"
    assert retrieved.saved_to.read_bytes() == bitstream.read_bytes()
    assert retrieved.entry.source_file == "a.bin"
    assert retrieved.entry.timestamp == published.entry.timestamp


def test_republish_under_new_path_overwrites_entry(tmp_path, remote, inputs) -> None:
    source, bitstream = inputs

    publish_bitstream(
        repo_url="r",
        source=source,
        bitstream=bitstream,
        target_path="artifacts",
        gateway=DirectoryGateway(remote),
    )
    second = publish_bitstream(
        repo_url="r",
        source=source,
        bitstream=bitstream,
        target_path="builds/v2",
        gateway=DirectoryGateway(remote),
    )

    assert second.replaced is not None
    assert second.replaced.binary_path == "artifacts/out.bit"
    metadata = _metadata(remote)
    assert list(metadata) == [HELLO_MD5]
    assert metadata[HELLO_MD5]["binary_path"] == "builds/v2/out.bit"

    (remote / "artifacts" / "out.bit").unlink()
    destination = tmp_path / "dest"
    destination.mkdir()
    retrieved = retrieve_bitstream(
        repo_url="r",
        md5=HELLO_MD5,
        gateway=DirectoryGateway(remote),
        destination_dir=destination,
    )
    assert retrieved.entry.binary_path == "builds/v2/out.bit"


def test_publish_keeps_other_entries(remote, inputs, tmp_path) -> None:
    source, bitstream = inputs
    other_source = tmp_path / "b.vhd"
    other_source.write_text("-- other design\n", encoding="utf-8")

    publish_bitstream(
        repo_url="r", source=source, bitstream=bitstream, target_path="a", gateway=DirectoryGateway(remote)
    )
    publish_bitstream(
        repo_url="r", source=other_source, bitstream=bitstream, target_path="b", gateway=DirectoryGateway(remote)
    )

    assert len(_metadata(remote)) == 2


def test_retrieve_unknown_digest_raises_not_found(remote, inputs, tmp_path) -> None:
    source, bitstream = inputs
    publish_bitstream(
        repo_url="r", source=source, bitstream=bitstream, target_path="a", gateway=DirectoryGateway(remote)
    )

    with pytest.raises(NotFoundError, match="No binary found"):
        retrieve_bitstream(
            repo_url="r",
            md5="0" * 32,
            gateway=DirectoryGateway(remote),
            destination_dir=tmp_path,
        )


def test_retrieve_without_metadata_raises_not_found(remote, tmp_path) -> None:
    with pytest.raises(NotFoundError, match="Metadata file not found"):
        retrieve_bitstream(
            repo_url="r",
            md5=HELLO_MD5,
            gateway=DirectoryGateway(remote),
            destination_dir=tmp_path,
        )


def test_retrieve_missing_binary_raises_not_found(remote, inputs, tmp_path) -> None:
    source, bitstream = inputs
    publish_bitstream(
        repo_url="r", source=source, bitstream=bitstream, target_path="a", gateway=DirectoryGateway(remote)
    )
    (remote / "a" / "out.bit").unlink()

    with pytest.raises(NotFoundError, match="Binary file not found"):
        retrieve_bitstream(
            repo_url="r",
            md5=HELLO_MD5,
            gateway=DirectoryGateway(remote),
            destination_dir=tmp_path,
        )


def test_retrieve_malformed_metadata_raises_parse_error(remote, tmp_path) -> None:
    (remote / "bitcache_metadata.json").write_text("{oops", encoding="utf-8")

    with pytest.raises(MetadataParseError):
        retrieve_bitstream(
            repo_url="r",
            md5=HELLO_MD5,
            gateway=DirectoryGateway(remote),
            destination_dir=tmp_path,
        )


def test_retrieve_rejects_stored_path_outside_checkout(remote, tmp_path) -> None:
    (remote / "bitcache_metadata.json").write_text(
        json.dumps(
            {
                HELLO_MD5: {
                    "md5": HELLO_MD5,
                    "binary_path": "../../etc/passwd",
                    "source_file": "a.bin",
                    "timestamp": "2026-03-01T10:00:00+00:00",
                }
            }
        ),
        encoding="utf-8",
    )

    with pytest.raises(InvalidInputError):
        retrieve_bitstream(
            repo_url="r",
            md5=HELLO_MD5,
            gateway=DirectoryGateway(remote),
            destination_dir=tmp_path,
        )


def test_retrieve_overwrites_existing_destination_file(remote, inputs, tmp_path) -> None:
    source, bitstream = inputs
    publish_bitstream(
        repo_url="r", source=source, bitstream=bitstream, target_path="a", gateway=DirectoryGateway(remote)
    )
    destination = tmp_path / "dest"
    destination.mkdir()
    (destination / "out.bit").write_bytes(b"stale")

    retrieve_bitstream(
        repo_url="r", md5=HELLO_MD5, gateway=DirectoryGateway(remote), destination_dir=destination
    )

    assert (destination / "out.bit").read_bytes() == bitstream.read_bytes()


@pytest.mark.parametrize("target_path", ["/abs/dir", "../outside", "a/../../outside", ".git/hooks"])
def test_publish_rejects_target_outside_repository(remote, inputs, target_path) -> None:
    source, bitstream = inputs
    gateway = DirectoryGateway(remote)

    with pytest.raises(InvalidInputError):
        publish_bitstream(
            repo_url="r", source=source, bitstream=bitstream, target_path=target_path, gateway=gateway
        )

    assert "push" not in gateway.calls


def test_publish_refuses_bitstream_named_like_metadata_file(remote, inputs, tmp_path) -> None:
    source, _ = inputs
    bitstream = tmp_path / "bitcache_metadata.json"
    bitstream.write_bytes(b"\x00\x01BITSTREAM")
    gateway = DirectoryGateway(remote)

    with pytest.raises(InvalidInputError, match="metadata file"):
        publish_bitstream(
            repo_url="r", source=source, bitstream=bitstream, target_path=".", gateway=gateway
        )

    assert "push" not in gateway.calls
    assert not (remote / "bitcache_metadata.json").exists()


def test_publish_allows_metadata_file_name_in_subdirectory(remote, inputs, tmp_path) -> None:
    source, _ = inputs
    bitstream = tmp_path / "bitcache_metadata.json"
    bitstream.write_bytes(b"\x00\x01BITSTREAM")

    publish_bitstream(
        repo_url="r",
        source=source,
        bitstream=bitstream,
        target_path="artifacts",
        gateway=DirectoryGateway(remote),
    )

    assert (remote / "artifacts" / "bitcache_metadata.json").read_bytes() == b"\x00\x01BITSTREAM"
    assert HELLO_MD5 in _metadata(remote)


def test_publish_missing_source_raises_io_error_before_clone(remote, inputs, tmp_path) -> None:
    _, bitstream = inputs
    gateway = DirectoryGateway(remote)

    with pytest.raises(ArtifactIOError):
        publish_bitstream(
            repo_url="r",
            source=tmp_path / "missing.vhd",
            bitstream=bitstream,
            target_path="a",
            gateway=gateway,
        )

    assert gateway.calls == []


def test_publish_missing_bitstream_raises_io_error(remote, inputs, tmp_path) -> None:
    source, _ = inputs

    with pytest.raises(ArtifactIOError):
        publish_bitstream(
            repo_url="r",
            source=source,
            bitstream=tmp_path / "missing.bit",
            target_path="a",
            gateway=DirectoryGateway(remote),
        )


def test_publish_push_failure_leaves_remote_unchanged(remote, inputs) -> None:
    source, bitstream = inputs
    gateway = DirectoryGateway(remote, failing="push")

    with pytest.raises(GatewayError, match="push rejected"):
        publish_bitstream(
            repo_url="r", source=source, bitstream=bitstream, target_path="a", gateway=gateway
        )

    assert not (remote / "bitcache_metadata.json").exists()
    assert not (remote / "a").exists()


def test_clone_failure_aborts_publish(remote, inputs) -> None:
    source, bitstream = inputs
    gateway = DirectoryGateway(remote, failing="clone")

    with pytest.raises(GatewayError, match="clone rejected"):
        publish_bitstream(
            repo_url="r", source=source, bitstream=bitstream, target_path="a", gateway=gateway
        )

    assert gateway.calls == ["clone"]


def test_checkout_is_removed_after_success_and_failure(remote, inputs) -> None:
    source, bitstream = inputs
    ok_gateway = DirectoryGateway(remote)
    publish_bitstream(
        repo_url="r", source=source, bitstream=bitstream, target_path="a", gateway=ok_gateway
    )
    failing_gateway = DirectoryGateway(remote, failing="commit")
    with pytest.raises(GatewayError):
        publish_bitstream(
            repo_url="r", source=source, bitstream=bitstream, target_path="a", gateway=failing_gateway
        )

    for checkout in ok_gateway.checkouts + failing_gateway.checkouts:
        assert not checkout.parent.exists()


def test_custom_metadata_filename_and_commit_message(remote, inputs) -> None:
    source, bitstream = inputs
    gateway = DirectoryGateway(remote)
    config = BitcacheConfig(metadata_filename="index.json", commit_message_template="cache {md5}")

    publish_bitstream(
        repo_url="r",
        source=source,
        bitstream=bitstream,
        target_path="a",
        gateway=gateway,
        config=config,
    )

    assert (remote / "index.json").exists()
    assert not (remote / "bitcache_metadata.json").exists()
    assert gateway.messages == [f"cache {HELLO_MD5}"]


def test_temporary_checkout_cleans_up_on_error() -> None:
    seen: list[Path] = []

    with pytest.raises(RuntimeError):
        with temporary_checkout(prefix="bitcache-test-") as checkout_dir:
            seen.append(checkout_dir)
            checkout_dir.mkdir()
            (checkout_dir / "file").write_text("x", encoding="utf-8")
            raise RuntimeError("boom")

    assert seen[0].name == "repo"
    assert not seen[0].parent.exists()
