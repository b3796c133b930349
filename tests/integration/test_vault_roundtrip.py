"""End-to-end tests: files -> vault -> bytes -> decryptor -> files."""

import io
import os
from concurrent.futures import ThreadPoolExecutor

import pytest

from arcsek.core.archive import list_files
from arcsek.core.config import VaultSettings
from arcsek.core.decryptor import decrypt_to_archive, extract_vault, open_for_decryption
from arcsek.core.exceptions import AuthenticationFailedError
from arcsek.core.vault import VaultContainer
from arcsek.security.kdf import KdfParams, derive_vault_key, generate_salt
from arcsek.security.stream import BUF_SIZE, NONCE_SIZE, TAG_SIZE

# --- Fixtures ---


@pytest.fixture
def testing_files(tmp_path):
    """Create the testing-files/in tree the vault tests pack."""
    root = tmp_path / "testing-files" / "in"
    existance = root / "existance"
    existance.mkdir(parents=True)
    (existance / "testfile1.txt").write_text("This is test file number one.\n", encoding="utf-8")
    (existance / "testfile2.txt").write_text("And this is the second one.\n" * 3, encoding="utf-8")
    (root / "large.bin").write_bytes(os.urandom(5 * BUF_SIZE + 321))
    (root / "nested" / "deeper").mkdir(parents=True)
    (root / "nested" / "deeper" / "note.md").write_bytes(b"# note\n")
    (root / "empty.txt").write_bytes(b"")
    return root


@pytest.fixture
def settings(tmp_path):
    staging = tmp_path / "staging"
    staging.mkdir()
    return VaultSettings(staging_dir=staging)


@pytest.fixture
def key():
    params = KdfParams(time_cost=1, memory_cost=8, parallelism=1, key_len=16)
    return derive_vault_key("Klara:3", generate_salt(), params)


def _seal(paths, key, settings):
    with VaultContainer.create(paths, key, settings=settings) as vault:
        buff = io.BytesIO()
        buff.write(vault.nonce)
        vault.write_to(buff)
    return buff.getvalue()


# --- Scenarios ---


def test_two_small_files(testing_files, settings, key):
    files = [
        str(testing_files / "existance" / "testfile1.txt"),
        str(testing_files / "existance" / "testfile2.txt"),
    ]
    buff = io.BytesIO(_seal(files, key, settings))

    with open_for_decryption(buff, key) as reader:
        entries = [(e.name, e.content.read()) for e in reader]

    assert len(entries) == 2
    for (name, content), path in zip(entries, files):
        assert name == path.lstrip("/")
        with open(path, "rb") as f:
            assert content == f.read()
    assert list(settings.staging_dir.iterdir()) == []


def test_full_tree_roundtrip(testing_files, settings, key, tmp_path):
    files = list_files(testing_files)
    data = _seal(files, key, settings)

    out = tmp_path / "out"
    names = extract_vault(io.BytesIO(data), key, out)

    assert names == [f.lstrip("/") for f in files]
    for name, path in zip(names, files):
        with open(path, "rb") as f:
            assert (out / name).read_bytes() == f.read()


def test_decrypt_to_archive_file(testing_files, settings, key, tmp_path):
    files = list_files(testing_files)
    data = _seal(files, key, settings)

    out_dir = tmp_path / "testing-files" / "out"
    out_dir.mkdir(parents=True)
    target = out_dir / "dec-large.tar.gz"
    with open(target, "wb") as f:
        written = decrypt_to_archive(io.BytesIO(data), key, f)
    assert written == target.stat().st_size
    assert written > 5 * BUF_SIZE


def test_every_segment_detects_bit_flip(testing_files, settings, key):
    files = list_files(testing_files)
    data = _seal(files, key, settings)
    segment = BUF_SIZE + TAG_SIZE
    body_len = len(data) - NONCE_SIZE
    segments = -(-body_len // segment)
    assert segments > 2

    for index in range(segments):
        tampered = bytearray(data)
        tampered[NONCE_SIZE + index * segment] ^= 0x01
        with pytest.raises(AuthenticationFailedError):
            with open_for_decryption(io.BytesIO(bytes(tampered)), key) as reader:
                for entry in reader:
                    if entry.content is not None:
                        entry.content.read()


def test_truncated_vault_fails(testing_files, settings, key):
    data = _seal(list_files(testing_files), key, settings)
    with pytest.raises(AuthenticationFailedError):
        with open_for_decryption(io.BytesIO(data[:-TAG_SIZE]), key) as reader:
            for entry in reader:
                if entry.content is not None:
                    entry.content.read()


def test_independent_containers_in_parallel(testing_files, settings):
    files = list_files(testing_files)
    keys = [os.urandom(32) for _ in range(4)]

    with ThreadPoolExecutor(max_workers=4) as pool:
        blobs = list(pool.map(lambda k: _seal(files, k, settings), keys))

    assert len({blob[:NONCE_SIZE] for blob in blobs}) == 4
    for k, blob in zip(keys, blobs):
        with open_for_decryption(io.BytesIO(blob), k) as reader:
            assert len([e.name for e in reader]) == len(files)
    assert list(settings.staging_dir.iterdir()) == []
