from __future__ import annotations

import ssl
from pathlib import Path

import pytest

from spconnect import tls
from spconnect.exceptions import CacheDeletionFailed, TokenCacheCorrupt
from spconnect.token_cache import default_token_cache_path, prepare_token_cache


def test_default_path__under_xdg_config(tmp_path: Path) -> None:
    assert default_token_cache_path() == tmp_path / "config" / "spconnect" / "tokencache.dat"


def test_default_path__home_fallback(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.delenv("XDG_CONFIG_HOME")
    monkeypatch.setenv("HOME", str(tmp_path))
    assert default_token_cache_path() == tmp_path / ".config" / "spconnect" / "tokencache.dat"


def test_prepare__creates_directory_only(tmp_path: Path) -> None:
    path = tmp_path / "a" / "b" / "tokencache.dat"
    assert prepare_token_cache(path) == path
    assert path.parent.is_dir()
    assert not path.exists()


def test_prepare__directory_in_the_way_when_clearing(tmp_path: Path) -> None:
    path = tmp_path / "tokencache.dat"
    path.mkdir()
    with pytest.raises(TokenCacheCorrupt):
        prepare_token_cache(path, clear=True)
    assert path.is_dir()


def test_prepare__directory_cannot_be_created(tmp_path: Path) -> None:
    blocker = tmp_path / "config"
    blocker.write_text("not a directory")
    with pytest.raises(TokenCacheCorrupt, match="Cannot create"):
        prepare_token_cache(blocker / "tokencache.dat")


def test_prepare__undeletable_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    path = tmp_path / "tokencache.dat"
    path.write_bytes(b"opaque")

    def _locked(self: Path, missing_ok: bool = False) -> None:
        raise PermissionError("file is locked")

    monkeypatch.setattr(Path, "unlink", _locked)
    with pytest.raises(CacheDeletionFailed, match="locked"):
        prepare_token_cache(path, clear=True)


def test_ssl_bypass__process_wide_and_idempotent(caplog: pytest.LogCaptureFixture) -> None:
    assert tls.verify_ssl()

    with caplog.at_level("WARNING", logger="spconnect.tls"):
        tls.enable_ssl_bypass()
        tls.enable_ssl_bypass()

    assert tls.ssl_bypass_enabled()
    assert not tls.verify_ssl()
    assert ssl._create_default_https_context is ssl._create_unverified_context
    assert len([r for r in caplog.records if r.name == "spconnect.tls"]) == 1
