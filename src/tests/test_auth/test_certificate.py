from __future__ import annotations

from pathlib import Path

import pytest
from cryptography import x509

from spconnect.auth.certificate import generate_self_signed_certificate, load_pfx_certificate
from spconnect.exceptions import InvalidCertificate


def test_load_pfx__returns_certificate_and_thumbprint(pfx_file: Path) -> None:
    loaded = load_pfx_certificate(pfx_file, "pw")
    assert loaded.path == pfx_file
    assert len(loaded.thumbprint) == 40
    assert loaded.thumbprint == loaded.thumbprint.upper()


def test_load_pfx__wrong_password(pfx_file: Path) -> None:
    with pytest.raises(InvalidCertificate, match="wrong password"):
        load_pfx_certificate(pfx_file, "not-it")


def test_load_pfx__missing_file(tmp_path: Path) -> None:
    with pytest.raises(InvalidCertificate, match="Cannot read"):
        load_pfx_certificate(tmp_path / "nope.pfx", "pw")


def test_load_pfx__not_a_pfx(tmp_path: Path) -> None:
    p = tmp_path / "junk.pfx"
    p.write_bytes(b"not a certificate")
    with pytest.raises(InvalidCertificate):
        load_pfx_certificate(p, "pw")


def test_generate__writes_pfx_and_cer(tmp_path: Path) -> None:
    pfx_path = tmp_path / "out.pfx"
    cer_path = tmp_path / "out.cer"
    pfx, der = generate_self_signed_certificate(
        common_name="HighTrust",
        password=None,
        organization_name="Contoso",
        pfx_path=pfx_path,
        cer_path=cer_path,
    )
    assert pfx_path.read_bytes() == pfx
    assert cer_path.read_bytes() == der

    cert = x509.load_der_x509_certificate(der)
    assert cert.subject == cert.issuer
    assert load_pfx_certificate(pfx_path, None).certificate == cert
