"""Loading and generating the PKCS#12 (.pfx) certificates used by the
app-only AAD and high-trust strategies."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.serialization import pkcs12
from cryptography.x509.oid import NameOID

from spconnect.exceptions import InvalidCertificate


@dataclass(frozen=True)
class LoadedCertificate:
    """A certificate and its private key read from a PFX file."""

    path: Path
    certificate: x509.Certificate
    private_key: rsa.RSAPrivateKey

    @property
    def thumbprint(self) -> str:
        """SHA-1 thumbprint, upper-case hex, as shown by Windows and Azure."""
        return self.certificate.fingerprint(hashes.SHA1()).hex().upper()


def load_pfx_certificate(path: str | Path, password: str | None) -> LoadedCertificate:
    """Read a PFX file and check that it is usable for signing.

    Args:
        path: Location of the ``.pfx`` file.
        password: Password protecting the file, if any.

    Returns:
        The parsed certificate and key.

    Raises:
        InvalidCertificate: If the file is missing or unreadable, the password
            is wrong, it lacks a certificate or RSA key, or it has expired.
    """
    path = Path(path)
    try:
        data = path.read_bytes()
    except OSError as exc:
        raise InvalidCertificate(f"Cannot read certificate {path}: {exc}") from exc

    try:
        key, certificate, _ = pkcs12.load_key_and_certificates(
            data, password.encode() if password else None
        )
    except ValueError as exc:
        raise InvalidCertificate(
            f"Cannot open certificate {path}; wrong password or not a PFX file."
        ) from exc

    if certificate is None or not isinstance(key, rsa.RSAPrivateKey):
        raise InvalidCertificate(
            f"Certificate {path} must contain a certificate and an RSA private key."
        )
    if certificate.not_valid_after_utc < datetime.now(timezone.utc):
        raise InvalidCertificate(
            f"Certificate {path} expired on {certificate.not_valid_after_utc:%Y-%m-%d}."
        )
    return LoadedCertificate(path=path, certificate=certificate, private_key=key)


def generate_self_signed_certificate(
    common_name: str,
    password: str | None,
    organization_name: str | None = None,
    country_name: str | None = None,
    validity_days: int = 365,
    key_size: int = 2048,
    *,
    pfx_path: str | Path | None = None,
    cer_path: str | Path | None = None,
) -> tuple[bytes, bytes]:
    """Generate a self-signed certificate for app-only or high-trust use.

    The PFX goes to the client; the public ``.cer`` is what gets uploaded to
    the AAD app registration or registered as a trusted token issuer.

    Args:
        common_name: Common Name (CN) for the certificate subject.
        password: Password protecting the PFX. ``None`` leaves it unencrypted.
        organization_name: Organization Name (O) for the certificate subject.
        country_name: Country Name (C) for the certificate subject.
        validity_days: Offset in days from now for the certificate
            expiration time.
        key_size: RSA key size in bits.
        pfx_path: Optional path to write the PFX file.
        cer_path: Optional path to write the DER-encoded public certificate.

    Returns:
        A tuple ``(pfx_bytes, certificate_der)``.
    """
    key = rsa.generate_private_key(public_exponent=65537, key_size=key_size)

    name_parts: list[tuple[x509.ObjectIdentifier, str | None]] = [
        (NameOID.COUNTRY_NAME, country_name),
        (NameOID.ORGANIZATION_NAME, organization_name),
        (NameOID.COMMON_NAME, common_name),
    ]
    name = x509.Name(
        [x509.NameAttribute(oid, value) for oid, value in name_parts if value]
    )
    now = datetime.now(timezone.utc)

    cert = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(minutes=5))
        .not_valid_after(now + timedelta(days=validity_days))
        .sign(private_key=key, algorithm=hashes.SHA256())
    )

    encryption = (
        serialization.BestAvailableEncryption(password.encode())
        if password
        else serialization.NoEncryption()
    )
    pfx = pkcs12.serialize_key_and_certificates(
        name=common_name.encode(),
        key=key,
        cert=cert,
        cas=None,
        encryption_algorithm=encryption,
    )
    der = cert.public_bytes(serialization.Encoding.DER)

    if pfx_path is not None:
        Path(pfx_path).write_bytes(pfx)
    if cer_path is not None:
        Path(cer_path).write_bytes(der)

    return pfx, der
