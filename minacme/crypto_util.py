"""Crypto utilities.

Helpers converting between the PEM/DER encodings the user supplies, the
base64url strings that travel in ACME payloads and the `cryptography`
and `josepy` objects the client works with.

"""
import logging
import re
from typing import Iterable
from typing import Union

from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric import rsa
import josepy as jose

from minacme import errors

logger = logging.getLogger(__name__)

_B64URL_RE = re.compile(rb'^[A-Za-z0-9_-]+$')


def b64url_encode(data: bytes) -> str:
    """Unpadded base64url encoding, as used throughout ACME."""
    return jose.b64encode(data).decode('ascii')


def b64url_decode(data: Union[str, bytes]) -> bytes:
    """Decode unpadded base64url data.

    :raises ValueError: if ``data`` is not valid base64url

    """
    return jose.b64decode(data)


def looks_like_b64url(data: bytes) -> bool:
    """Is ``data`` made only of unpadded base64url characters?"""
    return bool(_B64URL_RE.match(data.strip()))


def load_account_key(key_pem: bytes) -> jose.JWK:
    """Load the account private key.

    :param bytes key_pem: RSA or EC private key in PEM format.

    :returns: key wrapped as a JWK
    :rtype: `josepy.JWK`

    :raises .errors.Error: if the key cannot be parsed or has an
        unsupported type

    """
    try:
        key = serialization.load_pem_private_key(key_pem, password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as error:
        raise errors.Error('Could not load account key: {0}'.format(error))
    if isinstance(key, rsa.RSAPrivateKey):
        return jose.JWKRSA(key=key)
    if isinstance(key, ec.EllipticCurvePrivateKey):
        return jose.JWKEC(key=key)
    raise errors.Error('Unsupported account key type: {0}'.format(type(key).__name__))


def signature_alg(key: jose.JWK) -> jose.JWASignature:
    """Pick the JWS algorithm matching ``key``."""
    if isinstance(key, jose.JWKEC):
        curve = key.key.curve.name
        return {
            'secp256r1': jose.ES256,
            'secp384r1': jose.ES384,
            'secp521r1': jose.ES512,
        }[curve]
    return jose.RS256


def load_csr(csr_pem: bytes) -> x509.CertificateSigningRequest:
    """Load a certificate signing request in PEM format.

    :raises .errors.Error: if the CSR cannot be parsed

    """
    try:
        return x509.load_pem_x509_csr(csr_pem)
    except ValueError as error:
        raise errors.Error('Could not load CSR: {0}'.format(error))


def csr_to_der(csr: x509.CertificateSigningRequest) -> bytes:
    """DER encoding of ``csr``."""
    return csr.public_bytes(serialization.Encoding.DER)


def cert_to_der(cert: x509.Certificate) -> bytes:
    """DER encoding of ``cert``."""
    return cert.public_bytes(serialization.Encoding.DER)


def der_to_pem(der: bytes) -> str:
    """Re-encode a DER certificate as PEM text.

    :raises .errors.CorruptCertificate: if ``der`` is not a certificate

    """
    try:
        cert = x509.load_der_x509_certificate(der)
    except ValueError as error:
        logger.debug('Certificate parsing failed: %s', error)
        raise errors.CorruptCertificate()
    return cert.public_bytes(serialization.Encoding.PEM).decode('ascii')


def make_csr(private_key_pem: bytes, domains: Iterable[str]) -> bytes:
    """Generate a CSR containing domains as subjectAltNames.

    :param bytes private_key_pem: Private key, in PEM PKCS#8 format.
    :param domains: DNS names to include; the first one is also used as
        the subject common name.

    :returns: buffer PEM-encoded Certificate Signing Request.

    """
    domains = list(domains)
    if not domains:
        raise ValueError("At least one domain is required.")
    private_key = serialization.load_pem_private_key(private_key_pem, password=None)
    if not isinstance(private_key, (rsa.RSAPrivateKey, ec.EllipticCurvePrivateKey)):
        raise ValueError("Unsupported key type: {0}".format(type(private_key).__name__))
    builder = x509.CertificateSigningRequestBuilder().subject_name(
        x509.Name([x509.NameAttribute(x509.oid.NameOID.COMMON_NAME, domains[0])])
    ).add_extension(
        x509.SubjectAlternativeName([x509.DNSName(name) for name in domains]),
        critical=False,
    )
    csr = builder.sign(private_key, hashes.SHA256())
    return csr.public_bytes(serialization.Encoding.PEM)
