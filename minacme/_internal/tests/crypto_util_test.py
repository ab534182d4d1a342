"""Tests for minacme.crypto_util."""
import sys
import unittest

from cryptography import x509
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric import ed25519
import josepy as jose
import pytest

from minacme import errors
from minacme._internal.tests import test_util


class B64URLTest(unittest.TestCase):
    """Tests for the base64url helpers."""

    def test_encode_unpadded(self):
        from minacme.crypto_util import b64url_encode
        assert 'Zm9vYg' == b64url_encode(b'foob')
        assert '-_8' == b64url_encode(b'\xfb\xff')

    def test_decode(self):
        from minacme.crypto_util import b64url_decode
        assert b'foob' == b64url_decode('Zm9vYg')
        assert b'foob' == b64url_decode(b'Zm9vYg')

    def test_looks_like_b64url(self):
        from minacme.crypto_util import looks_like_b64url
        assert looks_like_b64url(b'Zm9vYg')
        assert looks_like_b64url(b'Zm9v_-Yg\n')
        assert not looks_like_b64url(b'Zm9vYg==')
        assert not looks_like_b64url(b'')
        assert not looks_like_b64url(test_util.cert_der())


class LoadAccountKeyTest(unittest.TestCase):
    """Tests for minacme.crypto_util.load_account_key."""

    def test_rsa(self):
        from minacme.crypto_util import load_account_key
        key = load_account_key(test_util.key_pem())
        assert isinstance(key, jose.JWKRSA)
        assert key == test_util.jwk()

    def test_rsa_traditional_openssl(self):
        from minacme.crypto_util import load_account_key
        pem = test_util.rsa_private_key().private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.TraditionalOpenSSL,
            encryption_algorithm=serialization.NoEncryption())
        assert isinstance(load_account_key(pem), jose.JWKRSA)

    def test_ec(self):
        from minacme.crypto_util import load_account_key
        key = load_account_key(test_util.key_pem(test_util.ec_private_key()))
        assert isinstance(key, jose.JWKEC)

    def test_garbage(self):
        from minacme.crypto_util import load_account_key
        with pytest.raises(errors.Error):
            load_account_key(b'not a key')

    def test_unsupported_type(self):
        from minacme.crypto_util import load_account_key
        pem = test_util.key_pem(ed25519.Ed25519PrivateKey.generate())
        with pytest.raises(errors.Error, match='Unsupported'):
            load_account_key(pem)


class SignatureAlgTest(unittest.TestCase):
    """Tests for minacme.crypto_util.signature_alg."""

    def test_rsa(self):
        from minacme.crypto_util import signature_alg
        assert jose.RS256 == signature_alg(test_util.jwk())

    def test_ec(self):
        from minacme.crypto_util import signature_alg
        for curve, alg in ((ec.SECP256R1(), jose.ES256),
                           (ec.SECP384R1(), jose.ES384),
                           (ec.SECP521R1(), jose.ES512)):
            key = jose.JWKEC(key=ec.generate_private_key(curve))
            assert alg == signature_alg(key)


class LoadCSRTest(unittest.TestCase):
    """Tests for minacme.crypto_util.load_csr."""

    def test_load(self):
        from minacme.crypto_util import load_csr
        csr = load_csr(test_util.csr_pem(['example.com']))
        assert isinstance(csr, x509.CertificateSigningRequest)

    def test_garbage(self):
        from minacme.crypto_util import load_csr
        with pytest.raises(errors.Error):
            load_csr(b'not a csr')


class DERToPEMTest(unittest.TestCase):
    """Tests for minacme.crypto_util.der_to_pem."""

    def test_der_to_pem(self):
        from minacme.crypto_util import der_to_pem
        der = test_util.cert_der()
        pem = der_to_pem(der)
        assert isinstance(pem, str)
        assert pem.startswith('-----BEGIN CERTIFICATE-----\n')
        assert pem.endswith('-----END CERTIFICATE-----\n')
        cert = x509.load_pem_x509_certificate(pem.encode())
        assert cert.public_bytes(serialization.Encoding.DER) == der

    def test_corrupt(self):
        from minacme.crypto_util import der_to_pem
        with pytest.raises(errors.CorruptCertificate):
            der_to_pem(b'gibberish')

    def test_truncated(self):
        from minacme.crypto_util import der_to_pem
        with pytest.raises(errors.CorruptCertificate):
            der_to_pem(test_util.cert_der()[:-10])


class MakeCSRTest(unittest.TestCase):
    """Tests for minacme.crypto_util.make_csr."""

    def _call_with_key(self, *args, **kwargs):
        from minacme.crypto_util import make_csr
        return make_csr(test_util.key_pem(), *args, **kwargs)

    def test_make_csr(self):
        csr_pem = self._call_with_key(["a.example", "b.example"])
        assert b'--BEGIN CERTIFICATE REQUEST--' in csr_pem
        assert b'--END CERTIFICATE REQUEST--' in csr_pem
        csr = x509.load_pem_x509_csr(csr_pem)
        cn = csr.subject.get_attributes_for_oid(x509.oid.NameOID.COMMON_NAME)
        assert cn[0].value == 'a.example'
        san = csr.extensions.get_extension_for_class(x509.SubjectAlternativeName)
        assert san.value.get_values_for_type(x509.DNSName) == ['a.example', 'b.example']
        assert csr.is_signature_valid

    def test_make_csr_ec(self):
        from minacme.crypto_util import make_csr
        csr_pem = make_csr(test_util.key_pem(test_util.ec_private_key()), ['a.example'])
        assert x509.load_pem_x509_csr(csr_pem).is_signature_valid

    def test_no_domains(self):
        with pytest.raises(ValueError):
            self._call_with_key([])


if __name__ == '__main__':
    sys.exit(pytest.main(sys.argv[1:] + [__file__]))  # pragma: no cover
