"""ACME-specific JWS.

The JWS implementation in josepy only implements the base JOSE standard.
ACME adds the anti-replay ``nonce`` and the target ``url`` to the
protected header; this module layers those on top of josepy.
"""
from typing import Optional

import josepy as jose


class Header(jose.Header):
    """ACME-specific JOSE Header. Implements nonce and url.

    The nonce is kept exactly as the server sent it in the
    ``Replay-Nonce`` header, so the value echoed back is byte-for-byte
    the one that was issued.

    """
    nonce: Optional[str] = jose.field('nonce', omitempty=True)
    url: Optional[str] = jose.field('url', omitempty=True)


class Signature(jose.Signature):
    """ACME-specific Signature. Uses ACME-specific Header for customer fields."""
    __slots__ = jose.Signature._orig_slots  # type: ignore[attr-defined]  # pylint: disable=protected-access,no-member

    header_cls = Header
    header: Header = jose.field(
        'header', omitempty=True, default=header_cls(),
        decoder=header_cls.from_json)


class JWS(jose.JWS):
    """ACME-specific JWS. Includes nonce and url in protected header."""
    signature_cls = Signature
    __slots__ = jose.JWS._orig_slots  # type: ignore[attr-defined]  # pylint: disable=protected-access

    @classmethod
    # type: ignore[override]  # pylint: disable=arguments-differ
    def sign(cls, payload: bytes, key: jose.JWK, alg: jose.JWASignature,
             nonce: Optional[str], url: Optional[str] = None) -> jose.JWS:
        # ACME v1 identifies the account by its key, so jwk is always
        # embedded and protected.
        return super().sign(payload, key=key, alg=alg,
                            protect=frozenset(['nonce', 'url', 'jwk', 'alg']),
                            nonce=nonce, url=url, include_jwk=True)
