"""ACME Identifier Validation Challenges."""
import re
from typing import Dict
from typing import Type

from cryptography.hazmat.primitives import hashes
import josepy as jose

from minacme import fields


class Challenge(jose.TypedJSONObjectWithFields):
    # _fields_to_partial_json
    """ACME challenge."""
    TYPES: Dict[str, Type['Challenge']] = {}


class ChallengeResponse(jose.TypedJSONObjectWithFields):
    # _fields_to_partial_json
    """ACME challenge response."""
    TYPES: Dict[str, Type['ChallengeResponse']] = {}
    resource_type = 'challenge'
    resource: str = fields.resource(resource_type)


class _TokenChallenge(Challenge):
    """Challenge with token.

    :ivar str token: opaque value chosen by the server

    """
    token: str = jose.field('token')

    _TOKEN_RE = re.compile(r'^[A-Za-z0-9_-]+$')

    @property
    def good_token(self) -> bool:
        """Is `token` safe to use as a file name?

        The proof file is written under a directory served over HTTP;
        anything outside the base64url alphabet (``/``, ``..``) could
        place it elsewhere.

        """
        return isinstance(self.token, str) and bool(self._TOKEN_RE.match(self.token))


class KeyAuthorizationChallengeResponse(ChallengeResponse):
    """Response to Challenges based on Key Authorization.

    :param str key_authorization:

    """
    key_authorization: str = jose.field("keyAuthorization")
    thumbprint_hash_function = hashes.SHA256


class KeyAuthorizationChallenge(_TokenChallenge):
    """Challenge based on Key Authorization.

    :param response_cls: Subclass of `KeyAuthorizationChallengeResponse`
        that will be used to generate ``response``.
    :param str typ: type of the challenge
    """
    typ: str = NotImplemented
    response_cls: Type[KeyAuthorizationChallengeResponse] = NotImplemented
    thumbprint_hash_function = (
        KeyAuthorizationChallengeResponse.thumbprint_hash_function)

    def key_authorization(self, account_key: jose.JWK) -> str:
        """Generate Key Authorization.

        ``token.thumbprint``, where thumbprint is the base64url encoded
        SHA-256 JWK thumbprint of the account public key.

        :param JWK account_key:
        :rtype str:

        """
        return self.token + "." + jose.b64encode(
            account_key.thumbprint(
                hash_function=self.thumbprint_hash_function)).decode()

    def response(self, account_key: jose.JWK) -> KeyAuthorizationChallengeResponse:
        """Generate response to the challenge.

        :param JWK account_key:

        :returns: Response (initialized `response_cls`) to the challenge.
        :rtype: KeyAuthorizationChallengeResponse

        """
        return self.response_cls(  # pylint: disable=not-callable
            key_authorization=self.key_authorization(account_key))


@ChallengeResponse.register
class HTTP01Response(KeyAuthorizationChallengeResponse):
    """ACME http-01 challenge response."""
    typ = "http-01"


@Challenge.register
class HTTP01(KeyAuthorizationChallenge):
    """ACME http-01 challenge.

    The key authorization is served by the domain's web server at
    ``/.well-known/acme-challenge/<token>``.

    """
    response_cls = HTTP01Response
    typ = response_cls.typ
