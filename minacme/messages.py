"""ACME protocol messages."""
import datetime
from collections.abc import Hashable
from typing import Any
from typing import Dict
from typing import Iterator
from typing import List
from typing import Mapping
from typing import Optional
from typing import Tuple

from cryptography import x509
import josepy as jose

from minacme import challenges
from minacme import crypto_util
from minacme import errors
from minacme import fields

ERROR_PREFIX = "urn:acme:error:"

ERROR_CODES = {
    'badCSR': 'The CSR is unacceptable (e.g., due to a short key)',
    'badNonce': 'The client sent an unacceptable anti-replay nonce',
    'connection': ('The server could not connect to the client to verify the'
                   ' domain'),
    'dnssec': 'The server could not validate a DNSSEC signed domain',
    'invalidEmail': 'The provided email for a registration was invalid',
    'malformed': 'The request message was malformed',
    'rateLimited': 'There were too many requests of a given type',
    'serverInternal': 'The server experienced an internal error',
    'tls': 'The server experienced a TLS error during domain verification',
    'unauthorized': 'The client lacks sufficient authorization',
    'unknownHost': 'The server could not resolve a domain name',
}

ERROR_TYPE_DESCRIPTIONS = dict(
    (ERROR_PREFIX + name, desc) for name, desc in ERROR_CODES.items())


class Error(jose.JSONObjectWithFields):
    """ACME error (HTTP problem document).

    https://tools.ietf.org/html/draft-ietf-appsawg-http-problem-00

    Unlike the exceptions in `minacme.errors`, this is only a message:
    the server's account of what went wrong, attached to the exception
    raised for the failed request.

    :ivar str typ:
    :ivar str title:
    :ivar str detail:

    """
    typ: str = jose.field('type', omitempty=True, default='about:blank')
    title: str = jose.field('title', omitempty=True)
    detail: str = jose.field('detail', omitempty=True)

    @property
    def description(self) -> Optional[str]:
        """Hardcoded error description based on its type.

        :returns: Description if standard ACME error or ``None``.
        :rtype: str

        """
        return ERROR_TYPE_DESCRIPTIONS.get(self.typ)

    @property
    def code(self) -> Optional[str]:
        """ACME error code.

        Basically self.typ without the ERROR_PREFIX.

        :returns: error code if standard ACME code or ``None``.
        :rtype: str

        """
        code = str(self.typ).rsplit(':', maxsplit=1)[-1]
        if code in ERROR_CODES:
            return code
        return None

    def __str__(self) -> str:
        return b' :: '.join(
            str(part).encode('ascii', 'backslashreplace') for part in
            (self.typ, self.description, self.detail, self.title)
            if part is not None).decode()


class _Constant(jose.JSONDeSerializable, Hashable):
    """ACME constant."""
    __slots__ = ('name',)
    POSSIBLE_NAMES: Dict[str, '_Constant'] = NotImplemented

    def __init__(self, name: str) -> None:
        super().__init__()
        self.POSSIBLE_NAMES[name] = self  # pylint: disable=unsupported-assignment-operation
        self.name = name

    def to_partial_json(self) -> str:
        return self.name

    @classmethod
    def from_json(cls, jobj: str) -> '_Constant':
        if jobj not in cls.POSSIBLE_NAMES:  # pylint: disable=unsupported-membership-test
            raise jose.DeserializationError(
                '{0} not recognized'.format(cls.__name__))
        return cls.POSSIBLE_NAMES[jobj]

    def __repr__(self) -> str:
        return '{0}({1})'.format(self.__class__.__name__, self.name)

    def __eq__(self, other: Any) -> bool:
        return isinstance(other, type(self)) and other.name == self.name

    def __hash__(self) -> int:
        return hash((self.__class__, self.name))


class Status(_Constant):
    """ACME "status" field."""
    POSSIBLE_NAMES: Dict[str, _Constant] = {}


STATUS_UNKNOWN = Status('unknown')
STATUS_PENDING = Status('pending')
STATUS_PROCESSING = Status('processing')
STATUS_VALID = Status('valid')
STATUS_INVALID = Status('invalid')
STATUS_REVOKED = Status('revoked')
STATUS_DEACTIVATED = Status('deactivated')


class IdentifierType(_Constant):
    """ACME identifier type."""
    POSSIBLE_NAMES: Dict[str, _Constant] = {}


IDENTIFIER_FQDN = IdentifierType('dns')  # IdentifierDNS in Boulder


class Identifier(jose.JSONObjectWithFields):
    """ACME identifier.

    :ivar IdentifierType typ:
    :ivar str value:

    """
    typ: IdentifierType = jose.field('type', decoder=IdentifierType.from_json)
    value: str = jose.field('value')


def _url(value: Any) -> str:
    if not isinstance(value, str) or not value:
        raise jose.DeserializationError('Expected a URL, got {0!r}'.format(value))
    return value


class Directory(jose.JSONObjectWithFields):
    """Directory.

    Endpoint URLs published by the CA. ``url`` is where the document
    was fetched from; it is not part of the JSON served by the CA.

    :ivar str new_authz:
    :ivar str new_reg:
    :ivar str new_cert:
    :ivar str revoke_cert:

    """

    class Meta(jose.JSONObjectWithFields):
        """Directory Meta."""
        terms_of_service: str = jose.field('terms-of-service', omitempty=True)
        website: str = jose.field('website', omitempty=True)
        caa_identities: List[str] = jose.field('caa-identities', omitempty=True)

    new_authz: str = jose.field('new-authz', decoder=_url)
    new_reg: str = jose.field('new-reg', decoder=_url)
    new_cert: str = jose.field('new-cert', decoder=_url)
    revoke_cert: str = jose.field('revoke-cert', decoder=_url)
    meta: Meta = jose.field('meta', omitempty=True)
    url: str = jose.field('url', omitempty=True)

    @meta.decoder  # type: ignore
    def meta(value: Any) -> 'Directory.Meta':  # type: ignore[misc]  # pylint: disable=no-self-argument,missing-function-docstring
        if not isinstance(value, Mapping):
            raise jose.DeserializationError('meta is not a JSON object: {0!r}'.format(value))
        return Directory.Meta.from_json(value)

    @classmethod
    def from_document(cls, jobj: Any, url: Optional[str] = None) -> 'Directory':
        """Build the Directory from a decoded discovery document.

        :param jobj: decoded JSON body of the directory resource
        :param str url: URL the document was fetched from

        :raises .errors.MalformedDirectory: if the document is not an
            object or lacks a required endpoint

        """
        if not isinstance(jobj, Mapping):
            raise errors.MalformedDirectory(
                'Directory is not a JSON object: {0!r}'.format(jobj))
        jobj = dict(jobj)
        jobj.pop('url', None)
        try:
            directory = cls.from_json(jobj)
        except (jose.DeserializationError, TypeError) as error:
            # josepy raises TypeError for some mistyped nested values
            raise errors.MalformedDirectory(str(error))
        return directory.update(url=url)


class ResourceBody(jose.JSONObjectWithFields):
    """ACME Resource Body."""


class Registration(ResourceBody):
    """Registration Resource Body.

    :ivar jose.JWK key: Public key.
    :ivar tuple contact: Contact URIs (``mailto:`` addresses),
        `tuple` of `str`.
    :ivar str agreement:

    """
    # on new-reg key server ignores 'key' and populates it based on
    # JWS.signature.combined.jwk
    key: jose.JWK = jose.field('key', omitempty=True, decoder=jose.JWK.from_json)
    contact: Tuple[str, ...] = jose.field('contact', omitempty=True, default=())
    agreement: str = jose.field('agreement', omitempty=True)
    status: Status = jose.field('status', omitempty=True)

    email_prefix = 'mailto:'

    @classmethod
    def from_data(cls, email: Optional[str] = None, **kwargs: Any) -> 'Registration':
        """Create registration resource from contact details.

        :param str email: comma separated e-mail addresses

        """
        details = list(kwargs.pop('contact', ()))
        if email is not None:
            details.extend([cls.email_prefix + mail for mail in email.split(',')])
        if details:
            kwargs['contact'] = tuple(details)
        return cls(**kwargs)


class NewRegistration(Registration):
    """New registration."""
    resource_type = 'new-reg'
    resource: str = fields.resource(resource_type)


class ChallengeBody(ResourceBody):
    """Challenge Resource Body.

    :ivar acme.challenges.Challenge: Wrapped challenge.
        Conveniently, all challenge fields are proxied, i.e. you can
        call ``challb.x`` to get ``challb.chall.x`` contents.
    :ivar str uri: Location of the challenge, polled for its status
        and posted the response to.
    :ivar minacme.messages.Status status:
    :ivar datetime.datetime validated:
    :ivar messages.Error error:

    """
    __slots__ = ('chall',)
    uri: str = jose.field('uri', omitempty=True, default=None)
    status: Status = jose.field('status', decoder=Status.from_json,
                                omitempty=True, default=STATUS_PENDING)
    validated: datetime.datetime = fields.rfc3339('validated', omitempty=True)
    error: Error = jose.field('error', decoder=Error.from_json,
                              omitempty=True, default=None)

    def to_partial_json(self) -> Dict[str, Any]:
        jobj = super().to_partial_json()
        jobj.update(self.chall.to_partial_json())
        return jobj

    @classmethod
    def fields_from_json(cls, jobj: Mapping[str, Any]) -> Dict[str, Any]:
        jobj_fields = super().fields_from_json(jobj)
        jobj_fields['chall'] = challenges.Challenge.from_json(jobj)
        return jobj_fields

    def __getattr__(self, name: str) -> Any:
        return getattr(self.chall, name)


class Authorization(ResourceBody):
    """Authorization Resource Body.

    :ivar minacme.messages.Identifier identifier:
    :ivar tuple challenges: challenge objects as sent by the server;
        `challenges_of_type` decodes the ones of interest
    :ivar tuple combinations: Challenge combinations (`tuple` of `tuple`
        of `int`, as opposed to `list` of `list` on the wire).
    :ivar minacme.messages.Status status:
    :ivar datetime.datetime expires:

    """
    identifier: Identifier = jose.field('identifier', decoder=Identifier.from_json, omitempty=True)
    challenges: Tuple[Any, ...] = jose.field('challenges', omitempty=True, default=())
    combinations: Tuple[Tuple[int, ...], ...] = jose.field('combinations', omitempty=True)

    status: Status = jose.field('status', omitempty=True, decoder=Status.from_json)
    expires: datetime.datetime = fields.rfc3339('expires', omitempty=True)

    # Mypy does not understand the josepy magic happening here, and falsely claims
    # that challenge is redefined. Let's ignore the type check here.
    @challenges.decoder  # type: ignore
    def challenges(value: List[Any]) -> Tuple[Any, ...]:  # type: ignore[misc]  # pylint: disable=no-self-argument,missing-function-docstring
        if not isinstance(value, list):
            raise jose.DeserializationError('challenges is not a list')
        return tuple(value)

    def challenges_of_type(self, typ: str) -> Iterator[ChallengeBody]:
        """Challenges of the given type, in the order the server listed them.

        Entries are decoded one at a time as the iterator reaches them.
        Entries of any other type are skipped without being decoded.

        :raises josepy.DeserializationError: if a matching entry is
            malformed

        """
        for jobj in self.challenges:  # pylint: disable=not-an-iterable
            if isinstance(jobj, Mapping) and jobj.get('type') == typ:
                yield ChallengeBody.from_json(jobj)


class NewAuthorization(Authorization):
    """New authorization."""
    resource_type = 'new-authz'
    resource: str = fields.resource(resource_type)


def _encode_csr(csr: x509.CertificateSigningRequest) -> str:
    return crypto_util.b64url_encode(crypto_util.csr_to_der(csr))


def _decode_csr(value: str) -> x509.CertificateSigningRequest:
    try:
        return x509.load_der_x509_csr(crypto_util.b64url_decode(value))
    except ValueError as error:
        raise jose.DeserializationError(error)


def _encode_cert(cert: x509.Certificate) -> str:
    return crypto_util.b64url_encode(crypto_util.cert_to_der(cert))


def _decode_cert(value: str) -> x509.Certificate:
    try:
        return x509.load_der_x509_certificate(crypto_util.b64url_decode(value))
    except ValueError as error:
        raise jose.DeserializationError(error)


class CertificateRequest(jose.JSONObjectWithFields):
    """ACME new-cert request.

    :ivar x509.CertificateSigningRequest csr:

    """
    resource_type = 'new-cert'
    resource: str = fields.resource(resource_type)
    csr: x509.CertificateSigningRequest = jose.field(
        'csr', decoder=_decode_csr, encoder=_encode_csr)


class Revocation(jose.JSONObjectWithFields):
    """Revocation message.

    :ivar x509.Certificate certificate:
    :ivar int reason: CRL reason code

    """
    resource_type = 'revoke-cert'
    resource: str = fields.resource(resource_type)
    certificate: x509.Certificate = jose.field(
        'certificate', decoder=_decode_cert, encoder=_encode_cert)
    reason: int = jose.field('reason', default=0)
