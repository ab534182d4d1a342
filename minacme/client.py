"""ACME client API."""
import base64
import json
import logging
import os
import re
import time
from typing import Any
from typing import Iterator
from typing import Optional
from typing import Tuple
from typing import Union

from cryptography import x509
import josepy as jose
import requests
from requests.adapters import HTTPAdapter

from minacme import challenges
from minacme import constants
from minacme import crypto_util
from minacme import errors
from minacme import jws
from minacme import messages

logger = logging.getLogger(__name__)

HTTP_OK = 200
HTTP_CREATED = 201
HTTP_ACCEPTED = 202
HTTP_CONFLICT = 409


class PollPolicy:
    """How long and how often to poll a pending challenge.

    With the defaults the challenge is polled every `interval` seconds
    until it leaves the pending state, however long that takes.

    :ivar float interval: seconds to wait before the second request
    :ivar int max_attempts: give up after this many requests
    :ivar float max_elapsed: give up once this many seconds have passed
    :ivar float backoff: factor applied to the wait after every request
    :ivar float max_interval: upper bound for a single wait

    """
    def __init__(self, interval: float = constants.DEFAULT_POLL_INTERVAL,
                 max_attempts: Optional[int] = None, max_elapsed: Optional[float] = None,
                 backoff: float = 1.0, max_interval: Optional[float] = None) -> None:
        if interval < 0:
            raise ValueError('interval must not be negative')
        if max_attempts is not None and max_attempts < 1:
            raise ValueError('max_attempts must be at least 1')
        if backoff < 1:
            raise ValueError('backoff must be at least 1')
        self.interval = interval
        self.max_attempts = max_attempts
        self.max_elapsed = max_elapsed
        self.backoff = backoff
        self.max_interval = max_interval

    def waits(self) -> Iterator[float]:
        """Successive waits between two requests."""
        wait = self.interval
        while True:
            if self.max_interval is not None:
                wait = min(wait, self.max_interval)
            yield wait
            wait *= self.backoff

    def exhausted(self, attempts: int, elapsed: float) -> bool:
        """Should polling stop after `attempts` requests and `elapsed` seconds?"""
        if self.max_attempts is not None and attempts >= self.max_attempts:
            return True
        return self.max_elapsed is not None and elapsed >= self.max_elapsed

    def __repr__(self) -> str:
        return ('{0}(interval={1!r}, max_attempts={2!r}, max_elapsed={3!r}, '
                'backoff={4!r}, max_interval={5!r})'.format(
                    self.__class__.__name__, self.interval, self.max_attempts,
                    self.max_elapsed, self.backoff, self.max_interval))


def classify_poll_response(code: int, body: str) -> bool:
    """Interpret one challenge status response.

    :param int code: HTTP status code
    :param str body: response body

    :returns: ``True`` if the challenge is valid, ``False`` if it is
        still pending.
    :rtype: bool

    :raises .errors.UnexpectedHTTPCode: for codes other than 200 and 202
    :raises .errors.UnexpectedStatus: for a status other than valid or
        pending
    :raises .errors.MalformedResponse: if a 200 body is not a JSON object

    """
    if code == HTTP_ACCEPTED:
        return False
    if code != HTTP_OK:
        raise errors.UnexpectedHTTPCode(code)
    try:
        jobj = json.loads(body)
    except ValueError:
        raise errors.MalformedResponse('Challenge status is not JSON: {0!r}'.format(body))
    if not isinstance(jobj, dict):
        raise errors.MalformedResponse(
            'Challenge status is not a JSON object: {0!r}'.format(body))
    status = jobj.get('status')
    if status == messages.STATUS_VALID.name:
        return True
    # A missing status means pending.
    if status == messages.STATUS_PENDING.name or not isinstance(status, str):
        return False
    raise errors.UnexpectedStatus(status)


def select_http01(authorization: messages.Authorization) -> messages.ChallengeBody:
    """Pick the first http-01 challenge offered by `authorization`.

    Only the selected entry is decoded; the other entries of the
    authorization are not looked at beyond their type.

    :raises .errors.UnsupportedChallenge: if there is none
    :raises .errors.MalformedResponse: if it cannot be decoded, has no
        URI to post to or its token is not a string

    """
    try:
        challb = next(authorization.challenges_of_type(challenges.HTTP01.typ), None)
    except (jose.DeserializationError, TypeError) as error:
        raise errors.MalformedResponse('Malformed http-01 challenge: {0}'.format(error))
    if challb is None:
        raise errors.UnsupportedChallenge()
    if not isinstance(challb.uri, str) or not challb.uri:
        raise errors.MalformedResponse('Challenge has no uri: {0}'.format(
            challb.to_json()))
    if not isinstance(challb.chall.token, str):
        raise errors.MalformedResponse('Challenge token is not a string: {0}'.format(
            challb.to_json()))
    return challb


class Client:
    """ACME v1 client session.

    One instance drives one issuance run. It holds the only copy of the
    current anti-replay nonce; `send` replaces it after every signed
    request, so signed requests must be issued one after the other.

    :ivar messages.Directory directory:
    :ivar str nonce: Nonce the next signed request will carry, ``None``
        once consumed without a replacement.
    :ivar x509.CertificateSigningRequest csr:
    :ivar .ClientNetwork net: Client network.

    """

    def __init__(self, directory: messages.Directory, nonce: str,
                 csr: x509.CertificateSigningRequest, net: 'ClientNetwork') -> None:
        """Initialize.

        :param .messages.Directory directory: Directory Resource
        :param str nonce: First nonce, harvested during discovery.
        :param x509.CertificateSigningRequest csr: CSR sent on issuance.
        :param .ClientNetwork net: Client network, holding the account key.

        """
        self.directory = directory
        self.nonce: Optional[str] = nonce
        self.csr = csr
        self.net = net

    @property
    def key(self) -> jose.JWK:
        """Account key."""
        return self.net.key

    @classmethod
    def discover(cls, url: str, net: 'ClientNetwork') -> Tuple[messages.Directory, str]:
        """Fetch the directory and the first nonce.

        :param str url: directory URL
        :param ClientNetwork net: network to send the request with

        :returns: the directory and the nonce issued with it
        :rtype: tuple

        :raises .errors.MalformedDirectory: if the document lacks an
            endpoint
        :raises .errors.MissingNonce: if the response has no nonce

        """
        response = net.get(url)
        nonce = net.extract_nonce(response)
        if response.status_code != HTTP_OK:
            raise errors.MalformedDirectory(
                'Directory request returned HTTP code {0}: {1!r}'.format(
                    response.status_code, response.text))
        try:
            jobj = response.json()
        except ValueError:
            raise errors.MalformedDirectory(
                'Directory is not JSON: {0!r}'.format(response.text))
        directory = messages.Directory.from_document(jobj, url=url)
        logger.debug('Discovered directory %s', directory)
        return directory, nonce

    @classmethod
    def from_pem(cls, key_pem: bytes, csr_pem: bytes,
                 directory_url: str = constants.DEFAULT_DIRECTORY_URL,
                 net: Optional['ClientNetwork'] = None, **kwargs: Any) -> 'Client':
        """Load key and CSR, then discover the directory.

        :param bytes key_pem: account private key
        :param bytes csr_pem: certificate signing request
        :param str directory_url: where to discover the endpoints
        :param ClientNetwork net: network to use; by default one is
            created for the account key, with ``kwargs`` passed on to
            `ClientNetwork`.

        :raises .errors.Error: if the key or the CSR cannot be loaded

        """
        key = crypto_util.load_account_key(key_pem)
        csr = crypto_util.load_csr(csr_pem)
        if net is None:
            net = ClientNetwork(key, alg=crypto_util.signature_alg(key), **kwargs)
        directory, nonce = cls.discover(directory_url, net)
        return cls(directory, nonce, csr, net)

    def send(self, obj: jose.JSONDeSerializable, url: str, **kwargs: Any) -> requests.Response:
        """Sign `obj` with the current nonce and POST it to `url`.

        The nonce of the response replaces the current one whatever the
        response status is; the server issues a fresh nonce on error
        responses too.

        :raises .errors.NonceError: if no unused nonce is held
        :raises .errors.MissingNonce: if the response carries no nonce;
            no nonce is held afterwards

        """
        if self.nonce is None:
            raise errors.NonceError(
                'No unused nonce left, refusing to send a signed request')
        nonce, self.nonce = self.nonce, None
        response = self.net.post(url, obj, nonce, **kwargs)
        self.nonce = self.net.extract_nonce(response)
        logger.debug('Got code: %d - body %r', response.status_code, response.text)
        return response

    def register(self, agreement: str = constants.DEFAULT_AGREEMENT,
                 email: Optional[str] = None) -> Optional[str]:
        """Register the account key.

        An already registered key is not an error.

        :param str agreement: subscriber agreement URL
        :param str email: comma separated contact e-mail addresses

        :returns: registration URI, if the server sent one
        :rtype: str

        :raises .errors.RegistrationError: on any response but 201 or 409

        """
        new_reg = messages.NewRegistration.from_data(email=email, agreement=agreement)
        response = self.send(new_reg, self.directory.new_reg)
        if response.status_code == HTTP_CREATED:
            logger.info('Account created.')
        elif response.status_code == HTTP_CONFLICT:
            logger.info('Already registered.')
        else:
            raise errors.RegistrationError(
                response.status_code, response.text, _problem(response))
        return response.headers.get('Location')

    def authorize(self, domain: str) -> messages.ChallengeBody:
        """Request authorization for `domain` and pick its http-01 challenge.

        :param str domain: domain name to authorize

        :returns: the first http-01 challenge offered
        :rtype: `.ChallengeBody`

        :raises .errors.AuthorizationError: on any response but 201
        :raises .errors.UnsupportedChallenge: if no http-01 challenge is
            offered
        :raises .errors.MalformedResponse: if the authorization cannot be
            decoded

        """
        new_authz = messages.NewAuthorization(identifier=messages.Identifier(
            typ=messages.IDENTIFIER_FQDN, value=domain))
        response = self.send(new_authz, self.directory.new_authz)
        if response.status_code != HTTP_CREATED:
            raise errors.AuthorizationError(
                response.status_code, response.text, _problem(response))
        try:
            jobj = response.json()
        except ValueError:
            raise errors.MalformedResponse(
                'Authorization is not JSON: {0!r}'.format(response.text))
        if not isinstance(jobj, dict):
            raise errors.MalformedResponse(
                'Authorization is not a JSON object: {0!r}'.format(response.text))
        try:
            authorization = messages.Authorization.from_json(jobj)
        except (jose.DeserializationError, TypeError) as error:
            raise errors.MalformedResponse(
                'Malformed authorization {0!r}: {1}'.format(response.text, error))
        return select_http01(authorization)

    def fulfill(self, challb: messages.ChallengeBody, acme_dir: str) -> str:
        """Publish the key authorization for `challb` under `acme_dir`.

        The file is named after the challenge token and is fully written
        to disk when this returns.

        :param .ChallengeBody challb: http-01 challenge
        :param str acme_dir: directory served as
            ``/.well-known/acme-challenge/``

        :returns: path of the written file
        :rtype: str

        :raises .errors.MalformedResponse: if the token is not usable as
            a file name
        :raises .errors.IOError: if the file cannot be written

        """
        chall = challb.chall
        if not chall.good_token:
            raise errors.MalformedResponse(
                'Refusing to use token {0!r} as a file name'.format(chall.token))
        validation = chall.key_authorization(self.key)
        validation_path = os.path.join(acme_dir, chall.token)
        logger.debug('Attempting to save validation to %s', validation_path)

        # world-readable, owner-writable
        old_umask = os.umask(0o022)
        try:
            with open(validation_path, 'wb') as validation_file:
                validation_file.write(validation.encode())
                validation_file.flush()
                os.fsync(validation_file.fileno())
        except OSError as error:
            raise errors.IOError(
                'Could not write challenge file {0}: {1}'.format(validation_path, error))
        finally:
            os.umask(old_umask)
        return validation_path

    def notify(self, challb: messages.ChallengeBody) -> requests.Response:
        """Tell the server the challenge is ready to be checked.

        The response says nothing definitive about the validation; use
        `poll_until` for that.

        """
        response = self.send(challb.chall.response(self.key), challb.uri)
        logger.debug('Challenge response posted, HTTP %d', response.status_code)
        return response

    def poll_until(self, challb: messages.ChallengeBody,
                   policy: Optional[PollPolicy] = None) -> None:
        """Poll the challenge until it is valid.

        Status requests are plain GETs, they neither use nor renew the
        nonce.

        :param .ChallengeBody challb: challenge to poll
        :param PollPolicy policy: retry configuration; by default poll
            every `constants.DEFAULT_POLL_INTERVAL` seconds without limit

        :raises .errors.UnexpectedStatus:
        :raises .errors.UnexpectedHTTPCode:
        :raises .errors.MalformedResponse:
        :raises .errors.PollTimeout: if `policy` runs out while pending

        """
        if policy is None:
            policy = PollPolicy()
        start = time.monotonic()
        attempts = 0
        for wait in policy.waits():
            response = self.net.get(challb.uri)
            attempts += 1
            if classify_poll_response(response.status_code, response.text):
                logger.info('Challenge validated after %d request(s).', attempts)
                return
            elapsed = time.monotonic() - start
            if policy.exhausted(attempts, elapsed):
                raise errors.PollTimeout(
                    'Challenge still pending after {0} request(s)'.format(attempts))
            if policy.max_elapsed is not None:
                # the last request goes out when the deadline is reached
                wait = min(wait, policy.max_elapsed - elapsed)
            logger.debug('Challenge pending, next check in %s seconds', wait)
            time.sleep(wait)

    def request_issuance(self) -> str:
        """Request the certificate for the session CSR.

        :returns: certificate in PEM format
        :rtype: str

        :raises .errors.IssuanceError: on any response but 201
        :raises .errors.CorruptCertificate: if the body is not a
            certificate

        """
        req = messages.CertificateRequest(csr=self.csr)
        response = self.send(req, self.directory.new_cert,
                             headers={'Accept': self.net.PKIX_CERT_CONTENT_TYPE})
        if response.status_code != HTTP_CREATED:
            raise errors.IssuanceError(
                response.status_code, response.text, _problem(response))
        return crypto_util.der_to_pem(_certificate_der(response.content))

    def revoke(self, cert_pem: bytes, reason: int = 0) -> None:
        """Revoke a certificate issued to this account.

        :param bytes cert_pem: certificate in PEM format
        :param int reason: CRL reason code

        :raises .errors.RevocationError: on any response but 200

        """
        try:
            cert = x509.load_pem_x509_certificate(cert_pem)
        except ValueError as error:
            raise errors.Error('Could not load certificate: {0}'.format(error))
        response = self.send(messages.Revocation(certificate=cert, reason=reason),
                             self.directory.revoke_cert)
        if response.status_code != HTTP_OK:
            raise errors.RevocationError(
                response.status_code, response.text, _problem(response))
        logger.info('Certificate revoked.')

    def close(self) -> None:
        """Release the network session."""
        self.net.close()

    def __enter__(self) -> 'Client':
        return self

    def __exit__(self, *unused_args: Any) -> None:
        self.close()


def _certificate_der(content: bytes) -> bytes:
    # The certificate is usually sent as DER; a base64url encoded body
    # is accepted too, with or without padding.
    stripped = content.strip().rstrip(b'=')
    if stripped and crypto_util.looks_like_b64url(stripped):
        try:
            return crypto_util.b64url_decode(stripped)
        except ValueError:
            raise errors.CorruptCertificate()
    return content


def _problem(response: requests.Response) -> Optional[messages.Error]:
    try:
        jobj = response.json()
    except ValueError:
        return None
    if not isinstance(jobj, dict):
        return None
    try:
        return messages.Error.from_json(jobj)
    except jose.DeserializationError:
        logger.debug('Could not decode problem document %r', jobj)
        return None


def get_crt(key_pem: bytes, csr_pem: bytes, acme_dir: str, domain: str,
            directory_url: str = constants.DEFAULT_DIRECTORY_URL,
            policy: Optional[PollPolicy] = None,
            agreement: str = constants.DEFAULT_AGREEMENT,
            email: Optional[str] = None,
            net: Optional['ClientNetwork'] = None, **kwargs: Any) -> str:
    """Obtain a certificate for `domain`.

    Runs discovery, registration, authorization, the http-01 challenge
    and issuance in that order. The first failure ends the run; the
    challenge file is left in place.

    :param bytes key_pem: account private key (PEM)
    :param bytes csr_pem: certificate signing request (PEM)
    :param str acme_dir: directory served as ``/.well-known/acme-challenge/``
    :param str domain: domain to prove control of
    :param str directory_url: ACME directory
    :param PollPolicy policy: challenge polling policy
    :param str agreement: subscriber agreement URL
    :param str email: contact e-mail addresses for the registration
    :param ClientNetwork net: network to use instead of a fresh one;
        ``kwargs`` are passed on to `ClientNetwork` otherwise

    :returns: the certificate in PEM format
    :rtype: str

    :raises .errors.Error: describing the failed step

    """
    with Client.from_pem(key_pem, csr_pem, directory_url, net=net, **kwargs) as client:
        client.register(agreement, email=email)
        challb = client.authorize(domain)
        client.fulfill(challb, acme_dir)
        client.notify(challb)
        client.poll_until(challb, policy)
        return client.request_issuance()


class ClientNetwork:
    """Wrapper around requests that signs POSTs for authentication.

    Also adds user agent, and handles Content-Type. It does not keep
    track of nonces; the caller passes one in for each signed request
    and gets the next one from `extract_nonce`.
    """
    JSON_CONTENT_TYPE = 'application/json'
    JOSE_CONTENT_TYPE = 'application/jose+json'
    JSON_ERROR_CONTENT_TYPE = 'application/problem+json'
    PKIX_CERT_CONTENT_TYPE = 'application/pkix-cert'
    REPLAY_NONCE_HEADER = constants.REPLAY_NONCE_HEADER

    def __init__(self, key: jose.JWK, alg: jose.JWASignature = jose.RS256,
                 verify_ssl: bool = True, user_agent: str = constants.USER_AGENT,
                 timeout: int = constants.DEFAULT_NETWORK_TIMEOUT) -> None:
        """Initialize.

        :param josepy.JWK key: Account private key
        :param josepy.JWASignature alg: Algorithm to use in signing JWS.
        :param bool verify_ssl: Whether to verify certificates on SSL connections.
        :param str user_agent: String to send as User-Agent header.
        :param int timeout: Timeout for requests.
        """
        self.key = key
        self.alg = alg
        self.verify_ssl = verify_ssl
        self.user_agent = user_agent
        self.session = requests.Session()
        self._default_timeout = timeout
        adapter = HTTPAdapter()

        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

    def close(self) -> None:
        """Close the underlying session."""
        self.session.close()

    def _wrap_in_jws(self, obj: jose.JSONDeSerializable, nonce: str, url: str) -> str:
        """Wrap `JSONDeSerializable` object in JWS.

        :param josepy.JSONDeSerializable obj:
        :param str nonce:
        :param str url: The URL to which this object will be POSTed
        :rtype: str

        """
        jobj = obj.json_dumps(indent=2).encode()
        logger.debug('JWS payload:\n%s', jobj)
        return jws.JWS.sign(jobj, key=self.key, alg=self.alg,
                            nonce=nonce, url=url).json_dumps(indent=2)

    @classmethod
    def extract_nonce(cls, response: requests.Response) -> str:
        """Nonce sent along with `response`.

        :raises .errors.MissingNonce: if the header is absent or empty

        """
        nonce = response.headers.get(cls.REPLAY_NONCE_HEADER)
        if not nonce:
            raise errors.MissingNonce(response.headers)
        logger.debug('Storing nonce: %s', nonce)
        return nonce

    def _send_request(self, method: str, url: str, *args: Any, **kwargs: Any) -> requests.Response:
        """Send HTTP request.

        Makes sure that `verify_ssl` is respected. Logs request and
        response (with headers). For allowed parameters please see
        `requests.request`.

        :param str method: method for the new `requests.Request` object
        :param str url: URL for the new `requests.Request` object

        :raises .errors.TransportError: in case of any problems

        :returns: HTTP Response
        :rtype: `requests.Response`

        """
        if method == "POST":
            logger.debug('Sending POST request to %s:\n%s',
                         url, kwargs['data'])
        else:
            logger.debug('Sending %s request to %s.', method, url)
        kwargs['verify'] = self.verify_ssl
        kwargs.setdefault('headers', {})
        kwargs['headers'].setdefault('User-Agent', self.user_agent)
        kwargs.setdefault('timeout', self._default_timeout)
        try:
            response = self.session.request(method, url, *args, **kwargs)
        except requests.exceptions.RequestException as error:
            # requests messages carry a lot of urllib3 noise, e.g.
            # HTTPSConnectionPool(host='acme-v01.api.letsencrypt.org',
            # port=443): Max retries exceeded with url: /directory
            # (Caused by NewConnectionError('<...>: Failed to establish
            # a new connection: [Errno 65] No route to host',))
            err_regex = (r".*host='(\S*)'.*Max retries exceeded with url\: "
                         r"(\/\w*).*(\[Errno \d+\])([A-Za-z ]*)")
            m = re.match(err_regex, str(error))
            if m is None:
                raise errors.TransportError(
                    'Requesting {0}: {1}'.format(url, error)) from error
            host, path, _err_no, err_msg = m.groups()
            raise errors.TransportError(
                'Requesting {0}{1}:{2}'.format(host, path, err_msg)) from error

        # Binary bodies (DER certificates) are logged base64 encoded to
        # keep raw bytes out of the logs.
        debug_content: Union[bytes, str]
        if "Accept" in kwargs["headers"]:
            debug_content = base64.b64encode(response.content)
        else:
            response.encoding = "utf-8"
            debug_content = response.text
        logger.debug('Received response:\nHTTP %d\n%s\n\n%s',
                     response.status_code,
                     "\n".join("{0}: {1}".format(k, v)
                               for k, v in response.headers.items()),
                     debug_content)
        return response

    def get(self, url: str, **kwargs: Any) -> requests.Response:
        """Send unauthenticated GET request."""
        return self._send_request('GET', url, **kwargs)

    def post(self, url: str, obj: jose.JSONDeSerializable, nonce: str,
             content_type: str = JOSE_CONTENT_TYPE, **kwargs: Any) -> requests.Response:
        """POST object wrapped in `.JWS` signed with `nonce`.

        The response is returned whatever its status; interpreting it is
        up to the caller.

        """
        data = self._wrap_in_jws(obj, nonce, url)
        headers = kwargs.pop('headers', {})
        headers.setdefault('Content-Type', content_type)
        return self._send_request('POST', url, data=data, headers=headers, **kwargs)
