"""minacme errors."""
import typing
from typing import Any
from typing import Mapping
from typing import Optional

# We import minacme.messages only during type check to avoid circular dependencies.
if typing.TYPE_CHECKING:
    from minacme import messages  # pragma: no cover


class Error(Exception):
    """Generic minacme error."""


class ClientError(Error):
    """Network or protocol error."""


class TransportError(ClientError):
    """The HTTP request could not be completed.

    Connection failures, TLS errors and timeouts raised by the transport
    end up here.

    """


class ProtocolError(ClientError):
    """The server response does not follow the protocol."""


class NonceError(ProtocolError):
    """Server response nonce error."""


class MissingNonce(NonceError):
    """Missing nonce error.

    ACME servers include a ``Replay-Nonce`` header in every response. If
    it is missing, the client has no nonce left to sign the next request
    with and the run cannot continue.

    :ivar headers: Mapping of HTTP headers

    """
    def __init__(self, headers: Mapping[str, str], *args: Any) -> None:
        super().__init__(*args)
        self.headers = dict(headers)

    def __str__(self) -> str:
        return ('Server response did not include a replay '
                'nonce, headers: {0} (This may be a service outage)'.format(
                    self.headers))


class MalformedResponse(ProtocolError):
    """Server response body could not be interpreted."""


class MalformedDirectory(MalformedResponse):
    """Directory document is not usable."""


class UnexpectedStatus(ProtocolError):
    """Challenge reached a status other than pending or valid.

    :ivar str status: status reported by the server

    """
    def __init__(self, status: str) -> None:
        self.status = status
        super().__init__()

    def __str__(self) -> str:
        return 'Unexpected status {0!r}.'.format(self.status)


class UnexpectedHTTPCode(ProtocolError):
    """Challenge poll answered with an unexpected HTTP code.

    :ivar int code: HTTP status code

    """
    def __init__(self, code: int) -> None:
        self.code = code
        super().__init__()

    def __str__(self) -> str:
        return 'Unexpected HTTP code {0} when polling status.'.format(self.code)


class ServerResponseError(ClientError):
    """Server refused a request.

    :ivar int code: HTTP status code
    :ivar str body: raw response body
    :ivar problem: parsed problem document, if the body carried one
    :vartype problem: `.messages.Error` or ``None``

    """
    description = 'request failed'

    def __init__(self, code: int, body: str,
                 problem: Optional['messages.Error'] = None) -> None:
        self.code = code
        self.body = body
        self.problem = problem
        super().__init__()

    def __str__(self) -> str:
        msg = '{0}: code {1}; body {2!r}'.format(
            self.description, self.code, self.body)
        if self.problem is not None:
            msg += ' ({0})'.format(self.problem)
        return msg


class RegistrationError(ServerResponseError):
    """Account registration failed."""
    description = 'registration failed'


class AuthorizationError(ServerResponseError):
    """new-authz request failed."""
    description = 'new-authz failed'


class IssuanceError(ServerResponseError):
    """new-cert request failed."""
    description = 'certificate issuance failed'


class RevocationError(ServerResponseError):
    """revoke-cert request failed."""
    description = 'revocation failed'


class UnsupportedChallenge(Error):
    """Authorization offers no challenge this client can fulfill."""

    def __str__(self) -> str:
        return super().__str__() or 'No supported challenges found.'


class IOError(Error):  # pylint: disable=redefined-builtin
    """Proof file could not be published."""


class CorruptCertificate(Error):
    """Server reported issuance but returned an unusable certificate."""

    def __str__(self) -> str:
        return (super().__str__() or
                'Got gibberish while trying to decode the new certificate.')


class PollTimeout(Error):
    """Challenge was still pending when the poll policy ran out."""
