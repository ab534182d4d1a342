"""minacme constants."""
import logging

from minacme import __version__

DEFAULT_DIRECTORY_URL = 'https://acme-v01.api.letsencrypt.org/directory'
"""Let's Encrypt ACME v1 production directory."""

STAGING_DIRECTORY_URL = 'https://acme-staging.api.letsencrypt.org/directory'

DEFAULT_AGREEMENT = 'https://letsencrypt.org/documents/LE-SA-v1.0.1-July-27-2015.pdf'
"""Subscriber agreement accepted on registration.

Boulder serves the terms from a non-standard endpoint, so the URL is
fixed here rather than discovered.

"""

REPLAY_NONCE_HEADER = 'Replay-Nonce'

USER_AGENT = 'minacme/{0}'.format(__version__)

DEFAULT_NETWORK_TIMEOUT = 45

DEFAULT_POLL_INTERVAL = 10
"""Seconds between two challenge status requests."""

QUIET_LOGGING_LEVEL = logging.WARNING
"""Logging level to use in quiet mode."""

CLI_DEFAULTS = dict(
    config_files=[],
    directory_url=DEFAULT_DIRECTORY_URL,
    agreement=DEFAULT_AGREEMENT,
    poll_interval=DEFAULT_POLL_INTERVAL,
    max_attempts=None,
    max_wait=None,
    backoff=1.0,
    timeout=DEFAULT_NETWORK_TIMEOUT,
    user_agent=USER_AGENT,
    verbose_count=-int(logging.INFO / 10),
    quiet=False,
    log_file=None,
    output=None,
)
"""Defaults for CLI flags."""
