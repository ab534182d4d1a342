"""minacme command line argument & config processing."""
import argparse
import logging
import sys
from typing import Any
from typing import List
from typing import Optional

import configargparse

from minacme import __version__
from minacme import client
from minacme import constants
from minacme import errors
from minacme import log

logger = logging.getLogger(__name__)


def flag_default(name: str) -> Any:
    """Default value for CLI flag."""
    return constants.CLI_DEFAULTS[name]


def prepare_parser() -> configargparse.ArgParser:
    """Build the argument parser.

    Every option can also be set in a config file (``-c``) or through a
    ``MINACME_*`` environment variable, e.g. ``MINACME_DIRECTORY_URL``.

    """
    parser = configargparse.ArgParser(
        prog="minacme",
        description="Obtain a certificate for one domain with the http-01 challenge.",
        args_for_setting_config_path=["-c", "--config"],
        default_config_files=flag_default("config_files"),
        auto_env_var_prefix="MINACME_",
        config_arg_help_message="path to config file")

    parser.add_argument("--version", action="version",
                        version="%(prog)s {0}".format(__version__))

    required = parser.add_argument_group("input")
    required.add_argument(
        "--account-key", required=True, metavar="PATH",
        help="Account private key (RSA or EC, PEM).")
    required.add_argument(
        "--csr", required=True, metavar="PATH",
        help="Certificate signing request (PEM).")
    required.add_argument(
        "--acme-dir", required=True, metavar="DIR",
        help="Directory served at http://DOMAIN/.well-known/acme-challenge/.")
    required.add_argument(
        "-d", "--domain", required=True,
        help="Domain to prove control of.")

    server = parser.add_argument_group("server")
    server.add_argument(
        "--directory-url", "--server", dest="directory_url",
        default=flag_default("directory_url"),
        help="ACME directory URL. (default: %(default)s)")
    server.add_argument(
        "--staging", dest="directory_url", action="store_const",
        const=constants.STAGING_DIRECTORY_URL,
        help="Use the Let's Encrypt staging server.")
    server.add_argument(
        "--agreement", default=flag_default("agreement"),
        help="Subscriber agreement URL to accept. (default: %(default)s)")
    server.add_argument(
        "-m", "--email", default=None,
        help="Contact e-mail address(es), comma separated.")
    server.add_argument(
        "--timeout", type=int, default=flag_default("timeout"),
        help="Network timeout in seconds. (default: %(default)s)")
    server.add_argument(
        "--user-agent", default=flag_default("user_agent"),
        help="User-Agent header to send. (default: %(default)s)")
    server.add_argument(
        "--no-verify-ssl", dest="verify_ssl", action="store_false", default=True,
        help="Do not verify the server's TLS certificate.")

    poll = parser.add_argument_group("polling")
    poll.add_argument(
        "--poll-interval", type=float, default=flag_default("poll_interval"),
        help="Seconds between challenge status checks. (default: %(default)s)")
    poll.add_argument(
        "--max-attempts", type=int, default=flag_default("max_attempts"),
        help="Give up after this many status checks. (default: no limit)")
    poll.add_argument(
        "--max-wait", type=float, default=flag_default("max_wait"),
        help="Give up after this many seconds of polling. (default: no limit)")
    poll.add_argument(
        "--backoff", type=float, default=flag_default("backoff"),
        help="Multiply the interval by this after every check. (default: %(default)s)")

    output = parser.add_argument_group("output")
    output.add_argument(
        "-o", "--output", metavar="PATH", default=flag_default("output"),
        help="Write the certificate here instead of standard output.")
    output.add_argument(
        "-v", "--verbose", dest="verbose_count", action="count",
        default=flag_default("verbose_count"),
        help="This flag can be used multiple times to incrementally "
             "increase the verbosity of output, e.g. -vv.")
    output.add_argument(
        "-q", "--quiet", action="store_true", default=flag_default("quiet"),
        help="Silence all output except errors.")
    output.add_argument(
        "--log-file", metavar="PATH", default=flag_default("log_file"),
        help="Also write a debug log to this file.")
    return parser


def poll_policy(config: argparse.Namespace) -> client.PollPolicy:
    """Challenge polling policy requested on the command line."""
    return client.PollPolicy(
        interval=config.poll_interval, max_attempts=config.max_attempts,
        max_elapsed=config.max_wait, backoff=config.backoff)


def _read(path: str) -> bytes:
    try:
        with open(path, "rb") as f:
            return f.read()
    except OSError as error:
        raise errors.Error("Could not read {0}: {1}".format(path, error))


def run(config: argparse.Namespace) -> str:
    """Obtain the certificate described by `config`.

    :returns: certificate in PEM format

    """
    return client.get_crt(
        _read(config.account_key), _read(config.csr), config.acme_dir,
        config.domain, directory_url=config.directory_url,
        policy=poll_policy(config), agreement=config.agreement,
        email=config.email, verify_ssl=config.verify_ssl,
        user_agent=config.user_agent, timeout=config.timeout)


def main(cli_args: Optional[List[str]] = None) -> int:
    """Command line entry point.

    :returns: process exit status

    """
    if cli_args is None:
        cli_args = sys.argv[1:]
    config = prepare_parser().parse_args(cli_args)
    try:
        log.setup_logging(config)
        cert_pem = run(config)
        if config.output:
            with open(config.output, "w") as f:
                f.write(cert_pem)
            logger.info("Certificate saved to %s", config.output)
        else:
            sys.stdout.write(cert_pem)
    except (errors.Error, ValueError, OSError) as error:
        logger.error("Error: %s", error)
        logger.debug("Exiting abnormally:", exc_info=True)
        return 1
    return 0
