"""ACME v1 certificate issuance client.

This package obtains a certificate for a single domain from a CA speaking
the `ACME protocol`_ (the "acme-01" draft served by Boulder), proving
control of the domain with an ``http-01`` challenge.

.. _`ACME protocol`: https://tools.ietf.org/html/draft-ietf-acme-acme-01

"""
__version__ = '0.1.0'
