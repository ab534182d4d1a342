"""minacme internal implementation.

.. warning:: This package is not part of the public API.

"""
