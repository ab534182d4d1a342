"""Tests for minacme.fields."""
import datetime
import sys
import unittest

import josepy as jose
import pytest


class RFC3339FieldTest(unittest.TestCase):
    """Tests for minacme.fields.RFC3339Field."""

    def setUp(self):
        self.decoded = datetime.datetime(2015, 3, 27, tzinfo=datetime.timezone.utc)
        self.encoded = '2015-03-27T00:00:00Z'

    def test_default_encoder(self):
        from minacme.fields import RFC3339Field
        assert self.encoded == RFC3339Field.default_encoder(self.decoded)

    def test_default_encoder_naive_fails(self):
        from minacme.fields import RFC3339Field
        with pytest.raises(ValueError):
            RFC3339Field.default_encoder(datetime.datetime.now())

    def test_default_decoder(self):
        from minacme.fields import RFC3339Field
        assert self.decoded == RFC3339Field.default_decoder(self.encoded)

    def test_default_decoder_raises_deserialization_error(self):
        from minacme.fields import RFC3339Field
        with pytest.raises(jose.DeserializationError):
            RFC3339Field.default_decoder('')


class ResourceTest(unittest.TestCase):
    """Tests for minacme.fields.Resource."""

    def setUp(self):
        from minacme.fields import Resource
        self.field = Resource('x')

    def test_default(self):
        assert 'resource' == self.field.json_name
        assert 'x' == self.field.default

    def test_decode_good(self):
        assert 'x' == self.field.decode('x')

    def test_decode_wrong_fails(self):
        with pytest.raises(jose.DeserializationError):
            self.field.decode('y')

    def test_encode(self):
        assert 'x' == self.field.encode('x')


if __name__ == '__main__':
    sys.exit(pytest.main(sys.argv[1:] + [__file__]))  # pragma: no cover
