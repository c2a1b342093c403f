"""Unit tests for reqmanager.services.key_material."""

from __future__ import annotations

import pytest
from fakes import make_secret, make_spec

from reqmanager.core.types import KeyAlgorithm
from reqmanager.models.secret import Secret
from reqmanager.pki.keys import public_keys_equal
from reqmanager.services.key_material import KeyMaterialValidator, decode_key_material


class TestDecodeKeyMaterial:
    def test_valid_rsa(self, rsa_key, rsa_key_pem):
        material = decode_key_material({"tls.key": rsa_key_pem})
        assert material is not None
        assert material.algorithm == KeyAlgorithm.RSA
        assert material.size == 2048
        assert public_keys_equal(material.public_key, rsa_key.public_key())

    @pytest.mark.parametrize(
        "data",
        [None, {}, {"tls.key": b""}, {"tls.key": b"invalid"}, {"tls.crt": b"x"}],
    )
    def test_unavailable(self, data):
        assert decode_key_material(data) is None

    def test_custom_entry(self, rsa_key_pem):
        assert decode_key_material({"key.pem": rsa_key_pem}, entry="key.pem") is not None
        assert decode_key_material({"key.pem": rsa_key_pem}) is None


class TestKeyMaterialValidator:
    def test_missing_secret(self):
        assert KeyMaterialValidator().load(None) is None

    def test_empty_secret(self):
        assert KeyMaterialValidator().load(Secret(namespace="testns", name="exists")) is None

    def test_configured_entry(self, rsa_key_pem):
        secret = Secret(namespace="testns", name="exists", data={"private": rsa_key_pem})
        assert KeyMaterialValidator("private").load(secret) is not None
        assert KeyMaterialValidator().load(secret) is None


class TestConformsTo:
    def test_rsa_any_size(self, rsa_key_pem):
        material = KeyMaterialValidator().load(make_secret(rsa_key_pem))
        assert material.conforms_to(make_spec())

    def test_rsa_size_mismatch(self, rsa_key_pem):
        material = KeyMaterialValidator().load(make_secret(rsa_key_pem))
        assert material.conforms_to(make_spec(key_size=2048))
        assert not material.conforms_to(make_spec(key_size=4096))

    def test_algorithm_mismatch(self, ec_key_pem):
        material = KeyMaterialValidator().load(make_secret(ec_key_pem))
        assert not material.conforms_to(make_spec())
        assert material.conforms_to(make_spec(key_algorithm=KeyAlgorithm.ECDSA))
