"""Root conftest for the reqmanager test suite."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import pytest
import yaml
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec, ed25519, rsa

# ---------------------------------------------------------------------------
# Make ``src/`` importable without installing the package
# ---------------------------------------------------------------------------
_SRC = str(Path(__file__).resolve().parent.parent / "src")
if _SRC not in sys.path:
    sys.path.insert(0, _SRC)


# ---------------------------------------------------------------------------
# Minimal config data shared by multiple test modules
# ---------------------------------------------------------------------------


@pytest.fixture()
def minimal_config_data() -> dict:
    """Return a dict containing the minimum required config fields."""
    return {
        "database": {"database": "reqmanager_test", "user": "testuser"},
    }


@pytest.fixture()
def tmp_config_file(tmp_path: Path, minimal_config_data: dict) -> Path:
    """Write *minimal_config_data* to a temp YAML file and return its path."""
    cfg = tmp_path / "config.yaml"
    cfg.write_text(
        yaml.safe_dump(minimal_config_data, default_flow_style=False, sort_keys=False),
        encoding="utf-8",
    )
    return cfg


# ---------------------------------------------------------------------------
# Key material (generated once per session, RSA generation is slow)
# ---------------------------------------------------------------------------


def _pem(key) -> bytes:
    return key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    )


@pytest.fixture(scope="session")
def rsa_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def other_rsa_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def third_rsa_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def ec_key():
    return ec.generate_private_key(ec.SECP256R1())


@pytest.fixture(scope="session")
def ed25519_key():
    return ed25519.Ed25519PrivateKey.generate()


@pytest.fixture(scope="session")
def rsa_key_pem(rsa_key) -> bytes:
    return _pem(rsa_key)


@pytest.fixture(scope="session")
def other_rsa_key_pem(other_rsa_key) -> bytes:
    return _pem(other_rsa_key)


@pytest.fixture(scope="session")
def third_rsa_key_pem(third_rsa_key) -> bytes:
    return _pem(third_rsa_key)


@pytest.fixture(scope="session")
def ec_key_pem(ec_key) -> bytes:
    return _pem(ec_key)


@pytest.fixture(scope="session")
def ed25519_key_pem(ed25519_key) -> bytes:
    return _pem(ed25519_key)


# ---------------------------------------------------------------------------
# ConfigKit singleton cleanup, autouse so every test gets a fresh slate
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def fresh_config():
    """Reset the ReqManagerConfig singleton before and after every test."""
    from reqmanager.config.reqmanager_config import ReqManagerConfig

    ReqManagerConfig.reset()
    yield
    ReqManagerConfig.reset()


@pytest.fixture(autouse=True)
def restore_loggers():
    """Undo ``configure_logging`` so caplog keeps seeing reqmanager records."""
    yield
    for name in ("reqmanager", "reqmanager.audit"):
        logger = logging.getLogger(name)
        logger.handlers.clear()
        logger.propagate = True
        logger.setLevel(logging.NOTSET)
