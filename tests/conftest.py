"""Shared fixtures for the formhandler test suite."""

import os
import uuid

import pytest

from formhandler.core.config import Config, reset_config
from formhandler.utils.logger import Logger, LogLevel, MemoryHandler
from formhandler.validation.validator import Validator

# Smallest byte sequence that sniffs as a JPEG image
JPEG_BYTES = (
    b"\xff\xd8\xff\xe0\x00\x10JFIF\x00\x01\x01\x00\x00\x01\x00\x01\x00\x00"
    + b"\x00" * 64
    + b"\xff\xd9"
)

TEXT_BYTES = b"Just some plain text.\nNothing to see here.\n"


@pytest.fixture(autouse=True)
def fresh_config(monkeypatch):
    """Isolate tests from FORMHANDLER_* variables and cached config."""
    for key in list(os.environ):
        if key.startswith("FORMHANDLER_"):
            monkeypatch.delenv(key)
    reset_config()
    yield
    reset_config()


@pytest.fixture
def config():
    return Config(environ={})


@pytest.fixture
def memory_handler():
    return MemoryHandler()


@pytest.fixture
def logger(memory_handler):
    return Logger(name="formhandler.test", level=LogLevel.DEBUG, handlers=[memory_handler])


@pytest.fixture
def validator(config, logger):
    return Validator(config=config, logger=logger)


@pytest.fixture
def make_upload(tmp_path):
    """Create a temporary upload and return its file record."""

    def factory(name, content=JPEG_BYTES, error=0, size=None, mime="application/octet-stream"):
        path = tmp_path / f"upload-{uuid.uuid4().hex[:8]}"
        path.write_bytes(content)
        return {
            "name": name,
            "type": mime,
            "size": len(content) if size is None else size,
            "tmp_name": str(path),
            "error": error,
        }

    return factory
