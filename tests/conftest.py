"""Shared fixtures: a throw-away data directory and fast key derivation."""
import datetime

import pytest

from config import AppConfig
from crypto import FieldCipher, KeyDerivation
from records import VaultStore
from session import Session
from storage import VaultFile

# Keeps PBKDF2 fast in tests; production vaults use the configured count.
TEST_ITERATIONS = 1_000


@pytest.fixture
def config(tmp_path):
    cfg = AppConfig(user_data_dir=str(tmp_path))
    cfg.set("kdf_iterations", TEST_ITERATIONS)
    cfg.set("clear_screen", False)
    return cfg


@pytest.fixture
def kdf():
    return KeyDerivation.generate(TEST_ITERATIONS)


@pytest.fixture
def cipher(kdf):
    return FieldCipher.from_passphrase("correct horse", kdf)


@pytest.fixture
def vault_file(config):
    return VaultFile(config.vault_path)


@pytest.fixture
def session(vault_file, kdf, cipher):
    return Session(
        vault_file=vault_file,
        kdf=kdf,
        keycheck=cipher.create_keycheck(),
        cipher=cipher,
        store=VaultStore(),
    )


@pytest.fixture
def day():
    """Build a date from day, month, year."""
    def _day(d, m, y=2024):
        return datetime.date(y, m, d)
    return _day


class ScriptedIO:
    """Feeds queued answers to prompts and records printed lines."""

    def __init__(self, answers):
        self.answers = list(answers)
        self.prompts = []
        self.lines = []

    def input(self, prompt=""):
        self.prompts.append(prompt)
        if not self.answers:
            raise EOFError
        return self.answers.pop(0)

    def print(self, *args):
        self.lines.append(" ".join(str(a) for a in args))

    @property
    def text(self):
        return "\n".join(self.lines)


@pytest.fixture
def scripted():
    return ScriptedIO
