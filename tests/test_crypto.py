"""Tests for key derivation and per-field encryption."""
import pytest

from crypto import (
    NONCE_SIZE, TAG_SIZE, CryptoError, FieldCipher, KeyDerivation,
)


class TestKeyDerivation:

    def test_same_passphrase_same_key(self, kdf):
        assert kdf.derive_key("secret") == kdf.derive_key("secret")

    def test_key_is_32_bytes(self, kdf):
        assert len(kdf.derive_key("secret")) == 32

    def test_different_passphrase_different_key(self, kdf):
        assert kdf.derive_key("secret") != kdf.derive_key("Secret")

    def test_different_salt_different_key(self):
        a = KeyDerivation.generate(1_000)
        b = KeyDerivation.generate(1_000)
        assert a.salt != b.salt
        assert a.derive_key("secret") != b.derive_key("secret")

    def test_rejects_short_salt(self):
        with pytest.raises(ValueError):
            KeyDerivation(b"short", 1_000)

    def test_rejects_zero_iterations(self):
        with pytest.raises(ValueError):
            KeyDerivation(b"x" * 16, 0)

    def test_non_ascii_passphrase(self, kdf):
        assert kdf.derive_key("пароль") == kdf.derive_key("пароль")


class TestFieldCipher:

    @pytest.mark.parametrize("text", ["", "s3cr3t", "user@example.com", "ünïcødé ✓", "x" * 4096])
    def test_round_trip(self, cipher, text):
        assert cipher.decrypt_text(cipher.encrypt_text(text)) == text

    def test_blob_layout(self, cipher):
        blob = cipher.encrypt(b"abc")
        assert len(blob) == NONCE_SIZE + 3 + TAG_SIZE

    def test_fresh_nonce_every_call(self, cipher):
        first = cipher.encrypt_text("s3cr3t")
        second = cipher.encrypt_text("s3cr3t")
        assert first != second
        assert first[:NONCE_SIZE] != second[:NONCE_SIZE]
        assert cipher.decrypt_text(first) == cipher.decrypt_text(second) == "s3cr3t"

    def test_wrong_key_fails(self, kdf, cipher):
        blob = cipher.encrypt_text("s3cr3t")
        other = FieldCipher.from_passphrase("wrong horse", kdf)
        with pytest.raises(CryptoError):
            other.decrypt(blob)

    def test_tampered_blob_fails(self, cipher):
        blob = bytearray(cipher.encrypt_text("s3cr3t"))
        blob[-1] ^= 0x01
        with pytest.raises(CryptoError):
            cipher.decrypt(bytes(blob))

    @pytest.mark.parametrize("size", [0, 1, NONCE_SIZE, NONCE_SIZE + TAG_SIZE - 1])
    def test_short_blob_fails(self, cipher, size):
        with pytest.raises(CryptoError):
            cipher.decrypt(b"\x00" * size)

    def test_invalid_utf8_fails(self, cipher):
        blob = cipher.encrypt(b"\xff\xfe")
        assert cipher.decrypt(blob) == b"\xff\xfe"
        with pytest.raises(CryptoError):
            cipher.decrypt_text(blob)

    def test_rejects_wrong_key_size(self):
        with pytest.raises(ValueError):
            FieldCipher(b"k" * 16)


class TestKeyCheck:

    def test_verifies_with_same_key(self, cipher):
        assert cipher.verify_keycheck(cipher.create_keycheck()) is True

    def test_rejects_other_key(self, kdf, cipher):
        keycheck = cipher.create_keycheck()
        assert FieldCipher.from_passphrase("nope", kdf).verify_keycheck(keycheck) is False

    def test_rejects_garbage(self, cipher):
        assert cipher.verify_keycheck(b"garbage") is False
