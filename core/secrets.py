"""
Secret encryption.

AES-256-GCM with a key derived from a passphrase via PBKDF2-HMAC-SHA512
(100k iterations). Each call uses a fresh salt and IV.

Blob layout (base64 of): salt(64) | iv(16) | tag(16) | ciphertext
"""
import base64
import binascii
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from core.errors import DecryptionError

SALT_LENGTH = 64
IV_LENGTH = 16
TAG_LENGTH = 16
KEY_LENGTH = 32
ITERATIONS = 100_000


def _derive_key(passphrase: str, salt: bytes) -> bytes:
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA512(),
        length=KEY_LENGTH,
        salt=salt,
        iterations=ITERATIONS,
    )
    return kdf.derive(passphrase.encode("utf-8"))


class SecretProvider:
    def __init__(self, passphrase: str):
        self._passphrase = passphrase

    def encrypt(self, text: str) -> str:
        salt = os.urandom(SALT_LENGTH)
        iv = os.urandom(IV_LENGTH)
        key = _derive_key(self._passphrase, salt)
        # AESGCM appends the tag to the ciphertext
        sealed = AESGCM(key).encrypt(iv, text.encode("utf-8"), None)
        ciphertext, tag = sealed[:-TAG_LENGTH], sealed[-TAG_LENGTH:]
        return base64.b64encode(salt + iv + tag + ciphertext).decode("ascii")

    def decrypt(self, blob: str) -> str:
        try:
            raw = base64.b64decode(blob, validate=True)
        except (binascii.Error, ValueError) as e:
            raise DecryptionError("Malformed ciphertext") from e
        # b64decode ignores non-zero padding bits; only the canonical encoding is accepted
        if base64.b64encode(raw).decode("ascii") != blob:
            raise DecryptionError("Malformed ciphertext")

        header = SALT_LENGTH + IV_LENGTH + TAG_LENGTH
        if len(raw) < header:
            raise DecryptionError("Malformed ciphertext")

        salt = raw[:SALT_LENGTH]
        iv = raw[SALT_LENGTH:SALT_LENGTH + IV_LENGTH]
        tag = raw[SALT_LENGTH + IV_LENGTH:header]
        ciphertext = raw[header:]

        key = _derive_key(self._passphrase, salt)
        try:
            plaintext = AESGCM(key).decrypt(iv, ciphertext + tag, None)
        except InvalidTag as e:
            raise DecryptionError("Authentication failed") from e
        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecryptionError("Malformed plaintext") from e


def encrypt(plaintext: str, passphrase: str) -> str:
    return SecretProvider(passphrase).encrypt(plaintext)


def decrypt(blob: str, passphrase: str) -> str:
    return SecretProvider(passphrase).decrypt(blob)


def mask_key(key: str) -> str:
    if len(key) <= 4:
        return "****"
    return "****" + key[-4:]