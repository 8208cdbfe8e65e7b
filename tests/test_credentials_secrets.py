import base64

import pytest

from config.settings import Settings
from core.credentials import SUPPORTED_KEYS, configured_keys, get_api_key, key_status, resolve_credentials
from core.errors import DecryptionError, ValidationError
from core.secrets import SecretProvider, decrypt, encrypt, mask_key


def _settings(**keys):
    values = {name: None for name in SUPPORTED_KEYS}
    values.update(keys)
    return Settings(_env_file=None, **values)


def test_only_configured_allow_listed_keys_are_resolved():
    settings = _settings(COINGECKO_API_KEY="cg-123", GROQ_API_KEY="gq-456", SERPER_API_KEY="")
    creds = resolve_credentials("alice", settings)
    assert creds == {"COINGECKO_API_KEY": "cg-123", "GROQ_API_KEY": "gq-456"}


def test_unlisted_settings_are_never_exposed():
    settings = _settings(COINGECKO_API_KEY="cg-123")
    creds = resolve_credentials("alice", settings)
    assert "CORS_ORIGINS" not in creds
    assert set(creds) <= set(SUPPORTED_KEYS)


def test_caller_does_not_change_result():
    settings = _settings(TAVILY_API_KEY="tv-1")
    assert resolve_credentials("a", settings) == resolve_credentials("b", settings)


def test_get_api_key():
    settings = _settings(BIRDEYE_API_KEY="be-1")
    assert get_api_key("BIRDEYE_API_KEY", settings) == "be-1"
    assert get_api_key("JINA_API_KEY", settings) == ""
    with pytest.raises(ValidationError):
        get_api_key("AWS_SECRET_ACCESS_KEY", settings)


def test_key_status_uses_allow_list():
    settings = _settings(SERPER_API_KEY="serper-9876")
    assert key_status("SERPER_API_KEY", settings) == {"name": "SERPER_API_KEY", "configured": True, "preview": "****9876"}
    assert key_status("TAVILY_API_KEY", settings)["preview"] is None
    with pytest.raises(ValidationError):
        key_status("CORS_ORIGINS", settings)


def test_configured_keys_are_masked():
    settings = _settings(OPENROUTER_API_KEY="sk-or-abcdef1234")
    listing = {k["name"]: k for k in configured_keys(settings)}
    assert len(listing) == len(SUPPORTED_KEYS)
    assert listing["OPENROUTER_API_KEY"] == {"name": "OPENROUTER_API_KEY", "configured": True, "preview": "****1234"}
    assert listing["GROQ_API_KEY"]["configured"] is False


def test_secret_round_trip():
    provider = SecretProvider("correct horse")
    for text in ["", "sk-live-123", "ünïcødé ✓", "x" * 5000]:
        assert provider.decrypt(provider.encrypt(text)) == text


def test_empty_passphrase_round_trip():
    assert decrypt(encrypt("sk-live-123", ""), "") == "sk-live-123"
    with pytest.raises(DecryptionError):
        decrypt(encrypt("sk-live-123", ""), "pw")


def test_each_encryption_uses_fresh_salt_and_iv():
    assert encrypt("same", "pw") != encrypt("same", "pw")


def test_tampered_blob_fails_authentication():
    blob = encrypt("sk-live-123", "pw")
    raw = base64.b64decode(blob)
    # one byte in each region: salt, iv, tag, ciphertext
    for index in (0, 64, 80, len(raw) - 1):
        mutated = bytearray(raw)
        mutated[index] ^= 0x01
        with pytest.raises(DecryptionError):
            decrypt(base64.b64encode(bytes(mutated)).decode(), "pw")


def test_bit_flips_in_blob_text_are_rejected():
    blob = encrypt("a", "pw")
    last_data = len(blob.rstrip("=")) - 1
    # every character of the final quantum (where padding bits live) plus a spread of earlier ones
    positions = sorted(set(range(len(blob) - 4, len(blob))) | set(range(0, len(blob) - 4, 9)))
    assert last_data in positions
    for index in positions:
        for bit in (0x01, 0x02):
            mutated = blob[:index] + chr(ord(blob[index]) ^ bit) + blob[index + 1:]
            with pytest.raises(DecryptionError):
                decrypt(mutated, "pw")


def test_wrong_passphrase_fails():
    with pytest.raises(DecryptionError):
        decrypt(encrypt("sk-live-123", "pw"), "not-pw")


def test_malformed_blobs():
    with pytest.raises(DecryptionError):
        decrypt("not base64!!", "pw")
    with pytest.raises(DecryptionError):
        decrypt(base64.b64encode(b"short").decode(), "pw")


def test_mask_key():
    assert mask_key("abcdefgh") == "****efgh"
    assert mask_key("abc") == "****"
