"""Tests for loading and validating the json configuration."""

import json

import pytest
from nostr.key import PrivateKey

import zapconfig
from zaperrors import ConfigError

VALID = {
    "botPrivateKey": "11" * 32,
    "relays": ["wss://relay.one", "relay.two"],
    "amountSats": 21,
    "lndServer": {
        "address": "localhost",
        "port": 8080,
        "tlsCertPath": "tls.cert",
        "macaroonPath": "admin.macaroon",
    },
}


def test_get_config(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps(VALID))
    assert zapconfig.getConfig(str(path)) == VALID


def test_get_config_missing_file(tmp_path):
    with pytest.raises(ConfigError):
        zapconfig.getConfig(str(tmp_path / "nope.json"))


def test_get_config_not_json(tmp_path):
    path = tmp_path / "config.json"
    path.write_text("relays: [wss://relay.one]")
    with pytest.raises(ConfigError):
        zapconfig.getConfig(str(path))


def test_validate_accepts_complete_config():
    assert zapconfig.validateConfig(dict(VALID)) == VALID


@pytest.mark.parametrize("key", ["botPrivateKey", "relays", "amountSats", "lndServer"])
def test_validate_missing_key(key):
    config = dict(VALID)
    del config[key]
    with pytest.raises(ConfigError):
        zapconfig.validateConfig(config)


@pytest.mark.parametrize("amount", [0, -5, "21", 2.5])
def test_validate_bad_amount(amount):
    with pytest.raises(ConfigError):
        zapconfig.validateConfig(dict(VALID, amountSats=amount))


def test_validate_missing_lnd_field():
    lndServer = dict(VALID["lndServer"])
    del lndServer["macaroonPath"]
    with pytest.raises(ConfigError):
        zapconfig.validateConfig(dict(VALID, lndServer=lndServer))


def test_validate_empty_relays():
    with pytest.raises(ConfigError):
        zapconfig.validateConfig(dict(VALID, relays=[]))


def test_relays_get_wss_prefix():
    assert zapconfig.getNostrRelays(VALID) == ["wss://relay.one", "wss://relay.two"]


def test_private_key_from_hex_and_nsec():
    key = PrivateKey()
    fromHex = zapconfig.getPrivateKey({"botPrivateKey": key.raw_secret.hex()})
    fromNsec = zapconfig.getPrivateKey({"botPrivateKey": key.bech32()})
    assert fromHex.public_key.hex() == key.public_key.hex()
    assert fromNsec.public_key.hex() == key.public_key.hex()


@pytest.mark.parametrize("value", [None, "", "not a key"])
def test_private_key_invalid(value):
    with pytest.raises(ConfigError):
        zapconfig.getPrivateKey({"botPrivateKey": value})


def test_defaults():
    assert zapconfig.getQueryTimeout({}) == 10
    assert zapconfig.getReceiptTimeout({"receiptTimeout": 30}) == 30
    assert zapconfig.getZapMessage({}) == ""
    assert zapconfig.getTimeouts(None) == (5, 30)
    assert zapconfig.getTimeouts({"readTimeout": 60}) == (5, 60)
