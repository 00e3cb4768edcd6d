#!/usr/bin/env python3
from nostr.key import PrivateKey
import json
import logging
import os
import zaputils as utils
from zaperrors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_QUERY_TIMEOUT = 10
DEFAULT_RECEIPT_TIMEOUT = 10

def loadJsonFile(filename, default=None):
    if filename is None: return default
    if not os.path.exists(filename): return default
    with open(filename) as f:
        return(json.load(f))

def getConfig(filename):
    logger.debug(f"Loading config from {filename}")
    if not os.path.exists(filename):
        raise ConfigError(f"Config file does not exist at {filename}")
    try:
        config = loadJsonFile(filename, {})
    except (OSError, ValueError) as err:
        raise ConfigError(f"Config file {filename} could not be read: {err}") from err
    if type(config) is not dict:
        raise ConfigError(f"Config file {filename} must contain a json object")
    return config

def validateConfig(config):
    hasErrors = False
    for k in ("botPrivateKey","relays","amountSats","lndServer"):
        if k not in config:
            logger.error(f"Configuration is missing {k}")
            hasErrors = True
    if "relays" in config:
        if type(config["relays"]) is not list or len(config["relays"]) == 0:
            logger.error("Configuration relays must be a non empty list")
            hasErrors = True
    if "amountSats" in config:
        amount = config["amountSats"]
        if type(amount) is not int or amount <= 0:
            logger.error(f"Configuration amountSats must be a positive integer, not {amount}")
            hasErrors = True
    if "lndServer" in config:
        lndServer = config["lndServer"]
        if type(lndServer) is not dict:
            logger.error("Configuration lndServer must be an object")
            hasErrors = True
        else:
            for k in ("address","port","tlsCertPath","macaroonPath"):
                if k not in lndServer:
                    logger.error(f"Configuration file is missing {k} in lndServer")
                    hasErrors = True
    if hasErrors: raise ConfigError("Configuration is invalid, see errors above")
    return config

def getNostrRelays(config):
    relays = []
    for nostrRelay in config["relays"]:
        nostrRelay = str(nostrRelay).strip()
        if nostrRelay.startswith("wss://") or nostrRelay.startswith("ws://"):
            relays.append(nostrRelay)
        else:
            relays.append(f"wss://{nostrRelay}")
    return relays

def getPrivateKey(config, k="botPrivateKey"):
    v = config.get(k)
    if v is None or len(v) == 0:
        raise ConfigError(f"{k} is empty")
    try:
        if len(v) == 64 and utils.isHex(v): # assumes in hex format
            return PrivateKey(raw_secret=bytes.fromhex(v))
        if str(v).startswith("nsec"): # in user friendly nsec bech32
            return PrivateKey.from_nsec(v)
    except Exception as err:
        raise ConfigError(f"{k} could not be loaded: {err}") from err
    raise ConfigError(f"{k} is not in nsec or hex format")

def getZapMessage(config):
    return config.get("zapMessage", "")

def getQueryTimeout(config):
    return config.get("queryTimeout", DEFAULT_QUERY_TIMEOUT)

def getReceiptTimeout(config):
    return config.get("receiptTimeout", DEFAULT_RECEIPT_TIMEOUT)

def getTimeouts(section):
    connectTimeout = 5
    readTimeout = 30
    if section is None: return (connectTimeout, readTimeout)
    if "connectTimeout" in section: connectTimeout = section["connectTimeout"]
    if "readTimeout" in section: readTimeout = section["readTimeout"]
    return (connectTimeout, readTimeout)
