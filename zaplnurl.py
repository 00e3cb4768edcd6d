#!/usr/bin/env python3
import bech32
import json
import logging
import requests
import zapconfig
import zapnostr as nostr
from zaperrors import (AmountOutOfRangeError, DecodeError, MalformedInputError,
                       MissingFieldError, NetworkError, UnsupportedCapabilityError)

logger = logging.getLogger(__name__)
config = None

def gettimeouts():
    return zapconfig.getTimeouts(config)

def geturl(url=None, headers={}):
    try:
        timeout = gettimeouts()
        resp = requests.get(url,timeout=timeout,allow_redirects=True,headers=headers)
        cmdoutput = resp.text
    except requests.RequestException as e:
        logger.warning(f"Error getting data from LN URL Provider from url ({url}): {str(e)}")
        raise NetworkError(f"Request to {url} failed: {e}") from e
    try:
        j = json.loads(cmdoutput)
    except ValueError as e:
        logger.warning(f"LN URL Provider returned a response that is not json from url ({url}) with status {resp.status_code}")
        raise DecodeError(f"Response from {url} is not json: {e}") from e
    if type(j) is not dict:
        raise DecodeError(f"Response from {url} is not a json object")
    return j

def getLNURLPayUrl(identity):
    if "@" not in identity:
        raise MalformedInputError(f"Lightning address {identity} is invalid - not in username@domain format")
    username, domainname = identity.split("@", 1)
    if len(username) == 0 or len(domainname) == 0:
        raise MalformedInputError(f"Lightning address {identity} is invalid - not in username@domain format")
    # local test services are served without tls
    protocol = "http" if "localhost" in domainname else "https"
    return f"{protocol}://{domainname}/.well-known/lnurlp/{username}"

def getLNURLPayInfo(identity):
    url = getLNURLPayUrl(identity)
    logger.debug(f"Requesting LNURL pay info from {url}")
    j = geturl(url)
    return j, url

def getBech32LNURL(lnurlp):
    lnurlpBytes = bytes(lnurlp,'utf-8')
    lnurlpBits = bech32.convertbits(lnurlpBytes,8,5)
    return bech32.bech32_encode("lnurl", lnurlpBits)

def raiseForErrorStatus(response, lightningId):
    if response.get("status") == "ERROR":
        errReason = response.get("reason", "unreported reason")
        logger.warning(f"LN Provider of identity {lightningId} reported error: {errReason}")
        raise DecodeError(f"LN Provider for {lightningId} reported error: {errReason}")

def validateLNURLPayInfo(lnurlPayInfo, lightningId, amountSats):
    raiseForErrorStatus(lnurlPayInfo, lightningId)
    if not lnurlPayInfo.get("allowsNostr", False):
        logger.debug(f"LN Provider of identity {lightningId} does not allow nostr. Zap not supported")
        raise UnsupportedCapabilityError(f"zaps not enabled for {lightningId}")
    ## the payment providers pubkey which we (and others) can use to
    ## validate the zap receipt that the provider will publish to nostr
    if not lnurlPayInfo.get("nostrPubkey"):
        logger.debug(f"LN Provider of identity {lightningId} does not have nostrPubkey. Zap not supported")
        raise MissingFieldError("nostrPubkey")
    if not lnurlPayInfo.get("callback"):
        raise MissingFieldError("callback")
    # minSendable and maxSendable are in millisats
    amountMillisatoshi = amountSats * 1000
    try:
        minSendable = int(lnurlPayInfo.get("minSendable", 0))
        maxSendable = int(lnurlPayInfo.get("maxSendable", amountMillisatoshi))
    except (TypeError, ValueError) as err:
        raise DecodeError(f"Provider for {lightningId} returned unreadable minSendable or maxSendable: {err}") from err
    if amountMillisatoshi < minSendable:
        logger.debug(f"LN Provider of identity {lightningId} does not allow zaps less than {minSendable} msat")
        raise AmountOutOfRangeError(f"Provider for {lightningId} requires {minSendable} msats minimum")
    if amountMillisatoshi > maxSendable:
        logger.debug(f"LN Provider of identity {lightningId} does not allow zaps greater than {maxSendable} msat")
        raise AmountOutOfRangeError(f"Provider for {lightningId} permits no more than {maxSendable} msats to be zapped")
    return lnurlPayInfo["callback"], str(lnurlPayInfo["nostrPubkey"]).lower()

def getInvoiceUrl(callback, amountSats, zapRequest, bech32lnurl=None):
    encoded = nostr.getEncodedZapRequest(zapRequest)
    amountMillisatoshi = amountSats*1000
    if "?" in callback:
        url = f"{callback}&"
    else:
        url = f"{callback}?"
    url = f"{url}amount={amountMillisatoshi}&nostr={encoded}"
    if bech32lnurl is not None: url = f"{url}&lnurl={bech32lnurl}"
    return url

def getInvoiceFromZapRequest(callback, amountSats, zapRequest, bech32lnurl=None):
    logger.debug(f"Requesting invoice from LNURL service using zap request")
    url = getInvoiceUrl(callback, amountSats, zapRequest, bech32lnurl)
    invoiceResponse = geturl(url)
    raiseForErrorStatus(invoiceResponse, callback)
    if not invoiceResponse.get("pr"):
        raise DecodeError(f"Response from {callback} has no invoice")
    return invoiceResponse["pr"]
