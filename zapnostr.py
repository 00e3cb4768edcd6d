#!/usr/bin/env python3
from nostr.event import Event
import bech32
import json
import logging
import urllib.parse
import zaprelays as relays
from zaperrors import NotFoundError

logger = logging.getLogger(__name__)

KIND_ZAP_REQUEST = 9734

def makeLightningIdFromLNURL(lnurl):
    lightningId = None
    try:
        hrp, e2 = bech32.bech32_decode(lnurl.lower())
        tlv_bytes = bech32.convertbits(e2, 5, 8, False)
        du = bytes(tlv_bytes).decode('ASCII')
        # 'https://walletofsatoshi.com/.well-known/lnurlp/username'
        du = du.split("//")[1]
        domainpart = du.split("/")[0]
        usernamepart = du.split("/")[-1]
        lightningId = f"{usernamepart}@{domainpart}"
        logger.debug(f"Decoded {lightningId} from lnurl")
    except Exception as err:
        logger.warning(f"Could not decode lnurl ({lnurl}) to a lightning identity: {str(err)}")
    return lightningId

def getLightningIdFromProfile(profile):
    lightningId = None
    if "lud06" in profile and profile["lud06"]:
        lnurl = str(profile["lud06"])
        if lnurl.lower().startswith("lnurl"):
            lightningId = makeLightningIdFromLNURL(lnurl)
    if "lud16" in profile and profile["lud16"]:
        lightningId = str(profile["lud16"]).strip()
        if lightningId.lower().startswith("lnurl"):
            lightningId = makeLightningIdFromLNURL(lightningId)
    if lightningId is None or len(lightningId) == 0:
        raise NotFoundError("lightning address")
    return lightningId

def getLightningIdForPubkey(public_key, timeout):
    profile, _ = relays.getProfile(public_key, timeout)
    lightningId = getLightningIdFromProfile(profile)
    name = profile["name"] if ("name" in profile and profile["name"] is not None) else "no name"
    logger.info(f"Lightning address for {name}: {lightningId}")
    return lightningId

def makeZapRequest(privateKey, eventHex, servicePubkey, relayUrls, zapMessage=""):
    zapTags = []
    relaysTagList = ["relays"]
    relaysTagList.extend(relayUrls)
    zapTags.append(["e",eventHex])
    zapTags.append(["p",servicePubkey])
    zapTags.append(relaysTagList)
    zapEvent = Event(content=zapMessage,public_key=privateKey.public_key.hex(),kind=KIND_ZAP_REQUEST,tags=zapTags)
    privateKey.sign_event(zapEvent)
    return zapEvent

def getZapRequestJson(zapRequest):
    o = {
            "id": zapRequest.id,
            "pubkey": zapRequest.public_key,
            "created_at": zapRequest.created_at,
            "kind": zapRequest.kind,
            "tags": zapRequest.tags,
            "content": zapRequest.content,
            "sig": zapRequest.signature,
        }
    return json.dumps(o, separators=(",",":"), ensure_ascii=False)

def getEncodedZapRequest(zapRequest):
    return urllib.parse.quote(getZapRequestJson(zapRequest), safe="")

def getTagValues(event, tagName):
    return [tag[1] for tag in event.tags if len(tag) >= 2 and tag[0] == tagName]

def isMatchingZapReceipt(receipt, eventHex, servicePubkey, zapRequestId=None):
    if receipt.kind != relays.KIND_ZAP_RECEIPT: return False
    if receipt.public_key != servicePubkey:
        logger.debug(f"- zap receipt {receipt.id} not published by {servicePubkey}, ignored")
        return False
    if eventHex not in getTagValues(receipt, "e"): return False
    if zapRequestId is None: return True
    for description in getTagValues(receipt, "description"):
        try:
            zapRequest = json.loads(description)
        except ValueError:
            continue
        if type(zapRequest) is dict and zapRequest.get("id") == zapRequestId:
            return True
    logger.debug(f"- zap receipt {receipt.id} is for another zap request")
    return False
