#!/usr/bin/env python3
from nostr.event import EventKind
from nostr.filter import Filter, Filters
from nostr.key import PublicKey
from nostr.message_type import ClientMessageType
from nostr.relay_manager import RelayManager
import json
import logging
import ssl
import time
import zaputils as utils
from zaperrors import NotFoundError

logger = logging.getLogger(__name__)
relayManager = None
_relayConnectTime = 1.25
_pollInterval = 0.25

KIND_ZAP_RECEIPT = 9735

def connectToRelays(relays):
    global relayManager
    logger.debug(f"Connecting to {len(relays)} relays")
    relayManager = RelayManager()
    for nostrRelay in relays:
        relayManager.add_relay(nostrRelay)
    relayManager.open_connections({"cert_reqs": ssl.CERT_REQUIRED})
    time.sleep(_relayConnectTime) # allow the connections to open
    return relayManager

def disconnectRelays():
    global relayManager
    if relayManager is None: return
    logger.debug("Disconnecting from relays")
    relayManager.close_connections()
    relayManager = None

def removeSubscription(subscription_id):
    request = [ClientMessageType.CLOSE, subscription_id]
    relayManager.publish_message(json.dumps(request))
    relayManager.close_subscription(subscription_id)

def isValidSignature(event):
    try:
        pubkey = PublicKey(raw_bytes=bytes.fromhex(event.public_key))
        return pubkey.verify_signed_message_hash(hash=event.id, sig=event.signature)
    except Exception as err:
        logger.debug(f"Signature check failed for event {event.id}: {err}")
        return False

def queryEvents(filters, timeout, isMatch=None, stopWhenMatched=False, stopOnEose=True, name="zap"):
    """Subscribe with filters and gather validly signed events until timeout.

    Relays that answer with the same event are collapsed to one result by
    event id. Gathering ends early when a match is found and stopWhenMatched
    is set, or when every relay has reported end of stored events and
    stopOnEose is set.
    """
    if relayManager is None:
        raise RuntimeError("connectToRelays must be called before querying")
    t, _ = utils.getTimes()
    subscription_id = f"{name}-{t}"
    request = [ClientMessageType.REQUEST, subscription_id]
    request.extend(filters.to_json_array())
    message = json.dumps(request)
    relayManager.add_subscription(subscription_id, filters)
    relayManager.publish_message(message)
    deadline = time.monotonic() + timeout
    matchingEvents = []
    seenIds = set()
    eoseRelays = set()
    try:
        while True:
            pool = relayManager.message_pool
            while pool.has_events():
                event_msg = pool.get_event()
                if event_msg.subscription_id != subscription_id: continue
                event = event_msg.event
                if event.id in seenIds: continue
                if not isValidSignature(event):
                    logger.debug(f"- skipping event {event.id} from {event_msg.url} with invalid signature")
                    continue
                seenIds.add(event.id)
                if isMatch is not None and not isMatch(event): continue
                matchingEvents.append(event)
            while pool.has_eose_notices():
                eose = pool.get_eose_notice()
                if eose.subscription_id == subscription_id: eoseRelays.add(eose.url)
            if stopWhenMatched and len(matchingEvents) > 0: break
            if stopOnEose and len(eoseRelays) >= len(relayManager.relays): break
            if time.monotonic() >= deadline: break
            time.sleep(_pollInterval)
    finally:
        removeSubscription(subscription_id)
    logger.debug(f"Subscription {subscription_id} gathered {len(matchingEvents)} events")
    return matchingEvents

def getEventByHex(eventHex, timeout):
    logger.debug(f"Getting event information for {eventHex}")
    filters = Filters([Filter(event_ids=[eventHex],limit=1)])
    events = queryEvents(filters, timeout, isMatch=lambda e: e.id == eventHex,
                         stopWhenMatched=True, name="eventbyid")
    if len(events) == 0: raise NotFoundError("target event")
    return events[0]

def getProfile(pubkeyHex, timeout):
    logger.debug(f"Getting profile information for {pubkeyHex}")
    filters = Filters([Filter(kinds=[EventKind.SET_METADATA],authors=[pubkeyHex],limit=1)])
    events = queryEvents(filters, timeout, isMatch=lambda e: e.public_key == pubkeyHex, name="profile")
    # newest one wins
    profileToReturn = None
    created_at = -1
    for profile in events:
        if profile.created_at <= created_at: continue
        try:
            ec = json.loads(profile.content)
        except ValueError as err:
            logger.warning(f"Profile {profile.id} for {pubkeyHex} is not json: {err}")
            continue
        if type(ec) is not dict: continue
        created_at = profile.created_at
        profileToReturn = ec
    if profileToReturn is None: raise NotFoundError("metadata")
    return profileToReturn, created_at

def getZapReceipts(eventHex, servicePubkey, since, timeout, isMatch=None):
    logger.debug(f"Waiting up to {timeout} seconds for zap receipts on {eventHex}")
    filters = Filters([Filter(kinds=[KIND_ZAP_RECEIPT],event_refs=[eventHex],pubkey_refs=[servicePubkey],since=since)])
    return queryEvents(filters, timeout, isMatch=isMatch, stopWhenMatched=True,
                       stopOnEose=False, name="zapreceipts")
