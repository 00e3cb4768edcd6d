#!/usr/bin/env python3
import bech32
import datetime
import sys
from zaperrors import MalformedInputError

def bech32ToHex(bech32Input):
    hrp, e2 = bech32.bech32_decode(bech32Input)
    if hrp is None: return ""
    tlv_bytes = bech32.convertbits(e2, 5, 8)[:-1]
    if len(tlv_bytes) > 32:
        # nevent/nprofile: first TLV entry (type 0) carries the 32 byte value
        tlv_length = tlv_bytes[1]
        tlv_value = tlv_bytes[2:tlv_length+2]
        hexOutput = bytes(tlv_value).hex()
    else:
        hexOutput = bytes(tlv_bytes).hex()
    return hexOutput

def hexToBech32(hexInput, hrp):
    b = bytes.fromhex(hexInput)
    bits = bech32.convertbits(b,8,5)
    bech32output = bech32.bech32_encode(hrp, bits)
    return bech32output

def isHex(s):
    return len(s) > 0 and set(s).issubset(set('abcdefABCDEF0123456789'))

def normalizeToHex(v):
    if v is None or len(v) == 0: return ""
    if str(v).startswith("nostr:"): v = v[6:]
    if str(v).startswith("n"): v = bech32ToHex(v)
    if isHex(v): return v.lower()
    return None

def eventIdToHex(eventId):
    eventHex = normalizeToHex(eventId)
    if eventHex is None or len(eventHex) != 64:
        raise MalformedInputError(f"event identifier {eventId} is not a note, nevent or 64 character hex id")
    return eventHex

def getCommandArg(p, argv=None):
    b = False
    v = None
    l = str(p).lower()
    for a in (sys.argv if argv is None else argv):
        if b:
            v = a
            b = False
        elif f"--{l}" == str(a).lower():
            b = True
    return v

def getPositionalArgs(argv=None):
    # everything that is not a --name value pair
    args = []
    skipNext = False
    for a in (sys.argv[1:] if argv is None else argv):
        if skipNext:
            skipNext = False
            continue
        if str(a).startswith("--"):
            skipNext = True
            continue
        args.append(a)
    return args

def getTimes(aDate=None):
    theDate = aDate
    if aDate is None: theDate = datetime.datetime.now(datetime.timezone.utc)
    secTime = int(theDate.timestamp())
    isoTime = datetime.datetime.fromtimestamp(secTime, datetime.timezone.utc).replace(tzinfo=None).isoformat(timespec="seconds")
    return secTime, isoTime
