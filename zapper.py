#!/usr/bin/env python3
import logging
import zapconfig
import zaplnd as lnd
import zaplnurl as lnurl
import zapnostr as nostr
import zaprelays as relays
from zaperrors import PaymentError, VerificationTimeout

logger = logging.getLogger(__name__)
config = None
_receiptClockSkew = 60

def verifyZapReceipt(eventHex, servicePubkey, zapRequest):
    receiptTimeout = zapconfig.getReceiptTimeout(config)
    isMatch = lambda e: nostr.isMatchingZapReceipt(e, eventHex, servicePubkey, zapRequest.id)
    since = zapRequest.created_at - _receiptClockSkew
    try:
        receipts = relays.getZapReceipts(eventHex, servicePubkey, since, receiptTimeout, isMatch=isMatch)
    except Exception as err:
        # the payment already went out, so a relay failure here is only reported
        logger.warning(f"Could not look for zap receipts: {err}")
        receipts = []
    if len(receipts) == 0:
        return receipts, VerificationTimeout(f"No zap receipt from {servicePubkey} seen within {receiptTimeout} seconds")
    return receipts, None

def zapEvent(eventHex):
    """Zap the note identified by eventHex and wait for its receipt.

    Steps run strictly in order and any failure up to and including the
    payment raises. The payment is attempted once. Receipt verification
    never raises; a missing receipt is returned as result["warning"].
    """
    amountSats = config["amountSats"]
    queryTimeout = zapconfig.getQueryTimeout(config)
    relayUrls = zapconfig.getNostrRelays(config)
    privateKey = zapconfig.getPrivateKey(config)
    zapMessage = zapconfig.getZapMessage(config)

    # Target event and its author
    targetEvent = relays.getEventByHex(eventHex, queryTimeout)
    logger.debug(f"Found event {targetEvent.id} by {targetEvent.public_key}")
    lightningId = nostr.getLightningIdForPubkey(targetEvent.public_key, queryTimeout)

    # LNURL pay info, must support zaps
    lnurlPayInfo, lnurlp = lnurl.getLNURLPayInfo(lightningId)
    callback, servicePubkey = lnurl.validateLNURLPayInfo(lnurlPayInfo, lightningId, amountSats)
    bech32lnurl = lnurl.getBech32LNURL(lnurlp)

    # prepare and sign kind9734 request, send to provider for an invoice
    zapRequest = nostr.makeZapRequest(privateKey, targetEvent.id, servicePubkey, relayUrls, zapMessage)
    logger.debug(f"Signed zap request {zapRequest.id}")
    paymentRequest = lnurl.getInvoiceFromZapRequest(callback, amountSats, zapRequest, bech32lnurl)

    # pay it, no way back after this
    session = lnd.connectToNode()
    try:
        decodedInvoice = lnd.decodeInvoice(session, paymentRequest)
        if not lnd.isValidInvoiceAmount(decodedInvoice, amountSats):
            raise PaymentError(f"Invoice from {lightningId} does not match {amountSats} sats, not paid")
        paymentHash, feeMSat = lnd.payInvoice(session, paymentRequest)
    finally:
        session.close()
    logger.info(f"Paid {amountSats} sats to {lightningId}, routing fee {feeMSat} msat")

    receipts, warning = verifyZapReceipt(targetEvent.id, servicePubkey, zapRequest)
    return {
        "event_id": targetEvent.id,
        "lightning_id": lightningId,
        "amount_sat": amountSats,
        "payment_request": paymentRequest,
        "payment_hash": paymentHash,
        "fee_msat": feeMSat,
        "zap_request_id": zapRequest.id,
        "receipts": receipts,
        "verified": warning is None,
        "warning": warning,
    }
