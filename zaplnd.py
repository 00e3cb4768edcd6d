#!/usr/bin/env python3
import json
import logging
import os
import requests
import socket
import zapconfig
from zaperrors import NodeConnectionError, PaymentError, ResolutionError

logger = logging.getLogger(__name__)
config = None

def getLNDUrl(suffix):
    serverAddress = config["address"]
    serverPort = config["port"]
    url = f"https://{serverAddress}:{serverPort}{suffix}"
    return url

def getLNDTimeouts():
    return zapconfig.getTimeouts(config)

def resolveNodeAddress(host, port):
    try:
        addresses = socket.getaddrinfo(host, port, type=socket.SOCK_STREAM)
    except (socket.gaierror, UnicodeError) as err:
        raise ResolutionError(f"Unable to resolve lightning node host {host}: {err}") from err
    if len(addresses) == 0:
        raise ResolutionError(f"Unable to resolve lightning node host {host}")
    # sockaddr is (address, port) for ipv4 and (address, port, flow, scope) for ipv6
    return addresses[0][4][0], addresses[0][4][1]

def readMacaroon(macaroonPath):
    try:
        with open(os.path.expanduser(macaroonPath), "rb") as f:
            return f.read().hex()
    except OSError as err:
        raise NodeConnectionError(f"Unable to read macaroon at {macaroonPath}: {err}") from err

def getLNDHeaders(macaroonHex):
    headers = {
        "Grpc-Metadata-macaroon": macaroonHex,
        "Connection": "close"
        }
    return headers

def connectToNode():
    serverAddress = config["address"]
    serverPort = config["port"]
    ip, port = resolveNodeAddress(serverAddress, serverPort)
    logger.debug(f"Lightning node {serverAddress} resolved to {ip}:{port}")
    tlsCertPath = os.path.expanduser(config["tlsCertPath"])
    if not os.path.exists(tlsCertPath):
        raise NodeConnectionError(f"TLS certificate does not exist at {tlsCertPath}")
    macaroonHex = readMacaroon(config["macaroonPath"])
    session = requests.Session()
    session.verify = tlsCertPath
    session.headers.update(getLNDHeaders(macaroonHex))
    try:
        response = session.get(getLNDUrl("/v1/getinfo"), timeout=getLNDTimeouts())
    except requests.RequestException as err:
        session.close()
        raise NodeConnectionError(f"Could not connect to lightning node at {serverAddress}:{serverPort}: {err}") from err
    if response.status_code != 200:
        session.close()
        raise NodeConnectionError(f"Lightning node refused connection with status {response.status_code}: {response.text}")
    try:
        info = response.json()
    except ValueError as err:
        session.close()
        raise NodeConnectionError(f"Lightning node returned an unreadable getinfo response: {err}") from err
    alias = info.get("alias", "unknown alias") if type(info) is dict else "unknown alias"
    logger.info(f"Connected to lightning node {alias}")
    return session

def decodeInvoice(session, paymentRequest):
    logger.debug(f"Decoding invoice")
    try:
        response = session.get(getLNDUrl(f"/v1/payreq/{paymentRequest}"), timeout=getLNDTimeouts())
        decodedInvoice = response.json()
    except (requests.RequestException, ValueError) as err:
        raise PaymentError(f"Lightning node could not decode invoice: {err}") from err
    if response.status_code != 200 or type(decodedInvoice) is not dict:
        message = decodedInvoice.get("message", response.text) if type(decodedInvoice) is dict else response.text
        raise PaymentError(f"Lightning node rejected invoice: {message}")
    return decodedInvoice

def isValidInvoiceAmount(decodedInvoice, amountToZap):
    logger.debug(f"Checking if invoice is valid")
    amountMillisatoshi = amountToZap*1000
    if not all(k in decodedInvoice for k in ("num_satoshis","num_msat")):
        logger.warning(f"Invoice did not set amount")
        return False
    num_satoshis = int(decodedInvoice["num_satoshis"])
    if num_satoshis != amountToZap:
        logger.warning(f"Invoice amount ({num_satoshis}) does not match requested amount ({amountToZap}) to zap")
        return False
    num_msat = int(decodedInvoice["num_msat"])
    if num_msat != amountMillisatoshi:
        logger.warning(f"Invoice amount of msats ({num_msat}) does not match requested amount ({amountMillisatoshi}) to zap")
        return False
    return True

def payInvoice(session, paymentRequest):
    """Send the payment once and follow its status until it settles or fails.

    Returns (payment_hash, fee_msat) on SUCCEEDED. Any other outcome raises
    PaymentError; the payment may still be in flight in that case, so it must
    not be retried without an operator checking the node first.
    """
    logger.debug(f"Paying invoice")
    feeLimit = config.get("feeLimit", 10)
    paymentTimeout = config.get("paymentTimeout", 30)
    lndPostData = {
        "payment_request": paymentRequest,
        "fee_limit_sat": feeLimit,
        "timeout_seconds": paymentTimeout
    }
    resultStatus = "UNKNOWNPAYING"
    resultFeeMSat = 0
    failureReason = None
    json_response = None
    payment_hash = None
    try:
        r = session.post(url=getLNDUrl("/v2/router/send"),stream=True,data=json.dumps(lndPostData),timeout=getLNDTimeouts())
    except requests.RequestException as err:
        raise PaymentError(f"Payment request to lightning node failed: {err}") from err
    if r.status_code != 200:
        r.close()
        raise PaymentError(f"Lightning node refused payment with status {r.status_code}: {r.text}")
    try:
        for raw_response in r.iter_lines():
            if not raw_response: continue
            json_response = json.loads(raw_response)
            if "error" in json_response:
                error = json_response["error"]
                failureReason = error.get("message", str(error)) if type(error) is dict else str(error)
                resultStatus = "FAILED"
                break
            if "result" in json_response: json_response = json_response["result"]
            if "fee_msat" in json_response:
                resultFeeMSat = int(json_response["fee_msat"])
            if "payment_hash" in json_response:
                payment_hash = json_response["payment_hash"]
            newStatus = json_response.get("status", resultStatus)
            if newStatus == resultStatus: continue
            resultStatus = newStatus
            if resultStatus == "SUCCEEDED":
                logger.debug(f" - {resultStatus}, routing fee paid: {resultFeeMSat} msat")
                break
            elif resultStatus == "FAILED":
                failureReason = json_response.get("failure_reason", "unknown failure reason")
                logger.warning(f" - {resultStatus} : {failureReason}")
                break
            elif resultStatus == "IN_FLIGHT":
                logger.debug(f" - {resultStatus}")
            else:
                logger.info(f" - {resultStatus}")
                logger.info(json_response)
    except (requests.RequestException, ValueError) as rte:
        if json_response is not None: logger.debug(json_response)
        raise PaymentError(f"Lost track of payment {payment_hash} with status {resultStatus}: {rte}") from rte
    finally:
        r.close()
    if resultStatus != "SUCCEEDED":
        if failureReason is None: failureReason = f"payment ended with status {resultStatus}"
        raise PaymentError(f"Payment failed: {failureReason}")
    return payment_hash, resultFeeMSat
