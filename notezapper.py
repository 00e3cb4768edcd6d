#!/usr/bin/env python3
from logging.handlers import RotatingFileHandler
import logging
import sys
import time
import zapconfig
import zaplnd as lnd
import zaplnurl as lnurl
import zapnostr as nostr
import zaprelays as relays
import zapper
import zaputils as utils
from zaperrors import ZapError

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_USAGE = 2
EXIT_UNVERIFIED = 3

def setupLogging(logFile=None):
    # Logging to systemd
    logger = logging.getLogger("notezapper")
    logger.setLevel(logging.DEBUG)
    formatter = logging.Formatter(fmt="%(asctime)s %(name)s.%(levelname)s: %(message)s", datefmt="%Y.%m.%d %H:%M:%S")
    logging.Formatter.converter = time.gmtime
    if len(logger.handlers) == 0:
        stdoutLoggingHandler = logging.StreamHandler(stream=sys.stdout)
        stdoutLoggingHandler.setFormatter(formatter)
        logger.addHandler(stdoutLoggingHandler)
        if logFile is not None:
            fileLoggingHandler = RotatingFileHandler(logFile, mode='a', maxBytes=10*1024*1024,
                                         backupCount=21, encoding=None, delay=0)
            fileLoggingHandler.setFormatter(formatter)
            logger.addHandler(fileLoggingHandler)
    zapconfig.logger = logger
    lnd.logger = logger
    lnurl.logger = logger
    nostr.logger = logger
    relays.logger = logger
    zapper.logger = logger
    return logger

def logLine(logger):
    logger.info("-" * 60)

def logSummary(logger, result):
    logLine(logger)
    logger.info(f"SUMMARY")
    logLine(logger)
    logger.info(f"Event     : {utils.hexToBech32(result['event_id'], 'note')}")
    logger.info(f"Zapped    : {result['lightning_id']}")
    logger.info(f"Sats paid : {result['amount_sat']: >7}    sats")
    logger.info(f"Fees paid : {result['fee_msat']: >10} msats")
    logger.info(f"Hash      : {result['payment_hash']}")
    logger.info(f"Receipts  : {len(result['receipts'])}")

def main(argv=None):
    argv = sys.argv[1:] if argv is None else argv
    logger = setupLogging(utils.getCommandArg("logfile", argv))
    positional = utils.getPositionalArgs(argv)
    if len(positional) != 1:
        logger.error("Usage: notezapper.py <note1...|nevent1...|hex event id> [--config config.json] [--logfile file]")
        return EXIT_USAGE

    try:
        eventHex = utils.eventIdToHex(positional[0])
        configFile = utils.getCommandArg("config", argv) or "config.json"
        config = zapconfig.validateConfig(zapconfig.getConfig(configFile))
        zapconfig.getPrivateKey(config)
    except ZapError as err:
        logger.error(str(err))
        return EXIT_USAGE
    zapMessage = utils.getCommandArg("zapMessage", argv) # allow overriding config from args
    if zapMessage is not None: config["zapMessage"] = zapMessage
    zapper.config = config
    lnd.config = config["lndServer"]
    lnurl.config = config.get("lnurl")

    relays.connectToRelays(zapconfig.getNostrRelays(config))
    try:
        result = zapper.zapEvent(eventHex)
    except ZapError as err:
        logger.error(f"Zap aborted ({type(err).__name__}): {err}")
        return EXIT_FAILED
    finally:
        relays.disconnectRelays()

    logSummary(logger, result)
    if result["warning"] is not None:
        logger.warning(f"Payment was made but not confirmed ({type(result['warning']).__name__}): {result['warning']}")
        logger.warning("The payment will not be retried")
        return EXIT_UNVERIFIED
    return EXIT_OK

if __name__ == '__main__':
    sys.exit(main())
