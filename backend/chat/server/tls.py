"""TLS context construction for the chat listener."""

from __future__ import annotations

import ssl
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING

import structlog
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.serialization import pkcs12

if TYPE_CHECKING:
    from chat.server.settings import ChatServerSettings

logger = structlog.get_logger()


class TLSConfigError(Exception):
    """The server cannot present a certificate; it must not start."""


def build_server_ssl_context(settings: ChatServerSettings) -> ssl.SSLContext:
    """Build a server context: TLS 1.2 floor, no client certificates.

    PEM certfile/keyfile take precedence over the PKCS#12 keystore.
    """
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
    context.minimum_version = ssl.TLSVersion.TLSv1_2
    context.verify_mode = ssl.CERT_NONE

    if settings.certfile is not None and settings.keyfile is not None:
        try:
            context.load_cert_chain(settings.certfile, settings.keyfile, password=settings.ssl_keypassword)
        except (OSError, ssl.SSLError) as e:
            raise TLSConfigError(f"cannot load certificate chain: {e}") from e
        logger.info("tls certificate loaded", certfile=settings.certfile)
        return context

    if not settings.ssl_keypassword:
        raise TLSConfigError("ssl.keypassword is not configured; refusing to start without TLS")

    load_pkcs12_into(context, Path(settings.keystore_path), settings.ssl_keypassword)
    logger.info("tls keystore loaded", keystore=settings.keystore_path)
    return context


def load_pkcs12_into(context: ssl.SSLContext, keystore: Path, password: str) -> None:
    """Load the key and certificate chain of a PKCS#12 keystore into context.

    ssl only reads PEM from disk, so the chain is staged in a private
    temporary file with the key re-encrypted under the same password.
    """
    if not keystore.is_file():
        raise TLSConfigError(f"keystore not found: {keystore.resolve()}")

    secret = password.encode("utf-8")
    try:
        key, cert, extra_certs = pkcs12.load_key_and_certificates(keystore.read_bytes(), secret)
    except ValueError as e:
        raise TLSConfigError(f"cannot open keystore {keystore}: {e}") from e
    if key is None or cert is None:
        raise TLSConfigError(f"keystore {keystore} has no private key and certificate")

    pem = key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.BestAvailableEncryption(secret),
    )
    pem += cert.public_bytes(serialization.Encoding.PEM)
    for extra in extra_certs or ():
        pem += extra.public_bytes(serialization.Encoding.PEM)

    with tempfile.TemporaryDirectory(prefix="chat-tls-") as tmp:
        chain_path = Path(tmp) / "chain.pem"
        chain_path.touch(mode=0o600)
        chain_path.write_bytes(pem)
        try:
            context.load_cert_chain(chain_path, password=secret)
        except ssl.SSLError as e:
            raise TLSConfigError(f"cannot use keystore {keystore}: {e}") from e
