"""
RSA key-pair helpers for token signing.

``generate_rsa_key_pair`` builds an in-memory PEM pair; ``write_key_pair``
persists one for local development.  Run as a script to create
``keys/dev.private.pem`` and ``keys/dev.public.pem``, then point
``JWT_PRIVATE_KEY_PATH`` and ``JWT_PUBLIC_KEY_PATH`` at them::

    python -m taskquest.keys --directory keys
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

logger = logging.getLogger(__name__)

PRIVATE_KEY_FILENAME = "dev.private.pem"
PUBLIC_KEY_FILENAME = "dev.public.pem"


def generate_rsa_key_pair(key_size: int = 2048) -> tuple[str, str]:
    """Return a fresh ``(private_pem, public_pem)`` pair as strings."""
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=key_size)
    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("utf-8")
    public_pem = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode("utf-8")
    return private_pem, public_pem


def write_key_pair(directory: Path) -> tuple[Path, Path] | None:
    """
    Write a key pair into *directory* unless both files already exist.

    Returns:
        The ``(private_path, public_path)`` written, or ``None`` when an
        existing pair was kept.

    Raises:
        RuntimeError: If exactly one of the two files exists.
    """
    private_path = directory / PRIVATE_KEY_FILENAME
    public_path = directory / PUBLIC_KEY_FILENAME

    private_exists = private_path.exists()
    public_exists = public_path.exists()
    if private_exists and public_exists:
        logger.info("Keys already exist, skipping: %s / %s", private_path, public_path)
        return None
    if private_exists != public_exists:
        raise RuntimeError(
            "Only one key file exists. Remove both key files and run this script again."
        )

    directory.mkdir(parents=True, exist_ok=True)
    private_pem, public_pem = generate_rsa_key_pair()
    private_path.write_text(private_pem, encoding="utf-8")
    public_path.write_text(public_pem, encoding="utf-8")
    logger.info("Generated %s and %s", private_path, public_path)
    return private_path, public_path


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument("--directory", type=Path, default=Path("keys"))
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(levelname)s - %(message)s")
    try:
        write_key_pair(args.directory)
    except RuntimeError as exc:
        logger.error("%s", exc)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
