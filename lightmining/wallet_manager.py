"""Wallet list loading and local message signing.

Wallets are read once at startup from a JSON array::

    [
        {"address": "0x...", "privateKey": "0x..."},
        ...
    ]

Signing uses ``eth_account`` (EIP-191 ``personal_sign``), producing the
same 0x-prefixed signature the mining API expects for its login nonce.
"""

import json
import logging
import os
from typing import Any, List

from eth_account import Account
from eth_account.messages import encode_defunct
from pydantic import BaseModel, ConfigDict, Field, SecretStr, ValidationError
from web3 import Web3

from lightmining.errors import ConfigurationError, SigningError

logger = logging.getLogger(__name__)


class Wallet(BaseModel):
    """A wallet the bot mines for.

    Attributes:
        address: Public wallet address used to log in.
        private_key: Signing key; kept as ``SecretStr`` so it never ends up
            in a log line or ``repr``.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    address: str
    private_key: SecretStr = Field(alias="privateKey")

    def secret(self) -> str:
        return self.private_key.get_secret_value()


def parse_wallets(data: Any) -> List[Wallet]:
    """Build wallets from decoded JSON, skipping invalid records."""
    if not isinstance(data, list):
        raise ConfigurationError("Wallet file must contain a JSON array")

    wallets: List[Wallet] = []
    for index, entry in enumerate(data):
        try:
            wallets.append(Wallet.model_validate(entry))
        except ValidationError as exc:
            logger.warning(
                "[WALLET] Skipping invalid wallet entry #%d: %s",
                index, exc.errors()[0].get("msg", exc),
            )
    return wallets


def load_wallets(file_path: str) -> List[Wallet]:
    """Load the wallet list.

    Raises:
        ConfigurationError: The file is missing, not valid JSON, or holds
            no usable wallet.
    """
    if not os.path.exists(file_path):
        raise ConfigurationError(f"Wallet file not found: {file_path}")

    try:
        with open(file_path, "r", encoding="utf-8") as fh:
            data = json.load(fh)
    except json.JSONDecodeError as exc:
        raise ConfigurationError(
            f"Wallet file {file_path} is not valid JSON: {exc}"
        ) from exc

    wallets = parse_wallets(data)
    if not wallets:
        raise ConfigurationError(f"No wallets found in {file_path}")

    logger.info("[WALLET] Loaded %d wallets from %s", len(wallets), file_path)
    return wallets


def sign_message(message: str, private_key: str) -> str:
    """Sign *message* with *private_key* (EIP-191).

    Returns:
        0x-prefixed hex signature.

    Raises:
        SigningError: The key is malformed or signing failed.
    """
    try:
        signed = Account.sign_message(
            encode_defunct(text=message), private_key=private_key,
        )
    except Exception as exc:
        raise SigningError(f"Failed to sign message: {exc}") from exc
    return Web3.to_hex(signed.signature)
