"""KeyStore: Load the relayer's signing key from a local credential store.

Credentials are laid out one file per account and network::

    ~/.relayer-credentials/
    └── sapphire-testnet
        └── 0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266.json

A file holds either a plain ``{"account_id": ..., "private_key": ...}``
object or an encrypted Ethereum V3 keystore. Encrypted keystores are
unlocked with the password in the ``KEYSTORE_PASSWORD`` environment
variable.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path

from eth_account import Account
from eth_account.signers.local import LocalAccount
from web3 import Web3

from .errors import CredentialError

logger = logging.getLogger(__name__)

DEFAULT_CREDENTIALS_PATH = "~/.relayer-credentials"


class FileKeyStore:
    """Credential store backed by a directory of JSON key files.

    :ivar path: Root directory of the store.
    """

    def __init__(self, path: str | os.PathLike = DEFAULT_CREDENTIALS_PATH) -> None:
        self.path = Path(path).expanduser()

    def key_path(self, network: str, account_id: str) -> Path:
        """Return the file holding the key for an account on a network."""
        return self.path / network / f"{account_id}.json"

    def load(
        self, network: str, account_id: str, password: str | None = None
    ) -> LocalAccount:
        """Load the signing account for ``account_id`` on ``network``.

        :param network: Network name (subdirectory of the store).
        :param account_id: Account identifier (file name without ``.json``).
        :param password: Keystore password. Defaults to ``KEYSTORE_PASSWORD``.
        :returns: Account able to sign transactions.
        :raises CredentialError: If the store or key file is missing or
            invalid, or the key does not belong to ``account_id``.
        """
        if not self.path.is_dir():
            raise CredentialError(f"Credential store {self.path} does not exist")

        key_file = self.key_path(network, account_id)
        try:
            with open(key_file, "r") as file:
                key_data = json.load(file)
        except FileNotFoundError:
            raise CredentialError(f"No key for {account_id} in {key_file.parent}") from None
        except (OSError, ValueError) as e:
            raise CredentialError(f"Cannot read key file {key_file}: {e}") from e

        if not isinstance(key_data, dict):
            raise CredentialError(f"Key file {key_file} is not a JSON object")

        try:
            if "crypto" in key_data or "Crypto" in key_data:
                if password is None:
                    password = os.environ.get("KEYSTORE_PASSWORD")
                if password is None:
                    raise CredentialError(
                        f"Key file {key_file} is encrypted, set KEYSTORE_PASSWORD"
                    )
                account: LocalAccount = Account.from_key(
                    Account.decrypt(key_data, password)
                )
            elif "private_key" in key_data:
                account = Account.from_key(key_data["private_key"])
            else:
                raise CredentialError(f"Key file {key_file} holds no private key")
        except (ValueError, TypeError) as e:
            raise CredentialError(f"Invalid key in {key_file}: {e}") from e

        if Web3.is_address(account_id) and account.address.lower() != account_id.lower():
            raise CredentialError(
                f"Key in {key_file} belongs to {account.address}, not {account_id}"
            )

        logger.info(f"Loaded signing key for {account.address} from {key_file}")
        return account
