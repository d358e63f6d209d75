"""ContractUtility: Web3 initialization and contract ABI loading."""

import json
import logging
import os
from pathlib import Path

from sapphirepy import sapphire
from web3 import Web3

logger = logging.getLogger(__name__)

NETWORKS = {
    "sapphire": "https://sapphire.oasis.io",
    "sapphire-testnet": "https://testnet.sapphire.oasis.io",
    "sapphire-localnet": "http://localhost:8545",
}


class ContractUtility:
    """Utility for Web3 connection and contract ABI loading.

    :ivar network: Network RPC URL.
    :ivar w3: Configured Web3 instance, Sapphire-wrapped on Sapphire networks.
    """

    def __init__(
        self,
        network_name: str,
        rpc_url: str | None = None,
        request_timeout: float = 60.0,
    ) -> None:
        """Initialize the contract utility.

        :param network_name: Name of the network to connect to, or an RPC URL.
        :param rpc_url: Optional RPC URL overriding the network default.
        :param request_timeout: Timeout of each JSON-RPC request in seconds.
        """
        # RPC_URL env var overrides the default for the network
        self.network = (
            rpc_url or os.environ.get("RPC_URL") or NETWORKS.get(network_name, network_name)
        )

        self.w3 = Web3(
            Web3.HTTPProvider(self.network, request_kwargs={"timeout": request_timeout})
        )
        if network_name in NETWORKS:
            self.w3 = sapphire.wrap(self.w3)
        logger.debug(f"Connected Web3 to {self.network} ({network_name})")

    @staticmethod
    def get_abi(contract_name: str) -> list:
        """Load the ABI of a contract shipped in the ``abi`` folder.

        :param contract_name: Name of the contract (e.g., "StdReferenceBasic").
        :returns: Contract ABI.
        """
        output_path = (
            Path(__file__).parent.parent / "abi" / f"{contract_name}.json"
        ).resolve()

        with open(output_path, "r") as file:
            contract_data = json.load(file)

        return contract_data["abi"]
