"""ContractUtility: Web3 initialization and contract ABI loading."""

from __future__ import annotations

import json
from pathlib import Path

from eth_account import Account
from eth_account.signers.local import LocalAccount
from web3 import Web3
from web3.middleware import SignAndSendRawMiddlewareBuilder

# Well-known RPC endpoints; any other value is treated as an RPC URL.
NETWORKS = {
    "base": "https://mainnet.base.org",
    "base-sepolia": "https://sepolia.base.org",
    "localnet": "http://localhost:8545",
}


class ContractUtility:
    """Utility for Web3 connection and contract ABI loading.

    :ivar rpc_url: RPC endpoint URL.
    :ivar w3: Configured Web3 instance.
    :ivar account: Signing account, or None for a read-only connection.
    """

    def __init__(
        self,
        rpc_url: str,
        private_key: str | None = None,
        rpc_timeout: float = 30.0,
    ) -> None:
        """Initialize the contract utility.

        :param rpc_url: Network name (see NETWORKS) or RPC URL.
        :param private_key: Hex private key of the keeper account (0x optional).
        :param rpc_timeout: HTTP timeout for each RPC request in seconds.
        """
        self.rpc_url = NETWORKS.get(rpc_url, rpc_url)
        self.w3 = Web3(
            Web3.HTTPProvider(self.rpc_url, request_kwargs={"timeout": rpc_timeout})
        )

        self.account: LocalAccount | None = None
        if private_key:
            key = private_key if private_key.startswith("0x") else f"0x{private_key}"
            self.account = Account.from_key(key)
            self.w3.middleware_onion.add(SignAndSendRawMiddlewareBuilder.build(self.account))
            self.w3.eth.default_account = self.account.address

    @staticmethod
    def get_contract(contract_name: str) -> list:
        """Fetch the ABI of a contract from the bundled contracts folder.

        :param contract_name: Name of the contract (e.g., "BloomBetting").
        :returns: Contract ABI.
        """
        output_path = (
            Path(__file__).parent.parent / "contracts" / f"{contract_name}.json"
        ).resolve()

        with open(output_path, "r") as file:
            contract_data = json.load(file)

        return contract_data["abi"]
