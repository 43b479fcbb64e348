"""On-chain mining activation.

After the API accepts a start-mining request, the wallet must also call
``active()`` on the mining contract.  The orchestrator only depends on the
:class:`Activator` protocol (private key in, tx hash or ``None`` out);
:class:`ContractActivator` is the web3.py implementation used in production.
"""

import logging
from typing import Any, Optional, Protocol

from eth_account import Account
from web3 import AsyncWeb3, Web3

logger = logging.getLogger(__name__)

MINING_CONTRACT_ABI = [
    {
        "inputs": [],
        "name": "active",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function",
    },
]


class Activator(Protocol):
    async def activate(self, private_key: str) -> Optional[str]:
        ...


class ContractActivator:
    """Submit ``active()`` to the mining contract and wait for the receipt.

    A reverted transaction usually means mining was already activated today
    or the wallet has no balance for gas; both are reported as ``None``.

    Args:
        rpc_url: JSON-RPC endpoint of the chain.
        contract_address: Mining contract address.
        receipt_timeout: Seconds to wait for the transaction receipt.
        web3: Pre-built ``AsyncWeb3`` instance (tests inject mocks).
    """

    def __init__(
        self,
        rpc_url: str,
        contract_address: str,
        receipt_timeout: float = 300,
        web3: Optional[Any] = None,
    ) -> None:
        self.w3 = web3 or AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(rpc_url))
        self.contract = self.w3.eth.contract(
            address=Web3.to_checksum_address(contract_address),
            abi=MINING_CONTRACT_ABI,
        )
        self.receipt_timeout = receipt_timeout

    async def activate(self, private_key: str) -> Optional[str]:
        """Call ``active()`` from the key's account.

        Returns:
            Transaction hash (0x-prefixed) once mined successfully, or
            ``None`` on any failure.
        """
        try:
            account = Account.from_key(private_key)
            nonce = await self.w3.eth.get_transaction_count(
                account.address, "pending",
            )
            tx = await self.contract.functions.active().build_transaction({
                "from": account.address,
                "nonce": nonce,
            })
            signed = account.sign_transaction(tx)
            tx_hash = await self.w3.eth.send_raw_transaction(
                signed.raw_transaction,
            )
            receipt = await self.w3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=self.receipt_timeout,
            )
        except Exception as e:
            logger.error("[CHAIN] Activate mining error: %s", e)
            return None

        tx_hex = Web3.to_hex(tx_hash)
        if receipt.get("status") != 1:
            logger.error("[CHAIN] Activate mining reverted: %s", tx_hex)
            return None

        logger.info("[CHAIN] Activate mining confirmed, hash: %s", tx_hex)
        return tx_hex
