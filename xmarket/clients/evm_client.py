"""
EVM client for USDC reads and signed transactions across chains.
Handles balance queries, allowances, transfers and raw transaction submission.
"""

import asyncio
from dataclasses import dataclass
from typing import Optional

from eth_account import Account
from web3 import Web3
from web3.middleware import ExtraDataToPOAMiddleware

from ..chains import ChainConfig, find_chain
from ..utils.logger import get_logger

logger = get_logger("evm")

# Chains whose block headers carry PoA extra data
POA_CHAIN_IDS = {137, 80002}

ERC20_ABI = [
    {
        "inputs": [{"name": "account", "type": "address"}],
        "name": "balanceOf",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function"
    },
    {
        "inputs": [
            {"name": "owner", "type": "address"},
            {"name": "spender", "type": "address"}
        ],
        "name": "allowance",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function"
    },
    {
        "inputs": [
            {"name": "spender", "type": "address"},
            {"name": "amount", "type": "uint256"}
        ],
        "name": "approve",
        "outputs": [{"name": "", "type": "bool"}],
        "stateMutability": "nonpayable",
        "type": "function"
    },
    {
        "inputs": [
            {"name": "to", "type": "address"},
            {"name": "amount", "type": "uint256"}
        ],
        "name": "transfer",
        "outputs": [{"name": "", "type": "bool"}],
        "stateMutability": "nonpayable",
        "type": "function"
    }
]

TRANSFER_TOPIC = Web3.keccak(text="Transfer(address,address,uint256)")


@dataclass
class TransactionResult:
    """Result of a blockchain transaction."""
    success: bool
    tx_hash: str
    gas_used: int
    error: Optional[str] = None


@dataclass
class TransferEvent:
    """Decoded ERC-20 Transfer log."""
    from_address: str
    to_address: str
    amount_raw: int
    tx_hash: str
    block_number: int


def _to_int(value) -> int:
    """LiFi sends quantities as hex strings; web3 wants ints."""
    if value is None:
        return 0
    if isinstance(value, int):
        return value
    return int(value, 16) if str(value).startswith("0x") else int(value)


class EvmClient:
    """
    Multi-chain client built on web3.py.

    Read calls need only RPC URLs. Write calls need a private key.
    Blocking web3 calls run in the default executor.
    """

    def __init__(
        self,
        chains: list[ChainConfig],
        private_key: Optional[str] = None,
        receipt_timeout_seconds: int = 180
    ):
        """
        Initialize EVM client.

        Args:
            chains: Chains this client may talk to
            private_key: Signing key for write calls
            receipt_timeout_seconds: How long to wait for a receipt
        """
        self.chains = chains
        self.receipt_timeout_seconds = receipt_timeout_seconds
        self._account = Account.from_key(private_key) if private_key else None
        self._web3: dict[int, Web3] = {}

    @property
    def address(self) -> Optional[str]:
        """Signing address, if a key is configured."""
        return self._account.address if self._account else None

    def _get_web3(self, chain_id: int) -> Web3:
        """Get or create the Web3 instance for a chain."""
        if chain_id not in self._web3:
            chain = find_chain(self.chains, chain_id)
            web3 = Web3(Web3.HTTPProvider(chain.rpc_url, request_kwargs={"timeout": 10}))
            if chain_id in POA_CHAIN_IDS:
                web3.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)
            self._web3[chain_id] = web3
        return self._web3[chain_id]

    def _usdc(self, chain: ChainConfig):
        web3 = self._get_web3(chain.chain_id)
        return web3.eth.contract(
            address=Web3.to_checksum_address(chain.usdc_address),
            abi=ERC20_ABI
        )

    async def _run(self, fn):
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(None, fn)

    async def get_usdc_balance(self, chain: ChainConfig, address: str) -> int:
        """Raw USDC balance of address on chain."""
        contract = self._usdc(chain)
        owner = Web3.to_checksum_address(address)
        return await self._run(lambda: contract.functions.balanceOf(owner).call())

    async def get_allowance(self, chain_id: int, token: str, owner: str, spender: str) -> int:
        """ERC-20 allowance granted by owner to spender."""
        web3 = self._get_web3(chain_id)
        contract = web3.eth.contract(address=Web3.to_checksum_address(token), abi=ERC20_ABI)
        return await self._run(
            lambda: contract.functions.allowance(
                Web3.to_checksum_address(owner),
                Web3.to_checksum_address(spender)
            ).call()
        )

    async def approve(self, chain_id: int, token: str, spender: str, amount_raw: int) -> TransactionResult:
        """Approve spender for amount_raw of token."""
        web3 = self._get_web3(chain_id)
        contract = web3.eth.contract(address=Web3.to_checksum_address(token), abi=ERC20_ABI)
        call = contract.functions.approve(Web3.to_checksum_address(spender), amount_raw)
        return await self._send_contract_call(chain_id, call)

    async def transfer_usdc(self, chain: ChainConfig, to: str, amount_raw: int) -> TransactionResult:
        """Send USDC from the signing wallet."""
        call = self._usdc(chain).functions.transfer(Web3.to_checksum_address(to), amount_raw)
        return await self._send_contract_call(chain.chain_id, call)

    async def _send_contract_call(self, chain_id: int, call) -> TransactionResult:
        self._require_account()
        tx = await self._run(lambda: call.build_transaction({
            "from": self._account.address,
            "chainId": chain_id
        }))
        return await self.send_transaction(chain_id, tx)

    async def send_transaction(self, chain_id: int, tx_request: dict) -> TransactionResult:
        """
        Sign, send and wait for a transaction.

        Args:
            chain_id: Chain to submit on
            tx_request: Fields as returned by web3 or a router
                (to, data, value, gas/gasLimit, gasPrice)

        Returns:
            TransactionResult; reverted transactions come back with success=False
        """
        self._require_account()
        web3 = self._get_web3(chain_id)
        sender = self._account.address

        tx = {
            "to": Web3.to_checksum_address(tx_request["to"]),
            "data": tx_request.get("data", "0x"),
            "value": _to_int(tx_request.get("value")),
            "chainId": chain_id,
            "from": sender,
        }
        tx["nonce"] = await self._run(lambda: web3.eth.get_transaction_count(sender))

        gas_price = tx_request.get("gasPrice")
        tx["gasPrice"] = _to_int(gas_price) if gas_price else await self._run(lambda: web3.eth.gas_price)

        gas = tx_request.get("gas") or tx_request.get("gasLimit")
        if gas:
            tx["gas"] = _to_int(gas)
        else:
            estimate = await self._run(lambda: web3.eth.estimate_gas(tx))
            # 20% headroom on the estimate
            tx["gas"] = int(estimate * 1.2)

        signed = self._account.sign_transaction(tx)
        tx_hash = await self._run(lambda: web3.eth.send_raw_transaction(signed.raw_transaction))
        tx_hash_hex = Web3.to_hex(tx_hash)
        logger.info(f"Transaction sent on chain {chain_id}: {tx_hash_hex}")

        receipt = await self._run(
            lambda: web3.eth.wait_for_transaction_receipt(tx_hash, timeout=self.receipt_timeout_seconds)
        )

        if receipt["status"] == 1:
            return TransactionResult(success=True, tx_hash=tx_hash_hex, gas_used=receipt["gasUsed"])
        return TransactionResult(
            success=False,
            tx_hash=tx_hash_hex,
            gas_used=receipt["gasUsed"],
            error="Transaction reverted"
        )

    async def get_block_number(self, chain_id: int) -> int:
        web3 = self._get_web3(chain_id)
        return await self._run(lambda: web3.eth.block_number)

    async def get_usdc_transfers_to(
        self,
        chain: ChainConfig,
        to_address: str,
        from_block: int,
        to_block: int
    ) -> list[TransferEvent]:
        """Fetch USDC Transfer logs whose recipient is to_address."""
        web3 = self._get_web3(chain.chain_id)
        padded_to = "0x" + Web3.to_checksum_address(to_address)[2:].lower().rjust(64, "0")

        logs = await self._run(lambda: web3.eth.get_logs({
            "fromBlock": from_block,
            "toBlock": to_block,
            "address": Web3.to_checksum_address(chain.usdc_address),
            "topics": [TRANSFER_TOPIC, None, padded_to]
        }))

        events = []
        for log in logs:
            topics = log["topics"]
            events.append(TransferEvent(
                from_address=Web3.to_checksum_address(bytes(topics[1])[-20:]),
                to_address=Web3.to_checksum_address(bytes(topics[2])[-20:]),
                amount_raw=int.from_bytes(bytes(log["data"]), "big"),
                tx_hash=Web3.to_hex(log["transactionHash"]),
                block_number=log["blockNumber"]
            ))
        return events

    def _require_account(self) -> None:
        if not self._account:
            raise RuntimeError("EVM client has no signing key configured")
