"""
web3.py client for the CTNFT reward contract.

All transactions are signed locally with the platform key (PRIVATE_KEY),
use the signer's pending nonce and the configured chain id, and are awaited
until mined. Connection problems surface as TransientChainError, reverts
and malformed responses as ContractCallError.
"""
import logging
from dataclasses import dataclass, field

from django.conf import settings
from web3 import Web3
from web3.exceptions import (
    ContractLogicError,
    TimeExhausted,
    Web3Exception,
)
from web3.logs import DISCARD

from accounts.utils import format_address
from .exceptions import ContractCallError, TransientChainError

logger = logging.getLogger(__name__)

__all__ = [
    'CTNFT_ABI', 'ChainTransaction', 'MintReceipt', 'CTNFTContract',
    'get_contract', 'is_valid_address', 'format_address', 'explorer_tx_url',
]


def _fn(name, inputs, outputs=(), mutability='nonpayable'):
    return {
        'type': 'function',
        'name': name,
        'inputs': [{'name': n, 'type': t} for n, t in inputs],
        'outputs': [{'name': n, 'type': t} for n, t in outputs],
        'stateMutability': mutability,
    }


def _event(name, inputs):
    return {
        'type': 'event',
        'name': name,
        'anonymous': False,
        'inputs': [{'name': n, 'type': t, 'indexed': indexed} for n, t, indexed in inputs],
    }


CTNFT_ABI = [
    _fn('createEvent', [('name', 'string'), ('startTime', 'uint256'), ('endTime', 'uint256')],
        [('', 'uint256')]),
    _fn('mintReward', [('recipient', 'address'), ('eventId', 'uint256'), ('rank', 'uint256'),
                       ('score', 'uint256'), ('totalParticipants', 'uint256')]),
    _fn('batchMintRewards', [('recipients', 'address[]'), ('eventId', 'uint256'),
                             ('ranks', 'uint256[]'), ('scores', 'uint256[]'),
                             ('totalParticipants', 'uint256')]),
    _fn('endEvent', [('eventId', 'uint256')]),
    _fn('hasReceivedNFT', [('eventId', 'uint256'), ('user', 'address')], [('', 'bool')], 'view'),
    _fn('tokenURI', [('tokenId', 'uint256')], [('', 'string')], 'view'),
    _fn('ownerOf', [('tokenId', 'uint256')], [('', 'address')], 'view'),
    _fn('balanceOf', [('owner', 'address')], [('', 'uint256')], 'view'),
    _event('EventCreated', [('eventId', 'uint256', True), ('name', 'string', False),
                            ('startTime', 'uint256', False), ('endTime', 'uint256', False)]),
    _event('NFTMinted', [('recipient', 'address', True), ('tokenId', 'uint256', True),
                         ('eventId', 'uint256', True), ('tier', 'uint8', False),
                         ('rank', 'uint256', False), ('score', 'uint256', False)]),
]


@dataclass
class ChainTransaction:
    """Result of createEvent"""
    event_id: int
    tx_hash: str


@dataclass
class MintReceipt:
    """Result of a mint; token_ids maps checksummed recipient -> token id"""
    tx_hash: str
    token_ids: dict = field(default_factory=dict)


def is_valid_address(address):
    return bool(address) and Web3.is_address(address)


def explorer_tx_url(tx_hash):
    if not tx_hash:
        return None
    return f"{settings.BLOCK_EXPLORER_URL.rstrip('/')}/tx/{tx_hash}"


class CTNFTContract:
    """Signed access to the CTNFT contract"""

    def __init__(self, provider_url, contract_address, private_key, chain_id,
                 request_timeout=30, receipt_timeout=180):
        self.w3 = Web3(Web3.HTTPProvider(provider_url, request_kwargs={'timeout': request_timeout}))
        self.chain_id = chain_id
        self.receipt_timeout = receipt_timeout
        self._private_key = private_key
        self.account = self.w3.eth.account.from_key(private_key)
        self.address = Web3.to_checksum_address(contract_address)
        self.contract = self.w3.eth.contract(address=self.address, abi=CTNFT_ABI)

    def __repr__(self):
        return f"<CTNFTContract {self.address} chain={self.chain_id} signer={format_address(self.account.address)}>"

    def is_connected(self):
        try:
            return self.w3.is_connected()
        except (OSError, Web3Exception):
            return False

    # Transactions

    def _transact(self, function, description):
        """Build, sign, send and await a contract transaction. Returns (tx_hash, receipt)."""
        tx_hash = None
        try:
            nonce = self.w3.eth.get_transaction_count(self.account.address, 'pending')
            tx = function.build_transaction({
                'from': self.account.address,
                'nonce': nonce,
                'chainId': self.chain_id,
            })
            signed = self.w3.eth.account.sign_transaction(tx, private_key=self._private_key)
            tx_hash = Web3.to_hex(self.w3.eth.send_raw_transaction(signed.raw_transaction))
            receipt = self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=self.receipt_timeout)
        except ContractLogicError as e:
            raise ContractCallError(f"{description} reverted: {e}") from e
        except (OSError, TimeExhausted) as e:
            raise TransientChainError(f"{description} failed: {e}", tx_hash=tx_hash) from e
        except (Web3Exception, ValueError) as e:
            raise ContractCallError(f"{description} failed: {e}") from e

        if receipt['status'] != 1:
            raise ContractCallError(f"{description} reverted in transaction {tx_hash}")

        logger.info(f"{description} mined in {tx_hash} (block {receipt['blockNumber']})")
        return tx_hash, receipt

    def _call(self, function, description):
        try:
            return function.call()
        except ContractLogicError as e:
            raise ContractCallError(f"{description} reverted: {e}") from e
        except OSError as e:
            raise TransientChainError(f"{description} failed: {e}") from e
        except (Web3Exception, ValueError) as e:
            raise ContractCallError(f"{description} failed: {e}") from e

    def create_event(self, name, start_time, end_time):
        """
        Register an event on-chain. `start_time` / `end_time` are unix seconds.
        The id is read from the EventCreated log; a receipt without one raises.
        """
        tx_hash, receipt = self._transact(
            self.contract.functions.createEvent(name, int(start_time), int(end_time)),
            'createEvent',
        )
        logs = self.contract.events.EventCreated().process_receipt(receipt, errors=DISCARD)
        if not logs:
            raise ContractCallError(f"createEvent transaction {tx_hash} emitted no EventCreated log")
        return ChainTransaction(event_id=int(logs[0]['args']['eventId']), tx_hash=tx_hash)

    def _minted_token_ids(self, receipt):
        token_ids = {}
        for log in self.contract.events.NFTMinted().process_receipt(receipt, errors=DISCARD):
            recipient = Web3.to_checksum_address(log['args']['recipient'])
            token_ids[recipient] = str(log['args']['tokenId'])
        return token_ids

    def batch_mint_rewards(self, recipients, event_id, ranks, scores, total_participants):
        if not (len(recipients) == len(ranks) == len(scores)):
            raise ValueError("recipients, ranks and scores must have the same length")
        tx_hash, receipt = self._transact(
            self.contract.functions.batchMintRewards(
                [Web3.to_checksum_address(r) for r in recipients],
                int(event_id),
                [int(r) for r in ranks],
                [int(s) for s in scores],
                int(total_participants),
            ),
            f'batchMintRewards({len(recipients)} recipients)',
        )
        return MintReceipt(tx_hash=tx_hash, token_ids=self._minted_token_ids(receipt))

    def mint_reward(self, recipient, event_id, rank, score, total_participants):
        tx_hash, receipt = self._transact(
            self.contract.functions.mintReward(
                Web3.to_checksum_address(recipient), int(event_id), int(rank),
                int(score), int(total_participants),
            ),
            'mintReward',
        )
        return MintReceipt(tx_hash=tx_hash, token_ids=self._minted_token_ids(receipt))

    def end_event(self, event_id):
        tx_hash, _ = self._transact(self.contract.functions.endEvent(int(event_id)), 'endEvent')
        return tx_hash

    # Views

    def has_received_nft(self, event_id, address):
        return bool(self._call(
            self.contract.functions.hasReceivedNFT(int(event_id), Web3.to_checksum_address(address)),
            'hasReceivedNFT',
        ))

    def token_uri(self, token_id):
        return self._call(self.contract.functions.tokenURI(int(token_id)), 'tokenURI')

    def owner_of(self, token_id):
        return self._call(self.contract.functions.ownerOf(int(token_id)), 'ownerOf')

    def balance_of(self, address):
        return int(self._call(
            self.contract.functions.balanceOf(Web3.to_checksum_address(address)),
            'balanceOf',
        ))


def get_contract():
    """
    Build the contract client from settings.
    Returns None when the provider, contract address or signing key is not configured.
    """
    provider_url = settings.WEB3_PROVIDER_URL
    contract_address = settings.CTNFT_CONTRACT_ADDRESS
    private_key = settings.PRIVATE_KEY

    if not (provider_url and contract_address and private_key):
        logger.warning("CTNFT contract is not configured (provider, address or private key missing)")
        return None
    if not is_valid_address(contract_address):
        logger.error(f"CTNFT_CONTRACT_ADDRESS is not a valid address: {contract_address}")
        return None

    return CTNFTContract(
        provider_url=provider_url,
        contract_address=contract_address,
        private_key=private_key,
        chain_id=settings.CHAIN_ID,
        request_timeout=settings.WEB3_REQUEST_TIMEOUT,
        receipt_timeout=settings.WEB3_RECEIPT_TIMEOUT,
    )
