"""
Errors raised by the reward pipeline.

Each carries the HTTP status the API answers with:
precondition errors are 4xx, chain/dependency errors 5xx, data-integrity
errors 500 (raised before anything is minted).
"""


class RewardError(Exception):
    status_code = 500


# Preconditions

class EventNotEnded(RewardError):
    status_code = 400


class AlreadyDistributed(RewardError):
    status_code = 409


class NoEligibleParticipants(RewardError):
    status_code = 400


class SignerBusy(RewardError):
    status_code = 409


# External dependencies

class ContractUnavailable(RewardError):
    status_code = 503


class ChainEventResolutionError(RewardError):
    status_code = 502


class ContractCallError(RewardError):
    status_code = 502


class TransientChainError(ContractCallError):
    """
    Connection problems and timeouts. `tx_hash` is set when the transaction
    was already broadcast, in which case it may still be mined.
    """
    status_code = 503

    def __init__(self, message, tx_hash=None):
        super().__init__(message)
        self.tx_hash = tx_hash


# Data integrity

class RankingIntegrityError(RewardError):
    status_code = 500
