"""
Utility functions for accounts app.
"""
from web3 import Web3


def normalize_wallet_address(address):
    """
    Validate an EVM wallet address and return it checksummed.
    Returns None for empty input; raises ValueError for malformed addresses.
    """
    if address is None:
        return None
    address = str(address).strip()
    if not address:
        return None
    if not Web3.is_address(address):
        raise ValueError("Invalid wallet address format")
    return Web3.to_checksum_address(address)


def format_address(address):
    """Shorten an address for display (first 6 and last 4 characters)"""
    if not address or len(address) < 10:
        return address
    return f"{address[:6]}...{address[-4:]}"


def get_user_permissions(user):
    """
    Get user permissions as a dictionary.
    """
    if not user.is_authenticated:
        return {
            'is_authenticated': False,
            'is_admin': False,
            'can_organize': False,
            'is_banned': False,
        }

    return {
        'is_authenticated': True,
        'is_admin': user.is_admin_role(),
        'can_organize': user.can_organize(),
        'is_banned': user.is_banned,
        'username': user.username,
        'user_id': user.id,
        'role': user.role,
    }
