"""
Reward tiers, assigned by rank percentile.
"""

DIAMOND = 'DIAMOND'
PLATINUM = 'PLATINUM'
GOLD = 'GOLD'
SILVER = 'SILVER'
BRONZE = 'BRONZE'

# Best first; the index is the tier id the contract emits in NFTMinted
TIERS = [DIAMOND, PLATINUM, GOLD, SILVER, BRONZE]

# (upper percentile bound, tier)
TIER_THRESHOLDS = [
    (1, DIAMOND),
    (5, PLATINUM),
    (10, GOLD),
    (20, SILVER),
]


def determine_tier(rank, total_participants):
    """
    Tier for a 1-based rank among `total_participants`.

    percentile = rank / total * 100; <=1 DIAMOND, <=5 PLATINUM, <=10 GOLD,
    <=20 SILVER, otherwise BRONZE.
    """
    if total_participants < 1:
        raise ValueError("total_participants must be at least 1")
    if rank < 1 or rank > total_participants:
        raise ValueError(f"rank {rank} is outside 1..{total_participants}")

    percentile = rank / total_participants * 100
    for bound, tier in TIER_THRESHOLDS:
        if percentile <= bound:
            return tier
    return BRONZE

