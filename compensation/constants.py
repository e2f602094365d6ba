"""
Default constants for the weekly compensation engine.

Rates are fractions (0.10 = 10%). Tier and level tables are keyed by hop
count starting at 1.
"""

from decimal import Decimal


# Sponsor chain / binary downline depth bound
MAX_DEPTH = 3

# Direct referral commission, paid up the sponsor chain
DIRECT_RATES: dict[int, Decimal] = {
    1: Decimal("0.10"),  # 10% to the direct sponsor
    2: Decimal("0.05"),  # 5% to the sponsor's sponsor
    3: Decimal("0.03"),  # 3% to the third hop
}

# Binary matching commission on the weak leg
BINARY_RATE = Decimal("0.10")

# Leadership override on downline binary earnings
OVERRIDE_RATES: dict[int, Decimal] = {
    1: Decimal("0.05"),
    2: Decimal("0.03"),
    3: Decimal("0.02"),
}

# Pool budgets as a share of period sales volume
POOL_RATE_DIRECT = Decimal("0.20")
POOL_RATE_BINARY = Decimal("0.17")
POOL_RATE_OVERRIDE = Decimal("0.03")

# Aggregate payout ceiling as a share of period sales volume
GLOBAL_PAYOUT_RATIO = Decimal("0.40")

# Absolute per-user per-period backstop cap (USD)
HARD_CAP_USD = Decimal("40000")

# Ghost volume lifetime and carry-forward aging horizon
GHOST_VOLUME_TTL_DAYS = 10
VOLUME_FLUSH_DAYS = 180

# Payout token (USDT) smallest-unit decimals used in Merkle leaves
PAYOUT_TOKEN_DECIMALS = 6

# Stored money precision, matches DECIMAL(18, 8)
MONEY_QUANTUM = Decimal("0.00000001")

# Length of a settlement period
PERIOD_DAYS = 7
