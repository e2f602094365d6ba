"""
Standard type definitions for database models.

Provides consistent types for monetary and factor fields across all models.
"""

from sqlalchemy import DECIMAL

# Standard money type for amounts, volumes, commissions
# Precision: 18 digits total, 8 after decimal point
# Range: up to 9,999,999,999.99999999
MoneyType = DECIMAL(18, 8)

# Scale factor type for pool and global clamps
# Precision: 20 digits total, 18 after decimal point
# Range: 0 to 99.999999999999999999 (factors are always within (0, 1])
FactorType = DECIMAL(20, 18)

# Rate type for commission rates (0.1 = 10%)
# Precision: 10 digits total, 8 after decimal point
RateType = DECIMAL(10, 8)
