from __future__ import annotations


def american_odds_to_decimal_profit(american_odds: int) -> float:
    """Profit per unit staked, unrounded. +150 -> 1.5, -110 -> 0.90909..."""
    if american_odds == 0:
        raise ValueError("American odds cannot be 0")
    if -100 < american_odds < 100:
        raise ValueError(f"American odds must be <= -100 or >= 100, got {american_odds}")
    if american_odds > 0:
        return american_odds / 100
    return 100 / abs(american_odds)


def straight_payout(stake: float, american_odds: int) -> float:
    """Stake returned plus profit, rounded to cents. 100 @ +150 -> 250.0"""
    if stake < 0:
        raise ValueError("Stake must be non-negative")
    return round(stake + stake * american_odds_to_decimal_profit(american_odds), 2)
