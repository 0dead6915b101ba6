"""
Liquidity pool and order book reconstruction for Cardano DEX protocols.
"""
