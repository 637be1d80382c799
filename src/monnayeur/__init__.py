"""
Monnayeur - claim-and-mint pipeline for ERC-20 token airdrops.
"""

__version__ = "0.1.0"
