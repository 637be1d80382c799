"""
Infrastructure layer for Monnayeur.
"""
