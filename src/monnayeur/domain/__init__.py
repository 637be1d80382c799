"""
Domain layer for Monnayeur.
"""
