"""
Application layer for Monnayeur.
"""
