"""
Presentation layer (HTTP API) for Monnayeur.
"""
