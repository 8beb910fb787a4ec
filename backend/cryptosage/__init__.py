"""
CryptoSage market data backend.
"""
