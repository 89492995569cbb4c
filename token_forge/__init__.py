"""
Token Forge: parameterized ERC-20 token generation and deployment

Generates the Solidity source of an owner-controlled, pausable,
blacklistable fixed-supply token, compiles it with solc, deploys it through a
wallet on a single EVM chain, records deployments per wallet, and drives the
token's owner functions afterwards.
"""

__version__ = "1.0.0"
__author__ = "Token Forge Team"
