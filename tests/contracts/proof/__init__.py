# Proof Service Contracts

"""
Proof Service Contract Module

This module contains:
- data_contract.py: service models re-exported, test data factory for
  seeds, proofs, owners and Lob/scan payloads
"""
