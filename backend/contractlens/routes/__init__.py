"""
Routes package for ContractLens.

Each module handles one resource of the HTTP API.

Author: ContractLens Team
Version: 1.0.0
"""
