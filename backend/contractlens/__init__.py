"""
ContractLens: AI-assisted contract review backend.

Author: ContractLens Team
Version: 1.0.0
"""

__version__ = "1.0.0"
