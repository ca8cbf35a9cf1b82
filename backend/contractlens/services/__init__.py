"""
Services package for ContractLens.

This package contains the business logic: text extraction, file handling,
highlight reconciliation and projection, analysis and chat.

Author: ContractLens Team
Version: 1.0.0
"""
