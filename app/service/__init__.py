"""Service layer for domain logic.

This module contains the business logic services for the lacpa-server,
including accounts, verification codes, email delivery and cleanup.
"""
