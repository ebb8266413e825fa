"""
Configuration module for Lambda handlers.
Loads all environment variables needed by the marketplace backend.
"""
import os


class Config:
    """Centralized configuration from environment variables."""

    # AWS Region
    AWS_REGION = os.environ.get('AWS_REGION', 'us-east-1')

    # DynamoDB Tables
    USERS_TABLE = os.environ.get('USERS_TABLE', '')
    PROJECTS_TABLE = os.environ.get('PROJECTS_TABLE', '')
    ROLES_TABLE = os.environ.get('ROLES_TABLE', '')
    APPLICATIONS_TABLE = os.environ.get('APPLICATIONS_TABLE', '')
    ASSIGNMENTS_TABLE = os.environ.get('ASSIGNMENTS_TABLE', '')
    KPIS_TABLE = os.environ.get('KPIS_TABLE', '')
    TRANSACTIONS_TABLE = os.environ.get('TRANSACTIONS_TABLE', '')

    # Session tokens
    JWT_SECRET = os.environ.get('JWT_SECRET', '')
    JWT_ALGORITHM = os.environ.get('JWT_ALGORITHM', 'HS256')

    # Wallet sign-in challenge
    SERVICE_NAME = os.environ.get('SERVICE_NAME', 'KPI Marketplace')
    NONCE_TTL_SECONDS = int(os.environ.get('NONCE_TTL_SECONDS', '300'))  # 5 minutes

    # Chain RPC (vault reads)
    CHAIN_RPC_URL = os.environ.get('CHAIN_RPC_URL', 'https://sepolia.base.org')
    CHAIN_RPC_TIMEOUT = int(os.environ.get('CHAIN_RPC_TIMEOUT', '10'))
    VAULT_CALL_RETRIES = int(os.environ.get('VAULT_CALL_RETRIES', '2'))


config = Config()
