# Auth package
from .credentials import KeychainCredentialSource
from .session_store import SessionStore

__all__ = ['KeychainCredentialSource', 'SessionStore']
