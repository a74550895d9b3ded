"""Session client for the Sobit ECR payment terminal service."""

from sobit_ecr.client import EcrClient
from sobit_ecr.config import ClientSettings, get_settings
from sobit_ecr.models import Credentials, Operation, OutboundMessage
from sobit_ecr.network import Session, SessionState
from sobit_ecr.network.errors import ErrorKind, SessionError
from sobit_ecr.tokens import TokenStore, generate_token

__all__ = [
    "EcrClient",
    "ClientSettings",
    "get_settings",
    "Credentials",
    "Operation",
    "OutboundMessage",
    "Session",
    "SessionState",
    "ErrorKind",
    "SessionError",
    "TokenStore",
    "generate_token",
]

__version__ = "0.1.0"
