"""HTTP clients for the remote backend."""
from .api_client import ApiClient, ApiClientError

__all__ = ["ApiClient", "ApiClientError"]
