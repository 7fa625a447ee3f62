"""GraphQL transport and result serialization."""

from .client import GraphQLClient
from .serializer import TRUNCATION_PREAMBLE, finalize, serialize

__all__ = ["GraphQLClient", "TRUNCATION_PREAMBLE", "finalize", "serialize"]
