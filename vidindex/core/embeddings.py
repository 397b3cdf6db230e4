"""
OpenAI embeddings: one text in, one fixed-length vector out.
"""

import logging
from openai import OpenAI
from openai import OpenAIError

from vidindex.core.error_codes import EmbeddingError
from vidindex.core.constants import EMBEDDING_MODEL, HTTP_TIMEOUT_SEC

logger = logging.getLogger(__name__)


class OpenAIEmbedder:
    """Embedding provider backed by the OpenAI embeddings endpoint."""

    def __init__(self, api_key: str, model: str = EMBEDDING_MODEL,
                 timeout: float = HTTP_TIMEOUT_SEC, client: OpenAI | None = None):
        if client is None:
            if not api_key:
                raise ValueError("OpenAI API key is required")
            # No SDK-level retries; failures surface to the pipeline
            client = OpenAI(api_key=api_key, timeout=timeout, max_retries=0)
        self.client = client
        self.model = model

    def embed(self, text: str) -> list[float]:
        try:
            response = self.client.embeddings.create(model=self.model, input=[text])
        except OpenAIError as e:
            raise EmbeddingError(f"OpenAI embedding creation failed: {e}")

        if not response.data:
            raise EmbeddingError("OpenAI returned no embedding data")
        return list(response.data[0].embedding)
