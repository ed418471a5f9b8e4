"""
Embedding Provider - Generate vector embeddings for text content.
Supports OpenAI and compatible embedding APIs.
"""
import time
from abc import ABC, abstractmethod
from typing import List, Optional

import httpx

from loopbrain.core.config import settings
from loopbrain.core.exceptions import EmbeddingError
from loopbrain.core.logging import get_logger, log_ai_request, log_ai_response, log_ai_error

logger = get_logger(__name__)


class EmbeddingProvider(ABC):
    """Turns text into a fixed-dimension vector."""
    
    model: str = "unknown"
    dimensions: int = 0
    
    @abstractmethod
    async def embed(self, text: str) -> List[float]:
        """Embed a single non-empty text."""
        pass


class OpenAIEmbeddingProvider(EmbeddingProvider):
    """OpenAI-compatible ``/embeddings`` endpoint."""
    
    def __init__(
        self,
        api_key: str,
        base_url: Optional[str] = None,
        model: Optional[str] = None,
        dimensions: Optional[int] = None,
        timeout: float = 60.0,
    ):
        self.api_key = api_key
        self.base_url = (base_url or settings.EMBEDDING_BASE_URL).rstrip("/")
        self.model = model or settings.EMBEDDING_MODEL
        self.dimensions = dimensions or settings.EMBEDDING_DIMENSIONS
        self.timeout = timeout
    
    async def embed(self, text: str) -> List[float]:
        """
        Generate embedding vector for a single text.
        
        Args:
            text: Text content to embed
            
        Returns:
            List of floats representing the embedding vector
            
        Raises:
            EmbeddingError: On empty input, HTTP failure or timeout
        """
        if not text or not text.strip():
            raise EmbeddingError("Cannot embed empty text")
        
        endpoint = f"{self.base_url}/embeddings"
        log_ai_request(logger, "openai", self.model, "embedding", text_length=len(text))
        start = time.time()
        
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    endpoint,
                    headers={
                        "Content-Type": "application/json",
                        "Authorization": f"Bearer {self.api_key}",
                    },
                    json={
                        "model": self.model,
                        "input": text,
                    },
                )
        except httpx.TimeoutException:
            log_ai_error(logger, "openai", self.model, "timeout", "Embedding request timed out")
            raise EmbeddingError("Embedding request timed out")
        except httpx.HTTPError as e:
            log_ai_error(logger, "openai", self.model, type(e).__name__, str(e))
            raise EmbeddingError("Embedding request failed") from e
        
        if response.status_code != 200:
            try:
                error = (response.json() if response.content else {}).get("error") or {}
            except ValueError:
                error = {}
            error_msg = error.get("message", str(response.status_code)) if isinstance(error, dict) else str(error)
            log_ai_error(
                logger, "openai", self.model, "api_error",
                f"HTTP {response.status_code}: {error_msg}"
            )
            raise EmbeddingError(f"Embedding API error: {response.status_code}")
        
        data = response.json()
        items = data.get("data") or []
        if not items or "embedding" not in items[0]:
            raise EmbeddingError("Embedding API returned no vector")
        
        vector = [float(x) for x in items[0]["embedding"]]
        usage = data.get("usage", {})
        
        log_ai_response(
            logger, "openai", self.model,
            prompt_tokens=usage.get("prompt_tokens"),
            total_tokens=usage.get("total_tokens"),
            duration_ms=round((time.time() - start) * 1000, 2),
        )
        
        # Provider drift is tolerated; the store skips mismatched vectors at search time
        if len(vector) != self.dimensions:
            logger.warning(
                "Unexpected embedding dimensions",
                expected=self.dimensions,
                actual=len(vector),
                model=self.model,
            )
        
        return vector


def get_embedding_provider() -> EmbeddingProvider:
    """Factory for the configured embedding provider."""
    api_key = settings.get_embedding_api_key()
    
    if not api_key:
        logger.warning("No embedding API key configured; embedding calls will fail")
    
    logger.info(
        "Initializing embedding provider",
        model=settings.EMBEDDING_MODEL,
        dimensions=settings.EMBEDDING_DIMENSIONS,
    )
    
    return OpenAIEmbeddingProvider(api_key=api_key)
