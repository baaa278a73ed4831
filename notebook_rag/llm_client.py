"""Async Ollama client for chat completions and embeddings."""
import httpx
from typing import List, Dict, Optional
import structlog

from notebook_rag import config

logger = structlog.get_logger()


class OllamaClient:
    """Async client for the Ollama HTTP API."""

    def __init__(self, base_url: str = None, timeout: float = 60.0):
        """Initialize Ollama client.

        Args:
            base_url: Ollama API base URL (defaults to config.OLLAMA_BASE_URL)
            timeout: Request timeout in seconds
        """
        self.base_url = base_url or config.OLLAMA_BASE_URL
        self.timeout = timeout

    async def _post(self, path: str, payload: Dict, timeout: Optional[float] = None) -> Dict:
        async with httpx.AsyncClient(timeout=timeout or self.timeout) as client:
            response = await client.post(f"{self.base_url}{path}", json=payload)
            response.raise_for_status()
            return response.json()

    async def chat(
        self,
        messages: List[Dict[str, str]],
        model: str = None,
        temperature: Optional[float] = None,
    ) -> str:
        """Send a non-streaming chat completion request.

        Args:
            messages: List of message dicts with 'role' and 'content'
            model: Model to use (defaults to config.CHAT_MODEL)
            temperature: Sampling temperature (0.0-2.0)

        Returns:
            The assistant message content

        Raises:
            httpx.HTTPError: On API or connection errors
        """
        model = model or config.CHAT_MODEL

        payload = {
            "model": model,
            "messages": messages,
            "stream": False,
        }
        if temperature is not None:
            payload["options"] = {"temperature": temperature}

        logger.info("ollama_chat_request", model=model, message_count=len(messages))

        try:
            data = await self._post("/api/chat", payload)
        except httpx.ConnectError as e:
            logger.error("ollama_connection_error", error=str(e), base_url=self.base_url)
            raise
        except httpx.HTTPError as e:
            logger.error(
                "ollama_http_error",
                error=str(e),
                status_code=getattr(getattr(e, "response", None), "status_code", None),
            )
            raise

        content = data.get("message", {}).get("content", "")
        logger.info("ollama_chat_response", model=model, response_length=len(content))
        return content

    async def complete(self, prompt: str, context: str, system_prompt: str = "") -> str:
        """Answer a prompt grounded in a block of context text."""
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append(
            {"role": "user", "content": f"CONTEXT:\n{context}\n\nQUESTION: {prompt}"}
        )
        return await self.chat(messages)

    async def embeddings(
        self,
        prompt: str,
        model: str = None,
        timeout: Optional[float] = None,
    ) -> List[float]:
        """Generate an embedding for a text prompt.

        Args:
            prompt: Text to embed
            model: Model to use (defaults to config.EMBEDDING_MODEL)
            timeout: Per-request timeout overriding the client default

        Returns:
            The embedding vector (empty if the model returned none)

        Raises:
            httpx.HTTPError: On API errors or timeouts
        """
        model = model or config.EMBEDDING_MODEL

        logger.debug("ollama_embedding_request", model=model, prompt_length=len(prompt))

        try:
            data = await self._post(
                "/api/embeddings",
                {"model": model, "prompt": prompt},
                timeout=timeout,
            )
        except httpx.HTTPError as e:
            logger.error("ollama_embedding_error", model=model, error=str(e))
            raise

        embedding = data.get("embedding", [])
        logger.debug("ollama_embedding_response", model=model, dimension=len(embedding))
        return embedding

    async def list_models(self) -> List[str]:
        """List all available Ollama models.

        Raises:
            httpx.HTTPError: On API errors
        """
        try:
            async with httpx.AsyncClient(timeout=5.0) as client:
                response = await client.get(f"{self.base_url}/api/tags")
                response.raise_for_status()
                data = response.json()
                return [m["name"] for m in data.get("models", [])]
        except httpx.HTTPError as e:
            logger.error("ollama_list_models_error", error=str(e))
            raise
