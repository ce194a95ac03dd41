from collections.abc import AsyncIterator
from typing import Any

from openai import AsyncOpenAI

from ..base import EngineHandle, InferenceEngine, ProgressCallback
from ..models import ChatMessage, LoadProgress, StreamingResponse


class OpenAICompatibleHandle(EngineHandle):
    """Handle to one model served by an OpenAI-compatible local server.

    Hidden design decisions:
    - Message format conversion
    - Usage capture from the final stream chunk
    - Client lifetime (one client per handle)
    """

    def __init__(self, client: AsyncOpenAI, model_id: str):
        self._client = client
        self._model_id = model_id

    @property
    def model_id(self) -> str:
        return self._model_id

    async def generate(
        self,
        messages: list[ChatMessage],
        temperature: float = 0.7,
        max_tokens: int | None = None,
        **kwargs: Any
    ) -> StreamingResponse:
        """Generate a streaming chat completion.

        Args:
            messages: Conversation history
            temperature: Sampling temperature
            max_tokens: Maximum tokens to generate
            **kwargs: Additional OpenAI-specific parameters

        Returns:
            StreamingResponse that yields text increments and captures usage info
        """
        openai_messages = [{"role": msg.role, "content": msg.content} for msg in messages]
        request_params: dict[str, Any] = {
            "model": self._model_id,
            "messages": openai_messages,
            "temperature": temperature,
            "stream": True,
            "stream_options": {"include_usage": True},
            **kwargs,
        }
        if max_tokens is not None:
            request_params["max_tokens"] = max_tokens

        usage: dict[str, Any] = {}
        response = StreamingResponse(self._stream_generator(request_params, usage))
        response.set_usage(usage)
        return response

    async def _stream_generator(
        self,
        request_params: dict[str, Any],
        usage: dict[str, Any],
    ) -> AsyncIterator[str]:
        """Internal generator for Chat Completions streaming with usage capture.

        ``usage`` is the dict already attached to the StreamingResponse; it is
        filled in place when the final chunk reports token counts.
        """
        stream = await self._client.chat.completions.create(**request_params)
        try:
            async for chunk in stream:
                if chunk.usage is not None:
                    usage.update({
                        "prompt_tokens": chunk.usage.prompt_tokens,
                        "completion_tokens": chunk.usage.completion_tokens,
                        "total_tokens": chunk.usage.total_tokens,
                    })
                if chunk.choices and chunk.choices[0].delta.content:
                    yield chunk.choices[0].delta.content
        finally:
            close = getattr(stream, "close", None)
            if close is not None:
                await close()

    async def close(self) -> None:
        """Close the underlying HTTP client.

        Note: Uses the OpenAI SDK's async close for proper cleanup.
        See: https://github.com/openai/openai-python#async-usage
        """
        await self._client.close()


class OpenAICompatibleEngine(InferenceEngine):
    """Inference engine backed by an OpenAI-compatible local server.

    Works with llama.cpp's server, Ollama, LM Studio and vLLM, all of which
    expose ``/v1/models`` and ``/v1/chat/completions``. Loading a model means
    confirming the server knows it; the server owns the weights.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str = "not-needed",
        timeout: float | None = None,
        **client_kwargs: Any
    ):
        """Initialize the engine.

        Args:
            base_url: Server base URL, e.g. http://localhost:8080/v1
            api_key: API key; local servers usually ignore it
            timeout: Optional request timeout in seconds
            **client_kwargs: Additional kwargs for AsyncOpenAI client
        """
        self._base_url = base_url
        self._api_key = api_key
        self._client_kwargs = dict(client_kwargs)
        if timeout is not None:
            self._client_kwargs["timeout"] = timeout

    @property
    def backend_type(self) -> str:
        return "openai"

    @property
    def base_url(self) -> str:
        return self._base_url

    def _create_client(self) -> AsyncOpenAI:
        return AsyncOpenAI(
            api_key=self._api_key,
            base_url=self._base_url,
            **self._client_kwargs
        )

    async def construct(
        self,
        model_id: str,
        on_progress: ProgressCallback | None = None,
    ) -> EngineHandle:
        """Confirm the server serves ``model_id`` and return a handle.

        Raises:
            openai.APIError: If the server is unreachable or the model is unknown
        """
        client = self._create_client()
        if on_progress is not None:
            on_progress(LoadProgress(fraction=0.0, text=f"Connecting to {self._base_url}"))
        try:
            await client.models.retrieve(model_id)
        except BaseException:
            await client.close()
            raise
        if on_progress is not None:
            on_progress(LoadProgress(fraction=1.0, text=f"{model_id} is available"))
        return OpenAICompatibleHandle(client, model_id)
