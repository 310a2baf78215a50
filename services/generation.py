import asyncio
import logging
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional, Protocol

import requests
from google import genai

from recipe_genie.config import get_secret, load_config
from recipe_genie.logging import current_update
from services import metrics

logger = logging.getLogger(__name__)

DEFAULT_GEMINI_MODEL = "gemini-2.5-flash"
DEFAULT_OLLAMA_URL = "http://localhost:11434"
DEFAULT_OLLAMA_MODEL = "llama3.1"


class GenerationError(Exception):
    """The backend answered, but without usable text."""


class GenerationBackend(Protocol):
    name: str
    model: str

    async def complete(self, prompt: str) -> str:
        ...


class GeminiBackend:
    name = "gemini"

    def __init__(self, api_key: str, model: str = DEFAULT_GEMINI_MODEL, client: Any = None):
        self.model = model
        self._client = client or genai.Client(api_key=api_key)

    async def complete(self, prompt: str) -> str:
        response = await self._client.aio.models.generate_content(model=self.model, contents=prompt)
        text = getattr(response, "text", None)
        if not text or not str(text).strip():
            raise GenerationError("Gemini returned an empty response")
        return str(text).strip()


class OllamaBackend:
    name = "ollama"

    def __init__(
        self,
        base_url: str = DEFAULT_OLLAMA_URL,
        model: str = DEFAULT_OLLAMA_MODEL,
        request_timeout: float = 180.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.request_timeout = request_timeout

    def _post(self, prompt: str) -> str:
        response = requests.post(
            f"{self.base_url}/api/generate",
            json={"model": self.model, "prompt": prompt, "stream": False},
            timeout=self.request_timeout,
        )
        response.raise_for_status()
        data = response.json()
        text = data.get("response") if isinstance(data, dict) else None
        if not text or not str(text).strip():
            raise GenerationError("Ollama returned an empty response")
        return str(text).strip()

    async def complete(self, prompt: str) -> str:
        return await asyncio.to_thread(self._post, prompt)


class GenerationGateway:
    """Single-shot prompt -> text calls with failures folded into ``None``.

    ``timeout`` bounds one call (``None`` waits as long as the backend does);
    ``max_concurrency`` caps in-flight calls (0 means unbounded).
    """

    def __init__(
        self,
        backend: GenerationBackend,
        *,
        timeout: Optional[float] = None,
        max_concurrency: int = 0,
    ):
        self.backend = backend
        self.timeout = timeout
        self._semaphore = asyncio.Semaphore(max_concurrency) if max_concurrency > 0 else None

    @asynccontextmanager
    async def _slot(self) -> AsyncIterator[None]:
        if self._semaphore is None:
            yield
            return
        async with self._semaphore:
            yield

    async def generate(self, prompt: str) -> Optional[str]:
        logger.debug("[%s] Calling %s model=%s", current_update().tag, self.backend.name, self.backend.model)
        start_ts = time.time()
        success = False
        try:
            async with self._slot():
                if self.timeout:
                    text = await asyncio.wait_for(self.backend.complete(prompt), timeout=self.timeout)
                else:
                    text = await self.backend.complete(prompt)
            success = True
            return text
        except asyncio.TimeoutError:
            logger.error("Generation timed out after %ss (backend=%s)", self.timeout, self.backend.name)
            return None
        except Exception as exc:
            logger.error("Generation error (backend=%s): %s", self.backend.name, exc, exc_info=True)
            return None
        finally:
            duration_ms = (time.time() - start_ts) * 1000
            metrics.record_generation(
                backend=self.backend.name,
                model=self.backend.model,
                duration_ms=duration_ms,
                success=success,
            )


def build_backend(config: Optional[Dict[str, Any]] = None) -> GenerationBackend:
    cfg = config or load_config()
    gen_cfg = cfg.get("generation", {}) if isinstance(cfg.get("generation"), dict) else {}
    backend = str(gen_cfg.get("backend") or "gemini").strip().lower()

    if backend == "ollama":
        ollama_cfg = gen_cfg.get("ollama", {}) if isinstance(gen_cfg.get("ollama"), dict) else {}
        return OllamaBackend(
            base_url=str(ollama_cfg.get("base_url") or DEFAULT_OLLAMA_URL),
            model=str(gen_cfg.get("model") or ollama_cfg.get("model") or DEFAULT_OLLAMA_MODEL),
            request_timeout=float(ollama_cfg.get("request_timeout", 180)),
        )

    if backend == "gemini":
        env_var_name = str(gen_cfg.get("api_key_env_var") or "GEMINI_API_KEY")
        api_key = get_secret(env_var_name)
        if not api_key:
            raise RuntimeError(f"{env_var_name} is not set. Put it in your .env file.")
        gemini_cfg = gen_cfg.get("gemini", {}) if isinstance(gen_cfg.get("gemini"), dict) else {}
        return GeminiBackend(
            api_key=api_key,
            model=str(gen_cfg.get("model") or gemini_cfg.get("model") or DEFAULT_GEMINI_MODEL),
        )

    raise ValueError(f"Unknown generation backend: {backend!r}")


def build_gateway(config: Optional[Dict[str, Any]] = None) -> GenerationGateway:
    cfg = config or load_config()
    gen_cfg = cfg.get("generation", {}) if isinstance(cfg.get("generation"), dict) else {}
    timeout = gen_cfg.get("timeout_seconds")
    return GenerationGateway(
        build_backend(cfg),
        timeout=float(timeout) if timeout else None,
        max_concurrency=int(gen_cfg.get("max_concurrency") or 0),
    )
