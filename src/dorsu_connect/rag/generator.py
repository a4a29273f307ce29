"""
Generator Module - LLM generation for chat answers.
===================================================

Provides grounded generation using the Gemini API with:
- Lazily created client and model
- Retries with exponential backoff around each call
- Errors returned as an error answer rather than raised
"""

from typing import Optional

from tenacity import retry, stop_after_attempt, wait_exponential

from dorsu_connect.rag.prompts import PromptBuilder
from dorsu_connect.shared.config import get_settings
from dorsu_connect.shared.errors import ConfigurationError
from dorsu_connect.shared.logging import get_logger
from dorsu_connect.shared.schemas import ConversationTurn, GeneratedAnswer

logger = get_logger(__name__)

ERROR_ANSWER = (
    "I'm sorry, I couldn't generate an answer right now. Please try again in a moment."
)


# ─────────────────────────────────────────────────────────────────────────────
# Generator Class
# ─────────────────────────────────────────────────────────────────────────────


class Generator:
    """
    LLM generator for chat answers using the Gemini API.

    Example:
        >>> generator = Generator()
        >>> answer = generator.generate("Who is the president?", context)
        >>> print(answer.answer)
    """

    def __init__(
        self,
        model_name: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        api_key: Optional[str] = None,
    ):
        """
        Initialize the generator.

        Args:
            model_name: Gemini model name (default from config)
            temperature: Generation temperature (default from config)
            max_tokens: Maximum tokens to generate (default from config)
            api_key: Gemini API key (default from env)
        """
        settings = get_settings()
        gen_config = settings.generation

        self.model_name = model_name or settings.get_effective_gemini_model()
        self.temperature = temperature if temperature is not None else gen_config.temperature
        self.max_tokens = max_tokens or gen_config.max_output_tokens
        self.top_p = gen_config.top_p
        self.top_k = gen_config.top_k
        self.api_key = api_key or settings.gemini_api_key

        self._client = None
        self._model = None
        self.prompt_builder = PromptBuilder(history_turns=gen_config.history_turns)

        logger.info(
            f"Generator initialized: model={self.model_name}, "
            f"temp={self.temperature}, max_tokens={self.max_tokens}"
        )

    def is_available(self) -> bool:
        """True when an API key is configured."""
        return bool(self.api_key)

    @property
    def client(self):
        """Lazy-load Gemini client."""
        if self._client is None:
            if not self.api_key:
                raise ConfigurationError(
                    "Gemini API key not found. Set GEMINI_API_KEY environment variable."
                )
            import google.generativeai as genai

            genai.configure(api_key=self.api_key)
            self._client = genai
            logger.debug("Gemini client initialized")
        return self._client

    @property
    def model(self):
        """Lazy-load Gemini model."""
        if self._model is None:
            self._model = self.client.GenerativeModel(
                model_name=self.model_name,
                generation_config={
                    "temperature": self.temperature,
                    "max_output_tokens": self.max_tokens,
                    "top_p": self.top_p,
                    "top_k": self.top_k,
                },
            )
            logger.debug(f"Gemini model loaded: {self.model_name}")
        return self._model

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _generate_content(  # type: ignore[no-untyped-def]
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: Optional[float] = None,
    ):
        """Generate content with retry logic."""
        # Gemini takes a single prompt
        full_prompt = f"{system_prompt}\n\n{user_prompt}"
        if temperature is None:
            return self.model.generate_content(full_prompt)
        return self.model.generate_content(
            full_prompt, generation_config={"temperature": temperature}
        )

    def generate(
        self,
        query: str,
        context: str,
        history: Optional[list[ConversationTurn]] = None,
        temperature: Optional[float] = None,
        is_schedule: bool = False,
    ) -> GeneratedAnswer:
        """
        Generate an answer grounded in ``context``.

        Args:
            query: User question
            context: Knowledge base context
            history: Earlier turns of the conversation
            temperature: Per-call override (e.g. from query analysis)
            is_schedule: Add calendar formatting instructions

        Returns:
            GeneratedAnswer; ``success`` is False and ``error`` set when the
            call failed after retries
        """
        logger.info(f"Generating answer for: {query[:50]}...")

        system_prompt, user_prompt = self.prompt_builder.build_prompt(
            query, context, history, is_schedule=is_schedule
        )
        try:
            response = self._generate_content(system_prompt, user_prompt, temperature)
            answer_text = (response.text or "").strip()
            logger.info(f"Generated answer ({len(answer_text)} chars)")
            return GeneratedAnswer(query=query, answer=answer_text, model_name=self.model_name)

        except Exception as e:
            logger.error(f"Generation failed: {e}")
            return GeneratedAnswer(
                query=query,
                answer=ERROR_ANSWER,
                model_name=self.model_name,
                success=False,
                error=str(e),
            )


# ─────────────────────────────────────────────────────────────────────────────
# Global Instance
# ─────────────────────────────────────────────────────────────────────────────


_generator: Optional[Generator] = None


def get_generator() -> Generator:
    """Get or create global generator instance."""
    global _generator
    if _generator is None:
        _generator = Generator()
    return _generator
