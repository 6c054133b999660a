import logging
import re

from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)

PROVIDERS = ("openai", "anthropic", "ollama")

DEFAULT_MODELS: dict[str, str] = {
    "openai": "gpt-4o",
    "anthropic": "claude-sonnet-4-5",
    "ollama": "llama3",
}

_API_KEY_ENV: dict[str, str] = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
}

_VALID_USERNAME = re.compile(r"^[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,37}[a-zA-Z0-9])?$")


class ConfigError(ValueError):
    """Raised when the settings are not usable for a run."""


class Settings(BaseSettings):
    """
    Runtime settings, loaded from environment variables and .env file.

    Required env vars:
        GITHUB_TOKEN        - GitHub PAT used for every API call
        OPENAI_API_KEY      - when LLM_PROVIDER=openai
        ANTHROPIC_API_KEY   - when LLM_PROVIDER=anthropic
        OLLAMA_HOST         - optional, local Ollama server (no key needed)
    """

    model_config = {"env_file": ".env", "extra": "ignore"}

    # GitHub API access
    github_token: str = ""

    # LLM provider: openai | anthropic | ollama
    llm_provider: str = "anthropic"
    llm_model: str = ""  # empty means the provider default
    openai_api_key: str = ""
    anthropic_api_key: str = ""
    ollama_host: str = "http://localhost:11434"

    # Crawl / output
    output_dir: str = "./output"
    max_repos: int = 10

    # Benchmark loop
    benchmark_held_out: int = 3
    benchmark_max_iterations: int = 5
    benchmark_target_score: float = 80.0

    # Langfuse observability (litellm callbacks)
    langfuse_enabled: bool = False
    langfuse_public_key: str = ""
    langfuse_secret_key: str = ""
    langfuse_host: str = "https://us.cloud.langfuse.com"

    log_level: str = "INFO"

    @property
    def effective_model(self) -> str:
        """Return the configured model, or the provider default when unset."""
        return self.llm_model or DEFAULT_MODELS.get(self.llm_provider, "")

    @property
    def api_key(self) -> str:
        """Return the API key for the selected hosted provider ("" for ollama)."""
        if self.llm_provider == "openai":
            return self.openai_api_key
        if self.llm_provider == "anthropic":
            return self.anthropic_api_key
        return ""

    def validate_for_run(self, username: str) -> None:
        """Check that everything a crawl + analysis run needs is present.

        Raises ConfigError describing the first problem found.
        """
        if not username:
            raise ConfigError("github username is required")
        if not _VALID_USERNAME.match(username):
            raise ConfigError(f"invalid github username {username!r}")
        if not self.github_token:
            raise ConfigError("GITHUB_TOKEN environment variable is required")
        if self.llm_provider not in PROVIDERS:
            raise ConfigError(
                f"unsupported LLM provider {self.llm_provider!r}: must be openai, anthropic, or ollama"
            )
        if self.llm_provider != "ollama" and not self.api_key:
            raise ConfigError(
                f"{self.llm_provider} requires an API key (set {_API_KEY_ENV[self.llm_provider]})"
            )
        if self.max_repos < 1:
            raise ConfigError("--max-repos must be at least 1")
        if self.benchmark_max_iterations < 1:
            raise ConfigError("BENCHMARK_MAX_ITERATIONS must be at least 1")


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging once for CLI runs."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


settings = Settings()
