"""Configuration schemas loaded from defaults.toml."""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, Field


class ProjectTemplate(StrEnum):
    """Scaffold used to turn directive code into a deployable project."""

    NEXTJS = "nextjs"
    STATIC = "static"


class ModelConfig(BaseModel):
    """Generation model routing and limits."""

    model: str = Field(default="gpt-4o", description="LiteLLM model identifier")
    display_name: str = Field(default="GPT-4o", description="Human-friendly model name")
    api_key_env: str = Field(
        default="OPENAI_API_KEY", description="Environment variable holding the API key"
    )
    api_base: str = Field(default="", description="Custom API base URL (empty = default)")
    max_tokens: int = Field(default=8192, gt=0, description="Completion token ceiling")
    timeout: int = Field(default=120, gt=0, description="Per-call timeout in seconds")


class PollPolicy(BaseModel):
    """Bounded retry policy for deployment status polling."""

    max_attempts: int = Field(default=30, ge=1, description="Status reads before giving up")
    delay: float = Field(default=2.0, ge=0.0, description="Seconds before the first read")
    backoff: float = Field(
        default=1.0, ge=1.0, description="Delay multiplier per attempt (1.0 = fixed)"
    )
    max_delay: float | None = Field(
        default=None, ge=0.0, description="Upper bound on a single delay"
    )

    def delay_for(self, attempt: int) -> float:
        """Delay before the given zero-based attempt."""
        delay = self.delay * (self.backoff**attempt)
        if self.max_delay is not None:
            delay = min(delay, self.max_delay)
        return delay

    @property
    def ceiling(self) -> float:
        """Total seconds spent waiting if every attempt runs."""
        return sum(self.delay_for(i) for i in range(self.max_attempts))


class DeployConfig(BaseModel):
    """Hosting provider settings."""

    template: ProjectTemplate = Field(
        default=ProjectTemplate.NEXTJS, description="Project scaffold"
    )
    target: str = Field(default="production", description="Deployment target")
    api_base: str = Field(
        default="https://api.vercel.com", description="Hosting API base URL"
    )
    token_env: str = Field(
        default="VERCEL_TOKEN", description="Environment variable holding the token"
    )
    team_id: str = Field(default="", description="Team scope (empty = personal)")
    default_project_name: str = Field(
        default="my-app", description="Used when the directive names no project"
    )
    timeout: float = Field(default=30.0, gt=0.0, description="HTTP timeout in seconds")
    poll: PollPolicy = Field(default_factory=PollPolicy, description="Polling policy")


class ChatConfig(BaseModel):
    """User-facing chat strings."""

    fallback_message: str = Field(
        default="Building your app now!",
        description="Shown when the reply was only a directive block",
    )
    error_message: str = Field(
        default="Oops! Something went wrong. Let's try that again - what would you like to build?",
        description="Shown when generation fails",
    )
    live_message: str = Field(
        default=(
            "**Your app is live!**\n\n[{url}]({url})\n\n"
            "Click the link above to see your creation! "
            "Let me know if you'd like any changes."
        ),
        description="Follow-up after a live deployment; {url} is substituted",
    )


class CompanionConfig(BaseModel):
    """Top-level configuration."""

    model: ModelConfig = Field(default_factory=ModelConfig)
    deploy: DeployConfig = Field(default_factory=DeployConfig)
    chat: ChatConfig = Field(default_factory=ChatConfig)
