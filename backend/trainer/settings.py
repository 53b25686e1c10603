from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import AliasChoices, Field

class Settings(BaseSettings):
	# Chat-completion provider (OpenAI-compatible REST API)
	openai_api_key: str | None = Field(default=None, validation_alias="OPENAI_API_KEY")
	openai_model: str = Field(default="gpt-4o-mini", validation_alias="OPENAI_MODEL")
	openai_base_url: str = Field(default="https://api.openai.com/v1/chat/completions", validation_alias="OPENAI_BASE_URL")
	llm_timeout_seconds: float = Field(default=60.0, validation_alias="LLM_TIMEOUT_SECONDS")

	# OpenRouter fallback configuration (optional)
	openrouter_api_key: str | None = Field(default=None, validation_alias="OPENROUTER_API_KEY")
	openrouter_model: str = Field(default="openai/gpt-4o-mini", validation_alias="OPENROUTER_MODEL")
	openrouter_base_url: str = Field(default="https://openrouter.ai/api/v1/chat/completions", validation_alias="OPENROUTER_BASE_URL")
	openrouter_referer: str = Field(default="https://localhost", validation_alias="OPENROUTER_HTTP_REFERER")
	openrouter_title: str = Field(default="Test Trainer", validation_alias="OPENROUTER_TITLE")

	# Deployment: any of these set selects the HTTP / direct-call transport
	deployment_marker: str | None = Field(default=None, validation_alias=AliasChoices("TRAINER_SERVERLESS", "VERCEL", "VERCEL_ENV"))
	deployment_host: str | None = Field(
		default=None,
		validation_alias=AliasChoices("VERCEL_URL", "NEXT_PUBLIC_VERCEL_URL", "VERCEL_PROJECT_PRODUCTION_URL"),
	)
	mcp_url: str | None = Field(default=None, validation_alias="TRAINER_MCP_URL")
	local_mcp_url: str = Field(default="http://localhost:3000/api/mcp", validation_alias="TRAINER_LOCAL_MCP_URL")

	# Sidecar process
	sidecar_command: list[str] | None = Field(default=None, validation_alias="TRAINER_SIDECAR_COMMAND")
	sidecar_env_file: str = Field(default=".env.local", validation_alias="TRAINER_SIDECAR_ENV_FILE")
	request_timeout_seconds: float = Field(default=30.0, validation_alias="TRAINER_REQUEST_TIMEOUT")
	stop_grace_seconds: float = Field(default=5.0, validation_alias="TRAINER_STOP_GRACE")
	poll_interval_seconds: float = Field(default=0.5, validation_alias="TRAINER_POLL_INTERVAL")
	# 10 attempts (5 s) for the coordinator, 30 (15 s) for the launcher
	connect_attempts: int = Field(default=10, validation_alias="TRAINER_CONNECT_ATTEMPTS")
	launcher_connect_attempts: int = Field(default=30, validation_alias="TRAINER_LAUNCHER_CONNECT_ATTEMPTS")
	restart_delay_seconds: float = Field(default=5.0, validation_alias="TRAINER_RESTART_DELAY")

	log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

	# pydantic-settings v2 style config
	model_config = SettingsConfigDict(env_file=".env", extra="ignore", populate_by_name=True)

	@property
	def is_serverless(self) -> bool:
		return bool(self.deployment_marker) and self.deployment_marker.lower() not in ("0", "false", "no")

	def resolved_mcp_url(self) -> str:
		if self.mcp_url:
			return self.mcp_url
		if self.deployment_host and self.is_serverless:
			return f"https://{self.deployment_host}/api/mcp"
		return self.local_mcp_url

settings = Settings()
