"""Configurações da aplicação via variáveis de ambiente.

Todas as configurações são carregadas de env vars (ou arquivo .env em dev).
Nunca hardcode secrets ou valores sensíveis.

Os componentes do núcleo (dedup, fila, wrapper resiliente, saga) recebem
esses valores como parâmetros explícitos; apenas a camada de aplicação e a
API leem Settings.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# WhatsApp Cloud API (Meta Graph API)
GRAPH_API_VERSION: str = "v21.0"
GRAPH_API_BASE_URL: str = "https://graph.facebook.com"

_ENVIRONMENT_ALIASES = {
    "prod": "production",
    "stage": "staging",
    "dev": "development",
    "local": "development",
}


class Settings(BaseSettings):
    """Configurações lidas do ambiente."""

    model_config = SettingsConfigDict(
        env_prefix="",
        case_sensitive=False,
    )

    # Aplicação
    service_name: str = "staffing_notify"
    version: str = "0.1.0"
    environment: str = "development"
    log_level: str = "INFO"

    # Deduplicação (idempotency keys + janela)
    dedup_backend: str = "memory"  # memory | redis
    redis_url: str | None = None  # Para dedup_backend=redis
    dedup_window_ms: int = 60_000  # Janela padrão: 1 minuto

    # Fila de notificações
    queue_max_attempts: int = 3  # Tentativas por notificação antes do dead-letter

    # Chamadas resilientes (backoff exponencial)
    resilient_max_retries: int = 3  # Retries após a primeira tentativa
    resilient_initial_delay_ms: int = 1000
    resilient_max_delay_ms: int = 30_000
    resilient_backoff_multiplier: float = 2.0

    # Circuit breaker (desabilitado por padrão)
    circuit_breaker_enabled: bool = False
    circuit_breaker_fail_max: int = 5
    circuit_breaker_reset_timeout_ms: int = 30_000
    circuit_breaker_success_threshold: int = 2  # Sucessos em half-open para fechar
    circuit_breaker_half_open_max_calls: int = 1

    # Rate limit por destinatário (janela fixa)
    rate_limit_enabled: bool = True
    rate_limit_max_requests: int = 100
    rate_limit_window_ms: int = 60_000

    # WhatsApp Cloud API
    whatsapp_access_token: str | None = None  # Bearer token
    whatsapp_phone_number_id: str | None = None  # ID do número registrado
    whatsapp_api_version: str = GRAPH_API_VERSION
    whatsapp_api_base_url: str = GRAPH_API_BASE_URL
    whatsapp_request_timeout_seconds: float = 30.0

    # Endpoints internos (drain agendado / monitoramento)
    internal_task_token: str | None = None
    internal_token_header: str = "X-Internal-Token"

    @property
    def whatsapp_api_endpoint(self) -> str:
        """Base da Graph API com versão, ex.: https://graph.facebook.com/v21.0."""
        return f"{self.whatsapp_api_base_url}/{self.whatsapp_api_version}"

    @field_validator("environment", mode="before")
    @classmethod
    def normalize_environment(cls, value: object) -> object:
        if isinstance(value, str):
            value = value.strip().lower()
            return _ENVIRONMENT_ALIASES.get(value, value)
        return value

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def is_staging(self) -> bool:
        return self.environment == "staging"

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    def validate_dedup_backend(self) -> list[str]:
        """Valida backend de deduplicação.

        Em staging/prod, memory é proibido: cada instância teria sua própria
        janela e o mesmo envio poderia sair duas vezes.
        """
        errors: list[str] = []
        backend = self.dedup_backend.lower()
        valid_backends = {"memory", "redis"}

        if backend not in valid_backends:
            errors.append(
                f"DEDUP_BACKEND '{backend}' inválido. Valores válidos: {sorted(valid_backends)}"
            )

        if backend == "memory" and (self.is_staging or self.is_production):
            errors.append(
                "DEDUP_BACKEND=memory é proibido em staging/production. "
                "Configure Redis para deduplicação entre instâncias."
            )

        if backend == "redis" and not self.redis_url:
            errors.append("DEDUP_BACKEND=redis requer REDIS_URL configurado")

        return errors

    def validate_retry_policy(self) -> list[str]:
        """Valida parâmetros de retry/backoff e da fila."""
        errors: list[str] = []
        if self.resilient_max_retries < 0:
            errors.append("RESILIENT_MAX_RETRIES deve ser >= 0")
        if self.resilient_initial_delay_ms < 0:
            errors.append("RESILIENT_INITIAL_DELAY_MS deve ser >= 0")
        if self.resilient_max_delay_ms < self.resilient_initial_delay_ms:
            errors.append("RESILIENT_MAX_DELAY_MS deve ser >= RESILIENT_INITIAL_DELAY_MS")
        if self.resilient_backoff_multiplier < 1:
            errors.append("RESILIENT_BACKOFF_MULTIPLIER deve ser >= 1")
        if self.queue_max_attempts < 1:
            errors.append("QUEUE_MAX_ATTEMPTS deve ser >= 1")
        return errors

    def validate_whatsapp_config(self) -> list[str]:
        """Credenciais do sender WhatsApp; lista vazia = sender habilitado."""
        required = {
            "WHATSAPP_ACCESS_TOKEN": self.whatsapp_access_token,
            "WHATSAPP_PHONE_NUMBER_ID": self.whatsapp_phone_number_id,
        }
        return [f"{name} não configurado" for name, value in required.items() if not value]

    def validate_internal_token(self) -> list[str]:
        """Endpoints internos precisam de token fora de development."""
        errors: list[str] = []
        if (self.is_staging or self.is_production) and not self.internal_task_token:
            errors.append("INTERNAL_TASK_TOKEN obrigatório em staging/production")
        return errors


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Retorna instância única (cacheada) de Settings."""
    return Settings()
