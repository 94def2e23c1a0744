"""Lifecycle engine configuration."""

import os
from enum import Enum
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, Field


class ScoringStrategy(str, Enum):
    """Named source-weight tables for lead scoring."""

    ENQUIRY = "enquiry"
    RANKING = "ranking"


class EngineConfig(BaseModel):
    """
    Settings for the scoring engine, stage machines and list endpoints.

    Everything has a working default so the service runs with no
    environment at all; load_config() overlays environment variables.
    """

    lead_scoring_strategy: ScoringStrategy = Field(
        default=ScoringStrategy.ENQUIRY,
        description="Source-weight table used when scoring new leads",
    )
    strict_stage_transitions: bool = Field(
        default=False,
        description="Reject stage changes that are not edges of the transition graph",
    )
    default_page_size: int = Field(
        default=10,
        description="Page size when the client sends none",
        ge=1,
        le=100,
    )
    max_page_size: int = Field(
        default=100,
        description="Upper bound on requested page size",
        ge=1,
        le=1000,
    )
    model_timeout_seconds: float = Field(
        default=0.5,
        description="Bound on a single predictive-model call",
        gt=0,
        le=30,
    )
    model_weights_path: Path | None = Field(
        default=None,
        description="JSON weights for the predictive scorer; None disables it",
    )
    optimistic_retries: int = Field(
        default=3,
        description="Re-read and re-apply attempts on a version conflict",
        ge=1,
        le=20,
    )
    database_url: str | None = Field(
        default=None,
        description="PostgreSQL URL; fetched from Vault when unset",
    )


_ENV_FIELDS = {
    "LEAD_SCORING_STRATEGY": "lead_scoring_strategy",
    "STRICT_STAGE_TRANSITIONS": "strict_stage_transitions",
    "DEFAULT_PAGE_SIZE": "default_page_size",
    "MAX_PAGE_SIZE": "max_page_size",
    "MODEL_TIMEOUT_SECONDS": "model_timeout_seconds",
    "MODEL_WEIGHTS_PATH": "model_weights_path",
    "OPTIMISTIC_RETRIES": "optimistic_retries",
    "DATABASE_URL": "database_url",
}


def load_config(env_file: Path | None = None) -> EngineConfig:
    """
    Build EngineConfig from the environment.

    Reads an optional .env first (existing environment variables win).
    Invalid values raise pydantic's ValidationError, which is a ValueError:
    the process should refuse to start rather than run misconfigured.
    """
    load_dotenv(env_file or Path.cwd() / ".env", override=False)

    values = {}
    for env_name, field_name in _ENV_FIELDS.items():
        raw = os.getenv(env_name)
        if raw is not None and raw != "":
            values[field_name] = raw

    return EngineConfig.model_validate(values)
