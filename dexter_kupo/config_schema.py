"""
Configuration schema validation using Pydantic
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

KNOWN_PROTOCOLS = (
    "minswap_v1",
    "minswap_v2",
    "minswap_stable",
    "sundaeswap_v1",
    "sundaeswap_v3",
    "wingriders",
    "wingriders_v2",
    "cswap",
    "vyfinance",
    "chadswap",
    "vyfi_bar",
)


class DexterSettings(BaseModel):
    """Indexer connection, retry budget and per-protocol constant overrides"""

    kupo_url: str = Field(min_length=1, description="Base URL of the Kupo indexer")
    concurrency: int = Field(
        default=5, ge=1, le=64, description="Concurrent datum/discovery queries"
    )
    retries: int = Field(default=10, ge=0, le=50)
    base_delay_ms: int = Field(default=1000, ge=0, le=60_000)
    max_delay_ms: int = Field(default=30_000, ge=0, le=600_000)
    request_timeout_sec: float = Field(default=300, gt=0, le=3600)
    vyfi_api_url: str = Field(
        default="https://api.vyfi.io/lp?networkId=1&v2=true",
        description="VyFinance pool list endpoint",
    )
    chadswap_api_url: Optional[str] = Field(
        default=None, description="Optional ChadSwap order API endpoint"
    )
    protocols: Dict[str, Dict[str, Any]] = Field(
        default_factory=dict,
        description="Per-protocol overrides of the static constants record",
    )

    @field_validator("kupo_url", "vyfi_api_url")
    @classmethod
    def validate_url(cls, v):
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"URL must start with http:// or https://, got {v!r}")
        return v

    @field_validator("chadswap_api_url")
    @classmethod
    def validate_optional_url(cls, v):
        if v is not None and not v.startswith(("http://", "https://")):
            raise ValueError(f"URL must start with http:// or https://, got {v!r}")
        return v

    @field_validator("protocols")
    @classmethod
    def validate_protocols(cls, v):
        unknown = sorted(set(v) - set(KNOWN_PROTOCOLS))
        if unknown:
            raise ValueError(f"Unknown protocols in overrides: {', '.join(unknown)}")
        return v

    @model_validator(mode="after")
    def validate_backoff(self):
        if self.max_delay_ms < self.base_delay_ms:
            raise ValueError("max_delay_ms must be >= base_delay_ms")
        return self
