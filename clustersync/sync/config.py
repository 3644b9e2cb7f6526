"""
Tunable settings for the replication engine.

Settings come from (lowest to highest precedence) model defaults, an optional
YAML file, and `SYNC_*` environment variables. Index names are required and
come from `SOURCE_INDEX_NAME` / `TARGET_INDEX_NAME` unless the YAML file
names them.
"""

import os
import yaml
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from ..config import env_flag
from .error_tracker import ConfigurationError
from .resilience import RetryPolicy


class ScheduleMode(str, Enum):
    """How the scheduler spaces consecutive passes."""
    IMMEDIATE = "immediate"  # short fixed restart delay
    INTERVAL = "interval"  # fixed wait between passes


class BatchFailurePolicy(str, Enum):
    """What a pass does after a batch exhausts its retries."""
    CONTINUE = "continue"
    ABORT = "abort"


class MappingAdjustments(BaseModel):
    """Edits applied to the source mapping before the target index is created."""
    object_fields: List[str] = Field(
        default_factory=lambda: ["jsonPayload"],
        description="Fields remapped to type 'object' with multi-fields removed",
    )
    strip_analyzer_fields: List[str] = Field(
        default_factory=lambda: ["marketVariation", "brand"],
        description="Fields whose custom analyzers do not exist on the target",
    )
    drop_fields: List[str] = Field(default_factory=list, description="Fields removed from the mapping")


class RetrySettings(BaseModel):
    max_retries: int = Field(default=3, ge=1, description="Attempts per bulk write before the batch is failed")
    base_delay_seconds: float = Field(default=1.0, ge=0, description="Backoff floor and throttle pause")
    max_delay_seconds: float = Field(default=30.0, ge=0, description="Backoff ceiling")

    @model_validator(mode='after')
    def validate_delay_bounds(self):
        if self.max_delay_seconds < self.base_delay_seconds:
            raise ValueError('max_delay_seconds must not be lower than base_delay_seconds')
        return self

    def to_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_retries=self.max_retries,
            base_delay_seconds=self.base_delay_seconds,
            max_delay_seconds=self.max_delay_seconds,
        )


class SyncSettings(BaseModel):
    """Main configuration for one source/target index pair."""
    source_index: str = Field(..., description="Index documents are read from")
    target_index: str = Field(..., description="Index documents are written to")

    # Extraction
    page_size: int = Field(default=200, ge=1, le=10000, description="Documents per scroll page")
    scroll_lease: str = Field(default="1m", description="Scroll keep-alive renewed on every page")

    # Transformation
    payload_fields: List[str] = Field(default_factory=lambda: ["jsonPayload"], description="Fields holding JSON encoded as text")

    # Writing
    detect_changes: bool = Field(default=False, description="Skip documents identical to the stored version")
    throttle: bool = Field(default=False, description="Pause base_delay_seconds after every applied batch")
    bulk_refresh: bool = Field(default=True, description="Refresh the target after each bulk request")
    bulk_timeout: str = Field(default="2m", description="Server-side bulk timeout")
    on_batch_failure: BatchFailurePolicy = Field(default=BatchFailurePolicy.CONTINUE)
    retry: RetrySettings = Field(default_factory=RetrySettings)

    # Provisioning
    mapping_adjustments: MappingAdjustments = Field(default_factory=MappingAdjustments)

    # Scheduling
    schedule_mode: ScheduleMode = Field(default=ScheduleMode.IMMEDIATE)
    interval_seconds: float = Field(default=300.0, ge=0, description="Wait between passes in interval mode")
    restart_delay_seconds: float = Field(default=5.0, ge=0, description="Wait between passes in immediate mode")

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="text", description="text or json")

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v):
        v = v.upper()
        if v not in ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'):
            raise ValueError(f'Invalid log level: {v}')
        return v

    @field_validator('log_format')
    @classmethod
    def validate_log_format(cls, v):
        v = v.lower()
        if v not in ('text', 'json'):
            raise ValueError(f'Invalid log format: {v}')
        return v

    @field_validator('payload_fields', mode='before')
    @classmethod
    def split_payload_fields(cls, v):
        if isinstance(v, str):
            return [part.strip() for part in v.split(',') if part.strip()]
        return v

    @property
    def pass_delay_seconds(self) -> float:
        """Wait inserted between the end of one pass and the start of the next."""
        if self.schedule_mode == ScheduleMode.INTERVAL:
            return self.interval_seconds
        return self.restart_delay_seconds

    def retry_policy(self) -> RetryPolicy:
        return self.retry.to_policy()

    @classmethod
    def load(cls, config_file: Optional[Union[str, Path]] = None, environ: Optional[Mapping[str, str]] = None, **overrides) -> 'SyncSettings':
        """
        Build settings from an optional YAML file, the environment and explicit overrides.

        Raises:
            ConfigurationError: when the file is missing or the values are invalid
        """
        environ = os.environ if environ is None else environ
        data: Dict[str, Any] = {}
        if config_file:
            data = _read_yaml(config_file)
        _merge(data, settings_from_environment(environ))
        _merge(data, {k: v for k, v in overrides.items() if v is not None})
        try:
            return cls(**data)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid sync settings: {e}")

    def to_yaml(self, path: Union[str, Path]) -> None:
        """Save configuration to YAML file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        data = self.model_dump(mode='json')
        with open(path, 'w', encoding='utf-8') as f:
            yaml.dump(data, f, default_flow_style=False, allow_unicode=True)


# Environment variable -> (settings path, converter)
_ENV_SETTINGS = {
    'SOURCE_INDEX_NAME': (('source_index',), str),
    'TARGET_INDEX_NAME': (('target_index',), str),
    'SYNC_PAGE_SIZE': (('page_size',), int),
    'SYNC_SCROLL_LEASE': (('scroll_lease',), str),
    'SYNC_PAYLOAD_FIELDS': (('payload_fields',), str),
    'SYNC_DETECT_CHANGES': (('detect_changes',), env_flag),
    'SYNC_THROTTLE': (('throttle',), env_flag),
    'SYNC_BULK_REFRESH': (('bulk_refresh',), env_flag),
    'SYNC_BULK_TIMEOUT': (('bulk_timeout',), str),
    'SYNC_ON_BATCH_FAILURE': (('on_batch_failure',), str),
    'SYNC_MAX_RETRIES': (('retry', 'max_retries'), int),
    'SYNC_BASE_DELAY_SECONDS': (('retry', 'base_delay_seconds'), float),
    'SYNC_MAX_DELAY_SECONDS': (('retry', 'max_delay_seconds'), float),
    'SYNC_SCHEDULE_MODE': (('schedule_mode',), str),
    'SYNC_INTERVAL_SECONDS': (('interval_seconds',), float),
    'SYNC_RESTART_DELAY_SECONDS': (('restart_delay_seconds',), float),
    'SYNC_LOG_LEVEL': (('log_level',), str),
    'SYNC_LOG_FORMAT': (('log_format',), str),
}


def settings_from_environment(environ: Mapping[str, str]) -> Dict[str, Any]:
    """Collect the settings present in the environment as a nested dict."""
    data: Dict[str, Any] = {}
    for name, (path, convert) in _ENV_SETTINGS.items():
        raw = environ.get(name)
        if raw is None or raw == '':
            continue
        try:
            value = convert(raw)
        except ValueError:
            raise ConfigurationError(f"Invalid value for {name}: {raw!r}")
        target = data
        for key in path[:-1]:
            target = target.setdefault(key, {})
        target[path[-1]] = value
    return data


def _read_yaml(path: Union[str, Path]) -> Dict[str, Any]:
    path = Path(path)
    if not path.exists():
        raise ConfigurationError(f"Configuration file not found: {path}")
    with open(path, 'r', encoding='utf-8') as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Configuration file must contain a mapping: {path}")
    return data


def _merge(base: Dict[str, Any], updates: Dict[str, Any]) -> Dict[str, Any]:
    for key, value in updates.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _merge(base[key], value)
        else:
            base[key] = value
    return base
