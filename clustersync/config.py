from pathlib import Path
import dotenv
import os
from typing import Optional, Dict, Any, List, Mapping
from dataclasses import dataclass


ROOT = Path(__file__).parent.parent

dotenv.load_dotenv(ROOT / '.env')

# Connection defaults
DEFAULT_REQUEST_TIMEOUT = 120

# Every variable the process needs before it may start
REQUIRED_ENV_VARS = [
    'SOURCE_ES_HOST',
    'SOURCE_ES_USERNAME',
    'SOURCE_ES_PASSWORD',
    'TARGET_ES_CLOUD_ID',
    'TARGET_ES_API_KEY_ID',
    'TARGET_ES_API_KEY_SECRET',
    'SOURCE_INDEX_NAME',
    'TARGET_INDEX_NAME',
]

TRUTHY = {'1', 'true', 'yes', 'on'}


def env_flag(value: Optional[str], default: bool = False) -> bool:
    """Interpret an environment string as a boolean flag."""
    if value is None or value.strip() == '':
        return default
    return value.strip().lower() in TRUTHY


def missing_environment_variables(environ: Optional[Mapping[str, str]] = None) -> List[str]:
    """Return the required variables that are unset or empty, in declaration order."""
    environ = os.environ if environ is None else environ
    return [name for name in REQUIRED_ENV_VARS if not environ.get(name)]


def validate_environment(environ: Optional[Mapping[str, str]] = None) -> None:
    """
    Refuse to start unless every required variable is present.

    Raises:
        ConfigurationError: listing all missing variables at once
    """
    missing = missing_environment_variables(environ)
    if missing:
        from .sync.error_tracker import ConfigurationError
        raise ConfigurationError(
            f"Missing required environment variables: {', '.join(missing)}",
            recovery_suggestion="Set them in the process environment or in the .env file at the project root",
        )


def _request_timeout(environ: Mapping[str, str]) -> int:
    raw = environ.get('ES_REQUEST_TIMEOUT')
    return int(raw) if raw else DEFAULT_REQUEST_TIMEOUT


@dataclass
class SourceClusterConfig:
    """Connection settings for the cluster documents are read from"""
    host: str
    username: str
    password: str
    verify_certs: bool = False
    timeout: int = DEFAULT_REQUEST_TIMEOUT

    @classmethod
    def from_environment(cls, environ: Optional[Mapping[str, str]] = None) -> 'SourceClusterConfig':
        """
        Create source cluster configuration from environment variables.

        Raises:
            ConfigurationError: If required environment variables are missing
        """
        environ = os.environ if environ is None else environ
        missing = [name for name in ('SOURCE_ES_HOST', 'SOURCE_ES_USERNAME', 'SOURCE_ES_PASSWORD') if not environ.get(name)]
        if missing:
            from .sync.error_tracker import ConfigurationError
            raise ConfigurationError(f"Missing required source cluster environment variables: {', '.join(missing)}")

        return cls(
            host=environ['SOURCE_ES_HOST'],
            username=environ['SOURCE_ES_USERNAME'],
            password=environ['SOURCE_ES_PASSWORD'],
            verify_certs=env_flag(environ.get('SOURCE_ES_VERIFY_CERTS'), default=False),
            timeout=_request_timeout(environ),
        )

    @property
    def url(self) -> str:
        # Bare endpoints are served over TLS
        if self.host.startswith(('http://', 'https://')):
            return self.host
        return f'https://{self.host}'

    def to_elasticsearch_kwargs(self) -> Dict[str, Any]:
        """
        Convert configuration to Elasticsearch client kwargs.

        Returns:
            Dictionary of kwargs for AsyncElasticsearch initialization
        """
        kwargs = {
            'hosts': [self.url],
            'basic_auth': (self.username, self.password),
            'request_timeout': self.timeout,
        }

        if self.url.startswith('https://'):
            kwargs.update({
                'verify_certs': self.verify_certs,
                'ssl_show_warn': self.verify_certs,
            })

        return kwargs

    def redacted(self) -> Dict[str, Any]:
        return {'host': self.url, 'username': self.username, 'password': '***',
                'verify_certs': self.verify_certs, 'timeout': self.timeout}


@dataclass
class TargetClusterConfig:
    """Connection settings for the hosted cluster documents are written to"""
    cloud_id: str
    api_key_id: str
    api_key_secret: str
    timeout: int = DEFAULT_REQUEST_TIMEOUT

    @classmethod
    def from_environment(cls, environ: Optional[Mapping[str, str]] = None) -> 'TargetClusterConfig':
        """
        Create target cluster configuration from environment variables.

        Raises:
            ConfigurationError: If required environment variables are missing
        """
        environ = os.environ if environ is None else environ
        missing = [name for name in ('TARGET_ES_CLOUD_ID', 'TARGET_ES_API_KEY_ID', 'TARGET_ES_API_KEY_SECRET') if not environ.get(name)]
        if missing:
            from .sync.error_tracker import ConfigurationError
            raise ConfigurationError(f"Missing required target cluster environment variables: {', '.join(missing)}")

        return cls(
            cloud_id=environ['TARGET_ES_CLOUD_ID'],
            api_key_id=environ['TARGET_ES_API_KEY_ID'],
            api_key_secret=environ['TARGET_ES_API_KEY_SECRET'],
            timeout=_request_timeout(environ),
        )

    def to_elasticsearch_kwargs(self) -> Dict[str, Any]:
        return {
            'cloud_id': self.cloud_id,
            'api_key': (self.api_key_id, self.api_key_secret),
            'request_timeout': self.timeout,
            'verify_certs': True,
        }

    def redacted(self) -> Dict[str, Any]:
        return {'cloud_id': self.cloud_id, 'api_key_id': self.api_key_id,
                'api_key_secret': '***', 'timeout': self.timeout}
