# src/karpenter_ovhcloud/core/config.py

import logging
import os

from dotenv import load_dotenv

from .exceptions import ConfigurationError

# Load environment variables from a .env file located in the project root
dotenv_path = os.path.join(os.path.dirname(__file__), "..", "..", "..", ".env")
load_dotenv(dotenv_path=dotenv_path)

SECRETS_DIR = "/etc/karpenter-ovhcloud/secrets"


def _env_bool(key: str, default: str) -> bool:
    return os.getenv(key, default).lower() in ("true", "1", "t", "y", "yes")


class Config:
    """
    Handles the application's configuration by loading values from environment variables.
    """

    def __init__(self):
        # --- OVH API credentials ---
        self.OVH_APPLICATION_KEY = self._get_secret("OVH_APPLICATION_KEY")
        self.OVH_APPLICATION_SECRET = self._get_secret("OVH_APPLICATION_SECRET")
        self.OVH_CONSUMER_KEY = self._get_secret("OVH_CONSUMER_KEY")

    @staticmethod
    def _get_secret(key: str, default: str = None) -> str:
        """
        Retrieves a secret from a file (mounted secret volume) or falls back to environment variable.

        Raises:
            PermissionError: If the secret file exists but cannot be read due to permissions.
            IOError: If the secret file exists but cannot be read due to I/O errors.
        """
        secret_file = f"{SECRETS_DIR}/{key}"
        if os.path.exists(secret_file):
            try:
                with open(secret_file, "r") as f:
                    value = f.read().strip()
                    logging.getLogger(__name__).debug(f"Loaded secret '{key}' from {secret_file}")
                    return value
            except PermissionError as e:
                raise PermissionError(
                    f"Secret file '{secret_file}' exists but cannot be read due to permission denied. "
                    f"Please check file permissions or run with appropriate privileges."
                ) from e
            except (IOError, OSError) as e:
                raise IOError(
                    f"Secret file '{secret_file}' exists but cannot be read: {e}. "
                    f"Please check the file integrity and system resources."
                ) from e
        return os.getenv(key, default)

    # --- OVH API target ---
    # Cluster identity and region are read at access time so tests and the CLI
    # can change them through the environment after import.
    @property
    def OVH_ENDPOINT(self) -> str:
        return os.getenv("OVH_ENDPOINT", "ovh-eu")

    @property
    def OVH_SERVICE_NAME(self) -> str:
        return os.getenv("OVH_SERVICE_NAME", "")

    @property
    def OVH_KUBE_ID(self) -> str:
        return os.getenv("OVH_KUBE_ID", "")

    @property
    def OVH_REGION(self) -> str:
        # Empty means "auto-detect from the cluster".
        return os.getenv("OVH_REGION", "")

    # --- Pricing catalog ---
    OVH_PRICING_SUBSIDIARY = os.getenv("OVH_PRICING_SUBSIDIARY", "FR")
    PRICING_CATALOG_URL = os.getenv("PRICING_CATALOG_URL", "https://api.ovh.com/1.0/order/catalog/public/cloud")
    PRICING_CACHE_TTL_HOURS = float(os.getenv("PRICING_CACHE_TTL_HOURS", "6"))

    # --- Remote API retries ---
    API_MAX_RETRIES = int(os.getenv("API_MAX_RETRIES", "3"))
    API_INITIAL_BACKOFF_SECONDS = float(os.getenv("API_INITIAL_BACKOFF_SECONDS", "1"))
    API_MAX_BACKOFF_SECONDS = float(os.getenv("API_MAX_BACKOFF_SECONDS", "30"))
    API_BACKOFF_FACTOR = float(os.getenv("API_BACKOFF_FACTOR", "2.0"))

    # --- Node provisioning ---
    NODE_POLL_INTERVAL_SECONDS = float(os.getenv("NODE_POLL_INTERVAL_SECONDS", "10"))
    NODE_WAIT_TIMEOUT_SECONDS = float(os.getenv("NODE_WAIT_TIMEOUT_SECONDS", "600"))

    # --- HTTP defaults ---
    DEFAULT_TIMEOUT_CONNECT = float(os.getenv("DEFAULT_TIMEOUT_CONNECT", "10"))
    DEFAULT_TIMEOUT_READ = float(os.getenv("DEFAULT_TIMEOUT_READ", "30"))
    USER_AGENT = os.getenv("USER_AGENT", "karpenter-ovhcloud")
    PRICING_VERIFY_CERTS = _env_bool("PRICING_VERIFY_CERTS", "True")

    # --- Telemetry ---
    # Empty disables the OTLP exporter; metrics then go to the no-op global meter.
    OTEL_EXPORTER_OTLP_ENDPOINT = os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT", "")
    OTEL_SERVICE_NAME = os.getenv("OTEL_SERVICE_NAME", "karpenter-ovhcloud")

    # --- Logging variables ---
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    def validate_instance(self):
        if self.API_MAX_RETRIES < 0:
            raise ValueError("API_MAX_RETRIES must be zero or positive.")
        if self.API_BACKOFF_FACTOR < 1.0:
            raise ValueError("API_BACKOFF_FACTOR must be at least 1.0.")
        if self.API_INITIAL_BACKOFF_SECONDS > self.API_MAX_BACKOFF_SECONDS:
            raise ValueError("API_INITIAL_BACKOFF_SECONDS cannot exceed API_MAX_BACKOFF_SECONDS.")
        if self.NODE_POLL_INTERVAL_SECONDS <= 0 or self.NODE_WAIT_TIMEOUT_SECONDS <= 0:
            raise ValueError("NODE_POLL_INTERVAL_SECONDS and NODE_WAIT_TIMEOUT_SECONDS must be positive.")
        if self.PRICING_CACHE_TTL_HOURS <= 0:
            raise ValueError("PRICING_CACHE_TTL_HOURS must be positive.")

    def validate_credentials(self):
        """
        Checks that everything needed to talk to the authenticated OVH API is set.
        Credentials may be refreshed from the environment since import.
        """
        for key in ("OVH_APPLICATION_KEY", "OVH_APPLICATION_SECRET", "OVH_CONSUMER_KEY"):
            if not getattr(self, key, None):
                setattr(self, key, self._get_secret(key))
        missing = [
            key
            for key in ("OVH_APPLICATION_KEY", "OVH_APPLICATION_SECRET", "OVH_CONSUMER_KEY")
            if not getattr(self, key)
        ]
        if missing:
            raise ConfigurationError(f"OVH credentials not set: {', '.join(missing)}")
        if not self.OVH_SERVICE_NAME:
            raise ConfigurationError("OVH_SERVICE_NAME must be set to the Public Cloud project ID")
        if not self.OVH_KUBE_ID:
            raise ConfigurationError("OVH_KUBE_ID must be set to the MKS cluster ID")


# Instantiate the config to be imported by other modules
config = Config()
config.validate_instance()
