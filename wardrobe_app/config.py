"""Configuration helpers for the Wardrobe service."""

from dataclasses import dataclass
from pathlib import Path
import os
from typing import Optional

DEFAULT_CLASSIFICATION_MODEL = "gemini-2.0-flash"
DEFAULT_GENERATION_MODEL = "gemini-2.5-flash-image"
DEFAULT_MAX_UPLOAD_BYTES = 10 * 1024 * 1024


@dataclass
class WardrobeConfig:
    """Configuration values for the Wardrobe service.

    Secrets (the Gemini key and the R2 credentials) are expected to come from
    the runtime environment; everything else can live in an environment YAML
    file.
    """

    api_key: Optional[str] = None
    classification_model: str = DEFAULT_CLASSIFICATION_MODEL
    generation_model: str = DEFAULT_GENERATION_MODEL
    storage_backend: str = "memory"
    r2_account_id: Optional[str] = None
    r2_access_key_id: Optional[str] = None
    r2_secret_access_key: Optional[str] = None
    r2_bucket_name: Optional[str] = None
    r2_public_url: Optional[str] = None
    database_path: str = "data/wardrobe.db"
    max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES
    environment: str | None = None

    @classmethod
    def from_env(cls) -> "WardrobeConfig":
        """Build a config from environment variables or an environment YAML file.

        Environment specific YAML lives in ``config/environments/<env>.yaml`` by
        default and is merged with environment variables, which win.
        """

        env_name = os.getenv("APP_ENV")
        config_path = os.getenv("APP_CONFIG_PATH")
        config_dir = Path(os.getenv("WARDROBE_CONFIG_DIR", "config/environments"))
        yaml_config: dict = {}

        if config_path:
            path = Path(config_path)
        elif env_name:
            path = config_dir / f"{env_name}.yaml"
        else:
            path = None

        if path and path.exists():
            yaml_config = cls._load_yaml_config(path)

        def get_value(key: str, default: Optional[str] = None) -> Optional[str]:
            env_key = key.upper()
            return os.getenv(env_key, yaml_config.get(key, default))

        api_key = get_value("google_generative_ai_api_key")
        storage_backend = get_value("storage_backend")
        if not storage_backend:
            storage_backend = "s3" if get_value("r2_bucket_name") else "memory"

        raw_max_bytes = get_value("max_upload_bytes")
        try:
            max_upload_bytes = int(raw_max_bytes) if raw_max_bytes else DEFAULT_MAX_UPLOAD_BYTES
        except ValueError as exc:
            raise ValueError(f"MAX_UPLOAD_BYTES must be an integer, got {raw_max_bytes!r}") from exc

        return cls(
            api_key=api_key or None,
            classification_model=str(get_value("classification_model") or DEFAULT_CLASSIFICATION_MODEL),
            generation_model=str(get_value("generation_model") or DEFAULT_GENERATION_MODEL),
            storage_backend=str(storage_backend).lower(),
            r2_account_id=get_value("r2_account_id"),
            r2_access_key_id=get_value("r2_access_key_id"),
            r2_secret_access_key=get_value("r2_secret_access_key"),
            r2_bucket_name=get_value("r2_bucket_name"),
            r2_public_url=get_value("r2_public_url"),
            database_path=str(get_value("database_path") or "data/wardrobe.db"),
            max_upload_bytes=max_upload_bytes,
            environment=env_name,
        )

    @property
    def r2_endpoint_url(self) -> str | None:
        if not self.r2_account_id:
            return None
        return f"https://{self.r2_account_id}.r2.cloudflarestorage.com"

    @staticmethod
    def _load_yaml_config(path: Path) -> dict:
        """Parse a flat ``key: value`` YAML file."""

        config: dict[str, str] = {}
        for line in path.read_text().splitlines():
            stripped = line.strip()
            if not stripped or stripped.startswith("#"):
                continue
            if ":" not in stripped:
                continue
            key, raw_value = stripped.split(":", 1)
            value = raw_value.strip()
            if (value.startswith("\"") and value.endswith("\"")) or (
                value.startswith("'") and value.endswith("'")
            ):
                value = value[1:-1]
            config[key.strip()] = value
        return config


__all__ = ["WardrobeConfig", "DEFAULT_CLASSIFICATION_MODEL", "DEFAULT_GENERATION_MODEL", "DEFAULT_MAX_UPLOAD_BYTES"]
