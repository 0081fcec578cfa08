"""
Service configuration.

Every field can be overridden from the environment, e.g.
``PLANTDOC_MODEL_DIR=/srv/models`` or ``PLANTDOC_APPLY_SOFTMAX=true``.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

_REPO_ROOT = Path(__file__).resolve().parent.parent


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="PLANTDOC_", protected_namespaces=())

    model_dir: Path = Field(default=_REPO_ROOT / "model", description="Directory holding the packaged assets")
    model_filename: str = Field(default="plant_disease_model.tflite", description=".tflite, .keras or .h5")
    labels_filename: str = Field(default="labels.txt", description="Newline-delimited class names")
    knowledge_path: Path | None = Field(default=None, description="Optional JSON disease table")

    # Only used when the model does not declare a static spatial shape
    input_height: int = Field(default=224, gt=0)
    input_width: int = Field(default=224, gt=0)

    require_model: bool = Field(default=True, description="Refuse to start when the model cannot be loaded")
    apply_softmax: bool = Field(default=False, description="Normalize raw scores before picking confidence")

    hub_repo_id: str | None = Field(default=None, description="Hugging Face repo to fetch a missing model from")
    hub_token: str | None = Field(default=None)

    log_level: str = Field(default="INFO")

    @property
    def model_path(self) -> Path:
        return self.model_dir / self.model_filename

    @property
    def labels_path(self) -> Path:
        return self.model_dir / self.labels_filename


@lru_cache
def get_settings() -> Settings:
    return Settings()
