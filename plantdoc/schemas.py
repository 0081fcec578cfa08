from pydantic import BaseModel, ConfigDict, model_validator
from pydantic.alias_generators import to_camel


class DetectionResult(BaseModel):
    """Outcome of one detection. Serialized with camelCase keys (``diseaseName``)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    disease_name: str = "Unknown"
    description: str = "No description available"
    treatment: str = "No treatment information available"
    confidence: float = 0.0

    @model_validator(mode="before")
    @classmethod
    def _drop_nulls(cls, data):
        # null counts as absent so it picks up the default
        if isinstance(data, dict):
            return {k: v for k, v in data.items() if v is not None}
        return data

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)

    @classmethod
    def from_json(cls, data: str | bytes) -> "DetectionResult":
        return cls.model_validate_json(data)


class HealthResponse(BaseModel):
    status: str
    model_loaded: bool
    labels_loaded: bool = False
    label_error: str | None = None
    model_error: str | None = None
    model_diagnostics: dict | None = None


class ErrorResponse(BaseModel):
    detail: str
    kind: str
    context: dict = {}
