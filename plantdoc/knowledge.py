"""Static disease knowledge: description and treatment per disease key."""

import json
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType


@dataclass(frozen=True)
class DiseaseInfo:
    description: str
    treatment: str


GENERIC_INFO = DiseaseInfo(
    description="Disease detected. Please consult with agricultural expert for detailed information.",
    treatment="Recommended to seek professional agricultural advice for proper treatment.",
)


def normalize_key(name: str) -> str:
    """``"Early Blight"`` -> ``"early_blight"``."""
    return name.lower().replace(" ", "_")


class DiseaseKnowledge:
    """Immutable disease-key -> DiseaseInfo table with a fixed fallback.

    Keys are normalized on construction, so a table may be written with
    display names. Pass a different instance (e.g. a translated one) to the
    classifier to swap descriptions without touching code.
    """

    def __init__(self, entries: Mapping[str, DiseaseInfo], fallback: DiseaseInfo = GENERIC_INFO):
        self._entries = MappingProxyType({normalize_key(k): v for k, v in entries.items()})
        self.fallback = fallback

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, name: str) -> bool:
        return normalize_key(name) in self._entries

    @property
    def keys(self) -> list[str]:
        return list(self._entries)

    def lookup(self, disease_name: str) -> DiseaseInfo:
        return self._entries.get(normalize_key(disease_name), self.fallback)

    @classmethod
    def from_dict(cls, data: Mapping[str, Mapping[str, str]]) -> "DiseaseKnowledge":
        entries = {}
        for key, info in data.items():
            if not isinstance(info, Mapping) or "description" not in info or "treatment" not in info:
                raise ValueError(f"Entry {key!r} needs 'description' and 'treatment'")
            entries[key] = DiseaseInfo(description=str(info["description"]), treatment=str(info["treatment"]))
        return cls(entries)

    @classmethod
    def from_json(cls, path: str | Path) -> "DiseaseKnowledge":
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"{path}: expected a JSON object of disease entries")
        return cls.from_dict(data)


DEFAULT_KNOWLEDGE = DiseaseKnowledge(
    {
        "healthy": DiseaseInfo(
            description="The plant appears to be healthy with no visible signs of disease.",
            treatment="Continue regular care with proper watering, fertilization, and monitoring.",
        ),
        "apple_scab": DiseaseInfo(
            description="A fungal disease that causes dark, scabby lesions on leaves and fruit.",
            treatment="Apply fungicide sprays during early spring. Remove infected leaves and improve air circulation.",
        ),
        "bacterial_spot": DiseaseInfo(
            description="Bacterial infection causing small, dark spots with yellow halos on leaves.",
            treatment="Use copper-based bactericides. Avoid overhead watering and improve drainage.",
        ),
        "early_blight": DiseaseInfo(
            description="Fungal disease causing brown spots with concentric rings on older leaves.",
            treatment="Apply fungicides containing chlorothalonil or copper. Remove affected plant debris.",
        ),
        "late_blight": DiseaseInfo(
            description="Serious fungal disease causing water-soaked lesions that turn brown and black.",
            treatment="Use preventive fungicides. Ensure good air circulation and avoid wet foliage.",
        ),
        "leaf_spot": DiseaseInfo(
            description="Various fungal or bacterial infections causing circular spots on leaves.",
            treatment="Remove infected leaves, improve air circulation, and apply appropriate fungicides.",
        ),
    }
)
