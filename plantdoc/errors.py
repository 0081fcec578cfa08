from enum import Enum


class ErrorKind(str, Enum):
    ASSET_LOAD = "asset_load"
    LABEL_LOAD = "label_load"
    DECODE = "decode"
    MODEL_NOT_LOADED = "model_not_loaded"
    INFERENCE = "inference"


class PlantDocError(Exception):
    """Base error. Callers branch on ``kind``; ``context`` holds the offending values."""

    kind: ErrorKind

    def __init__(self, message: str, **context):
        super().__init__(message)
        self.message = message
        self.context = context


class AssetLoadError(PlantDocError):
    kind = ErrorKind.ASSET_LOAD


class LabelLoadError(PlantDocError):
    kind = ErrorKind.LABEL_LOAD


class DecodeError(PlantDocError):
    kind = ErrorKind.DECODE


class ModelNotLoadedError(PlantDocError):
    kind = ErrorKind.MODEL_NOT_LOADED


class InferenceError(PlantDocError):
    kind = ErrorKind.INFERENCE
