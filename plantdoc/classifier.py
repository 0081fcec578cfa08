import logging

import numpy as np

from plantdoc.errors import InferenceError, ModelNotLoadedError
from plantdoc.knowledge import DEFAULT_KNOWLEDGE, DiseaseKnowledge
from plantdoc.model import LoadedModel
from plantdoc.schemas import DetectionResult

logger = logging.getLogger(__name__)

UNKNOWN_DISEASE = "Unknown Disease"


def argmax_first(scores) -> int:
    """Index of the largest score; on ties the left-most one wins."""
    best = 0
    for i in range(1, len(scores)):
        if scores[i] > scores[best]:
            best = i
    return best


def softmax(scores: np.ndarray) -> np.ndarray:
    shifted = scores - np.max(scores)
    e = np.exp(shifted)
    return (e / e.sum()).astype(np.float32)


def resolve_label(index: int, labels: list[str]) -> str:
    if 0 <= index < len(labels):
        return labels[index]
    return UNKNOWN_DISEASE


class ClassifierRunner:
    """Turns a preprocessed tensor into a DetectionResult.

    The raw model output is used as confidence unless ``apply_softmax`` is set,
    in which case scores are normalized first (useful for logit-emitting models).
    """

    def __init__(self, knowledge: DiseaseKnowledge = DEFAULT_KNOWLEDGE, apply_softmax: bool = False):
        self.knowledge = knowledge
        self.apply_softmax = apply_softmax

    def classify(self, tensor, model: LoadedModel | None, labels: list[str]) -> DetectionResult:
        if model is None or model.closed:
            raise ModelNotLoadedError("Model not loaded")
        tensor = np.asarray(tensor, dtype=np.float32)
        expected = int(np.prod(model.input_shape))
        if tensor.size != expected:
            raise InferenceError(
                f"Tensor has {tensor.size} values, model expects {expected}",
                declared_shape=list(model.input_shape),
                actual_shape=list(tensor.shape),
            )
        scores = model.run(tensor.reshape(model.input_shape))
        if scores.size == 0:
            raise InferenceError("Model returned no scores", declared_shape=list(model.output_shape))
        if self.apply_softmax:
            scores = softmax(scores)

        idx = argmax_first(scores)
        confidence = float(scores[idx])
        disease_name = resolve_label(idx, labels)
        info = self.knowledge.lookup(disease_name)
        logger.info("Prediction: class %d (%s), confidence %.4f", idx, disease_name, confidence)
        return DetectionResult(
            disease_name=disease_name,
            description=info.description,
            treatment=info.treatment,
            confidence=confidence,
        )


def classify(tensor, model: LoadedModel | None, labels: list[str], knowledge: DiseaseKnowledge = DEFAULT_KNOWLEDGE):
    return ClassifierRunner(knowledge).classify(tensor, model, labels)
