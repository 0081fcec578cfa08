import logging

from plantdoc.classifier import ClassifierRunner
from plantdoc.config import Settings, get_settings
from plantdoc.errors import AssetLoadError, ModelNotLoadedError
from plantdoc.knowledge import DEFAULT_KNOWLEDGE, DiseaseKnowledge
from plantdoc.model import LoadedModel, get_model_diagnostics, load_assets
from plantdoc.preprocess import preprocess
from plantdoc.schemas import DetectionResult

logger = logging.getLogger(__name__)


class DetectionService:
    """Owns the loaded model and label table for the process lifetime.

    Usage:
        with DetectionService() as svc:
            result = svc.detect(open("leaf.jpg", "rb").read())
    """

    def __init__(self, settings: Settings | None = None, knowledge: DiseaseKnowledge | None = None):
        self.settings = settings or get_settings()
        if knowledge is None:
            if self.settings.knowledge_path is not None:
                knowledge = DiseaseKnowledge.from_json(self.settings.knowledge_path)
                logger.info("Loaded %d disease entries from %s", len(knowledge), self.settings.knowledge_path)
            else:
                knowledge = DEFAULT_KNOWLEDGE
        self.runner = ClassifierRunner(knowledge, apply_softmax=self.settings.apply_softmax)
        self.model: LoadedModel | None = None
        self.labels: list[str] = []
        self.load_error: str | None = None
        self.label_error: str | None = None

    @property
    def model_loaded(self) -> bool:
        return self.model is not None and not self.model.closed

    def start(self) -> None:
        if self.model is not None:
            return
        try:
            model, labels, label_error = load_assets(self.settings)
        except AssetLoadError as e:
            self.load_error = f"{type(e).__name__}: {e}"
            raise
        self.model, self.labels = model, labels
        self.load_error = None
        self.label_error = f"{type(label_error).__name__}: {label_error}" if label_error else None

    def detect(self, raw: bytes) -> DetectionResult:
        if not self.model_loaded:
            raise ModelNotLoadedError("Model not loaded", load_error=self.load_error)
        tensor = preprocess(raw, self.model.input_size)
        return self.runner.classify(tensor, self.model, self.labels)

    def close(self) -> None:
        if self.model is not None:
            self.model.close()

    def diagnostics(self) -> dict:
        out = get_model_diagnostics(self.settings, self.model)
        out["label_count"] = len(self.labels)
        out["knowledge_entries"] = len(self.runner.knowledge)
        return out

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, *exc):
        self.close()
