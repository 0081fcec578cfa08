import logging
import threading
from pathlib import Path

import numpy as np
import tensorflow as tf

from plantdoc.config import Settings
from plantdoc.errors import AssetLoadError, InferenceError, LabelLoadError, ModelNotLoadedError

logger = logging.getLogger(__name__)

MODEL_SUFFIXES = (".tflite", ".keras", ".h5")


class LoadedModel:
    """Handle to a fixed-topology image classifier.

    ``input_shape`` is always ``(1, H, W, 3)`` and ``output_shape`` flattens to
    ``C`` scores. Forward passes are serialized with a lock since neither TFLite
    interpreters nor Keras models promise reentrant inference.
    """

    backend = "base"

    def __init__(self, path: Path, input_shape, output_shape):
        self.path = Path(path)
        self.input_shape = tuple(int(d) for d in input_shape)
        self.output_shape = tuple(int(d) for d in output_shape)
        self._lock = threading.Lock()
        self._closed = False
        if len(self.input_shape) != 4 or self.input_shape[0] != 1 or self.input_shape[3] != 3:
            raise AssetLoadError(
                f"Model at {self.path} declares input shape {list(self.input_shape)}, expected [1, H, W, 3]",
                path=str(self.path),
                declared_shape=list(self.input_shape),
            )

    @property
    def input_size(self) -> tuple[int, int]:
        return self.input_shape[1], self.input_shape[2]

    @property
    def num_classes(self) -> int:
        return int(np.prod(self.output_shape))

    @property
    def closed(self) -> bool:
        return self._closed

    def run(self, batch: np.ndarray) -> np.ndarray:
        """Forward ``batch`` (shape ``input_shape``) and return the C scores as a flat float32 array."""
        with self._lock:
            if self._closed:
                raise ModelNotLoadedError("Model has been closed", path=str(self.path))
            try:
                out = self._forward(batch)
            except Exception as e:
                raise InferenceError(
                    f"Model inference failed: {e}",
                    declared_shape=list(self.input_shape),
                    actual_shape=list(np.shape(batch)),
                ) from e
        scores = np.asarray(out, dtype=np.float32).reshape(-1)
        if scores.size != self.num_classes:
            raise InferenceError(
                f"Model returned {scores.size} scores, expected {self.num_classes}",
                declared_shape=list(self.output_shape),
                actual_shape=list(np.shape(out)),
            )
        return scores

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._release()
        logger.info("Released model %s", self.path)

    def _forward(self, batch: np.ndarray):
        raise NotImplementedError

    def _release(self) -> None:
        pass


class TFLiteModel(LoadedModel):
    backend = "tflite"

    def __init__(self, path: Path):
        self._interpreter = tf.lite.Interpreter(model_path=str(path))
        self._interpreter.allocate_tensors()
        inp = self._interpreter.get_input_details()[0]
        out = self._interpreter.get_output_details()[0]
        self._input_index = inp["index"]
        self._output_index = out["index"]
        try:
            # Quantized inputs would truncate the [0, 1] tensor to zeros
            if np.dtype(inp["dtype"]) != np.float32:
                raise AssetLoadError(
                    f"Model at {path} takes {np.dtype(inp['dtype']).name} input, expected float32",
                    path=str(path),
                    declared_dtype=np.dtype(inp["dtype"]).name,
                )
            super().__init__(path, inp["shape"], out["shape"])
        except AssetLoadError:
            self._release()
            raise

    def _forward(self, batch):
        self._interpreter.set_tensor(self._input_index, np.asarray(batch, dtype=np.float32))
        self._interpreter.invoke()
        return self._interpreter.get_tensor(self._output_index).copy()

    def _release(self):
        self._interpreter = None


class KerasModel(LoadedModel):
    backend = "keras"

    def __init__(self, path: Path, fallback_size: tuple[int, int] = (224, 224)):
        self._model = tf.keras.models.load_model(str(path), compile=False)
        try:
            s = tuple(self._model.inputs[0].shape)
        except (AttributeError, IndexError, TypeError, ValueError):
            s = ()
        if len(s) == 4:
            height = s[1] or fallback_size[0]
            width = s[2] or fallback_size[1]
            channels = s[3] or 3
        else:
            height, width, channels = fallback_size[0], fallback_size[1], 3
        input_shape = (1, int(height), int(width), int(channels))
        # Run once on zeros to learn the output width
        dummy = self._model(tf.zeros(input_shape), training=False)
        try:
            super().__init__(path, input_shape, np.shape(dummy))
        except AssetLoadError:
            self._release()
            raise

    def _forward(self, batch):
        out = self._model(batch, training=False)
        return out.numpy() if hasattr(out, "numpy") else out

    def _release(self):
        self._model = None


def _is_lfs_pointer(path: Path) -> bool:
    if not path.exists() or path.stat().st_size > 1024:
        return False
    with open(path, "rb") as f:
        first = f.read(100).decode("utf-8", errors="ignore")
    return first.strip().startswith("version https://git-lfs.github.com")


def _ensure_model_file(settings: Settings) -> None:
    path = settings.model_path
    if path.exists() and not _is_lfs_pointer(path):
        return
    if not settings.hub_repo_id:
        return
    from huggingface_hub import hf_hub_download

    logger.info("Model missing or LFS pointer; downloading from Hub repo %s", settings.hub_repo_id)
    settings.model_dir.mkdir(parents=True, exist_ok=True)
    for filename in (settings.model_filename, settings.labels_filename):
        try:
            downloaded = hf_hub_download(
                repo_id=settings.hub_repo_id,
                filename=filename,
                local_dir=str(settings.model_dir),
                token=settings.hub_token,
            )
            logger.info("Downloaded %s to %s", filename, downloaded)
        except Exception as e:
            logger.warning("Could not download %s from Hub: %s", filename, e)


def _find_model_path(settings: Settings) -> Path:
    _ensure_model_file(settings)
    path = settings.model_path
    if path.exists() and not _is_lfs_pointer(path):
        return path
    if settings.model_dir.is_dir():
        for suffix in MODEL_SUFFIXES:
            for p in sorted(settings.model_dir.glob(f"*{suffix}")):
                if not _is_lfs_pointer(p):
                    logger.info("Configured model %s unusable; falling back to %s", path, p)
                    return p
    return path


def load_model(settings: Settings) -> LoadedModel:
    path = _find_model_path(settings)
    logger.info("Loading model from %s (exists=%s)", path, path.exists())
    if not path.exists():
        raise AssetLoadError(f"Model not found at {path}", path=str(path))
    if _is_lfs_pointer(path):
        raise AssetLoadError(
            f"Model at {path} is a Git LFS pointer, not a model file", path=str(path), size=path.stat().st_size
        )
    suffix = path.suffix.lower()
    if suffix not in MODEL_SUFFIXES:
        raise AssetLoadError(f"Unsupported model format {suffix!r}", path=str(path))
    try:
        if suffix == ".tflite":
            model = TFLiteModel(path)
        else:
            model = KerasModel(path, fallback_size=(settings.input_height, settings.input_width))
    except AssetLoadError:
        raise
    except Exception as e:
        raise AssetLoadError(f"Model at {path} is malformed: {e}", path=str(path)) from e
    logger.info(
        "Model loaded (%s): input %s, output %s", model.backend, list(model.input_shape), list(model.output_shape)
    )
    return model


def parse_labels(text: str) -> list[str]:
    return [line.strip() for line in text.split("\n") if line.strip()]


def load_labels(path: Path) -> list[str]:
    """Read the label file. Raises LabelLoadError if it is missing, unreadable or empty."""
    try:
        text = Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise LabelLoadError(f"Labels could not be read from {path}: {e}", path=str(path)) from e
    labels = parse_labels(text)
    if not labels:
        raise LabelLoadError(f"Label file {path} is empty", path=str(path))
    return labels


def load_assets(settings: Settings) -> tuple[LoadedModel, list[str], LabelLoadError | None]:
    """Load the model (fatal on failure) and labels (empty table on failure).

    The third element is the label error that was degraded to an empty table, if any.
    """
    model = load_model(settings)
    label_error = None
    try:
        labels = load_labels(settings.labels_path)
    except LabelLoadError as e:
        logger.warning("%s; every prediction will resolve to the unknown-disease label", e)
        labels = []
        label_error = e
    else:
        logger.info("Labels loaded: %d classes", len(labels))
    if labels and len(labels) != model.num_classes:
        logger.warning("Label count %d differs from model output width %d", len(labels), model.num_classes)
    return model, labels, label_error


def load(settings: Settings) -> tuple[LoadedModel, list[str]]:
    model, labels, _ = load_assets(settings)
    return model, labels


def get_model_diagnostics(settings: Settings, model: LoadedModel | None = None) -> dict:
    p = settings.model_path
    out = {
        "model_path": str(p),
        "model_path_exists": p.exists(),
        "model_dir": str(settings.model_dir),
        "model_dir_exists": settings.model_dir.exists(),
        "labels_path": str(settings.labels_path),
        "labels_path_exists": settings.labels_path.exists(),
    }
    if p.exists():
        out["model_path_size"] = p.stat().st_size
        out["model_path_is_lfs_pointer"] = _is_lfs_pointer(p)
    if settings.model_dir.is_dir():
        out["model_dir_listing"] = sorted(x.name for x in settings.model_dir.iterdir())
    else:
        out["model_dir_listing"] = []
    if model is not None:
        out["backend"] = model.backend
        out["input_shape"] = list(model.input_shape)
        out["output_shape"] = list(model.output_shape)
    return out
