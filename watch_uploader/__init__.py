__version__ = "0.1.0"

from .config import WatchConfig
from .coordinator import UploadCoordinator
from .debounce import Debouncer
from .models import AttemptResult, AttemptState, UploadOutcome
from .stability import StabilityDetector
from .uploader import UploadPipeline

__all__ = [
    "WatchConfig",
    "UploadCoordinator",
    "Debouncer",
    "AttemptResult",
    "AttemptState",
    "UploadOutcome",
    "StabilityDetector",
    "UploadPipeline",
]
