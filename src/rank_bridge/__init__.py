from .config import BridgeSettings
from .context import BridgeContext
from .outcome import Applied, Failed, PromotionOutcome, Skipped
from .pipeline import PromotionPipeline, PromotionRequest

__all__ = [
    "BridgeSettings",
    "BridgeContext",
    "PromotionPipeline",
    "PromotionRequest",
    "Applied",
    "Skipped",
    "Failed",
    "PromotionOutcome",
]
