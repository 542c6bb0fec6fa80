"""Version capture, planning and navigation."""

from entity_rewind.rewind.applier import DiffApplier
from entity_rewind.rewind.approach import ApproachEngine
from entity_rewind.rewind.capture import DiffCapture
from entity_rewind.rewind.manager import RewindManager

__all__ = ["ApproachEngine", "DiffApplier", "DiffCapture", "RewindManager"]
