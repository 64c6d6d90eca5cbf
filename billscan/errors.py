"""Exception hierarchy for the bill scanning pipeline."""


class BillScanError(Exception):
    """Base class for all scanning errors."""


class InputError(BillScanError):
    """The image or scan arguments supplied by the caller are unusable."""


class EngineError(BillScanError):
    """The OCR engine failed; the scan is aborted without partial fields."""


class ScanCancelled(BillScanError):
    """A cancellation request was observed at a checkpoint."""


class ScanInProgressError(BillScanError):
    """Another scan is already running on the same scanner."""
