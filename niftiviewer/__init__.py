"""View NIfTI MRI volumes with tumour masks, filters, statistics and video export."""

__version__ = "0.1.0"