"""Media tooling: probing, frame sampling and transcoding via ffmpeg."""

from app.media.frames import ExtractionError, sample_sequence, sample_single
from app.media.prober import ProbeError, probe
from app.media.transcode import CompressionError, EncoderError, compress

__all__ = [
    "CompressionError",
    "EncoderError",
    "ExtractionError",
    "ProbeError",
    "compress",
    "probe",
    "sample_sequence",
    "sample_single",
]
