"""Media inspection and preparation: ffprobe, aspect buckets, fast-start remux, object keys."""

from tubely.media.aspect import AspectClass, classify_aspect
from tubely.media.errors import MediaFailure, MediaToolError, ProbeError, RemuxError
from tubely.media.object_key import ObjectKey, build_object_key
from tubely.media.probe import FFprobeProber, MediaGeometry, MediaProber, parse_probe_output
from tubely.media.remux import FFmpegRemuxer, StreamRemuxer

__all__ = [
    "AspectClass",
    "classify_aspect",
    "MediaFailure",
    "MediaToolError",
    "ProbeError",
    "RemuxError",
    "ObjectKey",
    "build_object_key",
    "FFprobeProber",
    "MediaGeometry",
    "MediaProber",
    "parse_probe_output",
    "FFmpegRemuxer",
    "StreamRemuxer",
]
