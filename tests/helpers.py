from __future__ import annotations

import json
import re
import stat
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import jwt

JWT_SECRET = "test-secret"
JWT_ISSUER = "tubely-test"
JWT_AUDIENCE = "tubely"
TEST_BUCKET = "tubely-test"

OBJECT_KEY_PATTERN = re.compile(r"^(landscape|portrait|other)/[A-Za-z0-9_-]{43}\.mp4$")

_FFPROBE_SCRIPT = """#!/bin/sh
if [ "$1" = "-version" ]; then echo "ffprobe version fake"; exit 0; fi
if [ -f "{root}/ffprobe.fail" ]; then echo "moov atom not found" >&2; exit 1; fi
cat "{root}/ffprobe.json"
"""

_FFMPEG_SCRIPT = """#!/bin/sh
if [ "$1" = "-version" ]; then echo "ffmpeg version fake"; exit 0; fi
src=""
prev=""
for arg in "$@"; do
  if [ "$prev" = "-i" ]; then src="$arg"; fi
  prev="$arg"
done
if [ -f "{root}/ffmpeg.fail" ]; then
  echo "partial" > "$prev"
  echo "Invalid data found when processing input" >&2
  exit 1
fi
cp "$src" "$prev"
"""


def build_token(user_id: str, *, scopes: list[str] | None = None) -> str:
    payload: dict[str, Any] = {"sub": user_id, "iss": JWT_ISSUER, "aud": JWT_AUDIENCE}
    if scopes:
        payload["scopes"] = scopes
    return jwt.encode(payload, JWT_SECRET, algorithm="HS256")


def auth_headers(user_id: str, *, scopes: list[str] | None = None) -> dict[str, str]:
    return {"Authorization": f"Bearer {build_token(user_id, scopes=scopes)}"}


def ffprobe_payload(*streams: dict[str, Any]) -> dict[str, Any]:
    return {"streams": list(streams)}


def video_stream(width: int, height: int, *, index: int = 0, codec: str = "h264") -> dict[str, Any]:
    return {"index": index, "codec_type": "video", "codec_name": codec, "width": width, "height": height}


def audio_stream(*, index: int = 1) -> dict[str, Any]:
    return {"index": index, "codec_type": "audio", "codec_name": "aac", "channels": 2}


def _write_executable(path: Path, body: str) -> Path:
    path.write_text(body)
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


@dataclass
class FakeMediaTools:
    """Shell stand-ins for ffprobe/ffmpeg whose behaviour tests can flip."""

    root: Path
    ffprobe: Path
    ffmpeg: Path

    @classmethod
    def install(cls, root: Path) -> "FakeMediaTools":
        root.mkdir(parents=True, exist_ok=True)
        tools = cls(
            root=root,
            ffprobe=_write_executable(root / "ffprobe", _FFPROBE_SCRIPT.format(root=root)),
            ffmpeg=_write_executable(root / "ffmpeg", _FFMPEG_SCRIPT.format(root=root)),
        )
        tools.set_streams(video_stream(1280, 720), audio_stream())
        return tools

    def set_streams(self, *streams: dict[str, Any]) -> None:
        self.set_probe_output(json.dumps(ffprobe_payload(*streams)))

    def set_probe_output(self, text: str) -> None:
        (self.root / "ffprobe.json").write_text(text)

    def fail_probe(self) -> None:
        (self.root / "ffprobe.fail").touch()

    def fail_remux(self) -> None:
        (self.root / "ffmpeg.fail").touch()


def leftover_files(directory: Path) -> list[Path]:
    if not directory.exists():
        return []
    return sorted(directory.iterdir())
