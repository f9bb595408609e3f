# FILE: voice_habits/providers/playback.py
"""
Audio handle that downloads a media URL and plays it through a command-line player.
"""
import asyncio
import logging
import os
import shutil
import tempfile
import uuid
from pathlib import Path
from typing import List, Optional

import httpx

from voice_habits.errors import (
    NetworkError, RequestTimeout, SynthesisError, UnsupportedError, UpstreamError,
)
from voice_habits.providers.base import AudioHandle

logger = logging.getLogger(__name__)

PLAYER_COMMANDS: List[List[str]] = [
    ["ffplay", "-nodisp", "-autoexit", "-loglevel", "quiet"],
    ["mpg123", "-q"],
    ["afplay"],
    ["paplay"],
    ["aplay", "-q"],
]


def find_player() -> Optional[List[str]]:
    """First installed player command"""
    for command in PLAYER_COMMANDS:
        if shutil.which(command[0]):
            return list(command)
    return None


class UrlAudioHandle(AudioHandle):
    """Network audio: download once, play in a subprocess"""

    def __init__(
        self,
        url: str,
        client: httpx.AsyncClient,
        timeout: float = 30.0,
        player_command: Optional[List[str]] = None,
    ):
        super().__init__()
        self.url = url
        self.client = client
        self.timeout = timeout
        self.player_command = player_command
        self._process: Optional[asyncio.subprocess.Process] = None
        self._watcher: Optional[asyncio.Task] = None
        self._file: Optional[Path] = None
        self._paused = False

    async def _download(self) -> bytes:
        try:
            # Overall deadline; httpx timeouts apply per read
            response = await asyncio.wait_for(self.client.get(self.url, timeout=self.timeout), self.timeout)
        except (httpx.TimeoutException, asyncio.TimeoutError) as e:
            raise RequestTimeout(f"Audio download timed out: {self.url}") from e
        except httpx.TransportError as e:
            raise NetworkError(f"Audio download failed: {e}") from e

        if not response.is_success:
            raise UpstreamError(
                f"Audio download error ({response.status_code})", status_code=response.status_code
            )
        return response.content

    async def play(self) -> None:
        if self._process is not None:
            return

        command = self.player_command or find_player()
        if not command:
            raise UnsupportedError("No audio player found (tried ffplay, mpg123, afplay, paplay, aplay)")

        audio = await self._download()
        if self._paused:
            return

        suffix = Path(httpx.URL(self.url).path).suffix or ".mp3"
        self._file = Path(tempfile.gettempdir()) / f"tts_network_{uuid.uuid4().hex}{suffix}"
        self._file.write_bytes(audio)

        try:
            self._process = await asyncio.create_subprocess_exec(
                *command, str(self._file),
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
            )
        except OSError as e:
            self._cleanup()
            raise SynthesisError(f"Audio player failed to start: {e}") from e

        self._watcher = asyncio.create_task(self._wait_for_exit())

    async def _wait_for_exit(self) -> None:
        returncode = await self._process.wait()
        self._cleanup()
        if self._paused:
            return
        if returncode == 0:
            self._emit("ended")
        else:
            self._emit("error", SynthesisError(f"Audio playback error (player exit {returncode})"))

    def pause(self) -> None:
        self._paused = True
        if self._process is not None and self._process.returncode is None:
            try:
                self._process.terminate()
            except ProcessLookupError:
                pass

    def _cleanup(self) -> None:
        if self._file is not None:
            try:
                os.remove(self._file)
            except OSError:
                pass
            self._file = None
