"""External decoder wrapper for compressed audio (MP3, OGG)."""

from __future__ import annotations

import logging
import shutil
import subprocess
import tempfile
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path

from .config import DecoderConfig
from .errors import UnsupportedFormatError

logger = logging.getLogger(__name__)


class ExternalDecoder:
    """Runs ``lame`` / ``oggdec`` to turn a compressed file into a temporary WAV.

    Each decode gets its own temporary directory; ``cleanup()`` removes it
    once the WAV has been consumed. Asynchronous decodes share one thread
    pool per decoder.
    """

    def __init__(self, config: DecoderConfig | None = None) -> None:
        self.config = config or DecoderConfig()
        self._executor: ThreadPoolExecutor | None = None

    def command_for(self, path: Path, output: Path) -> list[str]:
        """Build the decoder command line for ``path``.

        Raises:
            UnsupportedFormatError: If no decoder handles the file extension
        """
        templates = {
            ".mp3": self.config.mp3_command,
            ".ogg": self.config.ogg_command,
        }
        template = templates.get(path.suffix.lower())
        if template is None:
            raise UnsupportedFormatError(f"No decoder for {path.name}")
        return [part.format(input=str(path), output=str(output)) for part in template]

    def decode(self, path: Path) -> Path:
        """Decode ``path`` synchronously.

        Args:
            path: Compressed audio file

        Returns:
            Path of the decoded WAV file inside a fresh temporary directory

        Raises:
            UnsupportedFormatError: If the decoder is missing, fails, or
                produces no output
        """
        path = Path(path)
        workdir = Path(tempfile.mkdtemp(prefix="fragmatch-", dir=self.config.temp_dir))
        output = workdir / f"{path.stem}.wav"
        cmd = self.command_for(path, output)

        logger.debug("[Decoder] Running: %s", " ".join(cmd))
        try:
            completed = subprocess.run(cmd, capture_output=True, text=True, check=False)
        except FileNotFoundError as e:
            shutil.rmtree(workdir, ignore_errors=True)
            raise UnsupportedFormatError(f"Decoder not available for {path.name}: {cmd[0]}") from e

        messages = f"{completed.stdout or ''}{completed.stderr or ''}"
        if completed.returncode != 0 or "error:" in messages.lower() or not output.is_file():
            shutil.rmtree(workdir, ignore_errors=True)
            logger.debug("[Decoder] %s failed (exit %d): %s", cmd[0], completed.returncode, messages)
            raise UnsupportedFormatError(f"The file {path.name} is of a format which is not supported")

        logger.debug("[Decoder] Decoded %s -> %s", path.name, output)
        return output

    def decode_async(self, path: Path) -> Future[Path]:
        """Submit ``decode(path)`` to the background pool."""
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=self.config.max_workers,
                thread_name_prefix="fragmatch-decode",
            )
        return self._executor.submit(self.decode, Path(path))

    @staticmethod
    def cleanup(output: Path) -> None:
        """Remove a decoded WAV and its temporary directory."""
        shutil.rmtree(Path(output).parent, ignore_errors=True)

    def shutdown(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None
