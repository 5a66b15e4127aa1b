"""Extraction engine adapter (yt-dlp) and the single-attempt extraction invoker."""

import asyncio
import copy
import functools
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Callable, List, Mapping, Optional

import yt_dlp

from models.media import (
    CredentialFailure,
    EngineResult,
    ExtractionOutcome,
    ExtractionRequest,
    ExtractionSuccess,
    FatalFailure,
    TimeRange,
)

logger = logging.getLogger(__name__)

# Substrings in engine error text that point at the credential rather than
# the source or profile. This is yt-dlp's current vocabulary, not a contract:
# it can both over- and under-match.
CREDENTIAL_ERROR_MARKERS = (
    "sign in",
    "cookie",
    "login",
    "certificate",
    "403",
    "forbidden",
    "401",
    "unauthorized",
    "not a bot",
)

FailureClassifier = Callable[[str], bool]


def is_credential_failure(error_text: str) -> bool:
    """Return True if engine error text blames authorization/cookies/TLS."""
    text = error_text.lower()
    return any(marker in text for marker in CREDENTIAL_ERROR_MARKERS)


class ExtractionEngine(ABC):
    """Contract for the external media extraction engine."""

    @abstractmethod
    def extract(
        self,
        source_url: str,
        options: Mapping[str, Any],
        credential_path: Optional[Path],
        time_range: Optional[TimeRange],
        output_path: Path,
    ) -> EngineResult:
        """Download ``source_url`` into ``output_path``.

        Blocks until the engine finishes. Must not raise: every failure is
        reported through a non-zero exit status with text in ``stderr``.
        """


class _CapturingLogger:
    """yt-dlp ``logger`` option that keeps output in memory."""

    def __init__(self):
        self.stdout: List[str] = []
        self.warnings: List[str] = []
        self.stderr: List[str] = []

    def debug(self, msg: str) -> None:
        # yt-dlp routes both debug and info lines through debug()
        if not msg.startswith("[debug] "):
            self.stdout.append(msg)

    def info(self, msg: str) -> None:
        self.stdout.append(msg)

    def warning(self, msg: str) -> None:
        # Retried fragment errors ("HTTP Error 403 ... Retrying") land here
        self.warnings.append(msg)

    def error(self, msg: str) -> None:
        self.stderr.append(msg)


def _make_download_ranges(start: float, end: float):
    """Build a download_ranges callback with signature (info_dict, ydl)."""
    def download_ranges_func(info_dict, ydl):
        return [{"start_time": start, "end_time": end}]
    return download_ranges_func


class YtDlpEngine(ExtractionEngine):
    """Extraction engine backed by the yt-dlp library."""

    def __init__(self, retries: int = 3, socket_timeout: int = 30):
        self.retries = retries
        self.socket_timeout = socket_timeout

    def build_options(
        self,
        options: Mapping[str, Any],
        credential_path: Optional[Path],
        time_range: Optional[TimeRange],
        output_path: Path,
        capture: _CapturingLogger,
    ) -> dict:
        """Assemble the YoutubeDL option dict for one run."""
        # Post-processors rename to the final extension, so template the stem
        stem = str(output_path.with_suffix("")).replace("%", "%%")

        ydl_opts = {
            # TLS verification is disabled for every request, not per-request
            "nocheckcertificate": True,
            **copy.deepcopy(dict(options)),
            "outtmpl": f"{stem}.%(ext)s",
            "noplaylist": True,
            "retries": self.retries,
            "socket_timeout": self.socket_timeout,
            "ignoreerrors": False,
            "quiet": True,
            "no_warnings": False,
            "noprogress": True,
            "logger": capture,
        }

        if credential_path is not None:
            ydl_opts["cookiefile"] = str(credential_path)

        if time_range is not None:
            ydl_opts["download_ranges"] = _make_download_ranges(
                time_range.start_seconds, time_range.end_seconds
            )
            # Required for precise time range cuts
            ydl_opts["force_keyframes_at_cuts"] = True

        return ydl_opts

    def extract(
        self,
        source_url: str,
        options: Mapping[str, Any],
        credential_path: Optional[Path],
        time_range: Optional[TimeRange],
        output_path: Path,
    ) -> EngineResult:
        capture = _CapturingLogger()
        ydl_opts = self.build_options(options, credential_path, time_range, output_path, capture)

        try:
            with yt_dlp.YoutubeDL(ydl_opts) as ydl:
                exit_status = ydl.download([source_url])
        except yt_dlp.DownloadError as e:
            # yt-dlp logs the same "ERROR: ..." line before raising
            if str(e) not in capture.stderr:
                capture.stderr.append(str(e))
            exit_status = 1
        except Exception as e:
            capture.stderr.append(f"{type(e).__name__}: {e}")
            exit_status = 1

        return EngineResult(
            exit_status=exit_status,
            stdout="\n".join(capture.stdout),
            stderr="\n".join(capture.stderr),
            warnings="\n".join(capture.warnings),
        )


class ExtractionInvoker:
    """Runs one extraction attempt and classifies the outcome.

    The blocking engine call runs in the loop's default executor so other
    requests keep progressing. If the awaiting task is cancelled or times out,
    the engine thread is left to finish and whatever it wrote is passed to
    ``cleanup`` once it does.
    """

    def __init__(
        self,
        engine: ExtractionEngine,
        classifier: FailureClassifier = is_credential_failure,
        timeout: Optional[float] = None,
        cleanup: Optional[Callable[[Path], None]] = None,
    ):
        self.engine = engine
        self.classifier = classifier
        self.timeout = timeout
        self.cleanup = cleanup

    async def run(self, request: ExtractionRequest) -> ExtractionOutcome:
        credential_path = request.credential.path if request.credential else None
        credential_id = request.credential.id if request.credential else "none"

        logger.info(
            f"Extracting {request.source_url} with profile={request.profile.name} "
            f"credential={credential_id}"
        )

        loop = asyncio.get_running_loop()
        future = loop.run_in_executor(
            None,
            functools.partial(
                self.engine.extract,
                request.source_url,
                request.profile.ydl_options,
                credential_path,
                request.time_range,
                request.destination,
            ),
        )

        try:
            result = await asyncio.wait_for(asyncio.shield(future), timeout=self.timeout)
        except asyncio.TimeoutError:
            self._cleanup_when_done(future, request.destination)
            logger.error(f"Extraction timed out after {self.timeout}s: {request.source_url}")
            return FatalFailure(f"Extraction timed out after {self.timeout}s")
        except asyncio.CancelledError:
            self._cleanup_when_done(future, request.destination)
            raise

        return self._classify(request, result)

    def _classify(self, request: ExtractionRequest, result: EngineResult) -> ExtractionOutcome:
        if result.ok:
            if request.destination.is_file():
                return ExtractionSuccess(request.destination)
            self._cleanup(request.destination)
            logger.error(f"Engine exited cleanly but {request.destination.name} is missing")
            return FatalFailure(f"Engine reported success but produced no {request.destination.suffix} file")

        self._cleanup(request.destination)
        if result.warnings:
            logger.debug(f"Engine warnings for {request.source_url}: {result.warnings[-500:]}")

        # Only error text is classified, never warnings
        reason = result.stderr.strip() or f"Engine exited with status {result.exit_status}"

        if self.classifier(reason):
            logger.warning(f"Credential failure for {request.source_url}: {reason[:300]}")
            return CredentialFailure(reason)

        logger.error(f"Extraction failed for {request.source_url}: {reason[:500]}")
        return FatalFailure(reason)

    def _cleanup(self, path: Path) -> None:
        if self.cleanup is not None:
            self.cleanup(path)

    def _cleanup_when_done(self, future: asyncio.Future, path: Path) -> None:
        def _on_done(f: asyncio.Future) -> None:
            if not f.cancelled():
                f.exception()
            self._cleanup(path)

        future.add_done_callback(_on_done)
