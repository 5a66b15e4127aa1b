"""Credential-rotating extraction orchestrator."""

import logging
from pathlib import Path
from typing import Optional

from models.media import (
    CredentialFailure,
    ExtractionRequest,
    ExtractionSuccess,
    FatalFailure,
    FormatProfile,
    TimeRange,
)
from services.credential_pool import CredentialPool
from services.extraction import ExtractionInvoker
from utils.errors import CredentialsExhausted, ExtractionFatalFailure

logger = logging.getLogger(__name__)


class ResilientExtractor:
    """Drives the invoker across the credential pool.

    Credentials are tried in pool order:
    - success stops immediately, remaining credentials untried
    - a credential failure invalidates that credential and moves on
    - a fatal failure stops immediately, it is not a credential problem
    - running out of credentials raises CredentialsExhausted
    """

    def __init__(self, pool: CredentialPool, invoker: ExtractionInvoker):
        self.pool = pool
        self.invoker = invoker

    async def extract(
        self,
        source_url: str,
        profile: FormatProfile,
        destination: Path,
        time_range: Optional[TimeRange] = None,
    ) -> Path:
        """Extract ``source_url`` into ``destination``.

        Returns:
            Path of the extracted file (== destination)

        Raises:
            CredentialsExhausted: If every credential failed authorization
            ExtractionFatalFailure: On a failure not attributable to credentials
        """
        attempted = 0

        for credential in self.pool.list():
            # Another request may have invalidated it since enumeration
            if not self.pool.is_valid(credential.id):
                continue

            attempted += 1
            request = ExtractionRequest(
                source_url=source_url,
                profile=profile,
                credential=credential,
                destination=destination,
                time_range=time_range,
            )
            outcome = await self.invoker.run(request)

            if isinstance(outcome, ExtractionSuccess):
                logger.info(
                    f"Extracted {source_url} ({profile.name}) with credential {credential.id}"
                )
                return outcome.path

            if isinstance(outcome, CredentialFailure):
                credential.valid = False
                self.pool.invalidate(credential.id)
                continue

            if isinstance(outcome, FatalFailure):
                raise ExtractionFatalFailure(
                    f"Extraction failed: {outcome.reason[-500:]}",
                    {"source_url": source_url, "profile": profile.name},
                )

        logger.error(f"No valid credentials remain for {source_url} after {attempted} attempts")
        raise CredentialsExhausted(source_url, attempted)
