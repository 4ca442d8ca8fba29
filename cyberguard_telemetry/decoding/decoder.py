"""Response decoder driving the recovery heuristic chain."""

import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Sequence, Union

from .heuristics import RECOVERY_CHAIN, ParsedValue, RecoveryHeuristic


class ContentKind(Enum):
    """Declared kind of a response body."""

    JSON = "json"
    TEXT = "text"

    @classmethod
    def from_content_type(cls, content_type: str) -> "ContentKind":
        """Map a Content-Type header value to a content kind."""
        media_type = (content_type or "").split(";", 1)[0].strip().lower()
        if media_type == "application/json" or media_type.endswith("+json"):
            return cls.JSON
        return cls.TEXT


@dataclass(frozen=True)
class DiagnosticFailure:
    """Terminal result when no heuristic could extract structured data."""

    error: str
    sample: str
    length: int


DecodeResult = Union[ParsedValue, DiagnosticFailure]


class ResponseDecoder:
    """
    Decode response bodies, falling back to the recovery chain on bad JSON.

    ``decode`` never raises: it returns either a ParsedValue or a
    DiagnosticFailure holding the primary parse error, a bounded sample of
    the body and its full length.
    """

    def __init__(
        self,
        chain: Sequence[RecoveryHeuristic] = RECOVERY_CHAIN,
        sample_size: int = 200,
        logger: logging.Logger = None
    ):
        """
        Initialize response decoder.

        Args:
            chain: Recovery heuristics, tried in order
            sample_size: Maximum characters of raw text kept in a DiagnosticFailure
            logger: Optional logger instance
        """
        self.chain = tuple(chain)
        self.sample_size = sample_size
        self.logger = (logger or logging.getLogger(__name__)).getChild(self.__class__.__name__)

    def decode(self, raw_text: str, declared_kind: ContentKind = ContentKind.JSON) -> DecodeResult:
        """
        Decode a response body.

        Args:
            raw_text: Undecoded body text
            declared_kind: Kind of content the caller expects

        Returns:
            ParsedValue on success (recovered_by names the heuristic that
            succeeded, None for a clean parse), DiagnosticFailure otherwise
        """
        if declared_kind is ContentKind.TEXT:
            return ParsedValue(raw_text)

        try:
            return ParsedValue(json.loads(raw_text))
        except (json.JSONDecodeError, RecursionError) as e:
            primary_error = e

        for heuristic in self.chain:
            try:
                parsed = heuristic(raw_text)
            except Exception as e:
                self.logger.debug(f"Recovery heuristic {heuristic.order} ({heuristic.name}) raised: {e}")
                continue

            if parsed is not None:
                self.logger.info(
                    f"Recovered malformed payload with heuristic {heuristic.order} ({heuristic.name})",
                    extra={"payload_length": len(raw_text)}
                )
                return parsed

        self.logger.warning(
            f"Could not decode payload ({len(raw_text)} chars): {primary_error}",
            extra={"payload_length": len(raw_text)}
        )
        return DiagnosticFailure(
            error=str(primary_error),
            sample=raw_text[:self.sample_size],
            length=len(raw_text),
        )
