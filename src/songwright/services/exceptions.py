"""Shared service-layer exceptions."""

from __future__ import annotations

from typing import Sequence


class GenerationFailure(Exception):
    """Expected failure while running a wizard step."""


class InvalidResponseFormat(GenerationFailure):
    """The text backend answered with data that does not match the contract."""


class MissingCredentialError(GenerationFailure):
    """No API key is configured for the generation backends."""


class PreconditionError(GenerationFailure):
    """A wizard step was invoked before its inputs were available."""


class MissingAssetsError(PreconditionError):
    """The bundle cannot be assembled because some assets are missing."""

    def __init__(self, missing: Sequence[str]) -> None:
        self.missing = list(missing)
        super().__init__(
            "Cannot download collection, some assets are missing: "
            + ", ".join(self.missing)
        )


class BundleError(GenerationFailure):
    """Assembling the downloadable bundle failed."""


class StateDecodeError(ValueError):
    """A persisted state payload could not be decoded."""
