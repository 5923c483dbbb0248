from collections.abc import Mapping
from typing import Any

from dagger import DaggerError


class GradleServiceError(DaggerError):
    """Base class for all errors raised by the pipeline.

    The ``extra`` mapping carries structured details (stage, paths, tool
    output) for callers that want more than the message.
    """

    def __init__(self, /, *args, extra: Mapping[str, Any] | None = None):
        super().__init__(*args)
        self.extra = extra or {}


class SourceNotConfiguredError(GradleServiceError):
    """A build-dependent function was called before `with_source`."""

    def __init__(self, operation: str):
        super().__init__(
            f"cannot run '{operation}' without a source directory, call with_source first",
            extra={"operation": operation},
        )
        self.operation = operation


class BuildError(GradleServiceError):
    """Gradle failed while running a pipeline stage."""

    def __init__(self, stage: str, diagnostic: str = ""):
        msg = f"{stage} failed"
        if diagnostic:
            msg = f"{msg}:\n{diagnostic}"
        super().__init__(msg, extra={"stage": stage, "diagnostic": diagnostic})
        self.stage = stage
        self.diagnostic = diagnostic


class ArtifactError(GradleServiceError):
    """Base class for errors while resolving the built artifact's path."""


class DescriptorNotFoundError(ArtifactError):
    """None of the recognized Gradle build files exist."""


class DescriptorParseError(ArtifactError):
    """A required field couldn't be found in the Gradle build file."""


class MalformedArtifactPathError(ArtifactError):
    """The resolved artifact path is empty or incomplete."""


class ArtifactQueryError(ArtifactError):
    """The Gradle artifact query task failed."""

    def __init__(self, msg: str, diagnostic: str = ""):
        if diagnostic:
            msg = f"{msg}:\n{diagnostic}"
        super().__init__(msg, extra={"diagnostic": diagnostic})
        self.diagnostic = diagnostic


class ExtractionError(GradleServiceError):
    """The resolved artifact doesn't exist in the build output."""


class PublishError(GradleServiceError):
    """Pushing the runtime image to a registry failed."""
