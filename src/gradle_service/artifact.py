"""Resolve the path of the jar produced by a Gradle build.

Two strategies are available, selected with :py:class:`ArtifactStrategy`:

* ``DESCRIPTOR`` reads ``description`` and ``version`` from the Gradle build
  file and composes ``build/libs/<description>-<version>.jar``.
* ``QUERY`` runs the project's ``artifact`` task in quiet mode and uses its
  output as the jar's file name under ``/app/build/libs/``.

Both run against the build output container, whose workdir holds the
project sources and the ``build`` directory.
"""

import enum
import logging
import posixpath
import re
from collections.abc import Sequence
from typing import Protocol

import dagger
from dagger import enum_type

from .consts import ARTIFACT_TASK, DESCRIPTORS, LIBS_DIR, WORKDIR
from .errors import (
    ArtifactQueryError,
    DescriptorNotFoundError,
    DescriptorParseError,
    MalformedArtifactPathError,
)

logger = logging.getLogger(__name__)

QUOTES = ("'", '"')


@enum_type
class ArtifactStrategy(enum.Enum):
    """How to find the name of the jar built by Gradle."""

    DESCRIPTOR = "DESCRIPTOR"
    """Parse description and version from build.gradle.kts or build.gradle."""

    QUERY = "QUERY"
    """Ask Gradle for the file name with the `artifact` task."""


class ArtifactResolver(Protocol):
    async def resolve(self, build: dagger.Container) -> str: ...


def find_field(contents: str, name: str) -> str:
    """Find the value assigned to ``name`` in a Gradle build file.

    Single quoted values are tried first, then double quoted ones.
    """
    for quote in QUOTES:
        pattern = rf"^\s*{re.escape(name)}\s*=\s*{quote}([^{quote}\n]*){quote}"
        if match := re.search(pattern, contents, re.MULTILINE):
            return match.group(1)
    msg = f"no quoted '{name}' assignment found in Gradle build file"
    raise DescriptorParseError(msg, extra={"field": name})


def artifact_from_descriptor(contents: str) -> str:
    """Compose the artifact's path from a Gradle build file's contents."""
    description = find_field(contents, "description")
    version = find_field(contents, "version")
    if not description or not version:
        msg = (
            "artifact path would be malformed: "
            f"description={description!r}, version={version!r}"
        )
        raise MalformedArtifactPathError(
            msg,
            extra={"description": description, "version": version},
        )
    return f"{LIBS_DIR}/{description}-{version}.jar"


def artifact_from_query(output: str) -> str:
    """Compose the artifact's path from the ``artifact`` task's output."""
    name = output.removesuffix("\n")
    if not name:
        msg = f"'{ARTIFACT_TASK}' task returned an empty artifact name"
        raise MalformedArtifactPathError(msg)
    return posixpath.join(WORKDIR, LIBS_DIR, name)


class DescriptorResolver:
    """Resolve the artifact by parsing the Gradle build file."""

    def __init__(self, descriptors: Sequence[str] = DESCRIPTORS):
        self.descriptors = descriptors

    async def find_descriptor(self, build: dagger.Container) -> str:
        entries = await build.directory(WORKDIR).entries()
        for name in self.descriptors:
            if name in entries:
                return name
        msg = f"Gradle build file not found, looked for: {', '.join(self.descriptors)}"
        raise DescriptorNotFoundError(msg)

    async def resolve(self, build: dagger.Container) -> str:
        name = await self.find_descriptor(build)
        logger.debug("Reading artifact metadata from %s", name)
        contents = await build.file(posixpath.join(WORKDIR, name)).contents()
        return artifact_from_descriptor(contents)


class QueryResolver:
    """Resolve the artifact by running Gradle's ``artifact`` task."""

    def __init__(self, command: Sequence[str]):
        self.command = list(command)

    def args(self) -> list[str]:
        return [*self.command, "-q", ARTIFACT_TASK]

    async def resolve(self, build: dagger.Container) -> str:
        query = build.with_exec(self.args())
        try:
            stdout = await query.stdout()
            stderr = await query.stderr()
        except dagger.ExecError as e:
            msg = f"'{ARTIFACT_TASK}' task exited with code {e.exit_code}"
            raise ArtifactQueryError(msg, e.stderr) from e
        except dagger.QueryError as e:
            msg = f"'{ARTIFACT_TASK}' task could not run"
            raise ArtifactQueryError(msg, str(e)) from e
        if stderr.strip():
            msg = f"'{ARTIFACT_TASK}' task reported errors"
            raise ArtifactQueryError(msg, stderr)
        return artifact_from_query(stdout)


def get_resolver(
    strategy: ArtifactStrategy,
    command: Sequence[str],
) -> ArtifactResolver:
    """Return the resolver for the given strategy."""
    match strategy:
        case ArtifactStrategy.DESCRIPTOR:
            return DescriptorResolver()
        case ArtifactStrategy.QUERY:
            return QueryResolver(command)
    msg = f"unknown artifact strategy: {strategy!r}"
    raise ValueError(msg)
