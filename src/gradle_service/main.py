"""Build, test, package and publish a Gradle based Spring service."""

import logging
import posixpath
from typing import Annotated, Self

import anyio

import dagger
from dagger import DefaultPath, Doc, dag, field, function, object_type, telemetry

from .artifact import ArtifactResolver, ArtifactStrategy, get_resolver
from .consts import (
    APP_ARGS,
    APP_JAR,
    APP_PORT,
    DB_ALIAS,
    DB_INIT_PATH,
    DB_NAME,
    DB_PORT,
    DB_ROOT_PASSWORD,
    DIAGNOSTIC_PACKAGES,
    GRADLE_VERSION,
    IMAGE_NAME,
    MYSQL_IMAGE,
    RUNTIME_IMAGE,
    TRACING_AGENT_PATH,
    TRACING_AGENT_URL,
    WORKDIR,
    WRAPPER_SCRIPT,
)
from .errors import (
    BuildError,
    ExtractionError,
    GradleServiceError,
    PublishError,
    SourceNotConfiguredError,
)
from .gradle import Gradle
from .log import configure_logging

configure_logging()

logger = logging.getLogger(__name__)


async def sync_stage(ctr: dagger.Container, stage: str) -> dagger.Container:
    """Force evaluation of a stage so failures surface right away."""
    try:
        return await ctr.sync()
    except dagger.ExecError as e:
        raise BuildError(stage, e.stderr) from e
    except dagger.QueryError as e:
        raise BuildError(stage, str(e)) from e


def leaf_errors(eg: BaseExceptionGroup):
    """Flatten nested exception groups into their leaf exceptions."""
    for exc in eg.exceptions:
        if isinstance(exc, BaseExceptionGroup):
            yield from leaf_errors(exc)
        else:
            yield exc


async def extract(build: dagger.Container, path: str) -> dagger.File:
    """Get the artifact from the build output, checking that it exists."""
    path = posixpath.join(WORKDIR, path)
    parent, name = posixpath.split(path)
    try:
        entries = await build.directory(parent).entries()
    except dagger.QueryError as e:
        msg = f"artifact directory {parent} not found in build output"
        raise ExtractionError(msg, extra={"path": path}) from e
    if name not in entries:
        msg = f"artifact {path} not found in build output"
        raise ExtractionError(msg, extra={"path": path, "entries": entries})
    return build.file(path)


@object_type
class GradleService:
    """Pipeline for a Gradle built service: compile, test, package and publish."""

    source: Annotated[
        dagger.Directory | None,
        Doc("Directory with the service's Gradle project"),
    ] = field(default=None)

    gradle_version: Annotated[
        str,
        Doc("Tag of the gradle image used to build"),
    ] = field(default=GRADLE_VERSION)

    runtime_image: Annotated[
        str,
        Doc("Base image for the runtime container"),
    ] = field(default=RUNTIME_IMAGE)

    image_name: Annotated[
        str,
        Doc("Name of the published image, without registry or tag"),
    ] = field(default=IMAGE_NAME)

    strategy: Annotated[
        ArtifactStrategy,
        Doc("How to find the name of the built jar"),
    ] = field(default=ArtifactStrategy.QUERY)

    diagnostics: Annotated[
        bool,
        Doc("Install network diagnostic tools in the runtime image"),
    ] = field(default=False)

    tracing: Annotated[
        bool,
        Doc("Attach the OpenTelemetry java agent to the service"),
    ] = field(default=False)

    wrapper: Annotated[
        bool,
        Doc("Build with the project's gradlew script instead of gradle"),
    ] = field(default=False)

    gradle: Gradle | None = None

    @function
    async def with_source(
        self,
        source: Annotated[
            dagger.Directory,
            Doc("Directory with the service's Gradle project"),
        ],
    ) -> Self:
        """Set the project sources, detecting a bundled Gradle wrapper."""
        self.source = source
        self.wrapper = WRAPPER_SCRIPT in await source.entries()
        self.gradle = None
        logger.debug("Source set (gradle wrapper: %s)", self.wrapper)
        return self

    def require_gradle(self, operation: str) -> Gradle:
        """Get the memoized Gradle handle, creating it on first use."""
        if self.gradle is None:
            if self.source is None:
                raise SourceNotConfiguredError(operation)
            self.gradle = Gradle(
                source=self.source,
                version=self.gradle_version,
                wrapper=self.wrapper,
            )
        return self.gradle

    @function
    def build_tool(self) -> Gradle:
        """The Gradle handle for the current sources."""
        return self.require_gradle("build_tool")

    def resolver(self, gradle: Gradle) -> ArtifactResolver:
        return get_resolver(
            self.strategy,
            [*gradle.command(), "--no-daemon"],
        )

    @function
    def build(self) -> dagger.Container:
        """Compile the service."""
        return self.require_gradle("build").build()

    @function
    def test(self) -> dagger.Container:
        """Run the service's tests."""
        return self.require_gradle("test").test()

    @function
    async def artifact_path(self) -> str:
        """Build the service and return the path to the jar it produced."""
        gradle = self.require_gradle("artifact_path")
        build = await sync_stage(gradle.build(), "build")
        return await self.resolver(gradle).resolve(build)

    @function
    async def build_runtime(self) -> dagger.Container:
        """Build the service and package it in a runtime image."""
        tracer = telemetry.get_tracer()
        gradle = self.require_gradle("build_runtime")

        with tracer.start_as_current_span("compile"):
            build = await sync_stage(gradle.build(), "build")

        with tracer.start_as_current_span("resolve artifact"):
            path = await self.resolver(gradle).resolve(build)
            logger.info("Resolved artifact %s", path)

        with tracer.start_as_current_span("extract artifact"):
            jar = await extract(build, path)

        return self.runtime(jar)

    def runtime(self, jar: dagger.File) -> dagger.Container:
        """Assemble the runtime image around a built jar."""
        ctr = dag.container().from_(self.runtime_image).with_workdir(WORKDIR)
        java = ["java"]

        if self.diagnostics:
            ctr = ctr.with_exec(["apk", "add", "--no-cache", *DIAGNOSTIC_PACKAGES])

        if self.tracing:
            ctr = ctr.with_file(TRACING_AGENT_PATH, dag.http(TRACING_AGENT_URL))
            java.append(f"-javaagent:{TRACING_AGENT_PATH}")

        return (
            ctr.with_label("org.opencontainers.image.title", self.image_name)
            .with_file(APP_JAR, jar)
            .with_entrypoint([*java, "-jar", APP_JAR, *APP_ARGS])
        )

    @function
    async def publish(
        self,
        registry: Annotated[
            str,
            Doc("Registry to push to, leave empty for the default registry"),
        ],
        tag: Annotated[str, Doc("Tag of the published image")],
        username: Annotated[str | None, Doc("Registry username")] = None,
        password: Annotated[dagger.Secret | None, Doc("Registry password")] = None,
    ) -> str:
        """Publish the runtime image, returning the published reference."""
        self.require_gradle("publish")
        address = f"{self.image_name}:{tag}"
        if registry:
            address = f"{registry.rstrip('/')}/{address}"

        ctr = await self.build_runtime()
        ctr = ctr.with_label("org.opencontainers.image.version", tag)
        if username and password:
            ctr = ctr.with_registry_auth(registry or "docker.io", username, password)

        try:
            ref = await ctr.publish(address)
        except dagger.QueryError as e:
            msg = f"failed to publish {address}: {e}"
            raise PublishError(msg, extra={"address": address}) from e

        logger.info("Published %s", ref)
        return ref

    @function
    async def service(
        self,
        init_script: Annotated[
            dagger.File,
            DefaultPath("db/db.sql"),
            Doc("SQL script to initialize the database with"),
        ],
    ) -> dagger.Service:
        """Run the service bound to a MySQL database."""
        self.require_gradle("service")
        runtime = await self.build_runtime()
        return (
            runtime.with_env_variable("DB_HOST", DB_ALIAS)
            .with_env_variable("DB_PORT", str(DB_PORT))
            .with_service_binding(DB_ALIAS, self.database(init_script))
            .with_exposed_port(APP_PORT)
            .as_service()
        )

    @function
    def database(
        self,
        init_script: Annotated[
            dagger.File,
            DefaultPath("db/db.sql"),
            Doc("SQL script to initialize the database with"),
        ],
    ) -> dagger.Service:
        """MySQL database for integration tests."""
        return (
            dag.container()
            .from_(MYSQL_IMAGE)
            .with_env_variable("MYSQL_ROOT_PASSWORD", DB_ROOT_PASSWORD)
            .with_env_variable("MYSQL_DATABASE", DB_NAME)
            .with_file(DB_INIT_PATH, init_script)
            .with_exposed_port(DB_PORT)
            .as_service()
        )

    @function
    async def verify(self) -> None:
        """Run the tests and package the runtime image concurrently."""
        self.require_gradle("verify")

        async def _test():
            await sync_stage(self.test(), "test")

        async def _package():
            await sync_stage(await self.build_runtime(), "package")

        try:
            async with anyio.create_task_group() as tg:
                tg.start_soon(_test)
                tg.start_soon(_package)
        except BaseExceptionGroup as eg:
            errors = list(leaf_errors(eg))
            typed = [e for e in errors if isinstance(e, GradleServiceError)]
            if not typed:
                raise
            for other in errors:
                if other is not typed[0]:
                    logger.error("verify: %s", other)
            raise typed[0]
