from typing import Annotated

import dagger
from dagger import Doc, dag, field, function, object_type

from .consts import GRADLE_VERSION, WORKDIR, WRAPPER_SCRIPT


@object_type
class Gradle:
    """Run Gradle tasks against a project's sources."""

    source: Annotated[
        dagger.Directory,
        Doc("Directory with the Gradle project"),
    ] = field()

    version: Annotated[
        str,
        Doc("Tag of the gradle image to run tasks in"),
    ] = field(default=GRADLE_VERSION)

    wrapper: Annotated[
        bool,
        Doc("Run tasks with the project's gradlew script"),
    ] = field(default=False)

    @function
    def command(self) -> list[str]:
        """The Gradle executable to run tasks with."""
        if self.wrapper:
            return [f"./{WRAPPER_SCRIPT}"]
        return ["gradle"]

    @function
    def container(self) -> dagger.Container:
        """Base container with the project sources in the workdir."""
        return (
            dag.container()
            .from_(f"gradle:{self.version}")
            .with_mounted_cache("/root/.gradle", dag.cache_volume("gradle-service-gradle"))
            .with_directory(WORKDIR, self.source)
            .with_workdir(WORKDIR)
        )

    @function
    def task(
        self,
        args: Annotated[list[str], Doc("Tasks and options to pass to Gradle")],
    ) -> dagger.Container:
        """Run Gradle with the given arguments."""
        return self.container().with_exec([*self.command(), "--no-daemon", *args])

    @function
    def build(self) -> dagger.Container:
        """Compile and assemble the project, without running tests."""
        return self.task(["build", "-x", "test"])

    @function
    def test(self) -> dagger.Container:
        """Run the project's tests."""
        return self.task(["test"])
