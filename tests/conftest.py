import posixpath

import pytest

import dagger
from gradle_service import gradle, main

KTS_DESCRIPTOR = """\
plugins {
    id("org.springframework.boot") version "3.2.0"
}

group = "com.tiendanube"
description = "orders-service"
version = "1.2.3"
"""

ARTIFACT = "orders-service-1.2.3.jar"
QUERY_ARGS = ("gradle", "--no-daemon", "-q", "artifact")


class FakeQueryError(dagger.QueryError):
    def __new__(cls, *args, **kwargs):
        return Exception.__new__(cls)

    def __init__(self, message: str):
        Exception.__init__(self, message)
        self.message = message

    def __str__(self):
        return self.message


class FakeExecError(dagger.ExecError):
    def __new__(cls, *args, **kwargs):
        return Exception.__new__(cls)

    def __init__(self, stderr: str, exit_code: int = 1):
        Exception.__init__(self, stderr)
        self.command = []
        self.message = "process did not complete successfully"
        self.exit_code = exit_code
        self.stdout = ""
        self.stderr = stderr


class FakeEngine:
    """Stand-in for `dag` that records what the pipeline asks for."""

    def __init__(self):
        self.files: dict[str, str] = {}
        self.stdout: dict[tuple[str, ...], str] = {}
        self.stderr: dict[tuple[str, ...], str] = {}
        self.failures: dict[tuple[str, ...], Exception] = {}
        self.publish_error: Exception | None = None
        self.published: list[str] = []
        self.containers: list["FakeContainer"] = []
        self.synced: list["FakeContainer"] = []
        self.queried: list["FakeContainer"] = []

    def container(self) -> "FakeContainer":
        ctr = FakeContainer(self)
        self.containers.append(ctr)
        return ctr

    def cache_volume(self, key: str):
        return ("cache", key)

    def http(self, url: str) -> "FakeFile":
        return FakeFile(self, url)


class FakeSource:
    def __init__(self, entries: list[str]):
        self._entries = entries

    async def entries(self) -> list[str]:
        return list(self._entries)


class FakeFile:
    def __init__(self, engine: FakeEngine, path: str):
        self.engine = engine
        self.path = path

    def __eq__(self, other):
        return isinstance(other, FakeFile) and other.path == self.path

    def __hash__(self):
        return hash(self.path)

    async def contents(self) -> str:
        try:
            return self.engine.files[self.path]
        except KeyError:
            raise FakeQueryError(f"{self.path}: no such file or directory") from None


class FakeDirectory:
    def __init__(self, engine: FakeEngine, path: str):
        self.engine = engine
        self.path = path.rstrip("/") or "/"

    async def entries(self) -> list[str]:
        prefix = self.path.rstrip("/") + "/"
        names = {
            path.removeprefix(prefix).split("/")[0]
            for path in self.engine.files
            if path.startswith(prefix)
        }
        if not names:
            raise FakeQueryError(f"{self.path}: no such file or directory")
        return sorted(names)


class FakeService:
    def __init__(self, container: "FakeContainer"):
        self.container = container


class FakeContainer:
    def __init__(self, engine: FakeEngine, ops: tuple = (), workdir: str = "/"):
        self.engine = engine
        self.ops = ops
        self.workdir = workdir

    def _with(self, *op, workdir: str | None = None) -> "FakeContainer":
        return FakeContainer(self.engine, (*self.ops, op), workdir or self.workdir)

    def from_(self, address: str):
        return self._with("from", address)

    def with_workdir(self, path: str):
        return self._with("workdir", path, workdir=path)

    def with_directory(self, path: str, directory, **_):
        return self._with("directory", path, directory)

    def with_mounted_cache(self, path: str, cache, **_):
        return self._with("cache", path, cache)

    def with_env_variable(self, name: str, value: str, **_):
        return self._with("env", name, value)

    def with_exec(self, args: list[str], **_):
        return self._with("exec", tuple(args))

    def with_file(self, path: str, source, **_):
        return self._with("file", path, source)

    def with_label(self, name: str, value: str):
        return self._with("label", name, value)

    def with_entrypoint(self, args: list[str], **_):
        return self._with("entrypoint", tuple(args))

    def with_exposed_port(self, port: int, **_):
        return self._with("port", port)

    def with_service_binding(self, alias: str, service):
        return self._with("binding", alias, service)

    def with_registry_auth(self, address: str, username: str, secret):
        return self._with("auth", address, username, secret)

    def as_service(self, **_) -> FakeService:
        return FakeService(self)

    def file(self, path: str) -> FakeFile:
        return FakeFile(self.engine, posixpath.join(self.workdir, path))

    def directory(self, path: str) -> FakeDirectory:
        return FakeDirectory(self.engine, posixpath.join(self.workdir, path))

    def _check(self):
        for args in self.execs():
            if args in self.engine.failures:
                raise self.engine.failures[args]

    async def sync(self) -> "FakeContainer":
        self._check()
        self.engine.synced.append(self)
        return self

    async def stdout(self) -> str:
        self._check()
        self.engine.queried.append(self)
        return self.engine.stdout.get(self.execs()[-1], "")

    async def stderr(self) -> str:
        self._check()
        return self.engine.stderr.get(self.execs()[-1], "")

    async def publish(self, address: str, **_) -> str:
        self._check()
        if self.engine.publish_error is not None:
            raise self.engine.publish_error
        self.engine.published.append(address)
        return address

    def find(self, name: str) -> list[tuple]:
        return [op[1:] for op in self.ops if op[0] == name]

    def execs(self) -> list[tuple[str, ...]]:
        return [args for (args,) in self.find("exec")]

    def env(self) -> dict[str, str]:
        return dict(self.find("env"))

    def labels(self) -> dict[str, str]:
        return dict(self.find("label"))


@pytest.fixture(scope="session", autouse=True)
def setup_telemetry():
    import dagger.telemetry

    dagger.telemetry.initialize()


@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


@pytest.fixture
def engine(monkeypatch: pytest.MonkeyPatch) -> FakeEngine:
    engine = FakeEngine()
    monkeypatch.setattr(main, "dag", engine)
    monkeypatch.setattr(gradle, "dag", engine)
    return engine


@pytest.fixture
def project(engine: FakeEngine) -> FakeEngine:
    """A project that builds successfully."""
    engine.files.update(
        {
            "/app/build.gradle.kts": KTS_DESCRIPTOR,
            "/app/src/main/java/App.java": "class App {}",
            f"/app/build/libs/{ARTIFACT}": "jar",
        }
    )
    engine.stdout[QUERY_ARGS] = f"{ARTIFACT}\n"
    return engine


@pytest.fixture
def source() -> FakeSource:
    return FakeSource(["build.gradle.kts", "src"])
