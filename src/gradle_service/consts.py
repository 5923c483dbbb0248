import os
from typing import Final

GRADLE_VERSION: Final[str] = os.getenv("GRADLE_SERVICE_GRADLE_VERSION", "jdk21-alpine")
RUNTIME_IMAGE: Final[str] = os.getenv(
    "GRADLE_SERVICE_RUNTIME_IMAGE",
    "amazoncorretto:21.0.1-alpine3.18",
)
MYSQL_IMAGE: Final[str] = os.getenv("GRADLE_SERVICE_MYSQL_IMAGE", "mysql:8.2.0")
TRACING_AGENT_URL: Final[str] = os.getenv(
    "GRADLE_SERVICE_TRACING_AGENT_URL",
    "https://github.com/open-telemetry/opentelemetry-java-instrumentation"
    "/releases/latest/download/opentelemetry-javaagent.jar",
)

IMAGE_NAME: Final = "services-orders"

WORKDIR: Final = "/app"
LIBS_DIR: Final = "build/libs"
DESCRIPTORS: Final = ("build.gradle.kts", "build.gradle")
WRAPPER_SCRIPT: Final = "gradlew"
ARTIFACT_TASK: Final = "artifact"

APP_PORT: Final = 80
APP_JAR: Final = "app.jar"
APP_ARGS: Final = (f"--server.port={APP_PORT}", "--spring.profiles.active=default")
TRACING_AGENT_PATH: Final = f"{WORKDIR}/opentelemetry-javaagent.jar"
DIAGNOSTIC_PACKAGES: Final = ("curl", "bind-tools", "busybox-extras")

DB_ALIAS: Final = "mysql"
DB_PORT: Final = 3306
DB_ROOT_PASSWORD: Final = "gotiendanube"
DB_NAME: Final = "tiendanube"
DB_INIT_PATH: Final = "/docker-entrypoint-initdb.d/db.sql"
