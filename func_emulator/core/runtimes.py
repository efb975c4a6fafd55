"""Supported runtimes and their container images."""

from typing import Dict, Tuple

from ..models.runtime import SystemTool
from ..services.exceptions import UnknownRuntimeError
from .constants import IMAGE_REPOSITORY, OPEN_RUNTIMES_VERSION


RUNTIME_NAMES: Dict[str, str] = {
    "node": "Node.js",
    "php": "PHP",
    "ruby": "Ruby",
    "python": "Python",
    "python-ml": "Python (ML)",
    "deno": "Deno",
    "dart": "Dart",
    "dotnet": ".NET",
    "java": "Java",
    "swift": "Swift",
    "kotlin": "Kotlin",
    "bun": "Bun",
    "go": "Go",
}

SYSTEM_TOOLS: Dict[str, SystemTool] = {
    "node": SystemTool(
        start_command="node src/server.js",
        dependency_files=["package.json", "package-lock.json"],
    ),
    "php": SystemTool(
        start_command="php src/server.php",
        dependency_files=["composer.json", "composer.lock"],
    ),
    "ruby": SystemTool(
        start_command="bundle exec puma -b tcp://0.0.0.0:3000 -e production",
        dependency_files=["Gemfile", "Gemfile.lock"],
    ),
    "python": SystemTool(
        start_command="python3 src/server.py",
        dependency_files=["requirements.txt", "requirements.lock"],
    ),
    "python-ml": SystemTool(
        start_command="python3 src/server.py",
        dependency_files=["requirements.txt", "requirements.lock"],
    ),
    "deno": SystemTool(
        start_command="deno start",
        dependency_files=["deno.json", "deno.jsonc"],
    ),
    "dart": SystemTool(is_compiled=True, start_command="src/function/server"),
    "dotnet": SystemTool(is_compiled=True, start_command="sh helpers/server.sh"),
    "java": SystemTool(
        is_compiled=True,
        start_command="java -jar src/function/java-runtime-1.0.0.jar",
    ),
    "swift": SystemTool(
        is_compiled=True,
        start_command="src/function/Runtime serve --env production --hostname 0.0.0.0 --port 3000",
    ),
    "kotlin": SystemTool(
        is_compiled=True,
        start_command="java -jar src/function/kotlin-runtime-1.0.0.jar",
    ),
    "bun": SystemTool(
        start_command="bun src/server.ts",
        dependency_files=["package.json", "package-lock.json", "bun.lockb"],
    ),
    "go": SystemTool(is_compiled=True, start_command="src/function/server"),
}


def split_runtime(runtime: str) -> Tuple[str, str]:
    """Split a runtime identifier like ``python-ml-3.11`` into name and version."""
    name, sep, version = runtime.rpartition("-")
    if not sep or not name or not version:
        raise UnknownRuntimeError(f"Invalid runtime identifier '{runtime}'")
    return name, version


def get_system_tool(runtime_name: str) -> SystemTool:
    """Look up the build/start description for a runtime name."""
    try:
        return SYSTEM_TOOLS[runtime_name]
    except KeyError:
        raise UnknownRuntimeError(f"Runtime '{runtime_name}' is not supported") from None


def image_name_for(runtime: str) -> str:
    """Container image used to emulate ``runtime``."""
    name, version = split_runtime(runtime)
    return f"{IMAGE_REPOSITORY}/{name}:{OPEN_RUNTIMES_VERSION}-{version}"
