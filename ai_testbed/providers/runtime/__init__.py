"""Container runtime adapters (IContainerRuntime implementations)."""

from ai_testbed.providers.runtime.docker_runtime import DockerContainerRuntime, docker_available

__all__ = ["DockerContainerRuntime", "docker_available"]
