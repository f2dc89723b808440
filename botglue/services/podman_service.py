import asyncio
import contextlib
import logging
import os
from typing import List, Optional, Sequence, Tuple

from ..config import PodmanConfig
from ..exceptions import CommandFailed, RuntimeUnavailable
from ..schemas.environment import ExecResult, PortMapping

logger = logging.getLogger(__name__)


def container_name(env_id: str, prefix: str = "botglue-") -> str:
    """Container name for an environment: prefix plus the first 8 chars of its id"""
    return f"{prefix}{env_id[:8]}"


class PodmanService:
    """Runs container runtime subcommands as child processes.

    Every method launches exactly one process and awaits it. Nothing is
    retried and no state is kept between calls, so callers own retry policy
    and must not assume an earlier call left the container as they expect.
    """
    
    def __init__(self, config: PodmanConfig):
        self.config = config
        self.podman_bin = config.podman_path
    
    async def probe(self) -> str:
        """Check the runtime is installed and responsive, return its version string"""
        returncode, stdout, _ = await self._run_command(["--version"])
        if returncode != 0:
            raise RuntimeUnavailable()
        return stdout.strip()
    
    async def create(
        self,
        name: str,
        image: Optional[str],
        port_bindings: Sequence[PortMapping]
    ) -> str:
        """Start a detached sleep-forever container and return its id"""
        args = ["run", "-d", "--name", name]
        
        for mapping in port_bindings:
            if mapping.host_port is not None:
                args.extend(["-p", f"{mapping.host_port}:{mapping.container_port}"])
        
        args.extend([image or self.config.default_image, "sleep", "infinity"])
        
        stdout = await self._check_command(args)
        container_id = stdout.strip()
        logger.info(f"Created container {name} ({container_id[:12]})")
        return container_id
    
    async def start(self, container_id: str):
        await self._check_command(["start", container_id])
    
    async def stop(self, container_id: str):
        await self._check_command(["stop", container_id])
    
    async def remove(self, container_id: str):
        await self._check_command(["rm", "-f", container_id])
    
    async def exec(self, container_id: str, command: str) -> ExecResult:
        """Run a shell command in the container.

        A non-zero exit code is returned as data, not raised. The output is
        stdout followed by stderr.
        """
        returncode, stdout, stderr = await self._run_command(
            ["exec", container_id, "sh", "-c", command]
        )
        return ExecResult(output=stdout + stderr, exit_code=returncode)
    
    async def _check_command(self, args: List[str]) -> str:
        """Run a subcommand and raise CommandFailed on a non-zero exit"""
        returncode, stdout, stderr = await self._run_command(args)
        
        if returncode != 0:
            command = " ".join([os.path.basename(self.podman_bin)] + args)
            error = CommandFailed(command=command, stderr=stderr.strip(), exit_code=returncode)
            logger.warning(str(error))
            raise error
        
        return stdout
    
    async def _run_command(self, args: List[str]) -> Tuple[int, str, str]:
        cmd = [self.podman_bin] + args
        logger.debug(f"Running runtime command: {' '.join(cmd)}")
        
        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE
            )
        except OSError as e:
            logger.error(f"Could not launch {self.podman_bin}: {e}")
            raise RuntimeUnavailable(f"{self.podman_bin} is not installed or not in PATH") from e
        
        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(),
                timeout=self.config.timeout_seconds
            )
        except asyncio.TimeoutError:
            with contextlib.suppress(ProcessLookupError):
                process.kill()
            await process.wait()
            raise RuntimeUnavailable(
                f"{self.podman_bin} {args[0]} did not finish within {self.config.timeout_seconds} seconds"
            )
        except asyncio.CancelledError:
            # The caller gave up; the child must not outlive it
            with contextlib.suppress(ProcessLookupError):
                process.kill()
            await asyncio.shield(process.wait())
            raise

        returncode = process.returncode if process.returncode is not None else -1
        return (
            returncode,
            stdout.decode("utf-8", errors="replace"),
            stderr.decode("utf-8", errors="replace")
        )
