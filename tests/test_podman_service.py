"""Container driver against a fake podman executable."""

from __future__ import annotations

import asyncio
import json
import os
from pathlib import Path

import pytest

from botglue.config import PodmanConfig
from botglue.exceptions import CommandFailed, RuntimeUnavailable
from botglue.schemas.environment import PortMapping
from botglue.services.podman_service import PodmanService, container_name


def _state(fake_podman: dict[str, Path]) -> dict:
    return json.loads(fake_podman["state"].read_text())


def test_container_name():
    assert container_name("abcdefgh-1234") == "botglue-abcdefgh"
    assert container_name("short") == "botglue-short"
    assert container_name("abcdefgh-1234", prefix="sb-") == "sb-abcdefgh"


def test_probe_returns_version(podman_config):
    version = asyncio.run(PodmanService(podman_config).probe())

    assert version == "podman version 4.9.3"


def test_missing_executable_is_unavailable(tmp_path: Path):
    driver = PodmanService(PodmanConfig(podman_path=str(tmp_path / "no-such-podman")))

    with pytest.raises(RuntimeUnavailable):
        asyncio.run(driver.probe())
    with pytest.raises(RuntimeUnavailable):
        asyncio.run(driver.stop("abc"))


def test_create_publishes_resolved_ports_only(podman_config, fake_podman):
    driver = PodmanService(podman_config)
    ports = [
        PortMapping(name="http", container_port=8080, host_port=10000, protocol="tcp"),
        PortMapping(name="debug", container_port=9229),
    ]

    container_id = asyncio.run(driver.create("botglue-abcdefgh", None, ports))

    assert len(container_id) == 64
    state = _state(fake_podman)
    assert state["calls"][-1] == [
        "run", "-d", "--name", "botglue-abcdefgh",
        "-p", "10000:8080",
        "ubuntu:22.04", "sleep", "infinity",
    ]
    assert state["containers"][container_id]["ports"] == ["10000:8080"]


def test_create_uses_given_image(podman_config, fake_podman):
    driver = PodmanService(podman_config)

    container_id = asyncio.run(driver.create("botglue-img", "alpine:3.19", []))

    assert _state(fake_podman)["containers"][container_id]["image"] == "alpine:3.19"


def test_create_name_clash_is_command_failed(podman_config):
    driver = PodmanService(podman_config)

    async def scenario():
        await driver.create("botglue-same", None, [])
        await driver.create("botglue-same", None, [])

    with pytest.raises(CommandFailed) as exc_info:
        asyncio.run(scenario())

    error = exc_info.value
    assert error.exit_code == 125
    assert "already in use" in error.stderr
    assert error.command.startswith("podman run -d --name botglue-same")
    assert str(error).startswith("podman command 'podman run")


def test_lifecycle_and_exec(podman_config, fake_podman):
    driver = PodmanService(podman_config)

    async def scenario():
        container_id = await driver.create("botglue-life", None, [])

        result = await driver.exec(container_id, "echo hello")
        assert result.exit_code == 0
        assert result.output == "hello\n"

        await driver.stop(container_id)
        assert _state(fake_podman)["containers"][container_id]["running"] is False

        await driver.start(container_id)
        result = await driver.exec(container_id, "echo world")
        assert result.output == "world\n"

        await driver.remove(container_id)
        assert container_id not in _state(fake_podman)["containers"]
        assert _state(fake_podman)["calls"][-1] == ["rm", "-f", container_id]

    asyncio.run(scenario())


def test_exec_nonzero_exit_is_data(podman_config):
    driver = PodmanService(podman_config)

    async def scenario():
        container_id = await driver.create("botglue-exit", None, [])
        return await driver.exec(container_id, "echo out; echo err >&2; exit 3")

    result = asyncio.run(scenario())

    assert result.exit_code == 3
    assert result.output == "out\nerr\n"


def test_stop_unknown_container_fails(podman_config):
    with pytest.raises(CommandFailed) as exc_info:
        asyncio.run(PodmanService(podman_config).stop("missing"))

    assert exc_info.value.command == "podman stop missing"


def test_injected_failure(podman_config, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("FAKE_PODMAN_FAIL", "run")

    with pytest.raises(CommandFailed) as exc_info:
        asyncio.run(PodmanService(podman_config).create("botglue-fail", None, []))

    assert exc_info.value.stderr == "Error: injected failure"


def test_deadline_expiry_is_unavailable(tmp_path: Path):
    slow = tmp_path / "slow-podman"
    slow.write_text("#!/bin/sh\nexec sleep 5\n")
    slow.chmod(0o755)
    driver = PodmanService(PodmanConfig(podman_path=str(slow), timeout_seconds=0.2))

    with pytest.raises(RuntimeUnavailable):
        asyncio.run(driver.start("abc"))


def test_cancelled_command_kills_child(tmp_path: Path):
    pid_file = tmp_path / "pid"
    slow = tmp_path / "slow-podman"
    slow.write_text(f"#!/bin/sh\necho $$ > {pid_file}\nexec sleep 5\n")
    slow.chmod(0o755)
    driver = PodmanService(PodmanConfig(podman_path=str(slow)))

    async def scenario():
        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(driver.start("abc"), timeout=0.5)

    asyncio.run(scenario())

    pid = int(pid_file.read_text())
    with pytest.raises(ProcessLookupError):
        os.kill(pid, 0)
