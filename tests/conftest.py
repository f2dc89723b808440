from __future__ import annotations

import stat
import sys
from pathlib import Path

import pytest
from sqlalchemy.orm import sessionmaker

from botglue.config import PodmanConfig
from botglue.database import init_db, make_engine
from botglue.exceptions import CommandFailed
from botglue.models import Project
from botglue.schemas.environment import ExecResult
from botglue.services import EnvironmentService, EnvironmentStore


_FAKE_PODMAN_SCRIPT = """
import json
import os
import subprocess
import sys
import uuid


STATE_PATH = os.environ.get("FAKE_PODMAN_STATE")
if not STATE_PATH:
    print("FAKE_PODMAN_STATE is required", file=sys.stderr)
    sys.exit(2)


def load_state():
    if os.path.exists(STATE_PATH):
        with open(STATE_PATH) as f:
            return json.load(f)
    return {"containers": {}, "calls": []}


def save_state(state):
    with open(STATE_PATH, "w") as f:
        json.dump(state, f)


def fail(message, code=125):
    print(message, file=sys.stderr)
    sys.exit(code)


args = sys.argv[1:]
state = load_state()
state["calls"].append(args)
save_state(state)

if args == ["--version"]:
    print("podman version 4.9.3")
    sys.exit(0)

verb = args[0]
if os.environ.get("FAKE_PODMAN_FAIL") == verb:
    fail("Error: injected failure")

containers = state["containers"]

if verb == "run":
    name = args[args.index("--name") + 1]
    if any(c["name"] == name for c in containers.values()):
        fail(f"Error: the container name {name} is already in use")
    ports = [args[i + 1] for i, arg in enumerate(args) if arg == "-p"]
    container_id = uuid.uuid4().hex + uuid.uuid4().hex
    containers[container_id] = {
        "name": name,
        "image": args[-3],
        "ports": ports,
        "running": True,
    }
    save_state(state)
    print(container_id)
    sys.exit(0)

if verb in ("start", "stop"):
    container_id = args[1]
    if container_id not in containers:
        fail(f"Error: no container with name or ID {container_id} found")
    containers[container_id]["running"] = verb == "start"
    save_state(state)
    print(container_id)
    sys.exit(0)

if verb == "rm":
    container_id = args[-1]
    if container_id not in containers:
        fail(f"Error: no container with ID or name {container_id} found", code=1)
    del containers[container_id]
    save_state(state)
    print(container_id)
    sys.exit(0)

if verb == "exec":
    container_id = args[1]
    if container_id not in containers or not containers[container_id]["running"]:
        fail(f"Error: can only create exec sessions on running containers")
    result = subprocess.run(args[2:], capture_output=True, text=True)
    sys.stdout.write(result.stdout)
    sys.stderr.write(result.stderr)
    sys.exit(result.returncode)

fail(f"Error: unrecognized command {verb}")
"""


@pytest.fixture
def fake_podman(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> dict[str, Path]:
    """Executable standing in for podman, with its state kept in a JSON file."""
    script = tmp_path / "bin" / "podman"
    script.parent.mkdir()
    script.write_text(f"#!{sys.executable}\n{_FAKE_PODMAN_SCRIPT}")
    script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)

    state_file = tmp_path / "podman-state.json"
    monkeypatch.setenv("FAKE_PODMAN_STATE", str(state_file))
    monkeypatch.delenv("FAKE_PODMAN_FAIL", raising=False)
    return {"path": script, "state": state_file}


@pytest.fixture
def podman_config(fake_podman: dict[str, Path]) -> PodmanConfig:
    return PodmanConfig(
        podman_path=str(fake_podman["path"]),
        port_range_start=10000,
        port_range_end=10005,
    )


@pytest.fixture
def session_factory(tmp_path: Path):
    engine = make_engine(f"sqlite:///{tmp_path / 'botglue.db'}")
    init_db(bind=engine)
    factory = sessionmaker(autoflush=False, bind=engine)

    # Environments reference their project, so tests get two to work with
    db = factory()
    db.add_all([
        Project(id="project-1", name="one", repo_url="https://github.com/example/one"),
        Project(id="project-2", name="two", repo_url="https://github.com/example/two"),
    ])
    db.commit()
    db.close()

    yield factory
    engine.dispose()


@pytest.fixture
def store(session_factory) -> EnvironmentStore:
    return EnvironmentStore(session_factory)


class FakeDriver:
    """In-process container driver double.

    ``failures`` maps a verb to the exception that verb should raise.
    ``on_create`` is awaited inside ``create`` before the id is returned.
    """

    def __init__(self):
        self.containers: dict[str, dict] = {}
        self.calls: list[tuple] = []
        self.failures: dict[str, Exception] = {}
        self.on_create = None
        self._counter = 0

    def _maybe_fail(self, verb: str):
        if verb in self.failures:
            raise self.failures[verb]

    async def probe(self) -> str:
        self.calls.append(("probe",))
        self._maybe_fail("probe")
        return "podman version 4.9.3"

    async def create(self, name, image, port_bindings) -> str:
        self.calls.append(("create", name, image, list(port_bindings)))
        self._maybe_fail("create")
        if self.on_create is not None:
            await self.on_create()
        self._counter += 1
        container_id = f"c{self._counter:063d}"
        self.containers[container_id] = {"name": name, "running": True}
        return container_id

    async def start(self, container_id: str):
        self.calls.append(("start", container_id))
        self._maybe_fail("start")
        self.containers[container_id]["running"] = True

    async def stop(self, container_id: str):
        self.calls.append(("stop", container_id))
        self._maybe_fail("stop")
        self.containers[container_id]["running"] = False

    async def remove(self, container_id: str):
        self.calls.append(("remove", container_id))
        self._maybe_fail("remove")
        self.containers.pop(container_id, None)

    async def exec(self, container_id: str, command: str) -> ExecResult:
        self.calls.append(("exec", container_id, command))
        self._maybe_fail("exec")
        if command.startswith("exit "):
            return ExecResult(output="", exit_code=int(command.split()[1]))
        return ExecResult(output=f"ran: {command}\n", exit_code=0)


@pytest.fixture
def command_failed():
    def _make(verb: str) -> CommandFailed:
        return CommandFailed(command=f"podman {verb}", stderr="Error: injected failure", exit_code=125)

    return _make


@pytest.fixture
def fake_driver() -> FakeDriver:
    return FakeDriver()


@pytest.fixture
def service(store: EnvironmentStore, fake_driver: FakeDriver) -> EnvironmentService:
    config = PodmanConfig(podman_path="podman", port_range_start=10000, port_range_end=10005)
    return EnvironmentService(store=store, driver=fake_driver, config=config)
