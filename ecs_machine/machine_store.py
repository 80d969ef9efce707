"""Persisted state of a provisioned machine."""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
import json
from pathlib import Path
from typing import Dict, Optional

DEFAULT_STORE_PATH = "~/.ecs-machine"


@dataclass
class MachineState:
    machine_name: str
    region: str
    instance_id: str
    ip_address: str = ""
    private_ip_address: str = ""
    private_ip_only: bool = False
    security_group_id: str = ""
    security_group_name: str = ""
    vpc_id: str = ""
    slb_id: str = ""
    slb_address: str = ""
    api_port: int = 2376
    ssh_user: str = "root"
    ssh_password: str = ""
    ssh_key_path: str = ""
    tags: Dict[str, str] = field(default_factory=dict)


def machine_dir(store_path: str, machine_name: str) -> Path:
    return Path(store_path).expanduser() / "machines" / machine_name


def save_machine(state: MachineState, store_path: str = DEFAULT_STORE_PATH) -> Path:
    path = machine_dir(store_path, state.machine_name)
    path.mkdir(parents=True, exist_ok=True)
    file_path = path / "machine.json"
    with open(file_path, "w") as f:
        json.dump(asdict(state), f, ensure_ascii=True, indent=2)
    return file_path


def load_machine(machine_name: str, store_path: str = DEFAULT_STORE_PATH) -> Optional[MachineState]:
    file_path = machine_dir(store_path, machine_name) / "machine.json"
    if not file_path.exists():
        return None
    with open(file_path, "r") as f:
        return MachineState(**json.load(f))


def forget_machine(machine_name: str, store_path: str = DEFAULT_STORE_PATH):
    file_path = machine_dir(store_path, machine_name) / "machine.json"
    file_path.unlink(missing_ok=True)
