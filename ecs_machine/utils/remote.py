"""
Remote command execution on the provisioned machine.

Uses `asyncssh` behind a synchronous facade so the sequential provisioning
flow can call it directly.
"""

import asyncio
import shlex
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Coroutine, Optional, TypeVar

import asyncssh
from loguru import logger

T = TypeVar("T")


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    if isinstance(value, str):
        return value
    return str(value)


@dataclass
class CommandResult:
    """Result of a remote command execution"""
    host: str
    success: bool
    stdout: str
    stderr: str
    return_code: int

    @property
    def output(self) -> str:
        return self.stdout + self.stderr


class RemoteExecutor:
    """
    Executes commands on one remote host via SSH (asyncssh).

    Authenticates with a private key when ``ssh_key_path`` is set, otherwise
    with ``password`` (freshly created instances only accept the password
    they were launched with until a key is uploaded).
    """

    def __init__(
        self,
        host: str,
        ssh_user: str = "root",
        port: int = 22,
        ssh_key_path: Optional[str] = None,
        password: Optional[str] = None,
        connect_timeout: float = 30.0,
    ):
        self.host = host
        self.ssh_user = ssh_user
        self.port = port
        self.ssh_key_path = ssh_key_path
        self.password = password
        self.connect_timeout = connect_timeout

    def _run_coro(self, coro: Coroutine[Any, Any, T]) -> T:
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return asyncio.run(coro)

        with ThreadPoolExecutor(max_workers=1) as executor:
            fut = executor.submit(asyncio.run, coro)
            return fut.result()

    async def _connect(self) -> asyncssh.SSHClientConnection:
        return await asyncssh.connect(
            self.host,
            port=self.port,
            username=self.ssh_user,
            client_keys=[self.ssh_key_path] if self.ssh_key_path else None,
            password=self.password,
            known_hosts=None,
            connect_timeout=self.connect_timeout,
        )

    async def _run_one(self, command: str, retry: int, timeout: int) -> CommandResult:
        last_exc: Optional[BaseException] = None
        for attempt in range(retry + 1):
            try:
                async with await self._connect() as conn:
                    res = await asyncio.wait_for(conn.run(command, check=False), timeout=timeout)
                    exit_status = res.exit_status if res.exit_status is not None else -1
                    return CommandResult(
                        host=self.host,
                        success=exit_status == 0,
                        stdout=_as_text(res.stdout),
                        stderr=_as_text(res.stderr),
                        return_code=int(exit_status),
                    )
            except (asyncio.TimeoutError, asyncssh.Error, OSError) as e:
                last_exc = e
                if attempt < retry:
                    await asyncio.sleep(3)

        return CommandResult(
            host=self.host,
            success=False,
            stdout="",
            stderr=str(last_exc) if last_exc else "Unknown error",
            return_code=-1,
        )

    def run_command(self, command: str, retry: int = 3, timeout: int = 600) -> CommandResult:
        logger.debug(f"Run on {self.host}: {command}")
        return self._run_coro(self._run_one(command, retry=retry, timeout=timeout))

    def upload_authorized_key(self, public_key: str) -> CommandResult:
        command = f"mkdir -p ~/.ssh; echo {shlex.quote(public_key.strip())} > ~/.ssh/authorized_keys"
        return self.run_command(command)
