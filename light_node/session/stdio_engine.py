#!/usr/bin/env python3
"""
===============================================================================
STDIO SESSION ENGINE - EXTERNAL LIGHT CLIENT AS A BLACK BOX
===============================================================================

Each session is one child process running a light client that speaks
newline-delimited JSON-RPC:

    stdin   <- one request per line
    stdout  -> one response per line (pushed onto the session ResponseStream)
    stderr  -> forwarded to the session logger

The chain specification (and the optional prior database) are written to
temp files; `{spec}` / `{database}` placeholders in the command are replaced
by their paths (a bare `{database}` argument is dropped when there is no
database). Without a `{spec}` placeholder the spec path is appended as
the last argument.

A process that exits within `startup_grace` seconds counts as a failed open,
so the supervisor's retry policy applies. A process that exits later simply
ends its response stream.
"""

import itertools
import os
import subprocess
import tempfile
import threading
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import light_node
from light_node.domain.models import Session
from light_node.session.engine import SessionEngine
from light_node.session.errors import SessionCloseError, SessionOpenError, SessionSubmitError
from light_node.session.stream import ResponseStream

logger = logging.getLogger(__name__)

SPEC_PLACEHOLDER = "{spec}"
DATABASE_PLACEHOLDER = "{database}"
PROCESS_TERMINATE_TIMEOUT = 5.0


@dataclass
class _ChildSession:
    session: Session
    process: subprocess.Popen
    temp_files: List[str] = field(default_factory=list)
    write_lock: threading.Lock = field(default_factory=threading.Lock)
    readers: List[threading.Thread] = field(default_factory=list)


class StdioSessionEngine(SessionEngine):
    """Session engine backed by one child process per session."""

    def __init__(
        self,
        command: List[str],
        startup_grace: float = 0.5,
        env: Optional[Dict[str, str]] = None,
    ):
        if not command:
            raise ValueError("command cannot be empty")
        self._command = list(command)
        self._startup_grace = startup_grace
        self._env = env
        self._ids = itertools.count(1)
        self._sessions: Dict[int, _ChildSession] = {}
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # OPEN
    # ------------------------------------------------------------------

    def _write_temp(self, prefix: str, content: str) -> str:
        fd, path = tempfile.mkstemp(prefix=prefix, suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content)
        except OSError:
            self._remove_files([path])
            raise
        return path

    def _build_argv(self, spec_path: str, database_path: Optional[str]) -> List[str]:
        argv = []
        has_spec = False
        for arg in self._command:
            if SPEC_PLACEHOLDER in arg:
                has_spec = True
                arg = arg.replace(SPEC_PLACEHOLDER, spec_path)
            if DATABASE_PLACEHOLDER in arg:
                if database_path is None and arg == DATABASE_PLACEHOLDER:
                    # No prior database: drop the argument entirely
                    continue
                arg = arg.replace(DATABASE_PLACEHOLDER, database_path or "")
            argv.append(arg)
        if not has_spec:
            argv.append(spec_path)
        return argv

    def _build_env(self) -> Dict[str, str]:
        env = os.environ.copy()
        env["LIGHT_NODE_SYSTEM_NAME"] = light_node.__name__
        env["LIGHT_NODE_SYSTEM_VERSION"] = light_node.__version__
        if self._env:
            env.update(self._env)
        return env

    def open(self, specification: str, database: str = "", user_data: Any = None) -> Session:
        temp_files: List[str] = []
        try:
            spec_path = self._write_temp("chain_spec_", specification)
            temp_files.append(spec_path)
            database_path = None
            if database:
                database_path = self._write_temp("chain_db_", database)
                temp_files.append(database_path)
        except OSError as e:
            self._remove_files(temp_files)
            raise SessionOpenError(f"Failed to write chain spec temp file: {e}") from e

        argv = self._build_argv(spec_path, database_path)

        try:
            process = subprocess.Popen(
                argv,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
                bufsize=1,
                env=self._build_env(),
            )
        except OSError as e:
            self._remove_files(temp_files)
            raise SessionOpenError(f"Failed to start session process {argv[0]}: {e}") from e

        if self._startup_grace > 0:
            try:
                returncode = process.wait(timeout=self._startup_grace)
            except subprocess.TimeoutExpired:
                returncode = None
            if returncode is not None:
                stderr_tail = (process.stderr.read() or "").strip()[-500:]
                self._close_pipes(process)
                self._remove_files(temp_files)
                raise SessionOpenError(
                    f"Session process exited during startup (code={returncode}): {stderr_tail}"
                )

        session = Session(
            session_id=next(self._ids),
            responses=ResponseStream(),
            user_data=user_data,
        )
        child = _ChildSession(session=session, process=process, temp_files=temp_files)

        child.readers = [
            threading.Thread(
                target=self._pump_stdout,
                args=(child,),
                name=f"SessionStdout-{session.session_id}",
                daemon=True,
            ),
            threading.Thread(
                target=self._pump_stderr,
                args=(child,),
                name=f"SessionStderr-{session.session_id}",
                daemon=True,
            ),
        ]

        with self._lock:
            self._sessions[session.session_id] = child
        for reader in child.readers:
            reader.start()

        logger.info("Session %d started (pid=%s)", session.session_id, process.pid)
        return session

    # ------------------------------------------------------------------
    # READERS
    # ------------------------------------------------------------------

    def _pump_stdout(self, child: _ChildSession) -> None:
        stream = child.session.responses
        try:
            for line in child.process.stdout:
                line = line.rstrip("\r\n")
                if line:
                    stream.push(line)
        except (OSError, ValueError) as e:
            # ValueError: pipe closed under us by close()
            logger.debug("Session %d stdout reader stopped: %s", child.session.session_id, e)
        finally:
            stream.finish()
            logger.info("Session %d response stream ended", child.session.session_id)

    def _pump_stderr(self, child: _ChildSession) -> None:
        try:
            for line in child.process.stderr:
                line = line.rstrip("\r\n")
                if line:
                    logger.debug("[session %d] %s", child.session.session_id, line)
        except (OSError, ValueError):
            pass

    # ------------------------------------------------------------------
    # SUBMIT
    # ------------------------------------------------------------------

    def submit(self, session_id: int, request_text: str) -> None:
        with self._lock:
            child = self._sessions.get(session_id)
        if child is None:
            raise SessionSubmitError(f"Unknown session id: {session_id}")

        if child.process.poll() is not None:
            raise SessionSubmitError(
                f"Session {session_id} process exited (code={child.process.returncode})"
            )

        with child.write_lock:
            try:
                child.process.stdin.write(request_text + "\n")
                child.process.stdin.flush()
            except (OSError, ValueError) as e:
                raise SessionSubmitError(f"Session {session_id} stdin write failed: {e}") from e

    # ------------------------------------------------------------------
    # CLOSE
    # ------------------------------------------------------------------

    def close(self, session_id: int) -> None:
        with self._lock:
            child = self._sessions.pop(session_id, None)
        if child is None:
            logger.debug("close(%s): unknown or already closed session", session_id)
            return

        process = child.process
        try:
            process.terminate()
            process.wait(timeout=PROCESS_TERMINATE_TIMEOUT)
        except subprocess.TimeoutExpired:
            logger.warning("Session %d did not terminate, killing", session_id)
            try:
                process.kill()
                process.wait(timeout=1)
            except (OSError, subprocess.TimeoutExpired) as e:
                raise SessionCloseError(f"Session {session_id} kill failed: {e}") from e
        except OSError as e:
            raise SessionCloseError(f"Session {session_id} terminate failed: {e}") from e
        finally:
            self._remove_files(child.temp_files)
            # Readers see EOF once the process is gone; only then close their pipes
            for reader in child.readers:
                reader.join(timeout=1.0)
            if any(reader.is_alive() for reader in child.readers):
                logger.warning("Session %d readers still blocked (pipe held open)", session_id)
                self._close_pipes(process, only_stdin=True)
            else:
                self._close_pipes(process)
            child.session.responses.finish()

    def close_all(self) -> None:
        with self._lock:
            session_ids = list(self._sessions)
        for session_id in session_ids:
            try:
                self.close(session_id)
            except SessionCloseError as e:
                logger.warning("close_all: %s", e)

    # ------------------------------------------------------------------
    # HELPERS
    # ------------------------------------------------------------------

    def _close_pipes(self, process: subprocess.Popen, only_stdin: bool = False) -> None:
        pipes = (process.stdin,) if only_stdin else (process.stdin, process.stdout, process.stderr)
        for pipe in pipes:
            if pipe:
                try:
                    pipe.close()
                except OSError:
                    pass

    def _remove_files(self, paths: List[str]) -> None:
        for path in paths:
            try:
                os.remove(path)
            except FileNotFoundError:
                pass
            except OSError as e:
                logger.warning("Could not remove temp file %s: %s", path, e)
