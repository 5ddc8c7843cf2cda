"""Process enumeration and termination using psutil."""

import psutil
import structlog

from syswatch.models import ProcessRecord

log = structlog.get_logger()


class EnumerationError(OSError):
    """The process table could not be read at all."""


def list_processes() -> list[ProcessRecord]:
    """
    Collect records for all running processes, sorted by PID.

    Uses psutil.process_iter() with prefetched attributes. Processes that
    die mid-iteration, deny access, or are zombies are skipped.

    Raises:
        EnumerationError: If the process table itself is unreadable.
    """
    records: list[ProcessRecord] = []

    try:
        for proc in psutil.process_iter(attrs=["pid", "name", "cmdline"]):
            try:
                info = proc.info
                cmdline = info.get("cmdline") or []
                name = info.get("name") or ""
                # Kernel threads have no command line
                command = " ".join(cmdline) if cmdline else name
                pid = info.get("pid") or proc.pid
                if pid < 1:
                    continue
                records.append(ProcessRecord(pid=pid, name=name, command=command))
            except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
                continue
    except (OSError, psutil.Error) as e:
        log.error("process_enumeration_failed", error=str(e))
        raise EnumerationError(f"cannot read process table: {e}") from e

    records.sort(key=lambda record: record.pid)
    return records


def process_exists(pid: int) -> bool:
    return psutil.pid_exists(pid)


def kill_process(pid: int) -> bool:
    """
    Send SIGKILL to a process.

    Returns:
        True if the signal was delivered, False if the process is already
        gone or the caller lacks permission.
    """
    try:
        psutil.Process(pid).kill()
    except psutil.NoSuchProcess:
        log.warning("kill_failed", pid=pid, reason="no_such_process")
        return False
    except psutil.AccessDenied:
        log.warning("kill_failed", pid=pid, reason="access_denied")
        return False
    log.info("kill_sent", pid=pid)
    return True
