"""Process-group termination for agent CLI subprocesses."""

import os
import signal


def kill_process_tree(pid: int, sig: int = signal.SIGKILL) -> None:
    """Send signal to the process group, falling back to the single process.

    Agent CLIs are spawned with start_new_session=True so killpg also reaches
    the tool subprocesses they start (shells, test runners, language servers).
    """
    try:
        pgid = os.getpgid(pid)
        os.killpg(pgid, sig)
    except (ProcessLookupError, PermissionError):
        pass
    except OSError:
        try:
            os.kill(pid, sig)
        except (ProcessLookupError, PermissionError):
            pass
