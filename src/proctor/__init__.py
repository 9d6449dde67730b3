from .channel import (
    CommunicationHandle,
    open_communication_handle,
    read_process_with_communication_handle,
)
from .config import ProcessConfig, load_config, proc, shell
from .errors import (
    ConfigError,
    ExecutableNotFound,
    OSFailure,
    ProcessFailed,
    ProctorError,
    SpawnError,
    WaitError,
)
from .process import Process
from .run import (
    call_config_process,
    call_process,
    read_config_process,
    read_process,
    read_process_with_exit_code,
)
from .spawn import Spawned, cleanup_process, spawn, with_process
from .status import ExitFailure, ExitStatus, ExitSuccess, Interrupted, exit_status
from .streams import (
    CREATE_PIPE,
    INHERIT,
    NO_STREAM,
    CreatePipe,
    Inherit,
    NoStream,
    StdStream,
    UseHandle,
)

__all__ = [
    "CREATE_PIPE",
    "INHERIT",
    "NO_STREAM",
    "CommunicationHandle",
    "ConfigError",
    "CreatePipe",
    "ExecutableNotFound",
    "ExitFailure",
    "ExitStatus",
    "ExitSuccess",
    "Inherit",
    "Interrupted",
    "NoStream",
    "OSFailure",
    "Process",
    "ProcessConfig",
    "ProcessFailed",
    "ProctorError",
    "SpawnError",
    "Spawned",
    "StdStream",
    "UseHandle",
    "WaitError",
    "call_config_process",
    "call_process",
    "cleanup_process",
    "exit_status",
    "load_config",
    "open_communication_handle",
    "proc",
    "read_config_process",
    "read_process",
    "read_process_with_communication_handle",
    "read_process_with_exit_code",
    "shell",
    "spawn",
    "with_process",
]
