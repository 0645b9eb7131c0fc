# ocirt

`ocirt` is a library of the pieces a Linux container runtime following the
OCI runtime specification is built from: reading and writing bundle specs,
keeping container state on disk, entering namespaces, running lifecycle
hooks, creating device nodes and `/dev` links, validating rootless setups and
writing uid/gid maps, and the pipes and sockets the runtime processes use to
talk to each other.

It runs on Linux with Python 3.12 or later and has no third-party
dependencies.

## Modules

| Module | Contents |
| --- | --- |
| `ocirt.spec` | `Spec` and its parts (`Linux`, `Process`, `User`, `Root`, `Mount`, `Hook`, `Hooks`, `LinuxNamespace`, `LinuxIdMapping`, `LinuxDevice`, `LinuxRlimit`); `Spec.load`, `Spec.save`, `Spec.from_dict`, `Spec.to_dict`, `Spec.canonicalize_rootfs`; `load_spec(bundle)` reads a bundle's `config.json`, requires version `1.0.x` and resolves the root path |
| `ocirt.state` | `ContainerStatus` with `can_start`, `can_kill`, `can_delete`, `can_pause`, `can_resume`; `State`, saved as `state.json` in a container's directory |
| `ocirt.container` | `Container`: state plus root directory, with `create`, `load`, `save`, `refresh_status` (checks `/proc/<pid>/stat`), `update_status` and `with_*` copies |
| `ocirt.syscall` | `CloneFlags`; the `Syscall` interface, `LinuxSyscall` (chroot, setns, unshare, setresuid/setresgid, hostname, rlimits, user lookup) and `RecordingSyscall`, which only records calls |
| `ocirt.namespaces` | `get_clone_flag` and `Namespaces`, which unshares a new namespace or joins the one at a given path |
| `ocirt.hooks` | `run_hooks`, which runs hooks in order with the container state as JSON on stdin; raises `HookError`, or `HookTimeoutError` when a hook exceeds its timeout |
| `ocirt.rootfs` | `MountFlags`, `parse_mount`, `default_devices`, `makedev`, `create_devices`, `mknod_dev`, `setup_default_symlinks`, `setup_ptmx` |
| `ocirt.rootless` | `Rootless`, `rootless_required`, `validate`, `validate_mounts`, `is_id_mapped`, `lookup_map_binaries`, `write_uid_mapping`, `write_gid_mapping`, `write_id_mapping` |
| `ocirt.message` | `Message`, the one-byte codes sent between processes |
| `ocirt.channel` | `main_to_intermediate`, `intermediate_to_main`, `init_to_intermediate`: one-way pipes with typed sender and receiver ends; protocol errors raise `ChannelError` |
| `ocirt.fork` | `container_fork(callback)`: runs the callback in a child, which exits 0 on success and 255 on an exception |
| `ocirt.notify_socket` | `NotifyListener` (waits for the start command) and `NotifySocket` (sends it) over a Unix socket |
| `ocirt.tty` | `setup_console_socket`, `setup_console` (sends a pty master over the console socket and makes the slave stdio), `connect_stdio` |
| `ocirt.signals` | `to_signal`, which turns `"9"`, `"KILL"` or `"sigkill"` into a `signal.Signals` |
| `ocirt.utils` | `parse_env`, `as_in_container`, `join_absolute_path`, `get_cgroup_path`, `create_dir_all`, `create_dir_all_with_mode`, `write_file`, `open_file`, `delete_with_retry`, `do_exec`, `TempDir`, `create_temp_dir` |
| `ocirt.logger` | `init_logging(log_file=None)` and `RuntimeFormatter` |
| `ocirt.paths` | `determine_root_path`, which picks where container state is kept |

## Examples

Signals by name or number:

```python
from ocirt.signals import to_signal

to_signal("term")     # Signals.SIGTERM
to_signal("9")        # Signals.SIGKILL
to_signal("invalid")  # raises ValueError
```

Environment entries:

```python
from ocirt.utils import parse_env

parse_env(["key=value", "OPTS=a=b"])
# {"key": "value", "OPTS": "a=b"}
```

What a container may do in a given status:

```python
from ocirt.state import ContainerStatus

ContainerStatus.CREATED.can_start()   # True
ContainerStatus.RUNNING.can_pause()   # True
ContainerStatus.STOPPED.can_delete()  # True
```

Recording a container (the root directory must already exist; it is made
absolute):

```python
from ocirt.container import Container
from ocirt.state import ContainerStatus

container = Container.create(
    "my-container", ContainerStatus.CREATING, None,
    "/path/to/bundle", "/path/to/state/my-container",
)
container.save()
container = container.update_status(ContainerStatus.CREATED).with_pid(1234)
container.save()
```

Mount options split into flags and filesystem data:

```python
from ocirt.rootfs import MountFlags, parse_mount
from ocirt.spec import Mount

flags, data = parse_mount(Mount(destination="/tmp", typ="tmpfs",
                                options=["nosuid", "ro", "mode=755"]))
# flags == MountFlags.MS_NOSUID | MountFlags.MS_RDONLY, data == "mode=755"
```

Entering namespaces without touching the system, for testing:

```python
from ocirt.namespaces import Namespaces
from ocirt.spec import LinuxNamespace, LinuxNamespaceType
from ocirt.syscall import RecordingSyscall

syscall = RecordingSyscall()
namespaces = Namespaces([LinuxNamespace(LinuxNamespaceType.PID)], syscall)
namespaces.apply_namespaces(lambda flag: True)
syscall.unshare_args  # [CloneFlags.CLONE_NEWPID]
```

## Environment

- `YOUKI_LOG_LEVEL` sets the level used by `init_logging` (`off`, `error`,
  `warn`, `info`, `debug`, `trace`); the default is warnings.
- `YOUKI_USE_ROOTLESS=true` makes `rootless_required` true even for root;
  any non-root effective user is always treated as rootless.
- `determine_root_path` uses `XDG_RUNTIME_DIR` and `HOME` when running
  rootless, falling back to `/run/user/<uid>` and `/tmp/youki/<uid>`.

## What the package does not do

This is a library, not a runtime you can run. It has no command-line tool
and no `create`, `start`, `run`, `exec`, `kill`, `delete`, `state` or `ps`
commands, and nothing that ties the pieces above into the full process of
creating and starting a container. It does not manage cgroups, set
capabilities, perform mounts or bind mounts, or pivot into a new root;
`create_devices` creates device nodes with `mknod` only.

Most calls that change the process (entering namespaces, changing ids,
creating device nodes) need root privileges or a user namespace.

## Tests

The tests use pytest; install the `test` extra to get it.