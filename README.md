# carnivalkit

A library for working with IndieGala game installations. It reads build
manifests, works out what changed between two builds, checks installed
files against their recorded hashes, and finds and starts a game's
executable (natively, through Wine, or through a wrapper command).

It uses only the Python standard library and supports Python 3.10 and
later.

## Modules

- `carnivalkit.manifest` parses build and chunk manifests (CSV) into
  `BuildRecord` and `ChunkRecord` objects, fetches them from the content
  server (`fetch_build`, `fetch_chunks`, `fetch_csv`) and builds chunk
  download URLs (`get_chunk_url`).
- `carnivalkit.delta` compares two build manifests (`generate_delta`),
  tells whether an update was already partly applied
  (`check_for_resume_update`) and deletes modified and removed files from
  an install directory (`cleanup_files`, `cleanup_removed_files`).
- `carnivalkit.verify` hashes installed files and checks them against a
  manifest, using a pool of worker threads.
- `carnivalkit.progress` draws a live download progress display
  (`Tracker`) and formats byte counts (`format_bytes`).
- `carnivalkit.macapp` finds `.app` bundles and marks their main
  executables as runnable.
- `carnivalkit.launch` discovers executables in an install and runs the
  chosen one, terminating it again when asked to.
- `carnivalkit.logger` writes coloured, levelled log lines with
  key/value attributes.

## Reading manifests and computing an update

```python
from carnivalkit.manifest import parse_build_manifest
from carnivalkit.delta import generate_delta, print_update_info

with open("old_manifest.csv", "rb") as fh:
    old = parse_build_manifest(fh.read())
with open("new_manifest.csv", "rb") as fh:
    new = parse_build_manifest(fh.read())

delta = generate_delta(old, new)
if not delta.is_empty():
    delta.print_summary()
    print_update_info(delta)
```

File names in a manifest are decoded from Latin-1 and turned into paths
for the running system; `normalize_path`, `latin1_to_utf8` and
`extract_sha` are available on their own as well. A manifest that cannot
be read raises `ManifestError`.

Manifests can also be fetched directly:

```python
from carnivalkit.manifest import BuildOS, fetch_build, get_chunk_url

records, raw_csv = fetch_build("namespace", "game-id", BuildOS.WINDOWS, "1.0")
url = get_chunk_url("namespace", "game-id", BuildOS.WINDOWS, "chunk_sha")
```

## Checking an installation

```python
from carnivalkit.verify import hash_file, verify_chunk, verify_installation

digest = hash_file("Game/data.pak")
ok = verify_chunk(b"chunk bytes", digest)

all_valid, results = verify_installation("Game", records, verbose=True)
for result in results:
    if not result.valid:
        print(result.file_path, result.error)
```

`verify_installation` checks every file record against the install
directory and returns one `VerifyResult` per file; directory records are
skipped.

## Launching

```python
import threading
from carnivalkit.launch import LaunchOptions, find_executables, launch_game, select_executable
from carnivalkit.manifest import BuildOS

executables = find_executables("Game", BuildOS.WINDOWS)
exe = select_executable(executables, "launcher")

cancel = threading.Event()
launch_game(exe.path, BuildOS.WINDOWS, ["--windowed"], LaunchOptions(wine_prefix="prefix"), cancel)
```

`select_executable` picks the only executable found, or the first whose
path or name contains the given text, and raises `LaunchError` otherwise.
`launch_game` runs a wrapper command if `LaunchOptions.wrapper` is set,
runs Windows builds through Wine on other systems unless `no_wine` is
set, and otherwise runs the executable directly. A non-zero exit raises
`LaunchError`; setting the `cancel` event terminates the game's process
group and raises `LaunchCancelled`.

For macOS builds, `carnivalkit.macapp.mark_mac_executables` sets mode
0755 on the main executable of each bundle.

## Sizes and logging

```python
from carnivalkit.progress import format_bytes
from carnivalkit import logger

format_bytes(1536)            # '1.50 KB'
logger.set_level(logger.Level.DEBUG)
logger.info("installed", "size", format_bytes(1536))
```

## What it does not do

carnivalkit is a library only: it has no command-line program. It does
not sign in to an account, store credentials or keep a record of
installed games, and it does not download and assemble game chunks.
It provides the manifests, chunk URLs, delta and clean-up steps,
verification and launching that such a tool would build on.