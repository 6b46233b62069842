from __future__ import annotations
import asyncio
import json
import os
import sys
from typing import Any, Optional, TextIO

import yaml

from virsh.virsh_datatypes import IOFailure, List, Scope, Str, Val, from_host, force


def resolve_path(name: str, base_dir: Optional[str] = None) -> str:
    # Relative names resolve against the script's directory, or the CWD when unknown
    name = os.path.expanduser(name)
    if os.path.isabs(name):
        return os.path.normpath(name)
    return os.path.normpath(os.path.join(base_dir or os.getcwd(), name))


def read_text(path: str) -> str:
    try:
        with open(path, "r", encoding="utf-8") as f:
            return f.read()
    except OSError as e:
        raise IOFailure(f"Cannot read {path}: {e.strerror or e}") from e


def deserialize(text: str, fmt: str) -> Any:
    """Parses JSON or YAML text into plain host data."""
    try:
        if fmt == "json":
            return json.loads(text)
        return yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise IOFailure(f"Cannot parse {fmt}: {e}") from e


async def read_lines(stream: TextIO):
    """Yields stripped lines from `stream` without blocking the event loop."""
    loop = asyncio.get_running_loop()
    while True:
        line = await loop.run_in_executor(None, stream.readline)
        if line == "":
            return
        yield Val(Str(line.strip()))


class FsLib:
    """File system builtins, bound under the `fs` record."""
    def __init__(self, base_dir: Optional[str] = None):
        self.base_dir = base_dir

    async def file_name(self, scope, thunk) -> str:
        value = await thunk.force(scope)
        name = await value.reify()
        if not isinstance(name, str):
            raise IOFailure(f"Expected a file name, got {value.kind}")
        return name

    async def _read(self, scope, fname, *_rest):
        path = resolve_path(await self.file_name(scope, fname), self.base_dir)
        return Str(read_text(path))

    async def _lines(self, scope, fname, *_rest):
        path = resolve_path(await self.file_name(scope, fname), self.base_dir)
        text = read_text(path).strip()
        return List([Val(Str(line)) for line in text.split("\n")] if text else [])

    async def _ls(self, scope, directory, *_rest):
        name = await self.file_name(scope, directory)
        path = resolve_path(name, self.base_dir)
        try:
            entries = sorted(os.listdir(path))
        except OSError as e:
            raise IOFailure(f"Cannot list {path}: {e.strerror or e}") from e
        return List([Val(Str(entry)) for entry in entries])

    async def _load(self, scope, fname, *_rest):
        path = resolve_path(await self.file_name(scope, fname), self.base_dir)
        ext = os.path.splitext(path)[1].lower()
        data = deserialize(read_text(path), "json" if ext == ".json" else "yaml")
        return await force(from_host(data))


def make_io_scope(stdin: Optional[TextIO] = None) -> Scope:
    """Builds the `io` record. `stdin` defaults to the process's standard input."""
    scope = Scope()
    scope.declare("stdin").set(List(read_lines(stdin if stdin is not None else sys.stdin)))
    return scope
