from __future__ import annotations

from fk.test.architecture._utils import iter_source_files, matches_prefix, parse_imports, rel_name

# git, cargo and npm are all driven through platform/process.run.
ALLOWLIST = {"platform/process.py"}


def test_subprocess_is_only_imported_by_the_process_wrapper() -> None:
    offenders: list[str] = []
    for path in iter_source_files():
        rel = rel_name(path)
        if rel in ALLOWLIST:
            continue
        for item in parse_imports(path):
            if matches_prefix(item.module, "subprocess"):
                offenders.append(f"{rel}:{item.line}: imports subprocess")

    assert not offenders, "Subprocess policy violations:\n" + "\n".join(offenders)
