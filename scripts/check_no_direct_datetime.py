from __future__ import annotations

import re
import sys
from pathlib import Path


ROOT = Path(__file__).resolve().parents[1]
APP_DIR = ROOT / "app"

# Booking notice and calendar windows must go through TimeProvider so tests can pin "now".
PATTERNS = (
    r"\bdatetime\.now\(",
    r"\bdatetime\.utcnow\(",
    r"\bdate\.today\(",
    r"\bdatetime\.today\(",
)
COMPILED = [re.compile(pattern) for pattern in PATTERNS]
ALLOWED_FILES = ("app/core/time_provider.py",)


def _is_excluded(path: Path) -> bool:
    path_str = path.as_posix()
    if path_str.endswith(ALLOWED_FILES):
        return True
    if "/alembic/" in path_str or "/tests/" in path_str:
        return True
    return False


def find_violations(app_dir: Path = APP_DIR, root: Path = ROOT) -> list[tuple[str, int, str]]:
    violations: list[tuple[str, int, str]] = []
    for file_path in sorted(app_dir.rglob("*.py")):
        if _is_excluded(file_path):
            continue
        for idx, line in enumerate(file_path.read_text(encoding="utf-8").splitlines(), start=1):
            if line.lstrip().startswith("#"):
                continue
            if any(regex.search(line) for regex in COMPILED):
                violations.append((str(file_path.relative_to(root)), idx, line.strip()))
    return violations


def main() -> int:
    violations = find_violations()
    if violations:
        print("Direct clock reads are not allowed in app/; use app.core.time_provider:")
        for path, line_no, line in violations:
            print(f" - {path}:{line_no}: {line}")
        return 1

    print("No direct clock reads detected in app/.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
