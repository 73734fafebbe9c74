"""Which component files `webdfd scan` visits.

Exclusions come from two files at the scan root, both in gitignore syntax:
- .gitignore, read first (optional)
- .dfdignore, or the built-in defaults when there is none

Both are compiled into a single pathspec GitIgnoreSpec with the .dfdignore
lines last, so a "!pattern" there re-includes a file the .gitignore
excludes. As in git, nothing below an excluded directory is re-included;
the walk never enters such a directory.
"""

import logging
import os
from pathlib import Path

import pathspec

logger = logging.getLogger(__name__)

IGNORE_FILENAME = ".dfdignore"
GITIGNORE_FILENAME = ".gitignore"

COMPONENT_SUFFIXES = (".tsx", ".jsx")

DEFAULT_TEMPLATE = """\
# webdfd ignore patterns (gitignore syntax)
# Files matched here are skipped by `webdfd scan`.
# Read after .gitignore: use !pattern to scan a gitignored component.

# ===================
# Dependencies
# ===================
node_modules/
.pnpm-store/
bower_components/

# ===================
# Build outputs
# ===================
dist/
build/
out/
.next/
.nuxt/
.output/
.vite/
coverage/
storybook-static/

# ===================
# Tests and stories
# ===================
*.test.tsx
*.test.jsx
*.spec.tsx
*.spec.jsx
*.stories.tsx
*.stories.jsx
__tests__/
__mocks__/

# ===================
# Version control
# ===================
.git/
.hg/
.svn/

# ===================
# Project-specific
# Add your custom patterns below
# ===================
# src/legacy/
"""


def _read_patterns(path: Path) -> list[str]:
    lines = path.read_text(encoding="utf-8", errors="replace").splitlines()
    logger.debug(f"Loaded {len(lines)} lines from {path}")
    return lines


def load_ignore_spec(project_dir: str | Path, use_gitignore: bool = True) -> pathspec.GitIgnoreSpec:
    """
    Compile the exclusions for a scan root.

    Args:
        project_dir: Scan root holding the ignore files
        use_gitignore: Also apply the root .gitignore (before .dfdignore)

    Returns:
        GitIgnoreSpec matching root-relative POSIX paths
    """
    root = Path(project_dir)
    lines: list[str] = []

    gitignore = root / GITIGNORE_FILENAME
    if use_gitignore and gitignore.is_file():
        lines.extend(_read_patterns(gitignore))

    own = root / IGNORE_FILENAME
    if own.is_file():
        lines.extend(_read_patterns(own))
    else:
        lines.extend(DEFAULT_TEMPLATE.splitlines())

    return pathspec.GitIgnoreSpec.from_lines(lines)


def ensure_dfdignore(project_dir: str | Path) -> tuple[bool, str]:
    """Create .dfdignore with the defaults unless one exists.

    Returns:
        Tuple of (created: bool, message: str)
    """
    project_path = Path(project_dir)

    if not project_path.is_dir():
        return False, f"Project directory does not exist: {project_path}"

    ignore_path = project_path / IGNORE_FILENAME
    if ignore_path.exists():
        return False, f"{IGNORE_FILENAME} already exists at {ignore_path}"

    ignore_path.write_text(DEFAULT_TEMPLATE)
    return (
        True,
        f"""Created {IGNORE_FILENAME} with defaults:
  - node_modules/, dist/, build/, .next/
  - test and story files (*.test.tsx, *.stories.tsx)

It is applied after .gitignore; add !patterns to scan gitignored components.""",
    )


def find_component_files(
    project_dir: str | Path,
    respect_ignore: bool = True,
    use_gitignore: bool = True,
) -> list[Path]:
    """
    All .tsx/.jsx files under project_dir that are not excluded, sorted.

    Args:
        project_dir: Scan root
        respect_ignore: If False, apply no exclusions at all (--no-ignore)
        use_gitignore: If False, apply .dfdignore (or defaults) only
    """
    root = Path(project_dir)
    spec = load_ignore_spec(root, use_gitignore) if respect_ignore else None

    found: list[Path] = []
    pruned = 0
    for dirpath, dirnames, filenames in os.walk(root):
        rel_dir = Path(dirpath).relative_to(root)
        if spec is not None:
            kept_dirs = [d for d in dirnames if not spec.match_file(f"{(rel_dir / d).as_posix()}/")]
            pruned += len(dirnames) - len(kept_dirs)
            dirnames[:] = kept_dirs

        for name in filenames:
            if not name.lower().endswith(COMPONENT_SUFFIXES):
                continue
            rel = (rel_dir / name).as_posix()
            if spec is not None and spec.match_file(rel):
                logger.debug(f"Ignoring {rel}")
                continue
            found.append(root / rel)

    logger.debug(f"Found {len(found)} component files under {root} ({pruned} directories skipped)")
    return sorted(found)
