"""Project bootstrap: build a new project from remote starter archives."""
from __future__ import annotations

import asyncio
import json
import logging
import shutil
import tarfile
import tempfile
from pathlib import Path

import aiohttp
import typer

from devserve.core.errors import FatalError
from devserve.core.project import PROJECT_FILE
from devserve.storage.starter_store import StarterStore, StarterTemplate, StarterType, archive_url

logger = logging.getLogger(__name__)

# Files a fresh git clone or IDE may leave behind; anything else means the
# directory is in use.
SAFE_FILES = frozenset({
    ".DS_Store", "Thumbs.db", ".git", ".gitignore", ".idea", "README.md", "LICENSE",
})

PATCH_FILE = "patch.package.json"


def is_project_name_valid(name: str) -> bool:
    return name != "."


def is_safe_to_create_project_in(root: str | Path) -> bool:
    """True if *root* only contains files left by git hosting or an IDE."""
    return all(entry.name in SAFE_FILES for entry in Path(root).iterdir())


def hello_text() -> str:
    bold = lambda s: typer.style(s, bold=True)  # noqa: E731
    green = lambda s: typer.style(s, fg=typer.colors.GREEN)  # noqa: E731
    return (
        f"\n{bold('Your Ionic app is ready to go!')}\n\n"
        f"{bold('Run your app in the browser (great for initial development):')}\n"
        f"  {green('devserve serve')}\n\n"
        f"{bold('Run on a device or simulator:')}\n"
        f"  {green('ionic cordova run ios')}\n"
    )


# ---------------------------------------------------------------------------
# package.json handling
# ---------------------------------------------------------------------------

def _read_json(path: Path) -> dict:
    """Read a JSON object. Raises FileNotFoundError or ValueError."""
    try:
        return json.loads(path.read_text())
    except json.JSONDecodeError as e:
        raise ValueError(f"{path} is not valid JSON.") from e


def _write_json(path: Path, data: dict) -> None:
    path.write_text(json.dumps(data, indent=2, ensure_ascii=False) + "\n")


def deep_merge(base: dict, patch: dict) -> dict:
    """Recursively merge *patch* into *base* (in place) and return *base*.

    Nested objects are merged key by key; any other value in *patch*
    replaces the one in *base*.
    """
    for key, value in patch.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            deep_merge(base[key], value)
        else:
            base[key] = value
    return base


def patch_package_json(project_dir: str | Path) -> bool:
    """Merge ``patch.package.json`` into ``package.json`` and delete the patch.

    Returns False when the starter ships no patch file.
    """
    project_dir = Path(project_dir)
    package_path = project_dir / "package.json"
    patch_path = project_dir / PATCH_FILE

    try:
        pkg = _read_json(package_path)
    except FileNotFoundError as e:
        raise ValueError(f"{package_path} not found") from e

    try:
        patch = _read_json(patch_path)
    except FileNotFoundError:
        return False

    _write_json(package_path, deep_merge(pkg, patch))
    patch_path.unlink(missing_ok=True)
    logger.info("Applied %s", patch_path)
    return True


def update_package_json(project_dir: str | Path, app_name: str) -> None:
    """Stamp the new app's name onto its ``package.json``."""
    path = Path(project_dir) / "package.json"
    try:
        pkg = _read_json(path)
    except FileNotFoundError as e:
        raise ValueError(f"{path} not found") from e

    pkg["name"] = app_name
    pkg["version"] = "0.0.1"
    pkg["description"] = "An Ionic project"
    _write_json(path, pkg)


def create_project_config(project_dir: str | Path, app_name: str, starter_type: StarterType) -> Path:
    path = Path(project_dir) / PROJECT_FILE
    _write_json(path, {"name": app_name, "app_id": "", "type": starter_type.id})
    return path


# ---------------------------------------------------------------------------
# Archives
# ---------------------------------------------------------------------------

def extract_archive(archive: str | Path, dest: str | Path) -> None:
    """Extract a tar.gz into *dest*, dropping the top-level directory.

    GitHub archives wrap everything in ``<repo>-<branch>/``.
    """
    dest = Path(dest)
    with tarfile.open(archive, "r:gz") as tar:
        members = []
        for member in tar.getmembers():
            parts = Path(member.name).parts
            if len(parts) < 2:
                continue
            member.name = str(Path(*parts[1:]))
            members.append(member)
        tar.extractall(dest, members=members, filter="data")


async def download_archive(session: aiohttp.ClientSession, url: str, dest: str | Path) -> None:
    """Download the tar.gz at *url* and extract it into *dest*."""
    logger.info("Downloading %s", url)
    with tempfile.TemporaryDirectory() as tmp:
        archive = Path(tmp) / "archive.tar.gz"
        async with session.get(url) as resp:
            resp.raise_for_status()
            with archive.open("wb") as f:
                async for chunk in resp.content.iter_chunked(64 * 1024):
                    f.write(chunk)
        extract_archive(archive, dest)


# ---------------------------------------------------------------------------
# Flow
# ---------------------------------------------------------------------------

async def start_project(
    name: str,
    template_name: str,
    type_id: str,
    directory: str | Path | None = None,
    *,
    branch: str = "master",
    store: StarterStore | None = None,
    timeout: float = 120.0,
) -> Path:
    """Create a project called *name* from a starter template.

    Downloads the base archive for the project type, overlays the template
    archive, then fixes up package.json and writes the project config.
    """
    store = store or StarterStore()

    if not is_project_name_valid(name):
        raise FatalError(f"Please name your Ionic project something meaningful other than {name!r}.")

    starter_type = store.get_type(type_id)
    if starter_type is None:
        raise FatalError(f"Unknown project type: {type_id}.")

    template = store.get(template_name, type_id)
    if template is None:
        raise FatalError(
            f"Unable to find starter template for {template_name}.\n"
            f"Available templates for {type_id}:\n{store.template_text(type_id)}"
        )

    project_dir = Path(directory or name).expanduser().resolve()
    created = False
    if project_dir.exists():
        if not project_dir.is_dir() or not is_safe_to_create_project_in(project_dir):
            raise FatalError(
                f"The directory {project_dir} contains files that could conflict.\n"
                "Choose a different name or remove the existing files."
            )
    else:
        project_dir.mkdir(parents=True)
        created = True

    try:
        await _populate(project_dir, name, starter_type, template, branch, timeout)
    except FatalError:
        if created:
            shutil.rmtree(project_dir, ignore_errors=True)
        raise

    logger.info("Created %s project %s in %s", type_id, name, project_dir)
    return project_dir


async def _populate(
    project_dir: Path,
    name: str,
    starter_type: StarterType,
    template: StarterTemplate,
    branch: str,
    timeout: float,
) -> None:
    async with aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=timeout)) as session:
        for url in (
            archive_url(starter_type.base_archive, branch),
            archive_url(template.archive, branch),
        ):
            try:
                await download_archive(session, url, project_dir)
            except aiohttp.ClientResponseError as e:
                raise FatalError(f"Could not download {url}: HTTP {e.status}") from e
            except (aiohttp.ClientError, asyncio.TimeoutError, tarfile.TarError) as e:
                raise FatalError(f"Could not download {url}: {str(e) or type(e).__name__}") from e

    try:
        patch_package_json(project_dir)
        update_package_json(project_dir, name)
    except ValueError as e:
        raise FatalError(str(e)) from e
    create_project_config(project_dir, name, starter_type)
