from __future__ import annotations

import logging
from dataclasses import dataclass, field

import typer

logger = logging.getLogger(__name__)

BRANCH_PLACEHOLDER = "<BRANCH_NAME>"


@dataclass(frozen=True)
class StarterType:
    id: str
    url: str
    base_archive: str
    global_dependencies: list[str] = field(default_factory=list)
    local_dependencies: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class StarterTemplate:
    name: str
    type: str
    description: str
    url: str
    archive: str


def _gh(repo: str) -> tuple[str, str]:
    url = f"https://github.com/{repo}"
    return url, f"{url}/archive/{BRANCH_PLACEHOLDER}.tar.gz"


def _starter_type(type_id: str, repo: str) -> StarterType:
    url, archive = _gh(repo)
    return StarterType(id=type_id, url=url, base_archive=archive)


def _template(name: str, type_id: str, description: str, repo: str) -> StarterTemplate:
    url, archive = _gh(repo)
    return StarterTemplate(name=name, type=type_id, description=description, url=url, archive=archive)


STARTER_TYPES: list[StarterType] = [
    _starter_type("ionic-angular", "ionic-team/ionic2-app-base"),
    _starter_type("ionic1", "ionic-team/ionic-app-base"),
]

STARTER_TEMPLATES: list[StarterTemplate] = [
    _template("tabs", "ionic-angular",
              "A starting project with a simple tabbed interface",
              "ionic-team/ionic2-starter-tabs"),
    _template("blank", "ionic-angular", "A blank starter project",
              "ionic-team/ionic2-starter-blank"),
    _template("sidemenu", "ionic-angular",
              "A starting project with a side menu with navigation in the content area",
              "ionic-team/ionic2-starter-sidemenu"),
    _template("super", "ionic-angular",
              "A starting project complete with pre-built pages, providers and "
              "best practices for Ionic development.",
              "ionic-team/ionic-starter-super"),
    _template("mobile", "ionic-angular",
              "A custom full features for Ionic development.",
              "vellengs/ionic-starter-super"),
    _template("conference", "ionic-angular",
              "A project that demonstrates a realworld application",
              "ionic-team/ionic-conference-app"),
    _template("tutorial", "ionic-angular",
              "A tutorial based project that goes along with the Ionic documentation",
              "ionic-team/ionic2-starter-tutorial"),
    _template("aws", "ionic-angular", "AWS Mobile Hub Starter",
              "ionic-team/ionic2-starter-aws"),
    _template("tabs", "ionic1",
              "A starting project for Ionic using a simple tabbed interface",
              "ionic-team/ionic-starter-tabs"),
    _template("blank", "ionic1", "A blank starter project for Ionic",
              "ionic-team/ionic-starter-blank"),
    _template("sidemenu", "ionic1",
              "A starting project for Ionic using a side menu with navigation in "
              "the content area",
              "ionic-team/ionic-starter-sidemenu"),
    _template("maps", "ionic1",
              "An Ionic starter project using Google Maps and a side menu",
              "ionic-team/ionic-starter-maps"),
]


def archive_url(archive: str, branch: str) -> str:
    """Fill the branch placeholder of an archive URL."""
    return archive.replace(BRANCH_PLACEHOLDER, branch)


class StarterStore:
    """Lookup over the starter types and templates ``start`` can use."""

    def __init__(
        self,
        types: list[StarterType] | None = None,
        templates: list[StarterTemplate] | None = None,
    ) -> None:
        self._types = list(STARTER_TYPES if types is None else types)
        self._templates = list(STARTER_TEMPLATES if templates is None else templates)
        logger.debug(
            "Loaded %d starter types, %d templates", len(self._types), len(self._templates),
        )

    def get_type(self, type_id: str) -> StarterType | None:
        for starter_type in self._types:
            if starter_type.id == type_id:
                return starter_type
        return None

    def get(self, name: str, type_id: str) -> StarterTemplate | None:
        """Look up a template by name (case-insensitive) within a project type."""
        name_lower = name.lower()
        for template in self._templates:
            if template.type == type_id and template.name.lower() == name_lower:
                return template
        return None

    def list_for(self, type_id: str | None = None) -> list[StarterTemplate]:
        if type_id is None:
            return list(self._templates)
        return [t for t in self._templates if t.type == type_id]

    def template_lines(self, type_id: str | None = None) -> list[str]:
        """One ``name ..... type description`` line per template."""
        lines = []
        for t in self.list_for(type_id):
            dots = "." * max(19 - len(t.name), 0)
            lines.append(
                f"{typer.style(t.name, fg=typer.colors.GREEN)} "
                f"{typer.style(dots, dim=True)} "
                f"{typer.style(t.type, bold=True)} {t.description}"
            )
        return lines

    def template_text(self, type_id: str | None = None) -> str:
        header = typer.style("Ionic Starter templates", bold=True)
        body = "\n".join(f"  {line}" for line in self.template_lines(type_id))
        return f"{header}\n{body}"
