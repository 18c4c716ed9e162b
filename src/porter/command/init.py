"""Init command - write a starter porter.yaml."""

from pathlib import Path

from pydantic import BaseModel, Field

from porter.core.log import logger

TEMPLATE = """\
# porter configuration. Paths are relative to the directory porter
# runs in.
config:
  source:
    name: my-project
    path: ../my-project
    branch: feature/my-change
    # A single id replays every commit after it up to the branch tip.
    commit-id: "1a2b3c4"
    # A list replays exactly the listed commits.
    # commit-id: ["1a2b3c4", "5d6e7f8"]

  targets:
    - name: my-project-fork
      path: ../my-project-fork
      branch: feature/my-change

  # policy:
  #   forbidden_branch_keywords: [master, test]
  #   require_clean_targets: true

  # logger:
  #   level: info
  #   file:
  #     enabled: true
"""


class InitCommand(BaseModel):
    """Write a template porter.yaml to fill in.

    Refuses to overwrite an existing file.
    """

    path: Path = Field(
        default=Path("porter.yaml"),
        description="Where to write the configuration",
    )

    async def run_workflow(self, state: "State") -> int:  # noqa: ARG002
        """Write the template.

        Returns:
            Exit code (0=written, 2=file already exists)
        """
        path = self.path.expanduser()
        if path.exists():
            logger.error(
                "{path} already exists; not overwriting it", path=str(path)
            )
            return 2

        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(TEMPLATE, encoding="utf-8")
        logger.info(
            "Wrote {path}; edit it, then run 'porter sync'", path=str(path)
        )
        return 0
