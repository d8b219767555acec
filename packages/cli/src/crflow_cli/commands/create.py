"""create command: classify the branch diff, assign reviewers and submit a code-review request."""

from __future__ import annotations

from datetime import date, timedelta
from typing import Sequence

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from crflow_cli.commands.suggest import collect_classification, render_classification
from crflow_core.prompts import Entry, Option, Prompter, PromptCancelled
from crflow_core.tracker import TrackerClient, TrackerError
from crflow_store.creator import CreatorStore
from crflow_store.models import ListType, RankedChoice, UserInfo

console = Console()

DEFAULT_RELEASE_OFFSET_DAYS = 14


def build_tracker(config: dict) -> TrackerClient:
    return TrackerClient(
        base_url=config["api_base_url"],
        api_key=config.get("api_key"),
        timeout=float(config.get("request_timeout", 30)),
        retry_count=int(config.get("retry_count", 3)),
    )


def _user_options(store, users: Sequence[UserInfo], list_type: ListType) -> list[Entry]:
    return [
        Option(choice.id, choice.label) if isinstance(choice, RankedChoice) else choice
        for choice in store.ranked_choices(users, list_type)
    ]


def _select_people(
    prompter: Prompter, store, users: Sequence[UserInfo], list_type: ListType, message: str
) -> list[int]:
    """Multi-select at least one user, pre-selecting the most recently used."""
    options = _user_options(store, users, list_type)
    known = {u.id for u in users}
    defaults = [i for i in store.last_selected(list_type) if i in known]
    while True:
        selected = prompter.multi_select(message, options, defaults=defaults)
        if selected:
            return selected
        prompter.notify("Select at least one person.", style="red")


def _resolve_creator(
    prompter: Prompter,
    store,
    creators: CreatorStore | None,
    users: Sequence[UserInfo],
    change_creator: bool,
) -> int:
    """Reuse the saved creator if still in the directory; otherwise ask and remember the answer."""
    by_id = {u.id: u for u in users}
    saved = creators.get() if creators is not None else None
    if saved is not None and saved.id not in by_id:
        saved = None

    if saved is not None and not change_creator:
        name = by_id[saved.id].display_name
        prompter.notify(f"Created by: {name} (saved; pass --change-creator to pick someone else)", style="cyan")
        return saved.id

    if saved is not None:
        default = saved.id
    else:
        recent = [i for i in store.last_selected(ListType.PARTICIPANTS, limit=1) if i in by_id]
        default = recent[0] if recent else None
    creator = prompter.select("Created by:", _user_options(store, users, ListType.PARTICIPANTS), default=default)
    if creators is not None:
        creators.save(by_id[creator])
    return creator


def _create_sprint(prompter: Prompter, tracker: TrackerClient, project_name: str, creator: int) -> int:
    groups = tracker.list_project_groups()
    if groups:
        project_id = prompter.select(
            "Project group:",
            [Option(int(g["id"]), f"{g.get('name', '?')} (ID: {g['id']})") for g in groups if "id" in g],
        )
    else:
        project_id = prompter.text("Project group id", value_type=int)

    name = prompter.text("Sprint name", default=f"{project_name} iteration")
    release = prompter.text(
        "Release date (YYYY-MM-DD)",
        default=(date.today() + timedelta(days=DEFAULT_RELEASE_OFFSET_DAYS)).isoformat(),
        value_type=click.DateTime(formats=["%Y-%m-%d"]),
    )
    remark = prompter.text("Sprint remark (optional)", default="")

    sprint_id = tracker.create_sprint(
        project_id=project_id,
        name=name,
        release_time=release.strftime("%Y-%m-%d %H:%M:%S"),
        remark=remark,
        create_user_id=creator,
    )
    prompter.notify(f"✓ Sprint created (ID: {sprint_id})", style="green")
    return sprint_id


def _pick(prompter: Prompter, message: str, items: Sequence, describe) -> list:
    """Multi-select from ``items`` with everything pre-selected."""
    if not items:
        return []
    indexes = prompter.multi_select(
        message,
        [Option(i, describe(item)) for i, item in enumerate(items)],
        defaults=list(range(len(items))),
    )
    return [items[i] for i in indexes]


def _render_summary(payload: dict, results) -> None:
    console.print("\n[bold]Code-review request summary[/bold]")
    console.print(f"  Sprint:       [cyan]{payload['sprintId']}[/cyan]")
    project = escape(payload["gitProjectName"])
    branch = escape(payload["gitlabBranch"])
    console.print(f"  Project:      [cyan]{project}[/cyan] ({branch})")
    console.print(f"  Work hours:   [cyan]{payload['spendTime']}[/cyan]")
    console.print(f"  Participants: [cyan]{payload['participantIds']}[/cyan]")
    console.print(f"  Check users:  [cyan]{payload['checkUserIds']}[/cyan]")
    console.print(f"  Components:   [cyan]{len(payload['componentList'])}[/cyan]")
    console.print(f"  Functions:    [cyan]{len(payload['functionList'])}[/cyan]")

    if results:
        table = Table(title="Reviewer assignment", show_header=True)
        table.add_column("File")
        table.add_column("Reviewer", style="bold")
        table.add_column("Reason", style="dim")
        for r in results:
            table.add_row(escape(r.file_path), escape(r.reviewer_name), escape(r.reason))
        console.print(table)


def run_create(
    config: dict,
    store,
    prompter: Prompter,
    tracker: TrackerClient,
    workdir: str = ".",
    base_ref: str | None = None,
    sprint_id: int | None = None,
    creators: CreatorStore | None = None,
    change_creator: bool = False,
) -> dict | None:
    """Run the interactive workflow; return the submitted payload, or None if nothing was submitted.

    Raises PromptCancelled when the operator aborts a prompt and TrackerError
    when the backend fails.
    """
    from crflow_core.assignment import BatchAssignmentEngine
    from crflow_core.git.repo import estimate_work_hours, get_repo_info
    from crflow_core.tracker import CrRequestInfo, build_cr_request

    repo = get_repo_info(workdir)
    if repo.is_git_repository:
        prompter.notify(f"Project: {repo.project_name}  Branch: {repo.current_branch}", style="cyan")
    else:
        prompter.notify(f"{workdir} is not a git repository; no diff suggestions available.", style="yellow")

    users = tracker.list_users()
    if not users:
        raise TrackerError("The tracker returned no users.")

    creator = _resolve_creator(prompter, store, creators, users, change_creator)

    if sprint_id is None:
        sprint_id = _create_sprint(prompter, tracker, repo.project_name, creator)

    classification = collect_classification(config, workdir, base_ref)
    if classification.components or classification.functions:
        render_classification(classification, console)
    else:
        prompter.notify("No component or function candidates in the diff.", style="yellow")

    components = _pick(
        prompter, "Components to include:", classification.components, lambda c: f"{c.name}  ({c.relative_path})"
    )
    functions = _pick(
        prompter, "Functions to include:", classification.functions, lambda f: f"{f.name}  ({f.relative_path})"
    )

    participants = _select_people(prompter, store, users, ListType.PARTICIPANTS, "Participants:")
    store.record_participant_usage(participants)
    check_users = _select_people(prompter, store, users, ListType.CHECK_USERS, "Check users (reviewers):")
    store.record_check_user_usage(check_users)

    info = CrRequestInfo(
        git_project_name=prompter.text("Git project name", default=repo.project_name),
        git_branch=prompter.text("Development branch", default=repo.current_branch or "main"),
        git_url=prompter.text("Git project URL", default=repo.project_url),
        work_hours=prompter.text(
            "Estimated work hours", default=estimate_work_hours(workdir), value_type=click.IntRange(min=1)
        ),
        participant_ids=participants,
        check_user_ids=check_users,
        create_user_id=creator,
        req_doc_url=prompter.text("Requirements doc URL", default="-"),
        tech_doc_url=prompter.text("Technical doc URL", default="-"),
        projex_url=prompter.text("Project dashboard URL", default="-"),
        ux_doc_url=prompter.text("Design doc URL", default="-"),
        remark=prompter.text("Remark (optional)", default=""),
    )

    reviewers = [u for u in users if u.id in set(check_users)]
    engine = BatchAssignmentEngine(store, prompter)
    outcome = engine.run(components + functions, store.ranked_choices(reviewers, ListType.CHECK_USERS))
    if outcome.cancelled:
        return None

    payload = build_cr_request(sprint_id, info, components, functions, outcome.results)
    _render_summary(payload, outcome.results)

    if not prompter.confirm("Submit this code-review request?", default=True):
        prompter.notify("Code-review request not submitted.", style="yellow")
        return None

    tracker.create_cr_request(payload)
    prompter.notify(f"✓ Code-review request created for sprint {sprint_id}", style="bold green")
    return payload


@click.command("create")
@click.option(
    "--dir",
    "workdir",
    default=".",
    show_default=True,
    type=click.Path(exists=True, file_okay=False),
    help="Repository to inspect.",
)
@click.option("--base", "base_ref", default=None, help="Base ref to diff against (default: base_ref from config).")
@click.option("--sprint-id", type=int, default=None, help="Attach the request to an existing sprint.")
@click.option("--change-creator", is_flag=True, help="Pick the request creator again instead of reusing the saved one.")
@click.pass_context
def create_cmd(ctx, workdir: str, base_ref: str | None, sprint_id: int | None, change_creator: bool):
    """Create a code-review request for the current branch.

    Classifies the diff against the base ref into component and function
    candidates, lets you pick participants and check users (most recently
    used first), assigns a reviewer to every candidate in batch, and submits
    the request to the tracker.
    """
    from crflow_core.config import check_config
    from crflow_core.prompts import ClickPrompter

    config = ctx.obj["config"]
    missing = check_config(config)
    if missing:
        raise click.UsageError(
            f"Missing configuration: {', '.join(missing)}. Add them to .crflow.yml or run `crflow config check`."
        )

    try:
        payload = run_create(
            config,
            ctx.obj["store"],
            ClickPrompter(console),
            build_tracker(config),
            workdir=workdir,
            base_ref=base_ref,
            sprint_id=sprint_id,
            creators=ctx.obj.get("creators"),
            change_creator=change_creator,
        )
    except PromptCancelled:
        console.print("\n[yellow]Cancelled. Nothing was submitted.[/yellow]")
        return
    except TrackerError as e:
        raise click.ClickException(str(e)) from e

    if payload is None:
        console.print("[yellow]Nothing was submitted.[/yellow]")
