"""Tests for the CLI entry point and the create workflow."""

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
from click.testing import CliRunner

from crflow_cli.cli import _build_creator_store, _build_store, main
from crflow_cli.commands.create import run_create
from crflow_core.assignment import Disposition
from crflow_core.models import DiffFile, FileStatus
from crflow_core.prompts import PromptCancelled
from crflow_core.tracker import TrackerClient, TrackerError
from crflow_store.creator import CreatorStore
from crflow_store.json_file import JsonFileStore
from crflow_store.models import StoreStats, UserInfo
from crflow_store.noop import NoOpStore
from crflow_store.preferences import PreferenceStore

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def _make_config(api_key="secret-key", **overrides):
    config = {
        "api_base_url": "http://tracker/api",
        "api_key": api_key,
        "base_ref": "main",
        "cache": "json",
        "cache_path": None,
        "cache_expiry_days": 30,
        "recent_limit": 20,
        "exclude": [],
        "request_timeout": 30,
        "retry_count": 3,
    }
    config.update(overrides)
    return config


def _patch_common(mocker, config=None, creators=None):
    """Patch load_config, _build_store and _build_creator_store for most tests."""
    cfg = config or _make_config()
    mocker.patch("crflow_core.config.load_config", return_value=cfg)
    mock_store = MagicMock(spec=PreferenceStore)
    mocker.patch("crflow_cli.cli._build_store", return_value=mock_store)
    mocker.patch("crflow_cli.cli._build_creator_store", return_value=creators or CreatorStore(NoOpStore()))
    return cfg, mock_store


class ScriptedPrompter:
    def __init__(self, answers):
        self.answers = list(answers)
        self.notes = []

    def _next(self, message):
        if not self.answers:
            raise AssertionError(f"Unexpected prompt: {message}")
        answer = self.answers.pop(0)
        if isinstance(answer, PromptCancelled):
            raise answer
        return answer

    def select(self, message, options, default=None):
        return self._next(message)

    def multi_select(self, message, options, defaults=()):
        return self._next(message)

    def confirm(self, message, default=False):
        return self._next(message)

    def text(self, message, default=None, value_type=str):
        return self._next(message)

    def notify(self, message, style=None):
        self.notes.append(message)


# ---------------------------------------------------------------------------
# Store factory
# ---------------------------------------------------------------------------


class TestBuildStore:
    def test_json_cache(self, tmp_path):
        store = _build_store(_make_config(cache_path=str(tmp_path / "prefs.json")))
        assert isinstance(store.backend, JsonFileStore)
        assert store.backend.path == tmp_path / "prefs.json"

    def test_cache_disabled(self):
        store = _build_store(_make_config(cache="none"))
        assert isinstance(store.backend, NoOpStore)

    def test_unknown_cache_type_falls_back_to_noop(self):
        store = _build_store(_make_config(cache="redis"))
        assert isinstance(store.backend, NoOpStore)


    def test_creator_file_sits_beside_preferences(self, tmp_path):
        creators = _build_creator_store(_make_config(cache_path=str(tmp_path / "prefs.json")))
        assert creators.backend.path == tmp_path / "current-user.json"

    def test_creator_not_remembered_when_cache_disabled(self):
        creators = _build_creator_store(_make_config(cache="none"))
        assert isinstance(creators.backend, NoOpStore)


# ---------------------------------------------------------------------------
# config / cache commands
# ---------------------------------------------------------------------------


class TestConfigCommands:
    def test_show_masks_api_key(self, mocker):
        _patch_common(mocker)
        result = CliRunner().invoke(main, ["config", "show"])
        assert result.exit_code == 0
        assert "secr..." in result.output
        assert "secret-key" not in result.output

    def test_check_passes(self, mocker):
        _patch_common(mocker)
        result = CliRunner().invoke(main, ["config", "check"])
        assert result.exit_code == 0
        assert "Required settings present" in result.output

    def test_check_reports_missing_key(self, mocker):
        _patch_common(mocker, config=_make_config(api_key=None))
        result = CliRunner().invoke(main, ["config", "check"])
        assert result.exit_code != 0
        assert "api_key" in result.output

    def test_check_ping_failure(self, mocker):
        _patch_common(mocker)
        tracker = MagicMock(spec=TrackerClient)
        tracker.test_connection.return_value = False
        mocker.patch("crflow_cli.commands.create.build_tracker", return_value=tracker)

        result = CliRunner().invoke(main, ["config", "check", "--ping"])

        assert result.exit_code != 0
        assert "Could not reach" in result.output


class TestCacheCommands:
    def test_stats(self, mocker):
        _, store = _patch_common(mocker)
        store.stats.return_value = StoreStats(
            participant_count=4, check_user_count=2, has_file_type_preferences=True, last_updated=NOW
        )
        store.backend.describe.return_value = "/home/me/.crflow/preferences.json"

        result = CliRunner().invoke(main, ["cache", "stats"])

        assert result.exit_code == 0
        assert "Recent participants" in result.output
        assert "2024-05-01 12:00:00" in result.output

    def test_clear_with_yes(self, mocker):
        _, store = _patch_common(mocker)
        store.clear.return_value = True

        result = CliRunner().invoke(main, ["cache", "clear", "--yes"])

        assert result.exit_code == 0
        store.clear.assert_called_once()
        assert "cleared" in result.output

    def test_stats_shows_saved_creator(self, mocker, tmp_path):
        creators = CreatorStore(JsonFileStore(tmp_path / "current-user.json"))
        creators.save(UserInfo(3, "Bob"))
        _, store = _patch_common(mocker, creators=creators)
        store.stats.return_value = StoreStats(
            participant_count=0, check_user_count=0, has_file_type_preferences=False, last_updated=NOW
        )
        store.backend.describe.return_value = "prefs.json"

        result = CliRunner().invoke(main, ["cache", "stats"])

        assert result.exit_code == 0
        assert "Bob (ID: 3)" in result.output

    def test_clear_forgets_saved_creator(self, mocker, tmp_path):
        creators = CreatorStore(JsonFileStore(tmp_path / "current-user.json"))
        creators.save(UserInfo(3, "Bob"))
        _, store = _patch_common(mocker, creators=creators)
        store.clear.return_value = False

        result = CliRunner().invoke(main, ["cache", "clear", "--yes"])

        assert result.exit_code == 0
        assert creators.get() is None
        assert "cleared" in result.output

    def test_clear_declined(self, mocker):
        _, store = _patch_common(mocker)
        result = CliRunner().invoke(main, ["cache", "clear"], input="n\n")
        assert result.exit_code != 0
        store.clear.assert_not_called()


# ---------------------------------------------------------------------------
# suggest
# ---------------------------------------------------------------------------


class TestSuggest:
    def test_prints_tables(self, mocker, tmp_path):
        _patch_common(mocker)
        mock_diff = mocker.patch(
            "crflow_core.git.repo.get_changed_files",
            return_value=[
                DiffFile("src/components/UserCard.tsx", FileStatus.ADDED),
                DiffFile("src/styles/app.css"),
            ],
        )

        result = CliRunner().invoke(main, ["suggest", "--dir", str(tmp_path), "--base", "develop"])

        assert result.exit_code == 0
        assert "UserCard" in result.output
        assert "app.css" not in result.output
        assert mock_diff.call_args.args[0] == "develop"

    def test_respects_exclude(self, mocker, tmp_path):
        _patch_common(mocker, config=_make_config(exclude=["components/"]))
        mocker.patch(
            "crflow_core.git.repo.get_changed_files",
            return_value=[DiffFile("src/components/UserCard.tsx", FileStatus.ADDED)],
        )

        result = CliRunner().invoke(main, ["suggest", "--dir", str(tmp_path)])

        assert result.exit_code == 0
        assert "No component or function candidates" in result.output


# ---------------------------------------------------------------------------
# create
# ---------------------------------------------------------------------------


class TestCreateCommand:
    def test_missing_api_key(self, mocker, tmp_path):
        _patch_common(mocker, config=_make_config(api_key=None))
        result = CliRunner().invoke(main, ["create", "--dir", str(tmp_path)])
        assert result.exit_code != 0
        assert "api_key" in result.output

    def test_passes_options_through(self, mocker, tmp_path):
        _, store = _patch_common(mocker)
        tracker = MagicMock(spec=TrackerClient)
        mocker.patch("crflow_cli.commands.create.build_tracker", return_value=tracker)
        mock_run = mocker.patch("crflow_cli.commands.create.run_create", return_value={"sprintId": 9})

        result = CliRunner().invoke(
            main, ["create", "--dir", str(tmp_path), "--base", "develop", "--sprint-id", "9"]
        )

        assert result.exit_code == 0
        args, kwargs = mock_run.call_args
        assert args[1] is store
        assert args[3] is tracker
        assert kwargs["workdir"] == str(tmp_path)
        assert kwargs["base_ref"] == "develop"
        assert kwargs["sprint_id"] == 9
        assert kwargs["change_creator"] is False
        assert isinstance(kwargs["creators"], CreatorStore)

    def test_cancel_exits_cleanly(self, mocker, tmp_path):
        _patch_common(mocker)
        mocker.patch("crflow_cli.commands.create.build_tracker")
        mocker.patch("crflow_cli.commands.create.run_create", side_effect=PromptCancelled())

        result = CliRunner().invoke(main, ["create", "--dir", str(tmp_path)])

        assert result.exit_code == 0
        assert "Cancelled" in result.output

    def test_tracker_error_is_reported(self, mocker, tmp_path):
        _patch_common(mocker)
        mocker.patch("crflow_cli.commands.create.build_tracker")
        mocker.patch("crflow_cli.commands.create.run_create", side_effect=TrackerError("no permission"))

        result = CliRunner().invoke(main, ["create", "--dir", str(tmp_path)])

        assert result.exit_code == 1
        assert "no permission" in result.output


class TestRunCreate:
    USERS = [UserInfo(1, "Ann"), UserInfo(2, "Ben"), UserInfo(3, "Cara")]

    def _setup(self, mocker, tmp_path):
        repo_info = MagicMock(
            is_git_repository=True,
            project_name="shop",
            project_url="git@host:web/shop.git",
            current_branch="feature/login",
        )
        mocker.patch("crflow_core.git.repo.get_repo_info", return_value=repo_info)
        mocker.patch("crflow_core.git.repo.estimate_work_hours", return_value=6)
        mocker.patch(
            "crflow_core.git.repo.get_changed_files",
            return_value=[
                DiffFile("src/components/UserCard.tsx", FileStatus.ADDED),
                DiffFile("src/pages/login/index.ts"),
            ],
        )
        tracker = MagicMock(spec=TrackerClient)
        tracker.list_users.return_value = self.USERS
        tracker.list_project_groups.return_value = [{"id": 10, "name": "Web"}]
        tracker.create_sprint.return_value = 42
        store = PreferenceStore(JsonFileStore(tmp_path / "prefs.json"), clock=lambda: NOW)
        return tracker, store

    def _answers(self, assignment, submit=True):
        return [
            1,  # creator
            10,  # project group
            "v1 shop",  # sprint name
            datetime(2024, 6, 1),  # release date
            "",  # sprint remark
            [0],  # components
            [0],  # functions
            [1, 2],  # participants
            [3],  # check users
            "shop",
            "feature/login",
            "git@host:web/shop.git",
            6,
            "-",
            "-",
            "-",
            "-",
            "",
            *assignment,
            submit,
        ]

    def test_full_workflow_submits_request(self, mocker, tmp_path):
        tracker, store = self._setup(mocker, tmp_path)
        prompter = ScriptedPrompter(self._answers(["single", 3, Disposition.CONFIRMED, False]))

        payload = run_create(_make_config(), store, prompter, tracker, workdir=str(tmp_path))

        tracker.create_sprint.assert_called_once_with(
            project_id=10,
            name="v1 shop",
            release_time="2024-06-01 00:00:00",
            remark="",
            create_user_id=1,
        )
        tracker.create_cr_request.assert_called_once_with(payload)
        assert payload["sprintId"] == 42
        assert payload["participantIds"] == "1,2"
        assert payload["checkUserIds"] == "3"
        assert payload["componentList"][0]["name"] == "UserCard"
        assert payload["componentList"][0]["auditId"] == 3
        assert payload["functionList"][0]["auditId"] == 3

        record = store.load()
        assert record.recent_participants == [1, 2]
        assert record.recent_check_users == [3]
        assert record.file_type_weights == {".tsx": {3: 1}, ".ts": {3: 1}}

    def test_existing_sprint_skips_creation(self, mocker, tmp_path):
        tracker, store = self._setup(mocker, tmp_path)
        answers = self._answers(["single", 3, Disposition.CONFIRMED, False])
        del answers[1:5]
        prompter = ScriptedPrompter(answers)

        payload = run_create(_make_config(), store, prompter, tracker, workdir=str(tmp_path), sprint_id=7)

        tracker.create_sprint.assert_not_called()
        assert payload["sprintId"] == 7

    def test_cancelled_assignment_submits_nothing(self, mocker, tmp_path):
        tracker, store = self._setup(mocker, tmp_path)
        answers = self._answers(["single", 3, Disposition.CANCELLED])[:-1]
        prompter = ScriptedPrompter(answers)

        assert run_create(_make_config(), store, prompter, tracker, workdir=str(tmp_path)) is None
        tracker.create_cr_request.assert_not_called()

    def test_declined_submission(self, mocker, tmp_path):
        tracker, store = self._setup(mocker, tmp_path)
        prompter = ScriptedPrompter(self._answers(["single", 3, Disposition.CONFIRMED, False], submit=False))

        assert run_create(_make_config(), store, prompter, tracker, workdir=str(tmp_path)) is None
        tracker.create_cr_request.assert_not_called()
        assert "Code-review request not submitted." in prompter.notes

    def test_no_users_is_an_error(self, mocker, tmp_path):
        tracker, store = self._setup(mocker, tmp_path)
        tracker.list_users.return_value = []

        with pytest.raises(TrackerError, match="no users"):
            run_create(_make_config(), store, ScriptedPrompter([]), tracker, workdir=str(tmp_path))

    def test_chosen_creator_is_saved(self, mocker, tmp_path):
        tracker, store = self._setup(mocker, tmp_path)
        creators = CreatorStore(JsonFileStore(tmp_path / "current-user.json"))
        prompter = ScriptedPrompter(self._answers(["single", 3, Disposition.CONFIRMED, False]))

        run_create(_make_config(), store, prompter, tracker, workdir=str(tmp_path), creators=creators)

        assert creators.get() == UserInfo(1, "Ann")

    def test_saved_creator_is_reused_without_asking(self, mocker, tmp_path):
        tracker, store = self._setup(mocker, tmp_path)
        creators = CreatorStore(JsonFileStore(tmp_path / "current-user.json"))
        creators.save(UserInfo(2, "Ben"))
        prompter = ScriptedPrompter(self._answers(["single", 3, Disposition.CONFIRMED, False])[1:])

        payload = run_create(_make_config(), store, prompter, tracker, workdir=str(tmp_path), creators=creators)

        assert tracker.create_sprint.call_args.kwargs["create_user_id"] == 2
        assert payload["createUserId"] == 2
        assert any("Ben" in note for note in prompter.notes)

    def test_change_creator_asks_again_and_saves(self, mocker, tmp_path):
        tracker, store = self._setup(mocker, tmp_path)
        creators = CreatorStore(JsonFileStore(tmp_path / "current-user.json"))
        creators.save(UserInfo(2, "Ben"))
        answers = self._answers(["single", 3, Disposition.CONFIRMED, False])
        answers[0] = 3
        prompter = ScriptedPrompter(answers)

        run_create(
            _make_config(), store, prompter, tracker, workdir=str(tmp_path), creators=creators, change_creator=True
        )

        assert creators.get() == UserInfo(3, "Cara")

    def test_saved_creator_missing_from_directory_is_asked(self, mocker, tmp_path):
        tracker, store = self._setup(mocker, tmp_path)
        creators = CreatorStore(JsonFileStore(tmp_path / "current-user.json"))
        creators.save(UserInfo(99, "Gone"))
        prompter = ScriptedPrompter(self._answers(["single", 3, Disposition.CONFIRMED, False]))

        run_create(_make_config(), store, prompter, tracker, workdir=str(tmp_path), creators=creators)

        assert creators.get() == UserInfo(1, "Ann")
