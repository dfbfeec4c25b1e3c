# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: 2025 The Linux Foundation

from unittest.mock import Mock, patch

from typer.testing import CliRunner

from changebridge.cli import app
from changebridge.gerrit.client import GerritAuthError
from changebridge.gerrit.models import (
    GerritBranchInfo,
    GerritChange,
    GerritProjectInfo,
)
from changebridge.gerrit.service import GerritServiceError

ENDPOINT = ["--endpoint", "https://gerrit.example.org/"]


def _service(changes=None, state="ACTIVE"):
    service = Mock()
    service.get_project_info.return_value = GerritProjectInfo(
        name="my-project", state=state
    )
    service.get_branch_info.return_value = GerritBranchInfo(revision="cafe")
    service.find_changes.return_value = changes or []
    return service


def _change(number, submittable=False):
    return GerritChange.from_api_response(
        {
            "_number": number,
            "change_id": f"I{number}",
            "branch": "main",
            "subject": f"Update dependency {number}",
            "status": "NEW",
            "submittable": submittable,
        }
    )


class TestCLI:
    def setup_method(self):
        self.runner = CliRunner()

    @patch("changebridge.cli.create_gerrit_service")
    def test_repos(self, mock_create):
        mock_create.return_value.get_repos.return_value = ["alpha", "beta"]

        result = self.runner.invoke(
            app, ["repos", *ENDPOINT, "--username", "bot", "--password", "pw"]
        )

        assert result.exit_code == 0
        assert "alpha" in result.stdout
        assert "beta" in result.stdout
        mock_create.assert_called_once_with(
            "https://gerrit.example.org/", username="bot", password="pw"
        )

    @patch("changebridge.cli.create_gerrit_service")
    def test_repos_endpoint_from_env(self, mock_create):
        mock_create.return_value.get_repos.return_value = []

        result = self.runner.invoke(
            app, ["repos"], env={"GERRIT_ENDPOINT": "https://gerrit.example.org/"}
        )

        assert result.exit_code == 0
        assert mock_create.call_args.args[0] == "https://gerrit.example.org/"

    @patch("changebridge.cli.create_gerrit_service")
    def test_repos_auth_error(self, mock_create):
        mock_create.return_value.get_repos.side_effect = GerritAuthError(
            "Authentication failed for a/projects/", status_code=401
        )

        result = self.runner.invoke(app, ["repos", *ENDPOINT])

        assert result.exit_code == 1
        assert "Error: Authentication failed" in result.stdout

    @patch("changebridge.cli.create_gerrit_service")
    def test_prs_lists_changes(self, mock_create):
        mock_create.return_value = _service([_change(11), _change(12)])

        result = self.runner.invoke(app, ["prs", "my-project", *ENDPOINT])

        assert result.exit_code == 0
        assert "#11" in result.stdout
        assert "#12" in result.stdout
        query = mock_create.return_value.find_changes.call_args.args[0]
        assert query == "owner:self+project:my-project+status:open"

    @patch("changebridge.cli.create_gerrit_service")
    def test_prs_empty(self, mock_create):
        mock_create.return_value = _service()

        result = self.runner.invoke(
            app, ["prs", "my-project", "--state", "merged", *ENDPOINT]
        )

        assert result.exit_code == 0
        assert "No merged pull requests in my-project" in result.stdout

    @patch("changebridge.cli.create_gerrit_service")
    def test_prs_archived_repository(self, mock_create):
        mock_create.return_value = _service(state="READ_ONLY")

        result = self.runner.invoke(app, ["prs", "my-project", *ENDPOINT])

        assert result.exit_code == 1
        assert "READ_ONLY" in result.stdout

    @patch("changebridge.cli.create_gerrit_service")
    def test_prs_malformed_search_response(self, mock_create):
        mock_create.return_value = _service()
        mock_create.return_value.find_changes.side_effect = GerritServiceError(
            "Unexpected change search response: dict"
        )

        result = self.runner.invoke(app, ["prs", "my-project", *ENDPOINT])

        assert result.exit_code == 1
        assert "Error: Unexpected change search response" in result.stdout

    @patch("changebridge.cli.create_gerrit_service")
    def test_branch_status(self, mock_create):
        mock_create.return_value = _service(
            [_change(11, submittable=True), _change(12, submittable=True)]
        )

        result = self.runner.invoke(
            app, ["branch-status", "my-project", "main%topic=deps-foo", *ENDPOINT]
        )

        assert result.exit_code == 0
        assert "main%topic=deps-foo: green (2 open changes)" in result.stdout
        service = mock_create.return_value
        assert service.find_changes.call_args.kwargs["use_cache"] is False
        assert "topic:deps-foo" in service.find_changes.call_args.args[0]

    @patch("changebridge.cli.create_gerrit_service")
    def test_branch_status_without_changes(self, mock_create):
        mock_create.return_value = _service()

        result = self.runner.invoke(
            app, ["branch-status", "my-project", "main", *ENDPOINT]
        )

        assert result.exit_code == 0
        assert "main: yellow (0 open changes)" in result.stdout

    @patch("changebridge.cli.create_gerrit_service")
    def test_branch_status_invalid_change(self, mock_create):
        mock_create.return_value = _service()
        mock_create.return_value.find_changes.side_effect = ValueError(
            "current_revision 'def456' is not among the revisions"
        )

        result = self.runner.invoke(
            app, ["branch-status", "my-project", "main%topic=x", *ENDPOINT]
        )

        assert result.exit_code == 1
        assert "Error: current_revision" in result.stdout
