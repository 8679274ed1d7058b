import io
import json
from datetime import datetime

import pytest
from click.testing import CliRunner

from astcli.common import ApiError, CliContext, CommandError
from astcli.query import (
    QUERIES_REPO_DEST_FILE_NAME,
    QueryRepoView,
    make_query_command,
    repo_name_from_path,
    to_query_repo_view,
)

MOCK_CONTENT = "mock content"


class QueriesMock:
    def __init__(self, fail=None):
        self.fail = fail
        self.imported = []
        self.activated = []
        self.deleted = []
        self.downloaded = []

    def _check(self):
        if self.fail is not None:
            raise self.fail

    def download(self, name):
        self._check()
        self.downloaded.append(name)
        return io.BytesIO(MOCK_CONTENT.encode())

    def import_repo(self, url, name):
        self._check()
        self.imported.append((url, name))

    def activate(self, name):
        self._check()
        self.activated.append(name)

    def delete(self, name):
        self._check()
        self.deleted.append(name)

    def list(self):
        self._check()
        return [
            {"name": "mock", "isActive": True, "lastModified": datetime(2021, 1, 2, 3, 4, 5)},
            {"name": "other", "isActive": False, "lastModified": datetime(2021, 1, 2, 3, 4, 5)},
        ]


class UploadsMock:
    def __init__(self):
        self.uploaded = []

    def upload_file(self, path):
        self.uploaded.append(path)
        return "/path/to/nowhere"


def invoke(queries, uploads, *args):
    command = make_query_command(queries, uploads)
    return CliRunner().invoke(command, list(args), obj=CliContext(), standalone_mode=False)


def test_query_no_sub_shows_help():
    result = invoke(QueriesMock(), UploadsMock())
    assert result.exception is None
    assert "Manage queries" in result.output


def test_upload_with_file_uses_file_name():
    queries, uploads = QueriesMock(), UploadsMock()
    result = invoke(queries, uploads, "upload", "./payloads/nonsense.json")
    assert result.exception is None
    assert uploads.uploaded == ["./payloads/nonsense.json"]
    assert queries.imported == [("/path/to/nowhere", "nonsense")]
    assert queries.activated == []


def test_upload_with_name_override():
    queries = QueriesMock()
    result = invoke(queries, UploadsMock(), "upload", "./payloads/uploads.json", "--name", "mock")
    assert result.exception is None
    assert queries.imported == [("/path/to/nowhere", "mock")]


def test_upload_with_no_repo():
    result = invoke(QueriesMock(), UploadsMock(), "upload")
    assert isinstance(result.exception, CommandError)
    assert result.exception.message == (
        "failed uploading queries repository: Please provide a path to queries repository"
    )


def test_upload_with_activate_flag():
    queries = QueriesMock()
    result = invoke(queries, UploadsMock(), "upload", "./payloads/uploads.json", "-a")
    assert result.exception is None
    assert queries.activated == ["uploads"]


def test_upload_import_error():
    queries = QueriesMock(fail=ApiError(400, "bad repo"))
    result = invoke(queries, UploadsMock(), "upload", "repo.tar.gz")
    assert isinstance(result.exception, CommandError)
    assert result.exception.message == "failed uploading queries repository: CODE: 400, bad repo"


def test_download_writes_file(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    queries = QueriesMock()
    result = invoke(queries, UploadsMock(), "download", "mock")
    assert result.exception is None
    assert queries.downloaded == ["mock"]
    written = (tmp_path / QUERIES_REPO_DEST_FILE_NAME).read_text()
    assert written == MOCK_CONTENT
    assert "Downloading into" in result.output


def test_download_defaults_to_active(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    queries = QueriesMock()
    invoke(queries, UploadsMock(), "download")
    assert queries.downloaded == [""]


def test_download_error(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    result = invoke(QueriesMock(fail=ApiError(500, "boom")), UploadsMock(), "download")
    assert isinstance(result.exception, CommandError)
    assert result.exception.message == "failed downloading queries repository: CODE: 500, boom"
    assert not (tmp_path / QUERIES_REPO_DEST_FILE_NAME).exists()


def test_list_table():
    result = invoke(QueriesMock(), UploadsMock(), "list")
    assert result.exception is None
    assert "Is active" in result.output
    assert "inactive" in result.output
    assert "01-02-21 03:04:05" in result.output


def test_list_json():
    result = invoke(QueriesMock(), UploadsMock(), "list", "--format", "json")
    data = json.loads(result.output)
    assert [item["Name"] for item in data] == ["mock", "other"]
    assert [item["IsActive"] for item in data] == ["active", "inactive"]


def test_list_invalid_format():
    result = invoke(QueriesMock(), UploadsMock(), "list", "--format", "nonsense")
    assert isinstance(result.exception, CommandError)
    assert result.exception.message == "failed listing queries repositories: Invalid format nonsense"


def test_activate_blank():
    result = invoke(QueriesMock(), UploadsMock(), "activate")
    assert isinstance(result.exception, CommandError)
    assert "Please provide a queries repository name" in result.exception.message


def test_activate():
    queries = QueriesMock()
    result = invoke(queries, UploadsMock(), "activate", "mock")
    assert result.exception is None
    assert queries.activated == ["mock"]


def test_delete_blank():
    result = invoke(QueriesMock(), UploadsMock(), "delete")
    assert isinstance(result.exception, CommandError)
    assert result.exception.message == (
        "failed deleting queries repository: Please provide a queries repository name"
    )


def test_delete():
    queries = QueriesMock()
    result = invoke(queries, UploadsMock(), "delete", "mock")
    assert result.exception is None
    assert queries.deleted == ["mock"]


@pytest.mark.parametrize(
    ("path", "expected"),
    [
        ("./payloads/nonsense.json", "nonsense"),
        ("dir/repo.tar.gz", "repo.tar"),
        ("noext", "noext"),
    ],
)
def test_repo_name_from_path(path, expected):
    assert repo_name_from_path(path) == expected


def test_to_query_repo_view():
    view = to_query_repo_view({"name": "r", "isActive": False, "lastModified": "2021-03-04T05:06:07Z"})
    assert view.name == "r"
    assert view.is_active == "inactive"
    assert view.last_modified.year == 2021
    assert to_query_repo_view({"name": "r", "isActive": True}) == QueryRepoView("r", "active", None)