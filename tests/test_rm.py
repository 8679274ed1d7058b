import json
from datetime import datetime, timezone

import pytest
from click.testing import CliRunner

from astcli.common import CliContext, CommandError
from astcli.rm import (
    MISSING_ENGINE_ID_FLAG_ERROR,
    MISSING_POOL_ID_FLAG_ERROR,
    ElementView,
    Resolution,
    TagView,
    element_views,
    engine_views,
    make_sast_rm_command,
    parse_tags,
    scan_views,
    tag_views,
)

SCAN = {
    "id": "scan-1",
    "state": "queued",
    "queuedAt": "2021-03-04T10:20:30.123Z",
    "runningAt": None,
    "engine": "engine-1",
    "properties": {"lang": "go"},
}
ENGINE = {
    "id": "engine-1",
    "status": "idle",
    "scanId": "scan-1",
    "registeredAt": "2021-03-04T10:20:30Z",
    "updatedAt": "2021-03-04T10:21:30Z",
    "properties": {},
    "tags": {"kuku": "riku"},
}


class FakeRm:
    def __init__(self):
        self.calls = []

    def get_scans(self):
        return [SCAN]

    def get_engines(self):
        return [ENGINE]

    def get_stats(self, resolution):
        self.calls.append(("get_stats", resolution))
        return [{"queued": 1, "running": 2}]

    def add_pool(self, description):
        self.calls.append(("add_pool", description))
        return {"id": "pool-1", "description": description}

    def delete_pool(self, pool_id):
        self.calls.append(("delete_pool", pool_id))

    def get_pools(self):
        return [{"id": "pool-1", "description": "the-pool"}]

    def get_pool_engines(self, pool_id):
        self.calls.append(("get_pool_engines", pool_id))
        return ["engine1"]

    def get_pool_engine_tags(self, pool_id):
        self.calls.append(("get_pool_engine_tags", pool_id))
        return {"tag1": "value1"}

    def get_pool_projects(self, pool_id):
        self.calls.append(("get_pool_projects", pool_id))
        return ["project1"]

    def get_pool_project_tags(self, pool_id):
        self.calls.append(("get_pool_project_tags", pool_id))
        return {"tag1": "value1"}

    def set_pool_engines(self, pool_id, engines):
        self.calls.append(("set_pool_engines", pool_id, engines))

    def set_pool_projects(self, pool_id, projects):
        self.calls.append(("set_pool_projects", pool_id, projects))

    def set_pool_engine_tags(self, pool_id, tags):
        self.calls.append(("set_pool_engine_tags", pool_id, tags))

    def set_pool_project_tags(self, pool_id, tags):
        self.calls.append(("set_pool_project_tags", pool_id, tags))

    def set_engine_tags(self, engine_id, tags):
        self.calls.append(("set_engine_tags", engine_id, tags))


class FailingEngines(FakeRm):
    def get_engines(self):
        raise RuntimeError("boom")


def invoke(wrapper, *args, verbose=False):
    runner = CliRunner()
    return runner.invoke(
        make_sast_rm_command(wrapper),
        list(args),
        obj=CliContext(verbose=verbose),
        standalone_mode=False,
    )


@pytest.mark.parametrize("fmt", [None, "list", "table"])
def test_scans_command(fmt):
    args = ["scans"] + (["--format", fmt] if fmt else [])
    result = invoke(FakeRm(), *args)
    assert result.exception is None
    assert "scan-1" in result.output
    assert "engine-1" in result.output


def test_scans_help():
    result = invoke(FakeRm(), "scans", "-h")
    assert result.exit_code == 0
    assert "Display scans in sast queue" in result.output


def test_scans_json_uses_view_keys():
    result = invoke(FakeRm(), "scans", "--format", "json")
    assert result.exception is None
    data = json.loads(result.output)
    assert data[0]["id"] == "scan-1"
    assert data[0]["running-at"] is None
    assert "queued-at" in data[0]


@pytest.mark.parametrize("fmt", ["table", None, "list"])
def test_engines_command(fmt):
    args = ["engines"] + (["--format", fmt] if fmt else [])
    result = invoke(FakeRm(), *args)
    assert result.exception is None
    assert "engine-1" in result.output


def test_engines_help():
    result = invoke(FakeRm(), "engines", "-h")
    assert result.exit_code == 0
    assert "Display sast engines" in result.output


def test_engines_error_is_wrapped():
    result = invoke(FailingEngines(), "engines")
    assert isinstance(result.exception, CommandError)
    assert str(result.exception) == "failed get engines: boom"


def test_engine_set_tags():
    fake = FakeRm()
    result = invoke(fake, "engines", "set-tags", "-i", "12234", "kuku=riku")
    assert result.exception is None
    assert fake.calls == [("set_engine_tags", "12234", {"kuku": "riku"})]


def test_engine_set_tags_without_engine_id():
    fake = FakeRm()
    result = invoke(fake, "engines", "set-tags", "kuku=riku")
    assert isinstance(result.exception, CommandError)
    assert str(result.exception) == MISSING_ENGINE_ID_FLAG_ERROR
    assert fake.calls == []


@pytest.mark.parametrize(
    "args, expected",
    [
        (["-r", "hour"], Resolution.HOUR),
        (["--resolution", "hour"], Resolution.HOUR),
        (["-r", "day"], Resolution.DAY),
        (["--resolution", "minute"], Resolution.MINUTE),
        (["--format", "list"], Resolution.MOMENT),
    ],
)
def test_stats_resolutions(args, expected):
    fake = FakeRm()
    result = invoke(fake, "stats", *args, verbose=True)
    assert result.exception is None
    assert fake.calls == [("get_stats", expected)]
    assert f"Reading sast resources statistics per {expected.value}" in result.output


def test_stats_json():
    result = invoke(FakeRm(), "stats", "--format", "json")
    assert result.exception is None
    assert json.loads(result.output) == [{"queued": 1, "running": 2}]


def test_stats_help():
    result = invoke(FakeRm(), "stats", "-h")
    assert result.exit_code == 0
    assert "Resolution, one of" in result.output


def test_stats_unknown_resolution():
    result = invoke(FakeRm(), "stats", "-r", "sdfsd")
    assert str(result.exception) == "unknown resolution sdfsd"


def test_pools_list_and_create():
    fake = FakeRm()
    result = invoke(fake, "pools", "list")
    assert result.exception is None
    assert "pool-1" in result.output
    assert invoke(fake, "pools", "create", "-d", "the-pool").exception is None
    assert invoke(fake, "pools", "create", "--description", "the-pool").exception is None
    assert fake.calls == [("add_pool", "the-pool"), ("add_pool", "the-pool")]


def test_pools_delete():
    fake = FakeRm()
    result = invoke(fake, "pools", "delete", "some-pool-id", "other-pool-id")
    assert result.exception is None
    assert fake.calls == [("delete_pool", "some-pool-id"), ("delete_pool", "other-pool-id")]


def test_pools_delete_without_ids():
    result = invoke(FakeRm(), "pools", "delete")
    assert str(result.exception) == "no pool ids provided"


@pytest.mark.parametrize(
    "group, call, shown",
    [
        ("projects", "get_pool_projects", "project1"),
        ("project-tags", "get_pool_project_tags", "tag1"),
        ("engines", "get_pool_engines", "engine1"),
        ("engine-tags", "get_pool_engine_tags", "value1"),
    ],
)
def test_pool_getters(group, call, shown):
    fake = FakeRm()
    result = invoke(fake, "pools", group, "get", "--pool-id", "some-pool-id")
    assert result.exception is None
    assert fake.calls == [(call, "some-pool-id")]
    assert shown in result.output


def test_pool_projects_shown_by_index():
    result = invoke(FakeRm(), "pools", "projects", "get", "--pool-id", "p", "--format", "json")
    assert json.loads(result.output) == [{"ID": "[0]", "Value": "project1"}]


def test_pool_setters():
    fake = FakeRm()
    assert invoke(fake, "pools", "projects", "set", "--pool-id", "some-pool-id", "project1").exception is None
    assert (
        invoke(
            fake, "pools", "project-tags", "set", "--pool-id", "some-pool-id", "tag1=value1", "tag2=value2"
        ).exception
        is None
    )
    assert (
        invoke(fake, "pools", "engines", "set", "--pool-id", "some-pool-id", "engine1", "engine2").exception
        is None
    )
    assert (
        invoke(fake, "pools", "engine-tags", "set", "--pool-id", "some-pool-id", "tag1=value1").exception
        is None
    )
    assert fake.calls == [
        ("set_pool_projects", "some-pool-id", ["project1"]),
        ("set_pool_project_tags", "some-pool-id", {"tag1": "value1", "tag2": "value2"}),
        ("set_pool_engines", "some-pool-id", ["engine1", "engine2"]),
        ("set_pool_engine_tags", "some-pool-id", {"tag1": "value1"}),
    ]


@pytest.mark.parametrize(
    "args",
    [
        ["pools", "projects", "get"],
        ["pools", "project-tags", "get"],
        ["pools", "engines", "set"],
        ["pools", "engine-tags", "set"],
    ],
)
def test_pool_commands_require_pool_id(args):
    fake = FakeRm()
    result = invoke(fake, *args)
    assert isinstance(result.exception, CommandError)
    assert str(result.exception) == MISSING_POOL_ID_FLAG_ERROR
    assert fake.calls == []


def test_pool_tags_set_bad_format():
    fake = FakeRm()
    result = invoke(fake, "pools", "engine-tags", "set", "--pool-id", "p", "tag1")
    assert str(result.exception) == "provide tags in key=value format"
    assert fake.calls == []


def test_parse_tags():
    assert parse_tags(["a=b", "c=d"]) == {"a": "b", "c": "d"}
    assert parse_tags([]) == {}


@pytest.mark.parametrize("bad", [["a"], ["a=b=c"], ["x=y", "z"]])
def test_parse_tags_rejects_bad_pairs(bad):
    with pytest.raises(CommandError, match="provide tags in key=value format"):
        parse_tags(bad)


def test_scan_views():
    (view,) = scan_views([SCAN])
    assert view.id == "scan-1"
    assert view.state == "queued"
    assert view.queued_at == datetime(2021, 3, 4, 10, 20, 30, 123000, tzinfo=timezone.utc)
    assert view.running_at is None
    assert view.properties == {"lang": "go"}


def test_engine_views():
    (view,) = engine_views([ENGINE])
    assert view.id == "engine-1"
    assert view.scan_id == "scan-1"
    assert view.tags == {"kuku": "riku"}
    assert view.updated_at == datetime(2021, 3, 4, 10, 21, 30, tzinfo=timezone.utc)


def test_tag_and_element_views():
    assert tag_views({"a": "1"}) == [TagView("a", "1")]
    assert element_views(["x", "y"]) == [ElementView("[0]", "x"), ElementView("[1]", "y")]
    assert element_views(None) == []