import io
import json
from urllib.parse import parse_qs, urlparse

import pytest
import responses

from glids.cli import (
    build_parser,
    main,
    resolve_base_url,
    run_both_mode,
    run_groups_mode,
    run_hierarchy_mode,
    run_projects_mode,
)
from glids.client import GitLabError, OperationCancelledError
from glids.display import print_group_list, print_hierarchy, print_project_list
from glids.models import Group, Project


class FakeClient:
    def __init__(
        self,
        projects=(),
        groups=(),
        projects_error=None,
        groups_error=None,
        populate=None,
    ):
        self.projects = list(projects)
        self.groups = list(groups)
        self.projects_error = projects_error
        self.groups_error = groups_error
        self.populate = populate
        self.calls = []

    def get_projects(self, search_term, all_projects):
        self.calls.append(("projects", search_term, all_projects))
        if self.projects_error is not None:
            raise self.projects_error
        return list(self.projects)

    def get_groups(self, search_term, all_groups):
        self.calls.append(("groups", search_term, all_groups))
        if self.groups_error is not None:
            raise self.groups_error
        return list(self.groups)

    def populate_group_hierarchy(self, group, all_items):
        self.calls.append(("populate", group.id, all_items))
        if self.populate is not None:
            self.populate(group)


class StopCounter:
    def __init__(self):
        self.count = 0

    def __call__(self):
        self.count += 1


def test_resolve_base_url_https_by_default():
    assert resolve_base_url("gitlab.example.com", False, {}) == "https://gitlab.example.com"


def test_resolve_base_url_no_https_flag():
    assert resolve_base_url("gitlab.example.com", True, {}) == "http://gitlab.example.com"


@pytest.mark.parametrize(
    "value, scheme", [("true", "http"), ("false", "https"), ("TRUE", "https")]
)
def test_resolve_base_url_env(value, scheme):
    url = resolve_base_url("gitlab.example.com", False, {"GLIDS_NOHTTPS": value})
    assert url == f"{scheme}://gitlab.example.com"


def test_build_parser_defaults():
    args = build_parser().parse_args([])
    assert args.search == ""
    assert args.all_items is False
    assert args.groups is False
    assert args.hierarchy is False
    assert args.both is False
    assert args.host == ""
    assert args.no_https is False
    assert args.terms == []


def test_build_parser_accepts_single_and_double_dash():
    args = build_parser().parse_args(
        ["-search", "foo", "--all", "-groups", "--host", "gitlab.example.com", "bar"]
    )
    assert args.search == "foo"
    assert args.all_items is True
    assert args.groups is True
    assert args.host == "gitlab.example.com"
    assert args.terms == ["bar"]


def test_projects_mode_sorts_and_prints():
    zeta = Project(2, "Zeta/app", "app")
    alpha = Project(1, "alpha/lib", "lib")
    client = FakeClient(projects=[zeta, alpha])
    stop = StopCounter()
    out = io.StringIO()

    code = run_projects_mode(client, "", True, stop, out)

    expected = io.StringIO()
    print_project_list([alpha, zeta], 0, expected)
    assert code == 0
    assert out.getvalue() == expected.getvalue()
    assert stop.count >= 1
    assert client.calls == [("projects", "", True)]


def test_projects_mode_no_results():
    out = io.StringIO()
    code = run_projects_mode(FakeClient(), "foo", False, StopCounter(), out)
    assert code == 0
    assert out.getvalue() == "\nNo projects found matching search term: foo\n"


def test_projects_mode_cancelled():
    client = FakeClient(projects_error=OperationCancelledError())
    out = io.StringIO()
    assert run_projects_mode(client, "", True, StopCounter(), out) == 0
    assert out.getvalue() == "\nOperation cancelled.\n"


def test_projects_mode_error(capsys):
    client = FakeClient(projects_error=GitLabError("boom"))
    out = io.StringIO()
    assert run_projects_mode(client, "", False, StopCounter(), out) == 1
    assert "Error getting projects: boom" in capsys.readouterr().err
    assert out.getvalue() == ""


def test_groups_mode_sorts_and_prints():
    beta = Group(id=5, full_path="Beta", name="Beta")
    alpha = Group(id=7, full_path="alpha/sub", name="sub")
    client = FakeClient(groups=[beta, alpha])
    out = io.StringIO()

    code = run_groups_mode(client, "x", False, StopCounter(), out)

    expected = io.StringIO()
    print_group_list([alpha, beta], 0, expected)
    assert code == 0
    assert out.getvalue() == expected.getvalue()
    assert client.calls == [("groups", "x", False)]


def test_groups_mode_no_results():
    out = io.StringIO()
    assert run_groups_mode(FakeClient(), "foo", False, StopCounter(), out) == 0
    assert out.getvalue() == "\nNo groups found matching search term: foo\n"


def test_groups_mode_error(capsys):
    client = FakeClient(groups_error=GitLabError("bad"))
    assert run_groups_mode(client, "", False, StopCounter(), io.StringIO()) == 1
    assert "Error getting groups: bad" in capsys.readouterr().err


def test_both_mode_aligns_columns():
    group = Group(id=3, full_path="a/bb", name="bb")
    project = Project(9, "x/y", "y")
    client = FakeClient(projects=[project], groups=[group])
    out = io.StringIO()

    code = run_both_mode(client, "", False, StopCounter(), out)

    groups_part = io.StringIO()
    print_group_list([group], len("a/bb:"), groups_part)
    projects_part = io.StringIO()
    print_project_list([project], len("a/bb:") + 2, projects_part)
    expected = (
        "\nGroups:\n" + groups_part.getvalue() + "\nProjects:\n" + projects_part.getvalue()
    )
    assert code == 0
    assert out.getvalue() == expected


def test_both_mode_nothing_found():
    out = io.StringIO()
    assert run_both_mode(FakeClient(), "q", False, StopCounter(), out) == 0
    assert out.getvalue() == "\nNo groups or projects found matching search term: q\n"


def test_both_mode_only_projects():
    project = Project(4, "p/q", "q")
    out = io.StringIO()
    run_both_mode(FakeClient(projects=[project]), "q", False, StopCounter(), out)
    text = out.getvalue()
    assert text.startswith("\nNo groups found matching search term: q\n\nProjects:\n")


def test_both_mode_cancelled_while_fetching_projects():
    client = FakeClient(groups=[Group(id=1, full_path="g")],
                        projects_error=OperationCancelledError())
    out = io.StringIO()
    assert run_both_mode(client, "", True, StopCounter(), out) == 0
    assert out.getvalue() == "\nOperation cancelled while fetching projects.\n"


def _add_children(group):
    group.projects = [Project(group.id * 10, f"{group.full_path}/p", "p")]


def test_hierarchy_mode_prints_trees_in_path_order(capsys):
    second = Group(id=2, full_path="Zed", name="Zed")
    first = Group(id=1, full_path="abc", name="abc")
    client = FakeClient(groups=[second, first], populate=_add_children)
    out = io.StringIO()

    code = run_hierarchy_mode(client, "", False, StopCounter(), out)

    expected = io.StringIO()
    expected.write("Populating hierarchy for found groups...\n")
    print_hierarchy(first, expected)
    print_hierarchy(second, expected)
    assert code == 0
    assert out.getvalue() == expected.getvalue()
    assert [c for c in client.calls if c[0] == "populate"] == [
        ("populate", 1, False),
        ("populate", 2, False),
    ]
    assert "Populating: abc" in capsys.readouterr().err


def test_hierarchy_mode_no_groups():
    out = io.StringIO()
    assert run_hierarchy_mode(FakeClient(), "zz", False, StopCounter(), out) == 0
    assert out.getvalue() == "\nNo groups found matching search term: zz\n"


def test_hierarchy_mode_cancel_during_population():
    first = Group(id=1, full_path="a", name="a")
    second = Group(id=2, full_path="b", name="b")

    def populate(group):
        if group.id == 2:
            raise OperationCancelledError()
        _add_children(group)

    client = FakeClient(groups=[first, second], populate=populate)
    out = io.StringIO()
    code = run_hierarchy_mode(client, "", True, StopCounter(), out)

    tree = io.StringIO()
    print_hierarchy(first, tree)
    assert code == 0
    text = out.getvalue()
    assert "Operation cancelled during hierarchy population." in text
    assert text.endswith(tree.getvalue())
    assert "b (ID: 2)" not in text


def test_hierarchy_mode_warning_keeps_group(capsys):
    group = Group(id=8, full_path="broken", name="broken")

    def populate(g):
        raise GitLabError("partial")

    out = io.StringIO()
    code = run_hierarchy_mode(FakeClient(groups=[group], populate=populate), "",
                              False, StopCounter(), out)
    assert code == 0
    assert "broken (ID: 8)" in out.getvalue()
    assert "Warning: Failed to fully populate group broken (ID: 8): partial" in (
        capsys.readouterr().err
    )


def test_hierarchy_mode_initial_error(capsys):
    client = FakeClient(groups_error=GitLabError("down"))
    assert run_hierarchy_mode(client, "", False, StopCounter(), io.StringIO()) == 1
    assert "Error getting initial groups: down" in capsys.readouterr().err


def test_main_version(capsys):
    assert main(["--version"]) == 0
    assert capsys.readouterr().out == "glids devel (none) unknown\n"


def test_main_requires_token_and_host(monkeypatch, capsys):
    monkeypatch.delenv("GITLAB_TOKEN", raising=False)
    monkeypatch.delenv("GITLAB_HOST", raising=False)
    assert main([]) == 1
    assert "GITLAB_TOKEN environment variable must be set" in capsys.readouterr().err


def _page_callback(items):
    def callback(request):
        query = parse_qs(urlparse(request.url).query)
        page = int(query["page"][0])
        body = items if page == 1 else []
        return 200, {"Content-Type": "application/json"}, json.dumps(body)

    return callback


def test_main_projects_over_http(monkeypatch, capsys):
    monkeypatch.setenv("GITLAB_TOKEN", "token")
    monkeypatch.setenv("GITLAB_HOST", "gitlab.example.com")
    monkeypatch.delenv("GLIDS_NOHTTPS", raising=False)
    items = [
        {"id": 12, "path_with_namespace": "team/web", "name": "web"},
        {"id": 11, "path_with_namespace": "team/api", "name": "api"},
    ]
    with responses.RequestsMock() as rsps:
        rsps.add_callback(
            responses.GET,
            "http://gitlab.example.com/api/v4/projects",
            callback=_page_callback(items),
        )
        code = main(["--nohttps"])
        auth = rsps.calls[0].request.headers["Authorization"]

    expected = io.StringIO()
    print_project_list(
        [Project(11, "team/api", "api"), Project(12, "team/web", "web")], 0, expected
    )
    captured = capsys.readouterr()
    assert code == 0
    assert auth == "Bearer token"
    assert captured.out == expected.getvalue()
    assert "Fetching projects..." in captured.err


def test_main_groups_with_host_flag_and_search(monkeypatch, capsys):
    monkeypatch.setenv("GITLAB_TOKEN", "token")
    monkeypatch.setenv("GITLAB_HOST", "ignored.example.com")
    monkeypatch.delenv("GLIDS_NOHTTPS", raising=False)
    items = [{"id": 4, "full_path": "infra", "name": "infra", "parent_id": None}]
    with responses.RequestsMock() as rsps:
        rsps.add_callback(
            responses.GET,
            "https://gitlab.example.com/api/v4/groups",
            callback=_page_callback(items),
        )
        code = main(["--groups", "--host", "gitlab.example.com", "infra"])
        query = parse_qs(urlparse(rsps.calls[0].request.url).query)

    expected = io.StringIO()
    print_group_list([Group(id=4, full_path="infra", name="infra")], 0, expected)
    assert code == 0
    assert query["search"] == ["infra"]
    assert capsys.readouterr().out == expected.getvalue()


def test_main_reports_api_failure(monkeypatch, capsys):
    monkeypatch.setenv("GITLAB_TOKEN", "token")
    monkeypatch.setenv("GITLAB_HOST", "gitlab.example.com")
    monkeypatch.setenv("GLIDS_NOHTTPS", "true")
    with responses.RequestsMock() as rsps:
        rsps.add(
            responses.GET,
            "http://gitlab.example.com/api/v4/projects",
            status=500,
            body="oops",
        )
        code = main([])
    assert code == 1
    assert "Error getting projects: API request failed with status 500: oops" in (
        capsys.readouterr().err
    )