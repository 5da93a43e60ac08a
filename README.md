# glids

`glids` is a small command-line tool that looks up the numeric IDs of GitLab
projects and groups through the GitLab v4 REST API. It prints them as
right-aligned lists or as a tree of groups, subgroups and projects.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Configuration

`glids` reads its credentials from the environment:

| Variable         | Meaning                                                          |
|------------------|------------------------------------------------------------------|
| `GITLAB_TOKEN`   | Access token, sent as `Authorization: Bearer <token>` (required) |
| `GITLAB_HOST`    | GitLab host, e.g. `gitlab.example.com` (unless `--host` is used) |
| `GLIDS_NOHTTPS`  | Set to `true` to use plain HTTP instead of HTTPS                 |

```
export GITLAB_TOKEN=token
export GITLAB_HOST=gitlab.example.com
```

If the token or the host is missing, `glids` prints an error and exits with
status 1.

## Usage

```
glids [options] [search-term]
```

By default only projects active in the last 30 days are listed, sorted by
path (case-insensitively), each followed by its ID:

```
glids
glids backend            # projects whose path contains "backend"
```

Options (each may be written with one or two leading dashes, e.g. `-all` or
`--all`):

- `--search TERM` – filter by search term; a positional argument takes precedence
- `--all` – include items regardless of their last activity date
- `--groups` – list groups and subgroups instead of projects
- `--both` – list groups, then projects, with their name columns lined up
- `--hierarchy` – show each matching group as a tree of its subgroups and projects
- `--host HOST` – GitLab host; overrides `GITLAB_HOST`
- `--nohttps` – use HTTP instead of HTTPS
- `--debug` – write debug logging to standard error (the progress spinner is then not shown)
- `--version` – print the version and exit

Project searches are matched against the project path on the client side.
Group searches use the API's `search` parameter first; if that finds nothing,
all groups are fetched and filtered by path.

Example of hierarchy output:

```
glids --hierarchy platform
```

```
platform (ID: 12)
  ├──❯  infra [G] [ID=34]
  │     └──❯  terraform [P] [ID=301]
  └──❯  api [P] [ID=250]
```

Within each group, subgroups come first and then projects, each sorted by
name case-insensitively. If part of a tree cannot be fetched, a warning is
printed to standard error and whatever was fetched is still shown.

## Confirmation of large fetches

When `--all` is given and a request would fetch more than 50 items, `glids`
asks `This operation will fetch N ... Continue? (y/n)` on standard error.
When both standard input and standard error are terminals (on systems with
POSIX terminal support), a single key is read; otherwise a whole line is read
and `y` or `yes` is accepted. Declining cancels the operation and `glids`
exits with status 0.

## Output

Progress is shown on standard error while data is being fetched: an animated
spinner on a terminal, a single line otherwise. Results go to standard
output, so they can be piped or redirected safely.

## Use from Python

The pieces the command is built from can be used directly:

- `glids.client.GitLabClient(base_url, token)` with `get_projects`,
  `get_groups`, `check_resource_count` and `populate_group_hierarchy`;
  failures raise `GitLabError`, a declined confirmation raises
  `OperationCancelledError`.
- `glids.models` holds the `Project`, `Group` and `PaginationInfo` dataclasses.
- `glids.display` has `print_project_list`, `print_group_list`,
  `print_hierarchy` and `format_columns`.
- `glids.status.StatusIndicator` is the spinner, usable as a context manager.
- `glids.cli.main(argv)` runs the command and returns its exit status.

## What it does not do

`glids` only reads: it lists projects and groups and their IDs. It does not
create, change or delete anything on the server, and it does not cache
results between runs.