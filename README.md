# sfcli

Helpers for working on Symfony projects:

- computes the environment variables an application needs from its
  service relationships (`DATABASE_URL`, `REDIS_URL`, `MAILER_DSN`, ...),
  and, inside a cloud container, from the `PLATFORM_*` variables
  (`sfcli.relationships`, `sfcli.remote`, `sfcli.routes`)
- reads `.env`, `.env.local`, `.env.<env>` and `.env.<env>.local` files
  the way a Symfony application loads them (`sfcli.dotenv`)
- keeps track of tunnel state files and turns tunnel information into
  relationships (`sfcli.tunnel`)
- inspects `composer.json` and `composer.lock` for packages and PHP
  extensions (`sfcli.composer`)
- selects and renders cloud configuration templates (`sfcli.templates`)
- checks the machine for the tools needed to follow the
  "Symfony 5: The Fast Track" book and checks out the book's steps
  (`sfcli.requirements`, `sfcli.book`)

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Command line

```
sfcli book:check-requirements
sfcli book:checkout [STEP] [--dir DIR] [--debug] [--force]
sfcli --version
```

`book:check-requirements` (alias `book:check`) reports whether Git, PHP
(found on `PATH`, newer than 7.2.4, with the required extensions),
Composer, Docker, Docker Compose and Yarn are installed. It exits with 1
when a required item is missing.

`book:checkout` resets a clone of the book repository to the code at the
end of a step (for example `10` or `10.2`, checked out as the Git tag
`step-10-2` on a branch `work-step-10-2`). It asks for confirmation before
discarding changes, then cleans the working tree, restarts containers,
installs Composer and Node dependencies, migrates the database, loads
fixtures, builds assets and starts the web servers, running the `git`,
`docker-compose`, `symfony` and `yarn` commands. `--debug` shows the output
of each command; `--force` skips the repository check and the questions.

Before running a command, unset `SYMFONY_BRANCH`, `SYMFONY_ENV` and
`SYMFONY_APPLICATION_NAME` are filled from their `PLATFORM_*` counterparts.

## Library use

```python
from sfcli.remote import RemoteEnvironment
from sfcli.relationships import as_map

env = RemoteEnvironment()
for name, value in sorted(as_map(env).items()):
    print(f"{name}={value}")
```

```python
from sfcli.relationships import extract_relationship_envs

extract_relationship_envs(
    {"database": [{"scheme": "pgsql", "host": "localhost", "port": 5432,
                   "username": "user", "password": "password", "path": "main"}]},
    language="php",
    local=True,
)
```

```python
from sfcli.dotenv import load_dotenv, parse_dotenv

variables = load_dotenv({}, "/path/to/project/public")
parse_dotenv('APP_ENV=dev\nGREETING="hello ${APP_ENV}"\n')
```

```python
from sfcli.composer import has_composer_package, has_php_extension, php_extensions

has_composer_package("/path/to/project", "symfony/framework-bundle")
has_php_extension("/path/to/project", "intl")
php_extensions("/path/to/project")
```

```python
from sfcli.templates import CloudService, render_routes_yaml, render_services_yaml

print(render_services_yaml([CloudService("database", "postgresql", "13")]))
print(render_routes_yaml("app"))
```

`sfcli.templates.find_template` picks a template from a URL, a file, or a
directory of `*.yaml` template definitions, either by name or by the first
one whose requirements (`file_exists`, `has_composer_package`,
`has_php_extension`, `php_at_least`) the project meets.

## What it does not do

- There is no local environment class: relationships are not read from a
  local Docker setup, and the local web server's default route variables
  are not computed. `RemoteEnvironment` is the only `Environment` provided.
- `Tunnel` manages the state file of a tunnel whose project, environment and
  application you give it; it does not open tunnels or work them out from
  a Git checkout.
- There are no commands to start or stop a local web server or proxy, run
  workers, create projects, write cloud configuration files to disk, or
  call cloud platform commands. The command line covers the book commands
  only.