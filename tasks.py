# type: ignore
import os

from invoke import task


@task
def venv(ctx):
    """Create .venv and install rokucontrol with test and dev extras."""
    ctx.run("uv venv")
    ctx.run('uv pip install -e ".[test,dev]"')


@task
def clean(ctx):
    """Remove untracked files after confirmation."""
    ctx.run("git clean -nfdx")

    response = input("Remove all untracked files listed above? (y/n) [n]: ").strip().lower()
    if response == "y":
        ctx.run("git clean -fdx")


@task
def lint(ctx):
    """Ruff checks and formatting, then mypy on the package."""
    ctx.run("ruff check src tests", pty=True)
    ctx.run("ruff format --check src tests", pty=True)
    ctx.run("mypy src", pty=True)


@task
def test(ctx, k=None):
    """Run tests with coverage; ``-k`` narrows to matching tests."""
    selector = f" -k {k!r}" if k else ""
    ctx.run(f"pytest --cov=rokucontrol --cov-report=term-missing{selector}", pty=True)


@task
def build_package(ctx):
    """Build sdist and wheel into dist/."""
    ctx.run("rm -rf dist")
    ctx.run("uv build")


@task
def release(ctx):
    """Build and publish to PyPI."""
    token = os.getenv("PYPI_TOKEN")
    if not token:
        raise ValueError("PYPI_TOKEN environment variable is not set")

    ctx.run("invoke build-package")
    ctx.run(f"uv publish --token {token}")
