"""Configuration file for the Nox test runner.

This instantiates the specified sessions in isolated environments and runs the tests.
This allows for locally mirroring the testing occuring with GitHub-actions.
"""

import nox

# set the test parameters
python_versions_to_test = ["3.9", "3.10", "3.11", "3.12"]
nox.options.stop_on_first_error = True
nox.options.error_on_missing_interpreters = False
nox.options.default_venv_backend = "virtualenv"


@nox.session    # to only run on the current python interpreter
def lint(session: nox.Session) -> None:
    """Ensure the code is formatted as expected."""
    session.install("ruff")
    session.run("ruff", "check", "tunespace", "test")


@nox.session(python=python_versions_to_test)  # missing versions can be installed with `pyenv install ...`
def tests(session: nox.Session) -> None:
    """Run the tests for the specified Python versions."""
    session.log(f"Testing on Python {session.python}")
    session.install("-e", ".[test]")
    session.run("pytest", "test", *session.posargs)
