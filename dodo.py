"""
Doit file to wrap development workflow commands.
"""

import shutil
from pathlib import Path

from doit.task import Task
from doit.tools import create_folder

PACKAGE = "orgcard"

OUT_PATH = Path("__out__")

# test results and coverage
TESTS_PATH = OUT_PATH / "test"
JUNIT_PATH = TESTS_PATH / "junit.xml"
COV_HTML_PATH = TESTS_PATH / "cov"

# static analysis results
MYPY_HTML_PATH = OUT_PATH / "analysis" / "mypy"


def cleanup_dir(output_dir: Path):
    if output_dir.exists():
        shutil.rmtree(output_dir)


def task_pytest() -> Task:
    """
    Run pytest and generate coverage report.
    """

    args = [
        "pytest",
        f"--cov={PACKAGE}",
        f"--cov-report=html:{COV_HTML_PATH}",
        f"--junitxml={JUNIT_PATH}",
    ]

    return Task(
        "test",
        actions=[
            (create_folder, [TESTS_PATH]),
            " ".join(args),
        ],
        targets=[
            f"{COV_HTML_PATH}/index.html",
            JUNIT_PATH,
        ],
        file_dep=[],
        clean=[(cleanup_dir, [TESTS_PATH])],
    )


def task_format() -> Task:
    """
    Run formatters.
    """

    return Task(
        "format",
        actions=[
            "autoflake --remove-all-unused-imports -i -r .",
            "isort .",
            "black .",
        ],
        targets=[],
        file_dep=[],
    )


def task_analysis() -> Task:
    """
    Run type checker.
    """

    return Task(
        "analysis",
        actions=[
            f"mypy --html-report {MYPY_HTML_PATH} {PACKAGE}",
        ],
        targets=[],
        file_dep=[],
        clean=[(cleanup_dir, [MYPY_HTML_PATH])],
    )
