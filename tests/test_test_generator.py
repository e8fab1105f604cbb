"""
Test Generator Tests
====================
Signature extraction, rendering modes and file handling of TestGenerator.
"""

import ast
import json
import textwrap
from pathlib import Path

import pytest

from code_insight.analyzers.testgen import (
    TestGenerator,
    extract_functions,
    is_testable,
    mock_suggestions,
    render_tests,
)
from code_insight.contracts.load import validate_payload
from code_insight.tools.errors import ToolExecutionError
from code_insight.tools.inputs import GenerateRequest, TestMode
from code_insight.tools.manager import ToolManager

SAMPLE = '''
from dataclasses import dataclass


class Repository:
    def load(self, key: str) -> dict:
        raise NotImplementedError


class PriceService:
    def __init__(self, repo: Repository):
        self.repo = repo

    def quote(self, sku: str, qty: int = 1) -> float:
        if qty <= 0:
            raise ValueError("qty must be positive")
        return self.repo.load(sku)["price"] * qty

    @staticmethod
    def currency() -> str:
        return "EUR"

    def _cache(self):
        return {}


def total(prices: list[float], *, discount: float = 0.0) -> float:
    return sum(prices) * (1 - discount)


def notify(repo: Repository, message: str) -> None:
    repo.load(message)


async def fetch(url: str) -> bytes:
    return b""


def _private():
    pass
'''


@pytest.fixture
def generator():
    return TestGenerator()


@pytest.fixture
def sample_file(tmp_path) -> Path:
    path = tmp_path / "pricing.py"
    path.write_text(SAMPLE, encoding="utf-8")
    return path


def _generate(generator, **kwargs) -> dict:
    payload = generator.generate(GenerateRequest(**kwargs))
    validate_payload("test_generator", payload)
    return payload


# ============================================================================
# SIGNATURES
# ============================================================================

class TestExtraction:
    def test_functions_and_methods(self):
        functions = extract_functions(ast.parse(SAMPLE))
        names = [f.qualified_name for f in functions]
        assert names == [
            "Repository.load",
            "PriceService.__init__",
            "PriceService.quote",
            "PriceService.currency",
            "PriceService._cache",
            "total",
            "notify",
            "fetch",
            "_private",
        ]

    def test_parameters_and_raises(self):
        quote = next(f for f in extract_functions(ast.parse(SAMPLE)) if f.name == "quote")
        assert [p.name for p in quote.params] == ["sku", "qty"]
        assert quote.params[1].default == "1"
        assert quote.params[0].annotation == "str"
        assert quote.returns == "float"
        assert quote.raises == ("ValueError",)
        assert quote.binding == "method"

    def test_keyword_only_and_async(self):
        functions = {f.name: f for f in extract_functions(ast.parse(SAMPLE))}
        assert functions["total"].params[1].kind == "keyword_only"
        assert functions["fetch"].is_async
        assert functions["currency"].binding == "staticmethod"

    def test_testable_filter(self):
        testable = [f.qualified_name for f in extract_functions(ast.parse(SAMPLE)) if is_testable(f)]
        assert "_private" not in testable
        assert "PriceService._cache" not in testable
        assert "PriceService.__init__" not in testable
        assert "total" in testable


# ============================================================================
# RENDERING
# ============================================================================

class TestRendering:
    @pytest.mark.parametrize("mode", list(TestMode))
    def test_output_is_valid_python(self, mode):
        functions = [f for f in extract_functions(ast.parse(SAMPLE)) if is_testable(f)]
        source, tests = render_tests("pricing", functions, mode)
        ast.parse(source)
        assert tests
        assert all(t["test_name"].startswith("test_") for t in tests)

    def test_table_driven_parametrize(self):
        functions = [f for f in extract_functions(ast.parse(SAMPLE)) if f.name == "quote"]
        source, tests = render_tests("pricing", functions, TestMode.TABLE_DRIVEN)
        assert "@pytest.mark.parametrize" in source
        assert '"sku, qty, expected"' in source
        assert "pytest.raises(ValueError)" in source
        assert "from pricing import PriceService" in source
        assert [t["test_name"] for t in tests] == [
            "test_price_service_quote",
            "test_price_service_quote_raises_value_error",
        ]

    def test_basic_mode(self):
        functions = [f for f in extract_functions(ast.parse(SAMPLE)) if f.name == "total"]
        source, tests = render_tests("pricing", functions, TestMode.BASIC)
        assert "parametrize" not in source
        assert "result = total(prices=None, discount=0.0)" in source
        assert len(tests) == 1

    def test_async_function_uses_asyncio(self):
        functions = [f for f in extract_functions(ast.parse(SAMPLE)) if f.name == "fetch"]
        source, _ = render_tests("pricing", functions, TestMode.BASIC)
        assert "import asyncio" in source
        assert "asyncio.run(fetch(url=None))" in source

    def test_mock_mode_autospecs_project_types(self):
        functions = [f for f in extract_functions(ast.parse(SAMPLE)) if f.name == "notify"]
        source, _ = render_tests("pricing", functions, TestMode.MOCK)
        assert "from unittest.mock import create_autospec" in source
        assert "create_autospec(pricing.Repository, instance=True)" in source
        assert "def mock_repo():" in source

    def test_mock_suggestions(self):
        functions = extract_functions(ast.parse(SAMPLE))
        suggestions = mock_suggestions(functions)
        assert {"function": "notify", "parameter": "repo", "type": "Repository",
                "suggestion": "create_autospec(Repository, instance=True)"} in suggestions
        assert all(s["type"] not in ("str", "int", "float") for s in suggestions)


# ============================================================================
# TOOL
# ============================================================================

class TestGenerate:
    def test_file_mode_writes_test_file(self, generator, sample_file):
        payload = _generate(generator, file_path=str(sample_file))
        test_file = sample_file.parent / "test_pricing.py"

        assert payload["generated_files"] == [test_file.as_posix()]
        assert test_file.exists()
        ast.parse(test_file.read_text(encoding="utf-8"))
        assert payload["mode"] == "table-driven"
        assert payload["test_case_count"] == len(payload["tests"]) > 0
        assert payload["coverage"] is None
        assert payload["summary"].startswith("Generated ")

    def test_existing_file_is_not_overwritten(self, generator, sample_file):
        test_file = sample_file.parent / "test_pricing.py"
        test_file.write_text("# hand written\n", encoding="utf-8")

        payload = _generate(generator, file_path=str(sample_file))
        assert payload["generated_files"] == []
        assert payload["skipped_files"][0]["reason"] == "test file already exists"
        assert test_file.read_text(encoding="utf-8") == "# hand written\n"

        payload = _generate(generator, file_path=str(sample_file), overwrite=True)
        assert payload["generated_files"] == [test_file.as_posix()]
        assert test_file.read_text(encoding="utf-8") != "# hand written\n"

    def test_dry_run_returns_sources(self, generator, sample_file):
        payload = _generate(generator, file_path=str(sample_file), write=False)
        test_file = (sample_file.parent / "test_pricing.py").as_posix()
        assert not Path(test_file).exists()
        assert "import pytest" in payload["sources"][test_file]

    def test_single_function(self, generator, sample_file):
        payload = _generate(generator, file_path=str(sample_file), function_name="PriceService.quote", write=False)
        assert {t["function"] for t in payload["tests"]} == {"PriceService.quote"}

    def test_unknown_function(self, generator, sample_file):
        with pytest.raises(ToolExecutionError):
            generator.generate(GenerateRequest(file_path=str(sample_file), function_name="nope"))

    def test_output_dir(self, generator, sample_file, tmp_path):
        out = tmp_path / "generated"
        payload = _generate(generator, file_path=str(sample_file), output_dir=str(out))
        assert payload["generated_files"] == [(out / "test_pricing.py").as_posix()]

    def test_mock_and_coverage_options(self, generator, sample_file):
        payload = _generate(
            generator,
            file_path=str(sample_file),
            mode=TestMode.MOCK,
            with_mock=True,
            with_coverage=True,
            write=False,
        )
        assert payload["mode"] == "mock"
        assert any(s["parameter"] == "repo" for s in payload["mock_suggestions"])
        assert "--cov=pricing" in payload["coverage"]["command"]

    def test_directory_mode(self, generator, tmp_path):
        (tmp_path / "a.py").write_text("def f(x):\n    return x\n", encoding="utf-8")
        (tmp_path / "b.py").write_text("def broken(:\n", encoding="utf-8")
        (tmp_path / "c.py").write_text("_hidden = 1\n", encoding="utf-8")
        (tmp_path / "test_a.py").write_text("def test_f():\n    pass\n", encoding="utf-8")

        payload = _generate(generator, dir_path=str(tmp_path), write=False)

        assert [Path(p).name for p in payload["generated_files"]] == ["test_a.py"]
        assert [Path(e["path"]).name for e in payload["error_files"]] == ["b.py"]
        assert [Path(s["path"]).name for s in payload["skipped_files"]] == ["c.py"]

    def test_nothing_to_test(self, generator, tmp_path):
        path = tmp_path / "consts.py"
        path.write_text("VALUE = 1\n", encoding="utf-8")
        payload = _generate(generator, file_path=str(path))
        assert payload["summary"] == "No testable functions found."
        assert payload["test_case_count"] == 0


class TestValidation:
    @pytest.fixture
    def manager(self):
        manager = ToolManager()
        manager.register(TestGenerator())
        return manager

    def test_requires_exactly_one_target(self, manager, sample_file):
        assert not manager.run("test_generator", GenerateRequest()).success
        both = GenerateRequest(file_path=str(sample_file), dir_path=str(sample_file.parent))
        assert not manager.run("test_generator", both).success

    def test_function_requires_file(self, manager, tmp_path):
        result = manager.run("test_generator", GenerateRequest(dir_path=str(tmp_path), function_name="f"))
        assert "function_name requires file_path" in result.error

    def test_missing_file(self, manager, tmp_path):
        result = manager.run("test_generator", GenerateRequest(file_path=str(tmp_path / "nope.py")))
        assert "file not found" in result.error

    def test_non_python_file(self, manager, tmp_path):
        path = tmp_path / "notes.txt"
        path.write_text("hi", encoding="utf-8")
        result = manager.run("test_generator", GenerateRequest(file_path=str(path)))
        assert "not a Python file" in result.error

    def test_invalid_mode(self, manager, sample_file):
        result = manager.run("test_generator", GenerateRequest(file_path=str(sample_file), mode="fuzz"))
        assert "invalid mode" in result.error

    def test_success_through_manager(self, manager, sample_file):
        result = manager.run("test_generator", GenerateRequest(file_path=str(sample_file), write=False))
        assert result.success
        assert json.loads(result.result)["test_case_count"] > 0
