"""Security scanner — detects common security anti-patterns.

Single-file, single-pass, purely syntactic: each rule looks at one node and
the ancestors the engine has recorded.  No data-flow or taint tracking, so
a value that reaches a dangerous sink through a variable is not followed.
"""

from __future__ import annotations

import ast
import logging
import re
from typing import Any, Optional

from code_insight.analyzers._astutil import (
    attr_name,
    call_name,
    dotted_name,
    get_argument,
    get_keyword,
    get_string_value,
    is_false_constant,
    is_true_constant,
    joined_str_template,
    name_segments,
    referenced_names,
    target_names,
)
from code_insight.core.context import RunContext
from code_insight.engine import Rule, RuleContext, RuleEngine, severity_statistics, summarize
from code_insight.model import Category, Severity
from code_insight.rules import (
    SC_COMMAND_INJECTION,
    SC_EVAL,
    SC_FILE_PERMISSIONS,
    SC_HARDCODED_SECRET,
    SC_INFO_DISCLOSURE,
    SC_INSECURE_HTTP,
    SC_SQL_INJECTION,
    SC_UNSAFE_DESERIALIZATION,
    SC_WEAK_CRYPTO,
    SC_WEAK_RANDOM,
)
from code_insight.tools.base import BaseTool
from code_insight.tools.errors import InputValidationError
from code_insight.tools.inputs import SourceInput
from code_insight.utils.json_norm import stable_json_dumps

_logger = logging.getLogger(__name__)


# ── Secret detection patterns ───────────────────────────────────────────

# Single words that mark a name as holding a secret.
_SECRET_WORDS = frozenset(
    {
        "password",
        "passwd",
        "passphrase",
        "secret",
        "token",
        "credential",
        "credentials",
        "apikey",
        "accesstoken",
        "privatekey",
        "authtoken",
    }
)

# Adjacent word pairs, joined (api_key → "apikey").
_SECRET_PAIRS = frozenset({"apikey", "accesstoken", "privatekey", "authtoken", "secretkey", "clientsecret"})

# Trailing words that turn a secret-looking name into metadata about it.
_NON_SECRET_SUFFIXES = frozenset(
    {"url", "uri", "field", "name", "type", "header", "env", "var", "path", "file", "length", "len", "prefix", "regex", "pattern"}
)

# Placeholder values to ignore
_PLACEHOLDER_PATTERNS = [
    re.compile(r"^(your[_-]?|my[_-]?|example[_-]?|dummy[_-]?|fake[_-]?|sample[_-]?)", re.I),
    re.compile(r"(xxx+|placeholder|changeme|change-me|fixme|todo|<.*>)", re.I),
    re.compile(r"^\*+$"),
    re.compile(r"^\$\{.*\}$"),  # ${VAR} templates
    re.compile(r"^%\(.*\)s$"),  # %(var)s templates
    re.compile(r"^\{.*\}$"),    # {var} templates
]

# Words in a name that mark it as sensitive when printed or logged.
_SENSITIVE_WORDS = _SECRET_WORDS | {"pwd", "ssn", "pin", "cvv"}


def is_secret_name(name: str) -> bool:
    """Check if an identifier suggests it holds a secret."""
    words = name_segments(name)
    if not words or words[-1] in _NON_SECRET_SUFFIXES:
        return False
    if any(word in _SECRET_WORDS for word in words):
        return True
    return any(a + b in _SECRET_PAIRS for a, b in zip(words, words[1:]))


def _is_sensitive_name(name: str) -> bool:
    words = name_segments(name)
    if any(word in _SENSITIVE_WORDS for word in words):
        return True
    return any(a + b in _SECRET_PAIRS for a, b in zip(words, words[1:]))


def is_placeholder(value: str) -> bool:
    return any(pattern.search(value) for pattern in _PLACEHOLDER_PATTERNS)


# ── SQL detection ───────────────────────────────────────────────────────

_SQL_STATEMENT = re.compile(
    r"^\s*(SELECT\s.+\sFROM\s|INSERT\s+INTO\s|UPDATE\s+\S+\s+SET\s|DELETE\s+FROM\s|"
    r"DROP\s+(TABLE|DATABASE)\s|CREATE\s+TABLE\s|ALTER\s+TABLE\s|TRUNCATE\s+TABLE\s|"
    r"REPLACE\s+INTO\s|MERGE\s+INTO\s)",
    re.IGNORECASE | re.DOTALL,
)


def _looks_like_sql(text: str) -> bool:
    # trailing space lets "DELETE FROM " + table match
    return bool(_SQL_STATEMENT.match(text + " "))


_SQL_KEYWORD = re.compile(
    r"\b(SELECT|INSERT|UPDATE|DELETE|FROM|WHERE|DROP|CREATE|ALTER|TRUNCATE|EXEC|EXECUTE)\b",
    re.IGNORECASE,
)


def _is_concat(node: Optional[ast.AST]) -> bool:
    return isinstance(node, ast.BinOp) and isinstance(node.op, ast.Add)


def _concat_operands(node: ast.BinOp) -> list[ast.expr]:
    """Leaves of a ``+`` chain, left to right."""
    operands: list[ast.expr] = []
    stack: list[ast.expr] = [node]
    while stack:
        current = stack.pop()
        if _is_concat(current):
            stack.append(current.right)
            stack.append(current.left)
        else:
            operands.append(current)
    return operands


# ── Rules ───────────────────────────────────────────────────────────────


class HardcodedSecretRule(Rule):
    id = SC_HARDCODED_SECRET
    name = "hardcoded-secret"
    severity = Severity.CRITICAL
    category = Category.CREDENTIALS.value
    description = "Hardcoded credential: a secret-looking name is bound to a string literal"
    suggestion = "Load secrets from environment variables or a secret manager (os.environ, keyring, vault)"
    node_types = (ast.Assign, ast.AnnAssign, ast.keyword)

    def match(self, node: ast.AST, ctx: RuleContext) -> bool:
        if isinstance(node, ast.keyword):
            names = [node.arg] if node.arg else []
        elif isinstance(node, ast.Assign):
            names = [n for target in node.targets for n in target_names(target)]
        else:
            names = target_names(node.target)
        value = get_string_value(node.value)
        if not value or not value.strip() or is_placeholder(value):
            return False
        return any(is_secret_name(n) and value.lower() != n.lower() for n in names)


class InfoDisclosureRule(Rule):
    id = SC_INFO_DISCLOSURE
    name = "sensitive-data-logged"
    severity = Severity.MEDIUM
    category = Category.DATA_PRIVACY.value
    description = "Sensitive value written to output or logs"
    suggestion = "Do not print or log secrets; mask them (e.g. '***') or log only that a value is present"
    node_types = (ast.Call,)

    _LOG_METHODS = frozenset({"debug", "info", "warning", "warn", "error", "critical", "exception", "log"})

    def match(self, node: ast.Call, ctx: RuleContext) -> bool:
        if not self._is_output_call(node):
            return False
        for arg in [*node.args, *(kw.value for kw in node.keywords)]:
            if any(_is_sensitive_name(n) for n in referenced_names(arg)):
                return True
        return False

    def _is_output_call(self, node: ast.Call) -> bool:
        func = node.func
        if isinstance(func, ast.Name):
            return func.id == "print"
        if isinstance(func, ast.Attribute) and func.attr in self._LOG_METHODS:
            receiver = dotted_name(func.value).lower()
            return "log" in receiver.rsplit(".", 1)[-1]
        return False


class SQLInjectionRule(Rule):
    id = SC_SQL_INJECTION
    name = "sql-string-building"
    severity = Severity.CRITICAL
    category = Category.INJECTION.value
    description = "SQL built by concatenating or formatting a non-literal value (possible SQL injection)"
    suggestion = "Use parameterized queries: cursor.execute('... WHERE id = ?', (value,))"
    node_types = (ast.BinOp, ast.JoinedStr, ast.Call)

    def match(self, node: ast.AST, ctx: RuleContext) -> bool:
        if isinstance(node, ast.BinOp):
            if isinstance(node.op, ast.Add):
                return self._is_sql_concat(node, ctx)
            if isinstance(node.op, ast.Mod):
                text = get_string_value(node.left)
                return text is not None and _looks_like_sql(text)
            return False
        if isinstance(node, ast.JoinedStr):
            has_placeholder = any(isinstance(v, ast.FormattedValue) for v in node.values)
            return has_placeholder and _looks_like_sql(joined_str_template(node))
        # "SELECT ... {}".format(x)
        func = node.func
        if isinstance(func, ast.Attribute) and func.attr == "format":
            text = get_string_value(func.value)
            return text is not None and _looks_like_sql(text) and bool(node.args or node.keywords)
        return False

    @staticmethod
    def _is_sql_concat(node: ast.BinOp, ctx: RuleContext) -> bool:
        # a chain reports once, at its outermost "+"
        if _is_concat(ctx.parent(node)):
            return False
        literals = [get_string_value(operand) for operand in _concat_operands(node)]
        if all(text is not None for text in literals):
            return False
        return any(text is not None and _SQL_KEYWORD.search(text) for text in literals)


class CommandInjectionRule(Rule):
    id = SC_COMMAND_INJECTION
    name = "shell-command"
    severity = Severity.HIGH
    category = Category.INJECTION.value
    description = "Command executed through a shell (possible command injection)"
    suggestion = "Pass an argument list to subprocess.run() without shell=True; use shlex.quote() if a shell is unavoidable"
    node_types = (ast.Call,)

    _SHELL_CALLS = frozenset({"os.system", "os.popen", "commands.getoutput", "commands.getstatusoutput"})
    _SUBPROCESS_FUNCS = frozenset({"run", "call", "check_call", "check_output", "Popen", "getoutput", "getstatusoutput"})

    def match(self, node: ast.Call, ctx: RuleContext) -> bool:
        name = call_name(node)
        if name in self._SHELL_CALLS:
            return True
        if name.startswith("subprocess.") or attr_name(node) in self._SUBPROCESS_FUNCS:
            return is_true_constant(get_keyword(node, "shell"))
        return False


class EvalRule(Rule):
    id = SC_EVAL
    name = "eval-exec"
    severity = Severity.CRITICAL
    category = Category.INJECTION.value
    description = "Dynamic code execution with eval()/exec()"
    suggestion = "Use ast.literal_eval() for data, or an explicit dispatch table instead of executing code"
    node_types = (ast.Call,)

    def match(self, node: ast.Call, ctx: RuleContext) -> bool:
        return call_name(node) in {"eval", "exec", "builtins.eval", "builtins.exec"}


class FilePermissionRule(Rule):
    id = SC_FILE_PERMISSIONS
    name = "world-writable-permissions"
    severity = Severity.MEDIUM
    category = Category.FILE_SYSTEM.value
    description = "File or directory created with world-writable permissions"
    suggestion = "Use restrictive modes such as 0o600 for files and 0o700 for directories"
    node_types = (ast.Call,)

    # call name → (positional index, keyword) of the mode argument
    _OS_MODE_ARGS = {
        "os.chmod": (1, "mode"),
        "os.lchmod": (1, "mode"),
        "os.fchmod": (1, "mode"),
        "os.mkdir": (1, "mode"),
        "os.makedirs": (1, "mode"),
        "os.mkfifo": (1, "mode"),
        "os.mknod": (1, "mode"),
        "os.open": (2, "mode"),
    }
    _PATH_METHODS = frozenset({"chmod", "lchmod", "mkdir", "touch"})

    def match(self, node: ast.Call, ctx: RuleContext) -> bool:
        name = call_name(node)
        if name in self._OS_MODE_ARGS:
            position, keyword = self._OS_MODE_ARGS[name]
        elif isinstance(node.func, ast.Attribute) and node.func.attr in self._PATH_METHODS:
            position, keyword = 0, "mode"
        else:
            return False
        mode = get_argument(node, position, keyword)
        if isinstance(mode, ast.Constant) and isinstance(mode.value, int) and not isinstance(mode.value, bool):
            return bool(mode.value & 0o002)
        return False


class WeakRandomRule(Rule):
    id = SC_WEAK_RANDOM
    name = "weak-random"
    severity = Severity.HIGH
    category = Category.CRYPTOGRAPHY.value
    description = "Non-cryptographic random number generator"
    suggestion = "Use the secrets module (secrets.token_hex, secrets.choice) for security-sensitive values"
    node_types = (ast.Call,)

    _FUNCS = frozenset(
        {"random", "randint", "randrange", "choice", "choices", "shuffle", "sample", "uniform", "getrandbits", "randbytes", "seed"}
    )

    def match(self, node: ast.Call, ctx: RuleContext) -> bool:
        module, _, func = call_name(node).rpartition(".")
        return module == "random" and func in self._FUNCS


class WeakCryptoRule(Rule):
    id = SC_WEAK_CRYPTO
    name = "weak-crypto"
    severity = Severity.HIGH
    category = Category.CRYPTOGRAPHY.value
    description = "Weak hash or cipher (MD5, SHA-1, DES, RC4, ...)"
    suggestion = "Use hashlib.sha256()/sha3_256() for hashing and AES-GCM (cryptography) for encryption"
    node_types = (ast.Call,)

    _WEAK_HASHES = frozenset({"md5", "sha1", "md4", "md2"})
    _WEAK_CIPHERS = frozenset({"DES", "DES3", "ARC2", "ARC4", "Blowfish", "XOR"})

    def match(self, node: ast.Call, ctx: RuleContext) -> bool:
        if is_false_constant(get_keyword(node, "usedforsecurity")):
            return False
        name = call_name(node)
        module, _, func = name.rpartition(".")
        if func in self._WEAK_HASHES and module in {"", "hashlib", "Crypto.Hash", "Cryptodome.Hash"}:
            return True
        if name in {"hashlib.new", "new"}:
            algorithm = get_string_value(get_argument(node, 0, "name"))
            return algorithm is not None and algorithm.lower().replace("-", "") in self._WEAK_HASHES
        if func == "new" and module.rsplit(".", 1)[-1] in self._WEAK_CIPHERS | {"MD5", "SHA", "SHA1"}:
            return True
        return False


class UnsafeDeserializationRule(Rule):
    id = SC_UNSAFE_DESERIALIZATION
    name = "unsafe-deserialization"
    severity = Severity.HIGH
    category = Category.DESERIALIZATION.value
    description = "Deserialization of untrusted data can execute arbitrary code"
    suggestion = "Use json for data exchange, or yaml.safe_load(); never unpickle data you did not produce"
    node_types = (ast.Call,)

    _UNSAFE = frozenset(
        {
            "pickle.load",
            "pickle.loads",
            "cPickle.load",
            "cPickle.loads",
            "dill.load",
            "dill.loads",
            "marshal.load",
            "marshal.loads",
            "shelve.open",
            "yaml.unsafe_load",
            "yaml.unsafe_load_all",
        }
    )

    def match(self, node: ast.Call, ctx: RuleContext) -> bool:
        name = call_name(node)
        if name in self._UNSAFE:
            return True
        if name in {"yaml.load", "yaml.load_all"}:
            loader = get_argument(node, 1, "Loader")
            if loader is None:
                return True
            return not dotted_name(loader).endswith("SafeLoader")
        return False


class InsecureHTTPRule(Rule):
    id = SC_INSECURE_HTTP
    name = "plain-http"
    severity = Severity.MEDIUM
    category = Category.NETWORK.value
    description = "Unencrypted HTTP request"
    suggestion = "Use https:// URLs so traffic is encrypted and the server is authenticated"
    node_types = (ast.Call,)

    _CLIENTS = frozenset({"requests", "httpx", "aiohttp", "urllib3"})
    _VERBS = frozenset({"get", "post", "put", "patch", "delete", "head", "options", "stream"})
    _LOOPBACK = re.compile(r"^http://(localhost|127\.0\.0\.1|\[::1\]|0\.0\.0\.0)([:/]|$)", re.I)

    def match(self, node: ast.Call, ctx: RuleContext) -> bool:
        name = call_name(node)
        module, _, func = name.rpartition(".")
        if module in self._CLIENTS and func in self._VERBS:
            url = get_argument(node, 0, "url")
        elif module in self._CLIENTS and func == "request":
            url = get_argument(node, 1, "url")
        elif name in {"urlopen", "urllib.request.urlopen", "request.urlopen"}:
            url = get_argument(node, 0, "url")
        else:
            return False
        text = get_string_value(url)
        if text is None and isinstance(url, ast.JoinedStr):
            text = joined_str_template(url)
        if text is None or not text.lower().startswith("http://"):
            return False
        return not self._LOOPBACK.match(text)


def default_security_rules() -> list[Rule]:
    """The built-in catalogue, in evaluation order."""
    return [
        HardcodedSecretRule(),
        InfoDisclosureRule(),
        SQLInjectionRule(),
        CommandInjectionRule(),
        EvalRule(),
        FilePermissionRule(),
        WeakRandomRule(),
        WeakCryptoRule(),
        UnsafeDeserializationRule(),
        InsecureHTTPRule(),
    ]


# ── Tool ────────────────────────────────────────────────────────────────


class SecurityScanner(BaseTool):
    """Scans one Python source for security anti-patterns."""

    name = "security_scanner"
    description = "Scan Python source for hardcoded secrets, injection, weak crypto and other security issues"
    input_type = SourceInput

    def __init__(self, rules: list[Rule] | None = None) -> None:
        self._engine = RuleEngine(rules if rules is not None else default_security_rules(), id_prefix="SEC")

    @property
    def engine(self) -> RuleEngine:
        return self._engine

    def validate_fields(self, tool_input: SourceInput) -> None:
        if not tool_input.code.strip():
            raise InputValidationError("code is required", tool=self.name)

    def run(self, tool_input: SourceInput, ctx: RunContext) -> str:
        return stable_json_dumps(self.analyze(tool_input.code, tool_input.filename, ctx))

    def analyze(self, code: str, filename: str, ctx: RunContext | None = None) -> dict[str, Any]:
        tree = self.parse(code, filename)
        issues = self._engine.analyze(tree, code, filename, ctx)
        _logger.debug("security scan of %s: %d issue(s)", filename, len(issues))
        return {
            "file": filename,
            "total": len(issues),
            "issues": [issue.to_dict() for issue in issues],
            "summary": summarize(
                issues,
                noun="security issues",
                clean="No security issues found. The code follows secure coding practices.",
            ),
            "statistics": severity_statistics(issues),
        }
